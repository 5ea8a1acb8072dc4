"""Unit tests for progression engine: ProgressionEvaluator, AlreadyPassedGate, routing."""

import uuid
from datetime import timedelta

import pytest

from quizgate.engines.progression.evaluator import ProgressionEvaluator
from quizgate.engines.progression.gates import (
    AlreadyPassedGate,
    NextStepKind,
    attempts_for_quiz,
    course_completion_result,
    next_level,
    next_step,
)
from quizgate.engines.progression.types import (
    LEVEL_ORDER,
    Level,
    LevelStatus,
    QuizAttempt,
    QuizRef,
    UserHistory,
)


@pytest.fixture
def evaluator() -> ProgressionEvaluator:
    return ProgressionEvaluator(
        basic_topic="basic",
        pass_threshold=0.5,
        lockout_duration=timedelta(hours=24),
    )


def _history(user_id, attempts, lockouts=None) -> UserHistory:
    return UserHistory(user_id=user_id, attempts=attempts, lockouts=lockouts or {})


class TestQuizAttempt:
    def test_violation_requires_zero_score(self, now):
        with pytest.raises(ValueError):
            QuizAttempt(
                quiz_ref=QuizRef(language="python", level=Level.BEGINNER, topic="arrays"),
                score=3,
                submitted_at=now,
                violation=True,
            )

    def test_ratio_none_for_non_scoring_attempt(self, make_attempt):
        assert make_attempt(Level.BEGINNER, score=0, answer_count=0).ratio is None
        assert make_attempt(Level.BEGINNER, score=3).ratio == 0.3

    def test_naive_timestamps_are_utc(self, now):
        attempt = QuizAttempt(
            quiz_ref=QuizRef(language="python", level=Level.BEGINNER, topic="arrays"),
            score=1,
            submitted_at=now.replace(tzinfo=None),
        )
        assert attempt.submitted_at == now


class TestBasicTrack:
    """Basic track: completed after any attempt, never locked."""

    def test_any_score_completes(self, evaluator, user_id, make_attempt, now):
        history = _history(user_id, [make_attempt(Level.INTERMEDIATE, score=0, topic="basic")])
        result = evaluator.evaluate(history, "basic", "python", now=now)
        assert result.completed == {Level.INTERMEDIATE}
        assert result.locked_until == {}

    def test_never_locked_even_with_lockout_record(self, evaluator, user_id, make_attempt, now):
        history = _history(
            user_id,
            [make_attempt(Level.BEGINNER, score=1, topic="basic")],
            lockouts={"basic": {Level.BEGINNER: now + timedelta(hours=5)}},
        )
        result = evaluator.evaluate(history, "basic", "python", now=now)
        assert Level.BEGINNER in result.completed
        assert not result.is_locked(Level.BEGINNER, now)

    def test_no_attempts_not_completed(self, evaluator, user_id, now):
        result = evaluator.evaluate(_history(user_id, []), "basic", "python", now=now)
        assert result.completed == set()

    def test_non_scoring_attempt_excluded(self, evaluator, user_id, make_attempt, now):
        history = _history(
            user_id, [make_attempt(Level.BEGINNER, score=0, answer_count=0, topic="basic")]
        )
        result = evaluator.evaluate(history, "basic", "python", now=now)
        assert result.completed == set()


class TestTopicTrack:
    """Topic track: > 50% completes, a failing latest attempt locks for 24h."""

    def test_failing_attempt_locks_for_24h(self, evaluator, user_id, make_attempt, now):
        attempt = make_attempt(Level.BEGINNER, score=3)
        result = evaluator.evaluate(_history(user_id, [attempt]), "arrays", "python", now=now)
        assert Level.BEGINNER not in result.completed
        assert result.locked_until[Level.BEGINNER] == attempt.submitted_at + timedelta(hours=24)

    def test_passing_attempt_completes_and_unlocks_next(self, evaluator, user_id, make_attempt, now):
        history = _history(user_id, [make_attempt(Level.BEGINNER, score=6)])
        result = evaluator.evaluate(history, "arrays", "python", now=now)
        assert result.completed == {Level.BEGINNER}
        assert result.locked_until == {}
        assert result.state_for(Level.INTERMEDIATE, now=now).status == LevelStatus.AVAILABLE
        assert result.state_for(Level.ADVANCED, now=now).status == LevelStatus.LOCKED

    def test_exactly_half_is_not_passing(self, evaluator, user_id, make_attempt, now):
        history = _history(user_id, [make_attempt(Level.BEGINNER, score=5)])
        result = evaluator.evaluate(history, "arrays", "python", now=now)
        assert Level.BEGINNER not in result.completed
        assert Level.BEGINNER in result.locked_until

    def test_expired_score_lockout_not_reported(self, evaluator, user_id, make_attempt, now):
        history = _history(user_id, [make_attempt(Level.BEGINNER, score=2, hours_ago=25)])
        result = evaluator.evaluate(history, "arrays", "python", now=now)
        assert result.locked_until == {}
        assert result.state_for(Level.BEGINNER, now=now).status == LevelStatus.AVAILABLE

    def test_any_passing_attempt_wins_over_later_failure(self, evaluator, user_id, make_attempt, now):
        history = _history(
            user_id,
            [
                make_attempt(Level.BEGINNER, score=8, hours_ago=5),
                make_attempt(Level.BEGINNER, score=1, hours_ago=1),
            ],
        )
        result = evaluator.evaluate(history, "arrays", "python", now=now)
        assert result.completed == {Level.BEGINNER}
        assert result.locked_until == {}

    def test_only_post_lockout_attempts_count(self, evaluator, user_id, make_attempt, now):
        """A pass before the last lockout expiry no longer counts."""
        before = make_attempt(Level.BEGINNER, score=9, hours_ago=30)
        after = make_attempt(Level.BEGINNER, score=4, hours_ago=1)
        history = _history(
            user_id,
            [before, after],
            lockouts={"arrays": {Level.BEGINNER: now - timedelta(hours=2)}},
        )
        result = evaluator.evaluate(history, "arrays", "python", now=now)
        assert Level.BEGINNER not in result.completed
        assert result.locked_until[Level.BEGINNER] == after.submitted_at + timedelta(hours=24)

    def test_active_violation_lockout_reported(self, evaluator, user_id, make_attempt, now):
        record = now + timedelta(hours=23)
        history = _history(
            user_id,
            [make_attempt(Level.BEGINNER, score=0, violation=True)],
            lockouts={"arrays": {Level.BEGINNER: record}},
        )
        result = evaluator.evaluate(history, "arrays", "python", now=now)
        assert result.locked_until[Level.BEGINNER] == record
        assert result.state_for(Level.BEGINNER, now=now).status == LevelStatus.LOCKED_UNTIL
        assert result.state_for(Level.BEGINNER, now=now).unlock_at == record

    def test_violation_lockout_wins_when_later(self, evaluator, user_id, make_attempt, now):
        """Record later than the score-derived lock takes precedence."""
        failing = make_attempt(Level.BEGINNER, score=2, hours_ago=1)
        history = _history(
            user_id,
            [failing],
            lockouts={"arrays": {Level.BEGINNER: now - timedelta(hours=3)}},
        )
        score_only = evaluator.evaluate(history, "arrays", "python", now=now)
        assert score_only.locked_until[Level.BEGINNER] == failing.submitted_at + timedelta(hours=24)

        later = now + timedelta(hours=30)
        history.lockouts["arrays"][Level.BEGINNER] = later
        with_record = evaluator.evaluate(history, "arrays", "python", now=now)
        assert with_record.locked_until[Level.BEGINNER] == later

    def test_other_topics_and_languages_ignored(self, evaluator, user_id, make_attempt, now):
        history = _history(
            user_id,
            [
                make_attempt(Level.BEGINNER, score=9, topic="graphs"),
                make_attempt(Level.BEGINNER, score=9, language="java"),
            ],
        )
        result = evaluator.evaluate(history, "arrays", "python", now=now)
        assert result.completed == set()

    def test_quiz_id_matching(self, evaluator, user_id, make_attempt, now):
        quiz_id = uuid.uuid4()
        history = _history(
            user_id,
            [
                make_attempt(Level.BEGINNER, score=9, quiz_id=uuid.uuid4()),
                make_attempt(Level.INTERMEDIATE, score=9, quiz_id=quiz_id),
            ],
        )
        result = evaluator.evaluate(
            history,
            "arrays",
            "python",
            quiz_ids={Level.BEGINNER: uuid.uuid4(), Level.INTERMEDIATE: quiz_id},
            now=now,
        )
        assert result.completed == {Level.INTERMEDIATE}

    def test_level_without_quiz_skipped(self, evaluator, user_id, make_attempt, now):
        history = _history(user_id, [make_attempt(Level.BEGINNER, score=9)])
        result = evaluator.evaluate(
            history, "arrays", "python", quiz_ids={Level.BEGINNER: None}, now=now
        )
        assert result.completed == set()

    def test_evaluation_is_idempotent(self, evaluator, user_id, make_attempt, now):
        history = _history(
            user_id,
            [
                make_attempt(Level.BEGINNER, score=7, hours_ago=48),
                make_attempt(Level.INTERMEDIATE, score=2, hours_ago=3),
            ],
        )
        first = evaluator.evaluate(history, "arrays", "python", now=now)
        second = evaluator.evaluate(history, "arrays", "python", now=now)
        assert first == second


class TestProgressionResult:
    def test_sequential_unlock_requires_all_previous(self, evaluator, user_id, make_attempt, now):
        history = _history(user_id, [make_attempt(Level.INTERMEDIATE, score=9)])
        result = evaluator.evaluate(history, "arrays", "python", now=now)
        assert not result.prerequisites_met(Level.INTERMEDIATE)
        assert not result.prerequisites_met(Level.ADVANCED)
        assert result.is_startable(Level.BEGINNER, now=now)

    def test_locked_level_not_startable(self, evaluator, user_id, make_attempt, now):
        history = _history(user_id, [make_attempt(Level.BEGINNER, score=1)])
        result = evaluator.evaluate(history, "arrays", "python", now=now)
        assert not result.is_startable(Level.BEGINNER, now=now)
        assert result.is_startable(Level.BEGINNER, now=now + timedelta(hours=24))


class TestAlreadyPassedGate:
    """Inclusive 60% gate, independent of the 50% completion threshold."""

    def test_sixty_percent_passes(self, make_attempt):
        gate = AlreadyPassedGate(threshold=0.6, default_question_count=10)
        attempt = make_attempt(Level.BEGINNER, score=6)
        assert gate.passing_attempt([attempt]) == attempt

    def test_fifty_five_percent_completes_but_does_not_pass_gate(
        self, evaluator, user_id, make_attempt, now
    ):
        attempt = make_attempt(Level.BEGINNER, score=11, answer_count=20)
        gate = AlreadyPassedGate(threshold=0.6, default_question_count=10)
        assert gate.passing_attempt([attempt]) is None

        result = evaluator.evaluate(_history(user_id, [attempt]), "arrays", "python", now=now)
        assert Level.BEGINNER in result.completed

    def test_zero_answer_count_uses_default_denominator(self, make_attempt):
        gate = AlreadyPassedGate(threshold=0.6, default_question_count=10)
        attempt = make_attempt(Level.BEGINNER, score=6, answer_count=0)
        assert gate.percentage(attempt) == 0.6

    def test_attempts_for_quiz_includes_non_scoring(self, make_attempt):
        attempts = [
            make_attempt(Level.BEGINNER, score=0, answer_count=0),
            make_attempt(Level.INTERMEDIATE, score=5),
        ]
        matched = attempts_for_quiz(attempts, "python", Level.BEGINNER, "arrays")
        assert matched == [attempts[0]]


class TestRouting:
    def test_basic_walks_levels_then_assessment(self):
        step = next_step("basic", Level.BEGINNER, "python", basic_topic="basic")
        assert step.kind == NextStepKind.NEXT_LEVEL
        assert step.level == Level.INTERMEDIATE

        step = next_step("basic", Level.ADVANCED, "python", basic_topic="basic")
        assert step.kind == NextStepKind.ASSESSMENT
        assert step.level is None

    def test_topic_returns_to_level_selector(self):
        for level in LEVEL_ORDER:
            step = next_step("arrays", level, "python", basic_topic="basic")
            assert step.kind == NextStepKind.LEVEL_SELECTOR
            assert step.topic == "arrays"

    def test_next_level(self):
        assert next_level(Level.BEGINNER) == Level.INTERMEDIATE
        assert next_level(Level.ADVANCED) is None


class TestCourseCompletion:
    def test_best_of_average_and_max(self):
        assert course_completion_result([70, 80, 90]) == 90

    def test_floor_at_sixty(self):
        assert course_completion_result([40, 50, 55]) == 60
        assert course_completion_result([]) == 60
