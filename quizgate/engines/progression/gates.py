"""
Entry gates and routing used when a user opens a quiz.

The "already passed" gate uses its own threshold (inclusive 60%), separate
from the evaluator's exclusive 50% pass threshold.
"""

import uuid
from enum import Enum
from typing import Iterable, List, Optional, Sequence

from pydantic import BaseModel

from quizgate.config import get_settings
from quizgate.engines.progression.types import LEVEL_ORDER, Level, QuizAttempt


class NextStepKind(str, Enum):
    """Where the user goes after a quiz or a refused entry."""
    NEXT_LEVEL = "next_level"
    ASSESSMENT = "assessment"
    LEVEL_SELECTOR = "level_selector"


class NextStep(BaseModel):
    kind: NextStepKind
    language: str
    topic: str
    level: Optional[Level] = None


def attempts_for_quiz(
    attempts: Iterable[QuizAttempt],
    language: str,
    level: Level,
    topic: str,
    quiz_id: Optional[uuid.UUID] = None,
) -> List[QuizAttempt]:
    """Every recorded attempt for one quiz, scoring or not."""
    if quiz_id is not None:
        return [a for a in attempts if a.quiz_ref.quiz_id == quiz_id]
    return [
        a for a in attempts
        if (a.quiz_ref.language, a.quiz_ref.level, a.quiz_ref.topic) == (language, level, topic)
    ]


class AlreadyPassedGate:
    """
    Short-circuits entry into a topic quiz the user has already passed.

    Denominator is the attempt's answer count, falling back to the default
    question count when no answers were recorded.
    """

    def __init__(
        self,
        threshold: Optional[float] = None,
        default_question_count: Optional[int] = None,
    ):
        settings = get_settings()
        self.threshold = threshold if threshold is not None else settings.already_passed_threshold
        self.default_question_count = (
            default_question_count
            if default_question_count is not None
            else settings.default_question_count
        )

    def percentage(self, attempt: QuizAttempt) -> float:
        total = attempt.answer_count or self.default_question_count
        return attempt.score / total

    def passing_attempt(self, attempts: Iterable[QuizAttempt]) -> Optional[QuizAttempt]:
        for attempt in attempts:
            if self.percentage(attempt) >= self.threshold:
                return attempt
        return None


def has_attempted(attempts: Iterable[QuizAttempt]) -> bool:
    """Basic track entry gate: one attempt per level."""
    return any(True for _ in attempts)


def next_level(level: Level, levels: Sequence[Level] = LEVEL_ORDER) -> Optional[Level]:
    idx = list(levels).index(level)
    if idx + 1 < len(levels):
        return levels[idx + 1]
    return None


def next_step(
    topic: str,
    level: Level,
    language: str,
    basic_topic: Optional[str] = None,
) -> NextStep:
    """
    Routing after a submission (or a refused entry).

    Basic track walks beginner -> intermediate -> advanced, then the
    assessment step. Topic tracks always go back to the level selector.
    """
    basic = basic_topic if basic_topic is not None else get_settings().basic_topic
    if topic != basic:
        return NextStep(kind=NextStepKind.LEVEL_SELECTOR, language=language, topic=topic)
    following = next_level(level)
    if following is None:
        return NextStep(kind=NextStepKind.ASSESSMENT, language=language, topic=topic)
    return NextStep(kind=NextStepKind.NEXT_LEVEL, language=language, topic=topic, level=following)


COURSE_MIN_RESULT = 60


def course_completion_result(best_percentages: Sequence[int]) -> int:
    """
    Result recorded on a course once every level is completed.

    Best of the average and the single best level percentage, floored at
    COURSE_MIN_RESULT.
    """
    if not best_percentages:
        return COURSE_MIN_RESULT
    average = int(sum(best_percentages) / len(best_percentages) + 0.5)
    return max(average, max(best_percentages), COURSE_MIN_RESULT)
