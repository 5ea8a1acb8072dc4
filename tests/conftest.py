"""
Pytest fixtures for QuizGate tests.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional
from unittest.mock import AsyncMock

import pytest

from quizgate.engines.progression.types import (
    Level,
    Option,
    OptionTag,
    Question,
    QuizAttempt,
    QuizRef,
    QuizReview,
    ReviewStatistics,
    SubmissionReceipt,
    UserHistory,
)

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
LANGUAGE = "python"
TOPIC = "arrays"
BASIC = "basic"

# Correct options of the four sample questions
CORRECT = [OptionTag.A, OptionTag.C, OptionTag.B, OptionTag.D]


def build_questions(correct: List[OptionTag]) -> List[Question]:
    return [
        Question(
            index=idx,
            text=f"Question {idx + 1}",
            options=[Option(tag=tag, text=f"Option {tag.value}") for tag in OptionTag],
            correct_option=answer,
        )
        for idx, answer in enumerate(correct)
    ]


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def user_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def questions() -> List[Question]:
    """Four multiple choice questions, correct options A, C, B, D."""
    return build_questions(CORRECT)


@pytest.fixture
def make_attempt() -> Callable[..., QuizAttempt]:
    """Factory for attempts on the sample track, timed relative to NOW."""

    def _make(
        level: Level,
        score: int,
        answer_count: int = 10,
        hours_ago: float = 1,
        topic: str = TOPIC,
        language: str = LANGUAGE,
        violation: bool = False,
        quiz_id: Optional[uuid.UUID] = None,
    ) -> QuizAttempt:
        return QuizAttempt(
            quiz_ref=QuizRef(language=language, level=level, topic=topic, quiz_id=quiz_id),
            score=score,
            answer_count=answer_count,
            submitted_at=NOW - timedelta(hours=hours_ago),
            violation=violation,
        )

    return _make


@pytest.fixture
def store(user_id: uuid.UUID, questions: List[Question]) -> AsyncMock:
    """AttemptStore fake: empty history, sample questions, all-correct score."""
    fake = AsyncMock()
    fake.get_user.return_value = UserHistory(user_id=user_id)
    fake.get_questions.return_value = list(questions)
    fake.submit_attempt.return_value = SubmissionReceipt(score=len(questions))
    fake.get_review.return_value = QuizReview(
        per_question_correctness=[True] * len(questions),
        statistics=ReviewStatistics(best_score=4, best_percentage=100, attempt_count=1),
    )
    return fake
