"""
Domain types shared by the progression evaluator, the session controller
and the attempt store.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class Level(str, Enum):
    """Difficulty tiers, strictly ordered."""
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


LEVEL_ORDER: List[Level] = [Level.BEGINNER, Level.INTERMEDIATE, Level.ADVANCED]


class OptionTag(str, Enum):
    A = "A"
    B = "B"
    C = "C"
    D = "D"


class LevelStatus(str, Enum):
    """Derived per-level status. Never persisted."""
    LOCKED = "locked"
    AVAILABLE = "available"
    LOCKED_UNTIL = "locked_until"
    COMPLETED = "completed"


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (SQLite round-trips) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class QuizRef(BaseModel):
    """Identity of one quiz: language + level + topic."""

    model_config = ConfigDict(frozen=True)

    language: str
    level: Level
    topic: str
    quiz_id: Optional[uuid.UUID] = None


class QuizAttempt(BaseModel):
    """One user's submission for one quiz. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    quiz_ref: QuizRef
    score: int = Field(ge=0)
    answer_count: int = Field(default=10, ge=0)
    submitted_at: datetime
    violation: bool = False
    violation_type: Optional[str] = None

    @field_validator("submitted_at")
    @classmethod
    def _normalize_timestamp(cls, v: datetime) -> datetime:
        return as_utc(v)

    @model_validator(mode="after")
    def _violation_scores_zero(self) -> "QuizAttempt":
        if self.violation and self.score != 0:
            raise ValueError("violation attempts must have score 0")
        return self

    @property
    def ratio(self) -> Optional[float]:
        """Correct-answer ratio, or None for non-scoring attempts."""
        if self.answer_count <= 0:
            return None
        return self.score / self.answer_count


class UserHistory(BaseModel):
    """Everything the evaluator needs about one user."""

    user_id: uuid.UUID
    attempts: List[QuizAttempt] = []
    # topic -> level -> lockout expiry
    lockouts: Dict[str, Dict[Level, datetime]] = {}

    @field_validator("lockouts")
    @classmethod
    def _normalize_lockouts(
        cls, v: Dict[str, Dict[Level, datetime]]
    ) -> Dict[str, Dict[Level, datetime]]:
        return {
            topic: {level: as_utc(ts) for level, ts in per_level.items()}
            for topic, per_level in v.items()
        }

    def lockout_for(self, topic: str, level: Level) -> Optional[datetime]:
        return self.lockouts.get(topic, {}).get(level)


class Option(BaseModel):
    tag: OptionTag
    text: str


class Question(BaseModel):
    """A multiple choice question as served to a quiz session."""

    index: int
    text: str
    options: List[Option]
    correct_option: OptionTag


class QuizInfo(BaseModel):
    """Quiz identity as resolved from the content catalog."""

    id: uuid.UUID
    question_count: int = 10


class AttemptSubmission(BaseModel):
    """Payload posted to the attempt store."""

    answers: List[OptionTag]
    violation: bool = False
    violation_type: Optional[str] = None
    force_zero_score: bool = False
    lockout: bool = False


class SubmissionReceipt(BaseModel):
    score: int


class ReviewStatistics(BaseModel):
    best_score: int = 0
    best_percentage: int = 0
    attempt_count: int = 0


class QuizReview(BaseModel):
    per_question_correctness: List[bool]
    statistics: ReviewStatistics
