"""
Quiz attempt model. Append-only: rows are never updated or deleted.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import JSON, Boolean, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from quizgate.engines.progression.types import utcnow
from quizgate.kernel.models.base import Base, generate_uuid

if TYPE_CHECKING:
    from quizgate.kernel.models.user import User


class QuizAttemptRecord(Base):
    """One submitted attempt."""

    __tablename__ = "quiz_attempts"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=generate_uuid,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    quiz_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("quizzes.id", ondelete="SET NULL"),
        nullable=True,
    )
    language: Mapped[str] = mapped_column(String(100), nullable=False)
    level: Mapped[str] = mapped_column(String(20), nullable=False)
    topic: Mapped[str] = mapped_column(String(255), nullable=False)

    answers: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    answer_count: Mapped[int] = mapped_column(Integer, nullable=False)
    violation: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # EnvironmentSignal value that triggered the violation
    violation_type: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    submitted_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    user: Mapped["User"] = relationship("User", back_populates="attempts")

    __table_args__ = (
        Index("ix_quiz_attempts_user_quiz", "user_id", "language", "level", "topic"),
    )
