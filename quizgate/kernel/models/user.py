"""
Quiz taker model. Owns the per-topic, per-level lockout map.
"""

import uuid
from typing import TYPE_CHECKING, Dict, List, Optional

from sqlalchemy import JSON, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from quizgate.kernel.models.base import Base, TimestampMixin, generate_uuid

if TYPE_CHECKING:
    from quizgate.kernel.models.attempt import QuizAttemptRecord


class User(Base, TimestampMixin):
    """A quiz taker."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    display_name: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
    )
    # {topic: {level: ISO-8601 lockout expiry}}
    lockouts: Mapped[Dict[str, Dict[str, str]]] = mapped_column(
        JSON,
        default=dict,
        nullable=False,
    )

    attempts: Mapped[List["QuizAttemptRecord"]] = relationship(
        "QuizAttemptRecord",
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="QuizAttemptRecord.submitted_at",
    )

    def __repr__(self) -> str:
        return f"<User {self.id}>"
