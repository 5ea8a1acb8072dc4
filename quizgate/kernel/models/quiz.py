"""
Quiz content model. One quiz per (language, level, topic).
"""

import uuid
from typing import Any, Dict, List

from sqlalchemy import JSON, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from quizgate.kernel.models.base import Base, TimestampMixin, generate_uuid


class Quiz(Base, TimestampMixin):
    """Multiple choice quiz. Questions are stored inline as JSON."""

    __tablename__ = "quizzes"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=generate_uuid,
    )
    language: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    level: Mapped[str] = mapped_column(String(20), nullable=False)
    topic: Mapped[str] = mapped_column(String(255), nullable=False)
    # [{"text": ..., "options": [{"tag": "A", "text": ...}], "correct_option": "A"}]
    questions: Mapped[List[Dict[str, Any]]] = mapped_column(
        JSON,
        default=list,
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("language", "level", "topic", name="uq_quizzes_language_level_topic"),
    )

    @property
    def question_count(self) -> int:
        return len(self.questions or [])
