"""
Declarative base, shared column types and mixins.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware UTC timestamp.

    SQLite drops tzinfo on the way back; attempt timestamps are compared
    against lockout expiries, so every value read is returned as aware UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value


class Base(DeclarativeBase):
    """Base class for all QuizGate tables."""

    type_annotation_map = {
        uuid.UUID: Uuid(),
        datetime: UTCDateTime(),
    }


def _now() -> datetime:
    return datetime.now(timezone.utc)


class TimestampMixin:
    """Row bookkeeping; set application-side so SQLite and PostgreSQL agree."""

    created_at: Mapped[datetime] = mapped_column(default=_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=_now, onupdate=_now, nullable=False)


def generate_uuid() -> uuid.UUID:
    return uuid.uuid4()
