"""
Common schema types used across the API.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from quizgate.engines.progression.gates import NextStep
from quizgate.orchestration.errors import AvailabilityReason


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
    code: Optional[str] = None
    field: Optional[str] = None


class NotAvailableResponse(BaseModel):
    """Refused quiz entry: redirect target plus explanation."""

    detail: str
    reason: AvailabilityReason
    next_step: Optional[NextStep] = None
    unlock_at: Optional[datetime] = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    version: str
    database: str = "connected"
    active_sessions: int = 0
