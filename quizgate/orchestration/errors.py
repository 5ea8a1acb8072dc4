"""
Errors raised by quiz sessions and the attempt store.

All of them are local to one session; none is fatal to the process.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from quizgate.engines.progression.gates import NextStep


class AvailabilityReason(str, Enum):
    ALREADY_ATTEMPTED = "already_attempted"
    ALREADY_PASSED = "already_passed"
    LOCKED = "locked"
    OUT_OF_SEQUENCE = "out_of_sequence"


class QuizSessionError(Exception):
    """Base class for session-level failures."""


class NotAvailable(QuizSessionError):
    """The requested level cannot be started right now."""

    def __init__(
        self,
        reason: AvailabilityReason,
        message: str,
        next_step: Optional[NextStep] = None,
        unlock_at: Optional[datetime] = None,
    ):
        super().__init__(message)
        self.reason = reason
        self.message = message
        self.next_step = next_step
        self.unlock_at = unlock_at


class FetchFailure(QuizSessionError):
    """History or question fetch failed, or returned nothing."""


class SubmissionFailure(QuizSessionError):
    """Posting an attempt failed; the user has to retry."""


class UnknownQuiz(QuizSessionError):
    """No quiz exists for the requested (language, level, topic)."""


class InvalidSubmission(QuizSessionError):
    """The submitted answers do not match the quiz (one answer per question)."""
