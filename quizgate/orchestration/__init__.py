"""Orchestration layer - quiz session state machine, controller and registry."""

from quizgate.orchestration.errors import (
    AvailabilityReason,
    FetchFailure,
    NotAvailable,
    QuizSessionError,
    SubmissionFailure,
)
from quizgate.orchestration.quiz_session import QuizSessionController, SubmissionOutcome
from quizgate.orchestration.registry import SessionRegistry
from quizgate.orchestration.state_machine import QuizSessionState, SubmissionKind

__all__ = [
    "AvailabilityReason",
    "FetchFailure",
    "NotAvailable",
    "QuizSessionError",
    "SubmissionFailure",
    "QuizSessionController",
    "SubmissionOutcome",
    "SessionRegistry",
    "QuizSessionState",
    "SubmissionKind",
]
