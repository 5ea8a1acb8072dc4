"""
State machine for the quiz session lifecycle.

checking -> loading -> active -> submitting -> submitted -> reviewing

Any non-closed state may be torn down to closed. A failed user submission
returns submitting -> active.
"""

from enum import Enum
from typing import FrozenSet, List, Tuple


class QuizSessionState(str, Enum):
    CHECKING = "checking"
    LOADING = "loading"
    ACTIVE = "active"
    SUBMITTING = "submitting"
    SUBMITTED = "submitted"
    REVIEWING = "reviewing"
    CLOSED = "closed"


class SubmissionKind(str, Enum):
    NORMAL = "normal"
    VIOLATION = "violation"


_S = QuizSessionState

_TRANSITIONS: FrozenSet[Tuple[QuizSessionState, QuizSessionState]] = frozenset({
    (_S.CHECKING, _S.LOADING),
    (_S.LOADING, _S.ACTIVE),
    (_S.ACTIVE, _S.SUBMITTING),
    (_S.SUBMITTING, _S.SUBMITTED),
    (_S.SUBMITTING, _S.ACTIVE),
    (_S.SUBMITTED, _S.REVIEWING),
}) | frozenset((s, _S.CLOSED) for s in QuizSessionState if s != _S.CLOSED)


def valid_transitions(from_state: QuizSessionState) -> List[QuizSessionState]:
    """Return list of valid target states from given state."""
    return sorted({t for f, t in _TRANSITIONS if f == from_state}, key=lambda s: s.value)


def can_transition(from_state: QuizSessionState, to_state: QuizSessionState) -> bool:
    return (from_state, to_state) in _TRANSITIONS
