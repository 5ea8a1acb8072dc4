"""
Pydantic schemas for live quiz sessions.
"""

import uuid
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel

from quizgate.engines.integrity.monitor import MonitorState, WarningKind
from quizgate.engines.progression.gates import NextStep
from quizgate.engines.progression.types import Level, OptionTag
from quizgate.orchestration.quiz_session import SubmissionOutcome
from quizgate.orchestration.state_machine import QuizSessionState
from quizgate.schemas.attempts import QuestionResponse


class SessionCreateRequest(BaseModel):
    user_id: uuid.UUID
    language: str
    level: Level
    topic: str


class AnswerRequest(BaseModel):
    index: int
    option: OptionTag


class NavigateRequest(BaseModel):
    direction: Literal["next", "previous"]


class SignalReport(BaseModel):
    """
    One client environment event.

    visibility: hidden=True/False
    focus:      focused=True/False
    exit:       page is about to unload
    key:        key plus modifier flags
    context_menu
    """

    kind: Literal["visibility", "focus", "exit", "key", "context_menu"]
    hidden: Optional[bool] = None
    focused: Optional[bool] = None
    key: Optional[str] = None
    ctrl: bool = False
    meta: bool = False
    shift: bool = False
    alt: bool = False


class WarningSchema(BaseModel):
    kind: WarningKind
    message: str


class SessionResponse(BaseModel):
    """Snapshot of a quiz session."""

    session_id: uuid.UUID
    state: QuizSessionState
    user_id: uuid.UUID
    language: str
    level: Level
    topic: str
    questions: List[QuestionResponse] = []
    answers: Dict[int, OptionTag] = {}
    current_index: int = 0
    can_go_next: bool = False
    monitor_state: MonitorState
    warnings: List[WarningSchema] = []
    outcome: Optional[SubmissionOutcome] = None
    next_step: Optional[NextStep] = None


class SignalResponse(BaseModel):
    """What the client must do with the reported event."""

    prevented: bool = False
    exit_prompt: Optional[str] = None
    session: SessionResponse
