"""
FastAPI dependencies for the attempt store and live quiz sessions.
"""

import uuid
from typing import Annotated

from fastapi import Depends, HTTPException, status

from quizgate.database import async_session_maker
from quizgate.logging_config import session_id_var
from quizgate.orchestration.quiz_session import QuizSessionController
from quizgate.orchestration.registry import SessionRegistry
from quizgate.store.sql_store import SqlAttemptStore

_registry = SessionRegistry()


def get_registry() -> SessionRegistry:
    """Process-wide session registry."""
    return _registry


def get_attempt_store() -> SqlAttemptStore:
    """Attempt store bound to the application database."""
    return SqlAttemptStore(async_session_maker)


Registry = Annotated[SessionRegistry, Depends(get_registry)]
AttemptStoreDep = Annotated[SqlAttemptStore, Depends(get_attempt_store)]


async def get_quiz_session(session_id: uuid.UUID, registry: Registry) -> QuizSessionController:
    """Resolve a live session and tag the request's logs with its id."""
    controller = registry.get(session_id)
    if controller is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Quiz session not found",
        )
    session_id_var.set(str(session_id))
    return controller


QuizSession = Annotated[QuizSessionController, Depends(get_quiz_session)]
