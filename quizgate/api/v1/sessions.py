"""
Live quiz session endpoints.

A session runs server-side; the client reports environment events
(visibility, focus, unload, keys, context menu) and receives back whether
to prevent the default action.
"""

import uuid

from fastapi import APIRouter, HTTPException, Response, status

from quizgate.api.deps import AttemptStoreDep, QuizSession, Registry
from quizgate.engines.integrity.shortcuts import KeyCombo
from quizgate.engines.integrity.signals import ReportedSignalSource, SignalEvent
from quizgate.engines.progression.types import QuizReview
from quizgate.logging_config import get_logger, session_id_var
from quizgate.orchestration.errors import QuizSessionError
from quizgate.orchestration.quiz_session import QuizSessionController
from quizgate.orchestration.state_machine import QuizSessionState
from quizgate.schemas.attempts import QuestionResponse
from quizgate.schemas.sessions import (
    AnswerRequest,
    NavigateRequest,
    SessionCreateRequest,
    SessionResponse,
    SignalReport,
    SignalResponse,
    WarningSchema,
)

router = APIRouter()
logger = get_logger(__name__)


def _session_response(controller: QuizSessionController) -> SessionResponse:
    after_submit = controller.state in (QuizSessionState.SUBMITTED, QuizSessionState.REVIEWING)
    return SessionResponse(
        session_id=controller.session_id,
        state=controller.state,
        user_id=controller.user_id,
        language=controller.language,
        level=controller.level,
        topic=controller.topic,
        questions=[QuestionResponse.from_question(q) for q in controller.questions],
        answers=controller.answers,
        current_index=controller.current_index,
        can_go_next=controller.can_go_next(),
        monitor_state=controller.monitor.state,
        warnings=[WarningSchema(kind=k, message=m) for k, m in controller.warnings],
        outcome=controller.outcome,
        next_step=controller.next_step() if after_submit else None,
    )


def _conflict(exc: ValueError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))


@router.post("", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def open_session(
    body: SessionCreateRequest,
    registry: Registry,
    store: AttemptStoreDep,
):
    """
    Open a quiz: entry checks, question load, monitor armed.

    A refused or failed open discards the session.
    """
    controller = registry.create(
        store, body.user_id, body.language, body.level, body.topic, catalog=store
    )
    session_id_var.set(str(controller.session_id))
    try:
        await controller.open()
    except QuizSessionError:
        registry.close(controller.session_id)
        raise
    return _session_response(controller)


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(controller: QuizSession):
    return _session_response(controller)


@router.put("/{session_id}/answers", response_model=SessionResponse)
async def record_answer(body: AnswerRequest, controller: QuizSession):
    """Record or overwrite one answer."""
    try:
        controller.answer(body.index, body.option)
    except ValueError as e:
        raise _conflict(e)
    return _session_response(controller)


@router.post("/{session_id}/navigate", response_model=SessionResponse)
async def navigate(body: NavigateRequest, controller: QuizSession):
    """Move to the next/previous question. Refusals leave the index unchanged."""
    if body.direction == "next":
        controller.go_next()
    else:
        controller.go_previous()
    return _session_response(controller)


@router.post("/{session_id}/signals", response_model=SignalResponse)
async def report_signal(body: SignalReport, controller: QuizSession):
    """Feed one client environment event to the session's integrity monitor."""
    source = controller.source
    if not isinstance(source, ReportedSignalSource):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Session does not accept reported signals",
        )

    event: SignalEvent | None
    if body.kind == "visibility":
        event = source.report_visibility(bool(body.hidden))
    elif body.kind == "focus":
        event = source.report_focus(bool(body.focused))
    elif body.kind == "exit":
        event = source.report_exit()
    elif body.kind == "key":
        if not body.key:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="key is required for key reports",
            )
        event = source.report_key(
            KeyCombo(key=body.key, ctrl=body.ctrl, meta=body.meta, shift=body.shift, alt=body.alt)
        )
    else:
        event = source.report_context_menu()

    await controller.wait_idle()
    return SignalResponse(
        prevented=event.prevented if event is not None else False,
        exit_prompt=event.exit_prompt if event is not None else None,
        session=_session_response(controller),
    )


@router.post("/{session_id}/submit", response_model=SessionResponse)
async def submit_session(controller: QuizSession):
    """User submission. Returns the existing outcome if already submitted."""
    await controller.wait_idle()
    try:
        await controller.submit()
    except ValueError as e:
        raise _conflict(e)
    return _session_response(controller)


@router.get("/{session_id}/review", response_model=QuizReview)
async def review_session(controller: QuizSession):
    """Read-only review of the submitted attempt."""
    await controller.wait_idle()
    try:
        return await controller.review()
    except ValueError as e:
        raise _conflict(e)


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def close_session(session_id: uuid.UUID, registry: Registry):
    """Tear the session down. Later reports for it return 404."""
    if not registry.close(session_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Quiz session not found",
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
