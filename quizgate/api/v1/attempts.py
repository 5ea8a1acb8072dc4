"""
Attempt store endpoints - history, questions, submissions, review, quiz identity.
"""

import uuid
from typing import List

from fastapi import APIRouter, HTTPException, status

from quizgate.api.deps import AttemptStoreDep
from quizgate.engines.progression.types import (
    AttemptSubmission,
    Level,
    QuizInfo,
    QuizReview,
    SubmissionReceipt,
    UserHistory,
)
from quizgate.schemas.attempts import QuestionResponse

router = APIRouter()

_QUIZ_PATH = "/users/{user_id}/quizzes/{language}/{level}/{topic}"


@router.get("/users/{user_id}", response_model=UserHistory)
async def get_user_history(user_id: uuid.UUID, store: AttemptStoreDep):
    """Attempt history and lockout records. Unknown users have an empty history."""
    return await store.get_user(user_id)


@router.get(f"{_QUIZ_PATH}/questions", response_model=List[QuestionResponse])
async def get_questions(
    user_id: uuid.UUID,
    language: str,
    level: Level,
    topic: str,
    store: AttemptStoreDep,
):
    """Questions for one quiz. 409 when the level is locked or out of sequence."""
    questions = await store.get_questions(user_id, language, level, topic)
    if not questions:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No questions available for this quiz",
        )
    return [QuestionResponse.from_question(q) for q in questions]


@router.post(
    f"{_QUIZ_PATH}/submit",
    response_model=SubmissionReceipt,
    status_code=status.HTTP_201_CREATED,
)
async def submit_attempt(
    user_id: uuid.UUID,
    language: str,
    level: Level,
    topic: str,
    body: AttemptSubmission,
    store: AttemptStoreDep,
):
    """Append one attempt. The score is computed server-side."""
    return await store.submit_attempt(user_id, language, level, topic, body)


@router.get(f"{_QUIZ_PATH}/review", response_model=QuizReview)
async def get_review(
    user_id: uuid.UUID,
    language: str,
    level: Level,
    topic: str,
    store: AttemptStoreDep,
):
    return await store.get_review(user_id, language, level, topic)


@router.get("/quizzes/{language}/{level}/{topic}", response_model=QuizInfo)
async def get_quiz(language: str, level: Level, topic: str, store: AttemptStoreDep):
    """Resolve quiz identity for attempt matching."""
    info = await store.get_quiz(language, level, topic)
    if info is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Quiz not found")
    return info
