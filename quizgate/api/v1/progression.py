"""
Progression endpoint - per-level state for one (language, topic) track.
"""

import uuid
from typing import Dict, Optional

from fastapi import APIRouter

from quizgate.api.deps import AttemptStoreDep
from quizgate.engines.grading.grader import Grader
from quizgate.engines.progression.evaluator import ProgressionEvaluator
from quizgate.engines.progression.gates import attempts_for_quiz, course_completion_result
from quizgate.engines.progression.types import LEVEL_ORDER, Level, utcnow
from quizgate.schemas.progression import ProgressionResponse

router = APIRouter()


@router.get(
    "/users/{user_id}/progression/{language}/{topic}",
    response_model=ProgressionResponse,
)
async def get_progression(
    user_id: uuid.UUID,
    language: str,
    topic: str,
    store: AttemptStoreDep,
):
    """
    Level selector view.

    Recomputed from freshly persisted history on every call. For topic
    tracks with every level completed, `course_result` carries the course
    completion percentage.
    """
    history = await store.get_user(user_id)
    quiz_ids: Dict[Level, Optional[uuid.UUID]] = {}
    for level in LEVEL_ORDER:
        info = await store.get_quiz(language, level, topic)
        quiz_ids[level] = info.id if info is not None else None

    evaluator = ProgressionEvaluator()
    now = utcnow()
    result = evaluator.evaluate(history, topic, language, LEVEL_ORDER, quiz_ids=quiz_ids, now=now)

    course_result = None
    if not evaluator.is_basic(topic) and all(level in result.completed for level in LEVEL_ORDER):
        best = []
        for level in LEVEL_ORDER:
            attempts = attempts_for_quiz(
                history.attempts, language, level, topic, quiz_ids[level]
            )
            best.append(max(
                (Grader.percentage(a.score, a.answer_count) for a in attempts),
                default=0,
            ))
        course_result = course_completion_result(best)

    return ProgressionResponse(
        language=language,
        topic=topic,
        levels=[result.state_for(level, LEVEL_ORDER, now) for level in LEVEL_ORDER],
        completed=[level for level in LEVEL_ORDER if level in result.completed],
        locked_until=result.locked_until,
        course_result=course_result,
    )
