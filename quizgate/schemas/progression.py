"""
Pydantic schemas for the progression view.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel

from quizgate.engines.progression.evaluator import LevelState
from quizgate.engines.progression.types import Level


class ProgressionResponse(BaseModel):
    """Per-level state of one (language, topic) track."""

    language: str
    topic: str
    levels: List[LevelState]
    completed: List[Level] = []
    locked_until: Dict[Level, datetime] = {}
    # Set once every level is completed on a topic track
    course_result: Optional[int] = None
