"""
Pydantic schemas for the attempt store API.
"""

from typing import List

from pydantic import BaseModel

from quizgate.engines.progression.types import Option, Question


class QuestionResponse(BaseModel):
    """Question as served to the client. The correct option stays server-side."""

    index: int
    text: str
    options: List[Option]

    @classmethod
    def from_question(cls, question: Question) -> "QuestionResponse":
        return cls(index=question.index, text=question.text, options=question.options)
