"""
Grader - counts correct answers for a quiz submission.

Used twice per submission: by the attempt store to compute the persisted
score, and by the session controller to recount for display. Both counts
must agree.
"""

from typing import Mapping, Optional, Sequence, Union

from quizgate.engines.progression.types import OptionTag, Question

Answers = Union[Sequence[Optional[OptionTag]], Mapping[int, OptionTag]]


class Grader:
    """Exact-match grading of option tags."""

    @staticmethod
    def _answer_at(answers: Answers, idx: int) -> Optional[OptionTag]:
        if isinstance(answers, Mapping):
            return answers.get(idx)
        return answers[idx] if idx < len(answers) else None

    @classmethod
    def correctness(cls, questions: Sequence[Question], answers: Answers) -> list[bool]:
        """Per-question correctness, in question order."""
        return [
            cls._answer_at(answers, idx) == question.correct_option
            for idx, question in enumerate(questions)
        ]

    @classmethod
    def count_correct(cls, questions: Sequence[Question], answers: Answers) -> int:
        return sum(cls.correctness(questions, answers))

    @staticmethod
    def percentage(correct: int, total: int) -> int:
        """Rounded percentage; 0 for an empty quiz."""
        if total <= 0:
            return 0
        return int(correct * 100 / total + 0.5)
