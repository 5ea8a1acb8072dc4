"""Grading of quiz submissions."""

from quizgate.engines.grading.grader import Grader

__all__ = ["Grader"]
