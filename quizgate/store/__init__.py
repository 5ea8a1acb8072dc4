"""Attempt store - persistence of quiz attempts and lockouts."""

from quizgate.store.base import AttemptStore, QuizCatalog
from quizgate.store.sql_store import SqlAttemptStore

__all__ = ["AttemptStore", "QuizCatalog", "SqlAttemptStore"]
