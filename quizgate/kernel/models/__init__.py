"""
Kernel Data Models

SQLAlchemy models backing the attempt store and quiz catalog.
"""

from quizgate.kernel.models.base import Base, TimestampMixin, generate_uuid
from quizgate.kernel.models.user import User
from quizgate.kernel.models.quiz import Quiz
from quizgate.kernel.models.attempt import QuizAttemptRecord

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "generate_uuid",
    # Users
    "User",
    # Content
    "Quiz",
    # Attempts
    "QuizAttemptRecord",
]
