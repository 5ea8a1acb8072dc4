"""
Collaborator interfaces consumed by quiz sessions.

AttemptStore persists attempts per user; QuizCatalog resolves quiz identity.
Every method is a suspension point of the session state machine.
"""

import uuid
from typing import List, Optional, Protocol

from quizgate.engines.progression.types import (
    AttemptSubmission,
    Level,
    Question,
    QuizInfo,
    QuizReview,
    SubmissionReceipt,
    UserHistory,
)


class AttemptStore(Protocol):
    async def get_user(self, user_id: uuid.UUID) -> UserHistory:
        """Full attempt history and lockout records, read fresh."""
        ...

    async def get_questions(
        self, user_id: uuid.UUID, language: str, level: Level, topic: str
    ) -> List[Question]:
        """Questions for one quiz. Raises NotAvailable when the level is locked."""
        ...

    async def submit_attempt(
        self,
        user_id: uuid.UUID,
        language: str,
        level: Level,
        topic: str,
        submission: AttemptSubmission,
    ) -> SubmissionReceipt:
        """Append one attempt atomically and return the server-computed score."""
        ...

    async def get_review(
        self, user_id: uuid.UUID, language: str, level: Level, topic: str
    ) -> QuizReview:
        ...


class QuizCatalog(Protocol):
    async def get_quiz(self, language: str, level: Level, topic: str) -> Optional[QuizInfo]:
        ...
