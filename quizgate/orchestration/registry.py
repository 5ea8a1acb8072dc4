"""
In-memory registry of live quiz sessions.

Each session owns its own ReportedSignalSource; client event reports are
routed to it by session id. Sessions nobody has touched for a while are
closed and dropped on the next create/get, so abandoned tabs do not keep
controllers alive for the life of the process.
"""

import time
import uuid
from typing import Callable, Dict, Optional

from quizgate.config import get_settings
from quizgate.engines.integrity.signals import ReportedSignalSource
from quizgate.engines.progression.types import Level
from quizgate.logging_config import get_logger
from quizgate.orchestration.quiz_session import QuizSessionController
from quizgate.orchestration.state_machine import QuizSessionState
from quizgate.store.base import AttemptStore, QuizCatalog

logger = get_logger(__name__)

_FINISHED_STATES = frozenset(
    {QuizSessionState.SUBMITTED, QuizSessionState.REVIEWING, QuizSessionState.CLOSED}
)


class SessionRegistry:
    """
    Process-local map of session id -> controller.

    finished_ttl: seconds a submitted/reviewing/closed session is kept after
        its last access.
    idle_ttl: seconds any other session is kept after its last access. A
        session that is mid-submission is never evicted.
    """

    def __init__(
        self,
        finished_ttl: Optional[float] = None,
        idle_ttl: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        settings = get_settings()
        self.finished_ttl = (
            finished_ttl if finished_ttl is not None else settings.finished_session_ttl_seconds
        )
        self.idle_ttl = idle_ttl if idle_ttl is not None else settings.idle_session_ttl_seconds
        self._clock = clock
        self._sessions: Dict[uuid.UUID, QuizSessionController] = {}
        self._last_seen: Dict[uuid.UUID, float] = {}

    def create(
        self,
        store: AttemptStore,
        user_id: uuid.UUID,
        language: str,
        level: Level,
        topic: str,
        catalog: Optional[QuizCatalog] = None,
        **kwargs,
    ) -> QuizSessionController:
        self.prune()
        controller = QuizSessionController(
            store,
            user_id,
            language,
            level,
            topic,
            catalog=catalog,
            source=ReportedSignalSource(),
            **kwargs,
        )
        self._sessions[controller.session_id] = controller
        self._last_seen[controller.session_id] = self._clock()
        return controller

    def get(self, session_id: uuid.UUID) -> Optional[QuizSessionController]:
        self.prune()
        controller = self._sessions.get(session_id)
        if controller is not None:
            self._last_seen[session_id] = self._clock()
        return controller

    def close(self, session_id: uuid.UUID) -> bool:
        """Tear down and forget one session. Returns False if unknown."""
        controller = self._sessions.pop(session_id, None)
        self._last_seen.pop(session_id, None)
        if controller is None:
            return False
        controller.close()
        return True

    def close_all(self) -> None:
        for session_id in list(self._sessions):
            self.close(session_id)
        logger.info("All quiz sessions closed")

    def prune(self, now: Optional[float] = None) -> int:
        """Close sessions past their TTL. Returns how many were dropped."""
        now = self._clock() if now is None else now
        expired = []
        for session_id, controller in self._sessions.items():
            idle_for = now - self._last_seen.get(session_id, now)
            if controller.state in _FINISHED_STATES:
                if idle_for >= self.finished_ttl:
                    expired.append(session_id)
            elif controller.state != QuizSessionState.SUBMITTING and idle_for >= self.idle_ttl:
                expired.append(session_id)

        for session_id in expired:
            self.close(session_id)
        if expired:
            logger.info("Expired quiz sessions evicted", extra={"evicted": len(expired)})
        return len(expired)

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: uuid.UUID) -> bool:
        return session_id in self._sessions
