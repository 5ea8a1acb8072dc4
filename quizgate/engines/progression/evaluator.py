"""
Progression Evaluator - derives per-level completion and lockout state
from a user's attempt history.
"""

import uuid
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence, Set

from pydantic import BaseModel

from quizgate.config import get_settings
from quizgate.engines.progression.types import (
    LEVEL_ORDER,
    Level,
    LevelStatus,
    QuizAttempt,
    UserHistory,
    as_utc,
    utcnow,
)
from quizgate.logging_config import get_logger

logger = get_logger(__name__)


class LevelState(BaseModel):
    """Status of one level as shown to the user."""

    level: Level
    status: LevelStatus
    unlock_at: Optional[datetime] = None


class ProgressionResult(BaseModel):
    """Evaluator output: completed levels and active lockouts."""

    completed: Set[Level] = set()
    locked_until: Dict[Level, datetime] = {}

    def is_locked(self, level: Level, now: Optional[datetime] = None) -> bool:
        until = self.locked_until.get(level)
        if until is None:
            return False
        return (now or utcnow()) < until

    def prerequisites_met(self, level: Level, levels: Sequence[Level] = LEVEL_ORDER) -> bool:
        """Every level before `level` must be completed."""
        idx = list(levels).index(level)
        return all(prev in self.completed for prev in levels[:idx])

    def is_startable(
        self,
        level: Level,
        levels: Sequence[Level] = LEVEL_ORDER,
        now: Optional[datetime] = None,
    ) -> bool:
        return self.prerequisites_met(level, levels) and not self.is_locked(level, now)

    def state_for(
        self,
        level: Level,
        levels: Sequence[Level] = LEVEL_ORDER,
        now: Optional[datetime] = None,
    ) -> LevelState:
        if level in self.completed:
            return LevelState(level=level, status=LevelStatus.COMPLETED)
        if self.is_locked(level, now):
            return LevelState(
                level=level,
                status=LevelStatus.LOCKED_UNTIL,
                unlock_at=self.locked_until[level],
            )
        if not self.prerequisites_met(level, levels):
            return LevelState(level=level, status=LevelStatus.LOCKED)
        return LevelState(level=level, status=LevelStatus.AVAILABLE)


class ProgressionEvaluator:
    """
    Turns attempt history + lockout records into per-level state.

    Basic track (topic == settings.basic_topic):
    - A level is completed once any scoring attempt exists
    - Never locked; re-entry is refused by the session controller

    Topic track (every other topic):
    - Only attempts submitted after the level's last lockout expiry count
    - Completed if one of them scores strictly above TOPIC_PASS_THRESHOLD
    - Otherwise a failing most-recent attempt locks the level for
      `lockout_duration` after its submission
    - A stored lockout record wins when it expires later

    The evaluator is pure: the same history and `now` always produce the
    same result. Callers must feed it freshly persisted history.
    """

    def __init__(
        self,
        basic_topic: Optional[str] = None,
        pass_threshold: Optional[float] = None,
        lockout_duration: Optional[timedelta] = None,
    ):
        settings = get_settings()
        self.basic_topic = basic_topic if basic_topic is not None else settings.basic_topic
        self.pass_threshold = (
            pass_threshold if pass_threshold is not None else settings.topic_pass_threshold
        )
        self.lockout_duration = (
            lockout_duration
            if lockout_duration is not None
            else timedelta(hours=settings.lockout_hours)
        )

    def is_basic(self, topic: str) -> bool:
        return topic == self.basic_topic

    def evaluate(
        self,
        history: UserHistory,
        topic: str,
        language: str,
        levels: Sequence[Level] = LEVEL_ORDER,
        quiz_ids: Optional[Dict[Level, Optional[uuid.UUID]]] = None,
        now: Optional[datetime] = None,
    ) -> ProgressionResult:
        """
        Evaluate every level of one (language, topic) track.

        Args:
            history: User's attempts and lockout records
            topic: Topic name; the basic topic selects the basic policy
            language: Language track
            levels: Ordered levels to evaluate
            quiz_ids: Resolved quiz identity per level. A level mapped to
                None has no quiz and is skipped. Levels missing from the
                mapping match attempts by (language, level, topic).
            now: Evaluation time (defaults to current UTC time)

        Returns:
            ProgressionResult with completed levels and active lockouts
        """
        now = as_utc(now) if now is not None else utcnow()
        completed: Set[Level] = set()
        locked_until: Dict[Level, datetime] = {}

        for level in levels:
            if quiz_ids is not None and level in quiz_ids and quiz_ids[level] is None:
                continue
            quiz_id = quiz_ids.get(level) if quiz_ids else None
            attempts = self._attempts_for(history.attempts, language, level, topic, quiz_id)

            if self.is_basic(topic):
                if attempts:
                    completed.add(level)
                continue

            passed, score_lock = self._evaluate_topic_level(
                attempts, history.lockout_for(topic, level), now
            )
            if passed:
                completed.add(level)

            lock = score_lock
            record = history.lockout_for(topic, level)
            if record is not None and now < record and (lock is None or record > lock):
                lock = record
            if lock is not None:
                locked_until[level] = lock

        logger.debug(
            "Progression evaluated",
            extra={
                "user_id": str(history.user_id),
                "topic": topic,
                "language": language,
                "completed": sorted(l.value for l in completed),
                "locked": sorted(l.value for l in locked_until),
            },
        )
        return ProgressionResult(completed=completed, locked_until=locked_until)

    def _evaluate_topic_level(
        self,
        attempts: List[QuizAttempt],
        last_lockout_end: Optional[datetime],
        now: datetime,
    ) -> tuple[bool, Optional[datetime]]:
        """Return (passed, score-derived lockout still active)."""
        post_lockout = [
            a for a in attempts
            if last_lockout_end is None or a.submitted_at > last_lockout_end
        ]
        post_lockout.sort(key=lambda a: a.submitted_at, reverse=True)

        if any(a.ratio > self.pass_threshold for a in post_lockout):
            return True, None

        if post_lockout:
            most_recent = post_lockout[0]
            if most_recent.ratio <= self.pass_threshold:
                ends = most_recent.submitted_at + self.lockout_duration
                if now < ends:
                    return False, ends
        return False, None

    @staticmethod
    def _attempts_for(
        attempts: Sequence[QuizAttempt],
        language: str,
        level: Level,
        topic: str,
        quiz_id: Optional[uuid.UUID],
    ) -> List[QuizAttempt]:
        """Scoring attempts that belong to one quiz."""
        matched = []
        for a in attempts:
            if a.ratio is None:
                continue
            ref = a.quiz_ref
            if quiz_id is not None:
                if ref.quiz_id != quiz_id:
                    continue
            elif (ref.language, ref.level, ref.topic) != (language, level, topic):
                continue
            matched.append(a)
        return matched
