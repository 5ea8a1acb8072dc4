"""
SQL-backed AttemptStore and QuizCatalog (SQLAlchemy 2.0 async).

Each public method is one unit of work. Submissions lock the user row so
that appending an attempt is atomic per user.
"""

import uuid
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from quizgate.engines.grading.grader import Grader
from quizgate.engines.progression.evaluator import ProgressionEvaluator
from quizgate.engines.progression.gates import attempts_for_quiz
from quizgate.engines.progression.types import (
    LEVEL_ORDER,
    AttemptSubmission,
    Level,
    Option,
    Question,
    QuizAttempt,
    QuizInfo,
    QuizRef,
    QuizReview,
    ReviewStatistics,
    SubmissionReceipt,
    UserHistory,
    as_utc,
    utcnow,
)
from quizgate.kernel.models import Quiz, QuizAttemptRecord, User
from quizgate.logging_config import audit, get_logger
from quizgate.orchestration.errors import (
    AvailabilityReason,
    InvalidSubmission,
    NotAvailable,
    UnknownQuiz,
)

logger = get_logger(__name__)


def questions_from_quiz(quiz: Quiz) -> List[Question]:
    """Build domain questions from the quiz's JSON column."""
    return [
        Question(
            index=idx,
            text=raw["text"],
            options=[Option(**opt) for opt in raw["options"]],
            correct_option=raw["correct_option"],
        )
        for idx, raw in enumerate(quiz.questions or [])
    ]


def attempt_from_row(row: QuizAttemptRecord) -> QuizAttempt:
    return QuizAttempt(
        quiz_ref=QuizRef(
            language=row.language,
            level=Level(row.level),
            topic=row.topic,
            quiz_id=row.quiz_id,
        ),
        score=row.score,
        answer_count=row.answer_count,
        submitted_at=row.submitted_at,
        violation=row.violation,
        violation_type=row.violation_type,
    )


def _parse_lockouts(raw: Optional[Dict[str, Dict[str, str]]]) -> Dict[str, Dict[Level, datetime]]:
    return {
        topic: {Level(level): datetime.fromisoformat(ts) for level, ts in per_level.items()}
        for topic, per_level in (raw or {}).items()
    }


class SqlAttemptStore:
    """
    AttemptStore + QuizCatalog over the quizgate schema.

    Server-side rules:
    - Questions for a locked or out-of-sequence topic level are refused
    - A second normal submission for a basic level is refused
    - Violation / force-zero submissions are stored with score 0
    - lockout=True extends the (topic, level) lockout, never shortens it
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        evaluator: Optional[ProgressionEvaluator] = None,
        levels: Sequence[Level] = LEVEL_ORDER,
    ):
        self._session_factory = session_factory
        self._evaluator = evaluator or ProgressionEvaluator()
        self._levels = list(levels)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def ping(self) -> bool:
        """True when the database answers a trivial query."""
        try:
            async with self._session_factory() as db:
                await db.execute(select(1))
        except (SQLAlchemyError, OSError):
            logger.warning("Database ping failed", exc_info=True)
            return False
        return True

    async def get_user(self, user_id: uuid.UUID) -> UserHistory:
        async with self._session_factory() as db:
            return await self._load_history(db, user_id)

    async def get_quiz(self, language: str, level: Level, topic: str) -> Optional[QuizInfo]:
        async with self._session_factory() as db:
            quiz = await self._find_quiz(db, language, level, topic)
        if quiz is None:
            return None
        return QuizInfo(id=quiz.id, question_count=quiz.question_count)

    async def get_questions(
        self, user_id: uuid.UUID, language: str, level: Level, topic: str
    ) -> List[Question]:
        async with self._session_factory() as db:
            quiz = await self._find_quiz(db, language, level, topic)
            if quiz is None:
                return []
            history = await self._load_history(db, user_id)
            quiz_ids = await self._quiz_ids(db, language, topic)
        self._check_available(history, language, Level(level), topic, quiz_ids)
        return questions_from_quiz(quiz)

    async def get_review(
        self, user_id: uuid.UUID, language: str, level: Level, topic: str
    ) -> QuizReview:
        level = Level(level)
        async with self._session_factory() as db:
            quiz = await self._find_quiz(db, language, level, topic)
            if quiz is None:
                raise UnknownQuiz(f"No quiz for {language}/{level.value}/{topic}")
            result = await db.execute(
                select(QuizAttemptRecord)
                .where(
                    QuizAttemptRecord.user_id == user_id,
                    QuizAttemptRecord.language == language,
                    QuizAttemptRecord.level == level.value,
                    QuizAttemptRecord.topic == topic,
                )
                .order_by(QuizAttemptRecord.submitted_at)
            )
            rows = list(result.scalars().all())

        if not rows:
            return QuizReview(per_question_correctness=[], statistics=ReviewStatistics())

        latest = rows[-1]
        correctness = Grader.correctness(questions_from_quiz(quiz), latest.answers)
        best = max(rows, key=lambda r: (Grader.percentage(r.score, r.answer_count), r.score))
        return QuizReview(
            per_question_correctness=correctness,
            statistics=ReviewStatistics(
                best_score=max(r.score for r in rows),
                best_percentage=Grader.percentage(best.score, best.answer_count),
                attempt_count=len(rows),
            ),
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def submit_attempt(
        self,
        user_id: uuid.UUID,
        language: str,
        level: Level,
        topic: str,
        submission: AttemptSubmission,
    ) -> SubmissionReceipt:
        level = Level(level)
        now = utcnow()
        async with self._session_factory() as db:
            async with db.begin():
                user = await self._lock_user(db, user_id)
                quiz = await self._find_quiz(db, language, level, topic)
                if quiz is None:
                    raise UnknownQuiz(f"No quiz for {language}/{level.value}/{topic}")

                # One answer per question, violations included (they are backfilled)
                questions = questions_from_quiz(quiz)
                if len(submission.answers) != len(questions):
                    raise InvalidSubmission(
                        f"Expected {len(questions)} answers, got {len(submission.answers)}"
                    )

                zero = submission.violation or submission.force_zero_score
                if not zero:
                    history = await self._load_history(db, user_id, user=user)
                    quiz_ids = await self._quiz_ids(db, language, topic)
                    self._check_submittable(history, language, level, topic, quiz_ids, now)

                score = 0 if zero else Grader.count_correct(questions, submission.answers)
                db.add(
                    QuizAttemptRecord(
                        user_id=user.id,
                        quiz_id=quiz.id,
                        language=language,
                        level=level.value,
                        topic=topic,
                        answers=[a.value for a in submission.answers],
                        score=score,
                        answer_count=len(submission.answers),
                        violation=submission.violation,
                        violation_type=submission.violation_type if submission.violation else None,
                        submitted_at=now,
                    )
                )
                if submission.lockout:
                    self._extend_lockout(user, topic, level, now + self._evaluator.lockout_duration)

        audit(
            "attempt_stored",
            user_id=str(user_id),
            language=language,
            level=level.value,
            topic=topic,
            score=score,
            violation=submission.violation,
            violation_type=submission.violation_type,
            lockout=submission.lockout,
        )
        return SubmissionReceipt(score=score)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _lock_user(self, db: AsyncSession, user_id: uuid.UUID) -> User:
        result = await db.execute(
            select(User).where(User.id == user_id).with_for_update()
        )
        user = result.scalar_one_or_none()
        if user is None:
            user = User(id=user_id, lockouts={})
            db.add(user)
            await db.flush()
            logger.info("User created on first submission", extra={"user_id": str(user_id)})
        return user

    async def _load_history(
        self, db: AsyncSession, user_id: uuid.UUID, user: Optional[User] = None
    ) -> UserHistory:
        if user is None:
            user = await db.get(User, user_id)
        result = await db.execute(
            select(QuizAttemptRecord)
            .where(QuizAttemptRecord.user_id == user_id)
            .order_by(QuizAttemptRecord.submitted_at)
        )
        return UserHistory(
            user_id=user_id,
            attempts=[attempt_from_row(row) for row in result.scalars().all()],
            lockouts=_parse_lockouts(user.lockouts if user is not None else None),
        )

    @staticmethod
    async def _find_quiz(
        db: AsyncSession, language: str, level: Level, topic: str
    ) -> Optional[Quiz]:
        result = await db.execute(
            select(Quiz).where(
                Quiz.language == language,
                Quiz.level == Level(level).value,
                Quiz.topic == topic,
            )
        )
        return result.scalar_one_or_none()

    async def _quiz_ids(
        self, db: AsyncSession, language: str, topic: str
    ) -> Dict[Level, Optional[uuid.UUID]]:
        result = await db.execute(
            select(Quiz.level, Quiz.id).where(Quiz.language == language, Quiz.topic == topic)
        )
        found = {Level(lv): quiz_id for lv, quiz_id in result.all()}
        return {level: found.get(level) for level in self._levels}

    def _check_available(
        self,
        history: UserHistory,
        language: str,
        level: Level,
        topic: str,
        quiz_ids: Dict[Level, Optional[uuid.UUID]],
        now: Optional[datetime] = None,
    ) -> None:
        """Refuse locked or out-of-sequence topic levels."""
        if self._evaluator.is_basic(topic):
            return
        result = self._evaluator.evaluate(
            history, topic, language, self._levels, quiz_ids=quiz_ids, now=now
        )
        if result.is_locked(level, now):
            unlock_at = result.locked_until[level]
            raise NotAvailable(
                AvailabilityReason.LOCKED,
                f"This level is locked until {unlock_at.isoformat()}.",
                unlock_at=unlock_at,
            )
        if not result.prerequisites_met(level, self._levels):
            raise NotAvailable(
                AvailabilityReason.OUT_OF_SEQUENCE,
                "Complete the previous levels first.",
            )

    def _check_submittable(
        self,
        history: UserHistory,
        language: str,
        level: Level,
        topic: str,
        quiz_ids: Dict[Level, Optional[uuid.UUID]],
        now: datetime,
    ) -> None:
        if self._evaluator.is_basic(topic):
            previous = attempts_for_quiz(history.attempts, language, level, topic)
            if previous:
                raise NotAvailable(
                    AvailabilityReason.ALREADY_ATTEMPTED,
                    "You have already taken this quiz.",
                )
            return
        self._check_available(history, language, level, topic, quiz_ids, now)

    @staticmethod
    def _extend_lockout(user: User, topic: str, level: Level, until: datetime) -> None:
        lockouts = {t: dict(per_level) for t, per_level in (user.lockouts or {}).items()}
        current = lockouts.get(topic, {}).get(level.value)
        if current is not None and as_utc(datetime.fromisoformat(current)) >= until:
            return
        lockouts.setdefault(topic, {})[level.value] = until.isoformat()
        # Reassign so the JSON column is flagged dirty
        user.lockouts = lockouts
        audit(
            "lockout_extended",
            user_id=str(user.id),
            topic=topic,
            level=level.value,
            until=until.isoformat(),
        )
