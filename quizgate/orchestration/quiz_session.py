"""
Quiz Session Controller - drives one quiz attempt from entry check to review.

Lifecycle (see state_machine.py):

    checking -> loading -> active -> submitting -> submitted -> reviewing

The integrity monitor is armed for exactly the active state. A violation
and a user submission are mutually exclusive: whichever leaves `active`
first wins and the other becomes a no-op.
"""

import asyncio
import uuid
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel

from quizgate.config import get_settings
from quizgate.engines.grading.grader import Grader
from quizgate.engines.integrity.monitor import IntegrityMonitor, WarningKind
from quizgate.engines.integrity.signals import (
    EnvironmentSignal,
    ReportedSignalSource,
    SignalSource,
)
from quizgate.engines.progression.evaluator import ProgressionEvaluator
from quizgate.engines.progression.gates import (
    AlreadyPassedGate,
    NextStep,
    attempts_for_quiz,
    has_attempted,
    next_step,
)
from quizgate.engines.progression.types import (
    LEVEL_ORDER,
    AttemptSubmission,
    Level,
    OptionTag,
    Question,
    QuizReview,
    UserHistory,
)
from quizgate.logging_config import audit, get_logger
from quizgate.orchestration.errors import (
    AvailabilityReason,
    FetchFailure,
    InvalidSubmission,
    NotAvailable,
    QuizSessionError,
    SubmissionFailure,
)
from quizgate.orchestration.state_machine import (
    QuizSessionState,
    SubmissionKind,
    can_transition,
    valid_transitions,
)
from quizgate.store.base import AttemptStore, QuizCatalog

logger = get_logger(__name__)


class SubmissionOutcome(BaseModel):
    """Result of leaving the active state."""

    kind: SubmissionKind
    score: int
    client_score: Optional[int] = None
    answer_count: int
    persisted: bool = True
    scores_agree: bool = True


class QuizSessionController:
    """
    One user's attempt at one (language, level, topic) quiz.

    All store calls are suspension points; every other method is
    synchronous and runs to completion on the event loop.
    """

    VIOLATION_SUBMIT_ATTEMPTS = 2

    def __init__(
        self,
        store: AttemptStore,
        user_id: uuid.UUID,
        language: str,
        level: Level,
        topic: str,
        catalog: Optional[QuizCatalog] = None,
        source: Optional[SignalSource] = None,
        evaluator: Optional[ProgressionEvaluator] = None,
        gate: Optional[AlreadyPassedGate] = None,
        levels: Sequence[Level] = LEVEL_ORDER,
        session_id: Optional[uuid.UUID] = None,
        placeholder_option: Optional[OptionTag] = None,
        blur_debounce: Optional[float] = None,
    ):
        self.session_id = session_id or uuid.uuid4()
        self.user_id = user_id
        self.language = language
        self.level = Level(level)
        self.topic = topic
        self.levels = list(levels)

        self._store = store
        self._catalog = catalog
        self._evaluator = evaluator or ProgressionEvaluator()
        self._gate = gate or AlreadyPassedGate()
        self._placeholder = OptionTag(
            placeholder_option or get_settings().placeholder_option
        )

        self.source: SignalSource = source or ReportedSignalSource()
        self.monitor = IntegrityMonitor(
            self.source,
            on_violation=self._on_violation,
            on_warning=self._on_warning,
            blur_debounce=blur_debounce,
        )

        self._state = QuizSessionState.CHECKING
        self._questions: List[Question] = []
        self._answers: Dict[int, OptionTag] = {}
        self._current = 0
        self._outcome: Optional[SubmissionOutcome] = None
        self._violation_submitted = False
        self._violation_signal: Optional[EnvironmentSignal] = None
        self._violation_task: Optional[asyncio.Task] = None
        # Resolved with the outcome (or None on failure) when submitting ends
        self._pending: Optional[asyncio.Future] = None
        self._review: Optional[QuizReview] = None
        self.warnings: List[Tuple[WarningKind, str]] = []

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> QuizSessionState:
        return self._state

    @property
    def questions(self) -> List[Question]:
        return list(self._questions)

    @property
    def answers(self) -> Dict[int, OptionTag]:
        return dict(self._answers)

    @property
    def current_index(self) -> int:
        return self._current

    @property
    def outcome(self) -> Optional[SubmissionOutcome]:
        return self._outcome

    @property
    def submitted(self) -> bool:
        return self._outcome is not None

    @property
    def violation_submitted(self) -> bool:
        return self._violation_submitted

    @property
    def review_result(self) -> Optional[QuizReview]:
        return self._review

    def _transition(self, to_state: QuizSessionState) -> None:
        if not can_transition(self._state, to_state):
            allowed = ", ".join(s.value for s in valid_transitions(self._state))
            raise ValueError(
                f"Cannot move quiz session from {self._state.value} to {to_state.value}. "
                f"Valid: {allowed or 'none'}"
            )
        logger.debug(
            "Quiz session transition",
            extra={"from_state": self._state.value, "to_state": to_state.value},
        )
        self._state = to_state

    def _require(self, state: QuizSessionState) -> None:
        if self._state != state:
            raise ValueError(
                f"Quiz session is {self._state.value}, expected {state.value}"
            )

    # ------------------------------------------------------------------
    # Checking / Loading
    # ------------------------------------------------------------------

    async def open(self, now: Optional[datetime] = None) -> List[Question]:
        """
        Run the entry checks, load questions and arm the monitor.

        Raises:
            NotAvailable: level already attempted/passed, locked or out of
                sequence. The session stays in `checking` (or `loading` when
                the store refuses the question fetch).
            FetchFailure: history or question fetch failed.
        """
        self._require(QuizSessionState.CHECKING)
        try:
            await self._check(now)
        except NotAvailable as exc:
            audit(
                "entry_refused",
                user_id=str(self.user_id),
                topic=self.topic,
                level=self.level.value,
                reason=exc.reason.value,
            )
            raise
        if self._state != QuizSessionState.CHECKING:
            raise QuizSessionError("Quiz session was closed while checking")

        self._transition(QuizSessionState.LOADING)
        questions = await self._load()
        if self._state != QuizSessionState.LOADING:
            raise QuizSessionError("Quiz session was closed while loading")

        self._questions = questions
        self._transition(QuizSessionState.ACTIVE)
        self._arm_monitor()
        logger.info(
            "Quiz session active",
            extra={
                "user_id": str(self.user_id),
                "language": self.language,
                "level": self.level.value,
                "topic": self.topic,
                "question_count": len(questions),
            },
        )
        return self.questions

    async def _check(self, now: Optional[datetime]) -> None:
        try:
            history = await self._store.get_user(self.user_id)
        except QuizSessionError:
            raise
        except Exception as exc:
            logger.warning("Attempt history fetch failed", exc_info=True)
            raise FetchFailure("Could not load attempt history") from exc

        quiz_ids = await self._resolve_quiz_ids()
        quiz_id = quiz_ids.get(self.level) if quiz_ids else None
        attempts = attempts_for_quiz(
            history.attempts, self.language, self.level, self.topic, quiz_id
        )

        if self._evaluator.is_basic(self.topic):
            if has_attempted(attempts):
                raise NotAvailable(
                    AvailabilityReason.ALREADY_ATTEMPTED,
                    "You have already taken this quiz.",
                    next_step=self.next_step(),
                )
            return

        if self._gate.passing_attempt(attempts) is not None:
            raise NotAvailable(
                AvailabilityReason.ALREADY_PASSED,
                "You have already passed this level.",
                next_step=self.next_step(),
            )
        self._check_progression(history, quiz_ids, now)

    def _check_progression(
        self,
        history: UserHistory,
        quiz_ids: Optional[Dict[Level, Optional[uuid.UUID]]],
        now: Optional[datetime],
    ) -> None:
        result = self._evaluator.evaluate(
            history, self.topic, self.language, self.levels, quiz_ids=quiz_ids, now=now
        )
        if result.is_locked(self.level, now):
            unlock_at = result.locked_until[self.level]
            raise NotAvailable(
                AvailabilityReason.LOCKED,
                f"This level is locked until {unlock_at.isoformat()}.",
                next_step=self.next_step(),
                unlock_at=unlock_at,
            )
        if not result.prerequisites_met(self.level, self.levels):
            raise NotAvailable(
                AvailabilityReason.OUT_OF_SEQUENCE,
                "Complete the previous levels first.",
                next_step=self.next_step(),
            )

    async def _resolve_quiz_ids(self) -> Optional[Dict[Level, Optional[uuid.UUID]]]:
        if self._catalog is None:
            return None
        quiz_ids: Dict[Level, Optional[uuid.UUID]] = {}
        for level in self.levels:
            try:
                info = await self._catalog.get_quiz(self.language, level, self.topic)
            except Exception as exc:
                logger.warning("Quiz lookup failed", extra={"level": level.value}, exc_info=True)
                raise FetchFailure("Could not resolve quiz") from exc
            quiz_ids[level] = info.id if info is not None else None
        return quiz_ids

    async def _load(self) -> List[Question]:
        try:
            questions = await self._store.get_questions(
                self.user_id, self.language, self.level, self.topic
            )
        except QuizSessionError:
            raise
        except Exception as exc:
            logger.warning("Question fetch failed", exc_info=True)
            raise FetchFailure("Could not load questions") from exc
        if not questions:
            raise FetchFailure("No questions available for this quiz")
        return sorted(questions, key=lambda q: q.index)

    # ------------------------------------------------------------------
    # Active
    # ------------------------------------------------------------------

    def answer(self, index: int, option: OptionTag) -> None:
        """Record (or overwrite) the answer for one question."""
        self._require(QuizSessionState.ACTIVE)
        if not 0 <= index < len(self._questions):
            raise ValueError(f"Question index {index} out of range")
        self._answers[index] = OptionTag(option)

    def can_go_next(self) -> bool:
        return (
            self._state == QuizSessionState.ACTIVE
            and self._current in self._answers
            and self._current + 1 < len(self._questions)
        )

    def go_next(self) -> bool:
        """Advance one question. Refused until the current one is answered."""
        if not self.can_go_next():
            return False
        self._current += 1
        return True

    def go_previous(self) -> bool:
        if self._state != QuizSessionState.ACTIVE or self._current == 0:
            return False
        self._current -= 1
        return True

    def _arm_monitor(self) -> None:
        if self._state == QuizSessionState.ACTIVE and not self._violation_submitted:
            self.monitor.arm()

    def _on_warning(self, kind: WarningKind, message: str) -> None:
        self.warnings.append((kind, message))

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    async def submit(self) -> SubmissionOutcome:
        """
        User submission.

        Returns the existing outcome if the session was already submitted
        by either path. While a submission is in flight, waits for it and
        returns its outcome instead of posting a second attempt.

        Raises:
            ValueError: not active, or some questions are unanswered
            SubmissionFailure: the store rejected the attempt; the session
                is active again and the user may retry
        """
        if self._outcome is not None:
            return self._outcome
        if self._state == QuizSessionState.SUBMITTING and self._pending is not None:
            outcome = await asyncio.shield(self._pending)
            if outcome is None:
                raise SubmissionFailure("Failed to submit quiz. Please try again.")
            return outcome
        self._require(QuizSessionState.ACTIVE)
        unanswered = [i for i in range(len(self._questions)) if i not in self._answers]
        if unanswered:
            raise ValueError(f"Unanswered questions: {unanswered}")

        self._transition(QuizSessionState.SUBMITTING)
        self._open_pending()
        self.monitor.disarm()
        answers = [self._answers[i] for i in range(len(self._questions))]

        try:
            receipt = await self._store.submit_attempt(
                self.user_id,
                self.language,
                self.level,
                self.topic,
                AttemptSubmission(answers=answers),
            )
        except Exception as exc:
            logger.warning("Quiz submission failed", exc_info=True)
            if self._state == QuizSessionState.SUBMITTING:
                self._transition(QuizSessionState.ACTIVE)
                self._arm_monitor()
            self._settle_pending(None)
            if isinstance(exc, (NotAvailable, InvalidSubmission)):
                raise
            raise SubmissionFailure("Failed to submit quiz. Please try again.") from exc

        client_score = Grader.count_correct(self._questions, answers)
        agree = client_score == receipt.score
        if not agree:
            logger.error(
                "Server and client scores disagree",
                extra={"server_score": receipt.score, "client_score": client_score},
            )
        outcome = SubmissionOutcome(
            kind=SubmissionKind.NORMAL,
            score=receipt.score,
            client_score=client_score,
            answer_count=len(answers),
            scores_agree=agree,
        )
        self._finish(outcome)
        return outcome

    def _on_violation(self, signal: EnvironmentSignal) -> None:
        """Monitor callback. Latches the session, then posts in the background."""
        if not self._begin_violation(signal):
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.error("No event loop for violation submission; locking session locally")
            self._finish(self._violation_outcome(persisted=False, server_score=None))
            return
        self._violation_task = loop.create_task(self._post_violation())

    async def submit_violation(
        self, signal: EnvironmentSignal = EnvironmentSignal.BECAME_HIDDEN
    ) -> Optional[SubmissionOutcome]:
        """
        Violation submission. No-op unless the session is active.

        Never raises on store failure: after one inline retry the session is
        marked submitted locally with score 0 and persisted=False.
        """
        if not self._begin_violation(signal):
            return await self.wait_idle()
        return await self._post_violation()

    def _begin_violation(self, signal: EnvironmentSignal) -> bool:
        if (
            self._state != QuizSessionState.ACTIVE
            or self._violation_submitted
            or self._outcome is not None
        ):
            return False
        self._violation_submitted = True
        self._violation_signal = signal
        self._transition(QuizSessionState.SUBMITTING)
        self._open_pending()
        self.monitor.disarm()
        audit(
            "violation",
            signal=signal.value,
            user_id=str(self.user_id),
            topic=self.topic,
            level=self.level.value,
        )
        return True

    async def _post_violation(self) -> SubmissionOutcome:
        answers = [
            self._answers.get(i, self._placeholder) for i in range(len(self._questions))
        ]
        submission = AttemptSubmission(
            answers=answers,
            violation=True,
            violation_type=self._violation_signal.value if self._violation_signal else None,
            force_zero_score=True,
            lockout=True,
        )
        server_score: Optional[int] = None
        persisted = False
        for attempt in range(1, self.VIOLATION_SUBMIT_ATTEMPTS + 1):
            try:
                receipt = await self._store.submit_attempt(
                    self.user_id, self.language, self.level, self.topic, submission
                )
            except Exception:
                logger.warning(
                    "Violation submission failed",
                    extra={"attempt": attempt},
                    exc_info=True,
                )
                continue
            server_score = receipt.score
            persisted = True
            break

        if not persisted:
            logger.error("Violation submission not persisted; session locked locally")
        outcome = self._violation_outcome(persisted=persisted, server_score=server_score)
        self._finish(outcome)
        return outcome

    def _violation_outcome(self, persisted: bool, server_score: Optional[int]) -> SubmissionOutcome:
        if server_score not in (None, 0):
            logger.error("Store returned non-zero score for a violation", extra={"server_score": server_score})
        return SubmissionOutcome(
            kind=SubmissionKind.VIOLATION,
            score=0,
            client_score=0,
            answer_count=len(self._questions),
            persisted=persisted,
            scores_agree=server_score in (None, 0),
        )

    def _finish(self, outcome: SubmissionOutcome) -> None:
        self._outcome = outcome
        if self._state == QuizSessionState.SUBMITTING:
            self._transition(QuizSessionState.SUBMITTED)
        self._settle_pending(outcome)
        audit(
            "quiz_submitted",
            user_id=str(self.user_id),
            topic=self.topic,
            level=self.level.value,
            kind=outcome.kind.value,
            score=outcome.score,
            persisted=outcome.persisted,
        )

    def _open_pending(self) -> None:
        try:
            self._pending = asyncio.get_running_loop().create_future()
        except RuntimeError:
            self._pending = None

    def _settle_pending(self, outcome: Optional[SubmissionOutcome]) -> None:
        pending, self._pending = self._pending, None
        if pending is not None and not pending.done():
            pending.set_result(outcome)

    async def wait_idle(self) -> Optional[SubmissionOutcome]:
        """Wait for a background violation submission, if one is running."""
        task = self._violation_task
        if task is not None and not task.done():
            await asyncio.shield(task)
        return self._outcome

    # ------------------------------------------------------------------
    # Reviewing / teardown
    # ------------------------------------------------------------------

    async def review(self) -> QuizReview:
        """Read-only review. The monitor stays disarmed from here on."""
        if self._state == QuizSessionState.REVIEWING and self._review is not None:
            return self._review
        if not can_transition(self._state, QuizSessionState.REVIEWING):
            raise ValueError(f"Cannot review a quiz session that is {self._state.value}")
        try:
            review = await self._store.get_review(
                self.user_id, self.language, self.level, self.topic
            )
        except QuizSessionError:
            raise
        except Exception as exc:
            logger.warning("Review fetch failed", exc_info=True)
            raise FetchFailure("Could not load quiz review") from exc
        if self._state == QuizSessionState.SUBMITTED:
            self._transition(QuizSessionState.REVIEWING)
        self._review = review
        return review

    def close(self) -> None:
        """Tear down synchronously. Later signals and callbacks are no-ops."""
        self.monitor.disarm()
        if self._state != QuizSessionState.CLOSED:
            self._transition(QuizSessionState.CLOSED)
            logger.info("Quiz session closed")

    def next_step(self) -> NextStep:
        return next_step(
            self.topic, self.level, self.language, basic_topic=self._evaluator.basic_topic
        )
