"""
Progression Engine - level completion, lockouts and entry gates.

Tracks:
- Basic track: diagnostic, completed after any attempt, never locked
- Topic track: > 50% to complete, a failing attempt locks the level for 24h,
  violation lockouts take precedence when they expire later

Levels unlock sequentially: beginner -> intermediate -> advanced.
"""

from quizgate.engines.progression.evaluator import (
    LevelState,
    ProgressionEvaluator,
    ProgressionResult,
)
from quizgate.engines.progression.gates import (
    AlreadyPassedGate,
    NextStep,
    NextStepKind,
    attempts_for_quiz,
    course_completion_result,
    has_attempted,
    next_step,
)
from quizgate.engines.progression.types import (
    LEVEL_ORDER,
    Level,
    LevelStatus,
    QuizAttempt,
    QuizRef,
    UserHistory,
)

__all__ = [
    "LevelState",
    "ProgressionEvaluator",
    "ProgressionResult",
    "AlreadyPassedGate",
    "NextStep",
    "NextStepKind",
    "attempts_for_quiz",
    "course_completion_result",
    "has_attempted",
    "next_step",
    "LEVEL_ORDER",
    "Level",
    "LevelStatus",
    "QuizAttempt",
    "QuizRef",
    "UserHistory",
]
