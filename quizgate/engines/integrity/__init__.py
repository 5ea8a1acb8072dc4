"""
Integrity Engine - focus-loss and shortcut detection for live quizzes.
"""

from quizgate.engines.integrity.monitor import (
    EXIT_PROMPT,
    IntegrityMonitor,
    MonitorState,
    WarningKind,
)
from quizgate.engines.integrity.shortcuts import KeyCombo, is_blocked, is_tab_cycle
from quizgate.engines.integrity.signals import (
    EnvironmentSignal,
    ReportedSignalSource,
    SignalEvent,
    SignalSource,
)

__all__ = [
    "EXIT_PROMPT",
    "IntegrityMonitor",
    "MonitorState",
    "WarningKind",
    "KeyCombo",
    "is_blocked",
    "is_tab_cycle",
    "EnvironmentSignal",
    "ReportedSignalSource",
    "SignalEvent",
    "SignalSource",
]
