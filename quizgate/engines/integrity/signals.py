"""
Environment signal sources for the integrity monitor.

The monitor never talks to a browser directly. It subscribes to a
SignalSource; production sessions use ReportedSignalSource, which is fed by
the client's event reports over the API.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Protocol

from quizgate.engines.integrity.shortcuts import KeyCombo, is_blocked
from quizgate.logging_config import get_logger

logger = get_logger(__name__)


class EnvironmentSignal(str, Enum):
    """Signals the monitor can subscribe to."""
    BECAME_HIDDEN = "became_hidden"
    LOST_FOCUS = "lost_focus"
    BEFORE_EXIT = "before_exit"
    BLOCKED_SHORTCUT = "blocked_shortcut"
    CONTEXT_MENU = "context_menu"


@dataclass
class SignalEvent:
    """
    One delivered signal.

    Handlers set `prevented` to suppress the client's default action and
    `exit_prompt` to ask the client to confirm leaving the page.
    """

    signal: EnvironmentSignal
    combo: Optional[KeyCombo] = None
    prevented: bool = False
    exit_prompt: Optional[str] = None


SignalHandler = Callable[[SignalEvent], None]


class SignalSource(Protocol):
    """What the integrity monitor needs from its environment."""

    def subscribe(self, signal: EnvironmentSignal, handler: SignalHandler) -> None: ...

    def unsubscribe(self, signal: EnvironmentSignal, handler: SignalHandler) -> None: ...

    def has_focus(self) -> bool: ...


class ReportedSignalSource:
    """
    Signal source driven by client reports.

    Tracks the last reported focus/visibility so the monitor's delayed
    focus re-check sees any `focus` report that arrived in between.
    """

    def __init__(self) -> None:
        self._handlers: Dict[EnvironmentSignal, List[SignalHandler]] = {}
        self._focused = True
        self._hidden = False

    def subscribe(self, signal: EnvironmentSignal, handler: SignalHandler) -> None:
        handlers = self._handlers.setdefault(signal, [])
        if handler not in handlers:
            handlers.append(handler)

    def unsubscribe(self, signal: EnvironmentSignal, handler: SignalHandler) -> None:
        handlers = self._handlers.get(signal, [])
        if handler in handlers:
            handlers.remove(handler)

    def subscriber_count(self) -> int:
        return sum(len(h) for h in self._handlers.values())

    def has_focus(self) -> bool:
        return self._focused and not self._hidden

    def _emit(self, event: SignalEvent) -> SignalEvent:
        # Copy: handlers may unsubscribe while being notified
        for handler in list(self._handlers.get(event.signal, [])):
            handler(event)
        return event

    def report_visibility(self, hidden: bool) -> Optional[SignalEvent]:
        self._hidden = hidden
        if hidden:
            return self._emit(SignalEvent(EnvironmentSignal.BECAME_HIDDEN))
        return None

    def report_focus(self, focused: bool) -> Optional[SignalEvent]:
        self._focused = focused
        if not focused:
            return self._emit(SignalEvent(EnvironmentSignal.LOST_FOCUS))
        return None

    def report_exit(self) -> SignalEvent:
        return self._emit(SignalEvent(EnvironmentSignal.BEFORE_EXIT))

    def report_key(self, combo: KeyCombo) -> Optional[SignalEvent]:
        if not is_blocked(combo):
            return None
        return self._emit(SignalEvent(EnvironmentSignal.BLOCKED_SHORTCUT, combo=combo))

    def report_context_menu(self) -> SignalEvent:
        return self._emit(SignalEvent(EnvironmentSignal.CONTEXT_MENU))
