"""
Integrity Monitor - detects that a user left an active quiz.

Watches one quiz session through a SignalSource and delivers exactly one
violation per armed session:

- became_hidden      -> violation
- lost_focus         -> violation if focus is still lost after the debounce
- before_exit        -> violation, plus an exit confirmation prompt
- Ctrl/Cmd+Tab       -> violation
- other blocked keys -> prevented, first one shows a warning
- context menu       -> prevented

The monitor never raises. Callback errors are logged, never propagated.
"""

import asyncio
from enum import Enum
from typing import Callable, Dict, Optional

from quizgate.config import get_settings
from quizgate.engines.integrity.shortcuts import is_tab_cycle
from quizgate.engines.integrity.signals import (
    EnvironmentSignal,
    SignalEvent,
    SignalHandler,
    SignalSource,
)
from quizgate.logging_config import get_logger

logger = get_logger(__name__)


class MonitorState(str, Enum):
    """Monitor lifecycle. FIRED is latched until reset()."""
    DISARMED = "disarmed"
    ARMED = "armed"
    FIRED = "fired"


class WarningKind(str, Enum):
    TAB_SWITCH = "tab_switch"
    FOCUS_LOST = "focus_lost"
    TAB_SHORTCUT = "tab_shortcut"
    SHORTCUT_BLOCKED = "shortcut_blocked"


_LOCKOUT_NOTICE = (
    "Your quiz will be automatically submitted with a score of 0 "
    "and you will be locked out for 24 hours."
)

WARNING_MESSAGES: Dict[WarningKind, str] = {
    WarningKind.TAB_SWITCH: f"Tab switching detected. {_LOCKOUT_NOTICE} Please focus on the quiz tab only.",
    WarningKind.FOCUS_LOST: f"Focus lost. {_LOCKOUT_NOTICE} Please keep focus on the quiz.",
    WarningKind.TAB_SHORTCUT: f"Tab switching shortcut detected. {_LOCKOUT_NOTICE}",
    WarningKind.SHORTCUT_BLOCKED: (
        "Keyboard shortcuts are disabled during the quiz. "
        "Continued attempts to use shortcuts will result in quiz submission."
    ),
}

EXIT_PROMPT = "Leaving this page will submit your quiz with score 0. Are you sure?"

ViolationCallback = Callable[[EnvironmentSignal], None]
WarningCallback = Callable[[WarningKind, str], None]


class IntegrityMonitor:
    """Event-driven watcher for one quiz session."""

    def __init__(
        self,
        source: SignalSource,
        on_violation: ViolationCallback,
        on_warning: Optional[WarningCallback] = None,
        warnings_enabled: bool = True,
        blur_debounce: Optional[float] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        self._source = source
        self._on_violation = on_violation
        self._on_warning = on_warning
        self._warnings_enabled = warnings_enabled
        self._blur_debounce = (
            blur_debounce if blur_debounce is not None else get_settings().blur_debounce_seconds
        )
        self._loop = loop
        self._state = MonitorState.DISARMED
        self._warned = False
        self._blur_check: Optional[asyncio.TimerHandle] = None
        self._handlers: Dict[EnvironmentSignal, SignalHandler] = {
            EnvironmentSignal.BECAME_HIDDEN: self._handle_hidden,
            EnvironmentSignal.LOST_FOCUS: self._handle_lost_focus,
            EnvironmentSignal.BEFORE_EXIT: self._handle_before_exit,
            EnvironmentSignal.BLOCKED_SHORTCUT: self._handle_shortcut,
            EnvironmentSignal.CONTEXT_MENU: self._handle_context_menu,
        }
        self._subscribed = False

    @property
    def state(self) -> MonitorState:
        return self._state

    @property
    def armed(self) -> bool:
        return self._state == MonitorState.ARMED

    @property
    def fired(self) -> bool:
        return self._state == MonitorState.FIRED

    @property
    def warned(self) -> bool:
        return self._warned

    def arm(self) -> bool:
        """Start watching. Refused once a violation has fired."""
        if self._state != MonitorState.DISARMED:
            return False
        for signal, handler in self._handlers.items():
            self._source.subscribe(signal, handler)
        self._subscribed = True
        self._state = MonitorState.ARMED
        logger.info("Integrity monitor armed")
        return True

    def disarm(self) -> None:
        """Detach listeners and cancel any pending focus re-check."""
        self._cancel_blur_check()
        if self._subscribed:
            for signal, handler in self._handlers.items():
                self._source.unsubscribe(signal, handler)
            self._subscribed = False
        if self._state == MonitorState.ARMED:
            self._state = MonitorState.DISARMED
            logger.info("Integrity monitor disarmed")

    def reset(self) -> None:
        """Clear fired/warned. Test harnesses and debug tooling only."""
        if self._state == MonitorState.FIRED:
            self._state = MonitorState.ARMED if self._subscribed else MonitorState.DISARMED
        self._warned = False

    def _handle_hidden(self, event: SignalEvent) -> None:
        if not self.armed:
            return
        self._fire(event.signal, WarningKind.TAB_SWITCH)

    def _handle_lost_focus(self, event: SignalEvent) -> None:
        if not self.armed or self._blur_check is not None:
            return
        try:
            loop = self._loop or asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No event loop for focus re-check; ignoring blur")
            return
        self._blur_check = loop.call_later(self._blur_debounce, self._confirm_focus_loss)

    def _confirm_focus_loss(self) -> None:
        self._blur_check = None
        if not self.armed:
            return
        try:
            focused = self._source.has_focus()
        except Exception:
            logger.exception("Focus re-check failed; no violation raised")
            return
        if focused:
            logger.debug("Transient blur absorbed by debounce")
            return
        self._fire(EnvironmentSignal.LOST_FOCUS, WarningKind.FOCUS_LOST)

    def _handle_before_exit(self, event: SignalEvent) -> None:
        if not self.armed:
            return
        event.prevented = True
        event.exit_prompt = EXIT_PROMPT
        self._fire(event.signal, None)

    def _handle_shortcut(self, event: SignalEvent) -> None:
        if not self.armed:
            return
        event.prevented = True
        if event.combo is not None and is_tab_cycle(event.combo):
            self._fire(event.signal, WarningKind.TAB_SHORTCUT)
            return
        logger.info("Blocked shortcut", extra={"key": event.combo.key if event.combo else None})
        self._warn(WarningKind.SHORTCUT_BLOCKED)

    def _handle_context_menu(self, event: SignalEvent) -> None:
        if self.armed:
            event.prevented = True

    def _fire(self, signal: EnvironmentSignal, warning: Optional[WarningKind]) -> None:
        if not self.armed:
            return
        self._state = MonitorState.FIRED
        self._cancel_blur_check()
        logger.warning("Integrity violation detected", extra={"signal": signal.value})
        if warning is not None:
            self._warn(warning)
        try:
            self._on_violation(signal)
        except Exception:
            logger.exception("Violation callback failed")

    def _warn(self, kind: WarningKind) -> None:
        if not self._warnings_enabled or self._warned:
            return
        self._warned = True
        if self._on_warning is None:
            return
        try:
            self._on_warning(kind, WARNING_MESSAGES[kind])
        except Exception:
            logger.exception("Warning callback failed")

    def _cancel_blur_check(self) -> None:
        if self._blur_check is not None:
            self._blur_check.cancel()
            self._blur_check = None
