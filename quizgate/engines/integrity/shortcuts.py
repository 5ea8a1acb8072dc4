"""
Keyboard shortcuts blocked while a quiz is armed.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class KeyCombo:
    """A keydown as reported by the client."""

    key: str
    ctrl: bool = False
    meta: bool = False
    shift: bool = False
    alt: bool = False

    @property
    def command(self) -> bool:
        """Ctrl on Windows/Linux, Cmd on macOS."""
        return self.ctrl or self.meta


# Keys blocked together with Ctrl/Cmd: tab cycle, new tab, close tab,
# new window, refresh, dev tools
_COMMAND_KEYS = frozenset({"Tab", "t", "w", "n", "r", "F5", "F12"})
# Keys blocked together with Ctrl/Cmd+Shift: dev tools, console, inspector
_COMMAND_SHIFT_KEYS = frozenset({"I", "J", "C"})


def is_blocked(combo: KeyCombo) -> bool:
    """True if the combo's default browser action must be prevented."""
    if combo.command and combo.key in _COMMAND_KEYS:
        return True
    if combo.command and combo.shift and combo.key in _COMMAND_SHIFT_KEYS:
        return True
    if combo.key == "F12":
        return True
    if combo.alt and combo.key == "Tab":
        return True
    return False


def is_tab_cycle(combo: KeyCombo) -> bool:
    """Ctrl/Cmd+Tab: the only shortcut that counts as a violation."""
    return combo.command and combo.key == "Tab"
