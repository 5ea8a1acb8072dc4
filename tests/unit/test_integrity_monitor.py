"""Unit tests for integrity engine: IntegrityMonitor, ReportedSignalSource, shortcut table."""

import asyncio
from typing import List, Tuple

import pytest

from quizgate.engines.integrity.monitor import (
    EXIT_PROMPT,
    IntegrityMonitor,
    MonitorState,
    WarningKind,
)
from quizgate.engines.integrity.shortcuts import KeyCombo, is_blocked, is_tab_cycle
from quizgate.engines.integrity.signals import EnvironmentSignal, ReportedSignalSource

DEBOUNCE = 0.01


class Recorder:
    """Collects monitor callbacks."""

    def __init__(self) -> None:
        self.violations: List[EnvironmentSignal] = []
        self.warnings: List[Tuple[WarningKind, str]] = []

    def on_violation(self, signal: EnvironmentSignal) -> None:
        self.violations.append(signal)

    def on_warning(self, kind: WarningKind, message: str) -> None:
        self.warnings.append((kind, message))


@pytest.fixture
def source() -> ReportedSignalSource:
    return ReportedSignalSource()


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def monitor(source, recorder) -> IntegrityMonitor:
    m = IntegrityMonitor(
        source,
        on_violation=recorder.on_violation,
        on_warning=recorder.on_warning,
        blur_debounce=DEBOUNCE,
    )
    m.arm()
    return m


class TestShortcutTable:
    @pytest.mark.parametrize(
        "combo",
        [
            KeyCombo("Tab", ctrl=True),
            KeyCombo("Tab", meta=True),
            KeyCombo("t", ctrl=True),
            KeyCombo("w", meta=True),
            KeyCombo("n", ctrl=True),
            KeyCombo("r", ctrl=True),
            KeyCombo("F5", ctrl=True),
            KeyCombo("I", ctrl=True, shift=True),
            KeyCombo("J", meta=True, shift=True),
            KeyCombo("C", ctrl=True, shift=True),
            KeyCombo("F12"),
            KeyCombo("Tab", alt=True),
        ],
    )
    def test_blocked(self, combo):
        assert is_blocked(combo)

    @pytest.mark.parametrize(
        "combo",
        [KeyCombo("c", ctrl=True), KeyCombo("Tab"), KeyCombo("a"), KeyCombo("I", shift=True)],
    )
    def test_not_blocked(self, combo):
        assert not is_blocked(combo)

    def test_only_command_tab_is_tab_cycle(self):
        assert is_tab_cycle(KeyCombo("Tab", ctrl=True))
        assert is_tab_cycle(KeyCombo("Tab", meta=True))
        assert not is_tab_cycle(KeyCombo("Tab", alt=True))
        assert not is_tab_cycle(KeyCombo("t", ctrl=True))


class TestArming:
    def test_arm_subscribes_and_disarm_detaches(self, source, recorder):
        m = IntegrityMonitor(source, on_violation=recorder.on_violation, blur_debounce=DEBOUNCE)
        assert m.state == MonitorState.DISARMED
        assert source.subscriber_count() == 0

        assert m.arm() is True
        assert m.armed
        assert source.subscriber_count() == len(EnvironmentSignal)

        m.disarm()
        assert m.state == MonitorState.DISARMED
        assert source.subscriber_count() == 0

    def test_disarmed_monitor_ignores_signals(self, source, recorder):
        IntegrityMonitor(source, on_violation=recorder.on_violation, blur_debounce=DEBOUNCE)
        source.report_visibility(True)
        source.report_exit()
        assert recorder.violations == []

    def test_arm_refused_after_fire(self, monitor, source):
        source.report_visibility(True)
        assert monitor.fired
        assert monitor.arm() is False


class TestViolations:
    def test_hidden_fires_once(self, monitor, source, recorder):
        """Visibility fires; a later blur in the same session does not fire again."""
        event = source.report_visibility(True)
        assert event is not None
        assert recorder.violations == [EnvironmentSignal.BECAME_HIDDEN]
        assert monitor.state == MonitorState.FIRED

        source.report_focus(False)
        source.report_visibility(True)
        source.report_key(KeyCombo("Tab", ctrl=True))
        source.report_exit()
        assert len(recorder.violations) == 1

    def test_visible_report_is_not_a_signal(self, monitor, source, recorder):
        assert source.report_visibility(False) is None
        assert recorder.violations == []

    def test_hidden_shows_tab_switch_warning(self, monitor, source, recorder):
        source.report_visibility(True)
        assert [kind for kind, _ in recorder.warnings] == [WarningKind.TAB_SWITCH]
        assert monitor.warned

    def test_before_exit_prompts_and_fires(self, monitor, source, recorder):
        event = source.report_exit()
        assert event.prevented is True
        assert event.exit_prompt == EXIT_PROMPT
        assert recorder.violations == [EnvironmentSignal.BEFORE_EXIT]
        assert recorder.warnings == []

    def test_tab_cycle_shortcut_fires(self, monitor, source, recorder):
        event = source.report_key(KeyCombo("Tab", meta=True))
        assert event.prevented is True
        assert recorder.violations == [EnvironmentSignal.BLOCKED_SHORTCUT]
        assert recorder.warnings[0][0] == WarningKind.TAB_SHORTCUT

    def test_other_blocked_shortcuts_prevented_without_violation(self, monitor, source, recorder):
        first = source.report_key(KeyCombo("t", ctrl=True))
        second = source.report_key(KeyCombo("F12"))
        assert first.prevented and second.prevented
        assert recorder.violations == []
        assert monitor.armed
        # Warning is shown once
        assert [kind for kind, _ in recorder.warnings] == [WarningKind.SHORTCUT_BLOCKED]

    def test_unblocked_key_not_reported(self, monitor, source, recorder):
        assert source.report_key(KeyCombo("c", ctrl=True)) is None
        assert recorder.violations == []

    def test_context_menu_prevented_only_while_armed(self, monitor, source, recorder):
        assert source.report_context_menu().prevented is True
        assert recorder.violations == []

        monitor.disarm()
        assert source.report_context_menu().prevented is False

    def test_warnings_disabled(self, source, recorder):
        m = IntegrityMonitor(
            source,
            on_violation=recorder.on_violation,
            on_warning=recorder.on_warning,
            warnings_enabled=False,
            blur_debounce=DEBOUNCE,
        )
        m.arm()
        source.report_visibility(True)
        assert recorder.violations == [EnvironmentSignal.BECAME_HIDDEN]
        assert recorder.warnings == []

    def test_callback_error_does_not_propagate(self, source):
        def explode(signal):
            raise RuntimeError("boom")

        m = IntegrityMonitor(source, on_violation=explode, blur_debounce=DEBOUNCE)
        m.arm()
        source.report_visibility(True)
        assert m.fired

    def test_reset_clears_fired_and_warned(self, monitor, source, recorder):
        source.report_visibility(True)
        monitor.reset()
        assert monitor.armed
        assert not monitor.warned

        source.report_visibility(True)
        assert len(recorder.violations) == 2


class TestFocusDebounce:
    @pytest.mark.asyncio
    async def test_sustained_blur_fires_after_debounce(self, monitor, source, recorder):
        source.report_focus(False)
        assert recorder.violations == []
        await asyncio.sleep(DEBOUNCE * 5)
        assert recorder.violations == [EnvironmentSignal.LOST_FOCUS]
        assert recorder.warnings[0][0] == WarningKind.FOCUS_LOST

    @pytest.mark.asyncio
    async def test_transient_blur_absorbed(self, monitor, source, recorder):
        source.report_focus(False)
        source.report_focus(True)
        await asyncio.sleep(DEBOUNCE * 5)
        assert recorder.violations == []
        assert monitor.armed

    @pytest.mark.asyncio
    async def test_disarm_cancels_pending_recheck(self, monitor, source, recorder):
        source.report_focus(False)
        monitor.disarm()
        await asyncio.sleep(DEBOUNCE * 5)
        assert recorder.violations == []

    @pytest.mark.asyncio
    async def test_failed_recheck_raises_nothing(self, recorder):
        class BrokenFocusSource(ReportedSignalSource):
            def has_focus(self) -> bool:
                raise RuntimeError("focus state unavailable")

        source = BrokenFocusSource()
        m = IntegrityMonitor(source, on_violation=recorder.on_violation, blur_debounce=DEBOUNCE)
        m.arm()
        source.report_focus(False)
        await asyncio.sleep(DEBOUNCE * 5)
        assert recorder.violations == []
        assert m.armed

    @pytest.mark.asyncio
    async def test_hidden_during_recheck_fires_once(self, monitor, source, recorder):
        source.report_focus(False)
        source.report_visibility(True)
        await asyncio.sleep(DEBOUNCE * 5)
        assert recorder.violations == [EnvironmentSignal.BECAME_HIDDEN]

    def test_blur_without_event_loop_is_ignored(self, monitor, source, recorder):
        source.report_focus(False)
        assert recorder.violations == []
        assert monitor.armed
