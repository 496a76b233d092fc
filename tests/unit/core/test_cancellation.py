"""Tests for ipcrawler.core.cancellation."""

from __future__ import annotations

import signal
import threading
from typing import List, Tuple
from unittest.mock import MagicMock

import pytest

from ipcrawler.core.cancellation import (
    DEFAULT_FORCE_KILL_DELAY,
    EXIT_CANCELLED,
    PRIVILEGED_FORCE_KILL_DELAY,
    CancellationCoordinator,
    CancellationToken,
    CoordinatorState,
    ProcessRegistry,
    terminate_process_tree,
)
from ipcrawler.core.errors import CancellationError


class FakeTimer:
    """Stand-in for threading.Timer that only fires when told to."""

    instances: List["FakeTimer"] = []

    def __init__(self, interval: float, function) -> None:
        self.interval = interval
        self.function = function
        self.daemon = False
        self.started = False
        self.cancelled = False
        FakeTimer.instances.append(self)

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        self.function()


@pytest.fixture(autouse=True)
def reset_timers():
    FakeTimer.instances = []
    yield
    FakeTimer.instances = []


def make_coordinator(privileged: bool = False, registry: ProcessRegistry = None):
    token = CancellationToken()
    exit_func = MagicMock()
    sent: List[Tuple[int, int]] = []
    coordinator = CancellationCoordinator(
        token,
        registry=registry,
        privileged=privileged,
        exit_func=exit_func,
        send_signal=lambda pid, sig: sent.append((pid, sig)),
        timer_factory=FakeTimer,
    )
    return coordinator, token, exit_func, sent


class TestCancellationToken:
    """Tests for CancellationToken."""

    def test_initially_not_cancelled(self) -> None:
        token = CancellationToken()
        assert token.cancelled is False
        token.raise_if_cancelled()

    def test_cancel_sets_reason(self) -> None:
        token = CancellationToken()
        token.cancel("received signal 2")
        assert token.cancelled is True
        assert token.reason == "received signal 2"

    def test_first_reason_wins(self) -> None:
        token = CancellationToken()
        token.cancel("first")
        token.cancel("second")
        assert token.reason == "first"

    def test_raise_if_cancelled(self) -> None:
        token = CancellationToken()
        token.cancel("stop")
        with pytest.raises(CancellationError, match="stop"):
            token.raise_if_cancelled()

    def test_wait_returns_when_cancelled_from_other_thread(self) -> None:
        token = CancellationToken()
        timer = threading.Timer(0.05, token.cancel)
        timer.start()
        try:
            assert token.wait(timeout=5) is True
        finally:
            timer.cancel()

    def test_wait_times_out(self) -> None:
        assert CancellationToken().wait(timeout=0.01) is False


class TestProcessRegistry:
    """Tests for ProcessRegistry."""

    def test_register_and_unregister(self) -> None:
        registry = ProcessRegistry()
        registry.register(30)
        registry.register(10)
        assert registry.pids() == [10, 30]
        registry.unregister(30)
        registry.unregister(999)
        assert registry.pids() == [10]


class TestTerminateProcessTree:
    """Tests for terminate_process_tree."""

    def test_signal_order(self) -> None:
        sent: List[Tuple[int, int]] = []
        sleeps: List[float] = []

        terminate_process_tree(
            1234,
            grace=0.5,
            send_signal=lambda pid, sig: sent.append((pid, sig)),
            sleep=sleeps.append,
        )

        assert sent == [
            (1234, signal.SIGKILL),
            (-1234, signal.SIGTERM),
            (-1234, signal.SIGKILL),
            (1234, signal.SIGKILL),
        ]
        assert sleeps == [0.5]

    def test_group_sigterm_precedes_group_sigkill(self) -> None:
        sent: List[Tuple[int, int]] = []
        terminate_process_tree(42, send_signal=lambda pid, sig: sent.append((pid, sig)), sleep=lambda s: None)

        group = [sig for pid, sig in sent if pid == -42]
        assert group == [signal.SIGTERM, signal.SIGKILL]

    def test_missing_process_is_ignored(self) -> None:
        def send(pid: int, sig: int) -> None:
            raise ProcessLookupError(pid)

        terminate_process_tree(42, send_signal=send, sleep=lambda s: None)

    def test_zero_grace_does_not_sleep(self) -> None:
        sleep = MagicMock()
        terminate_process_tree(42, grace=0, send_signal=lambda pid, sig: None, sleep=sleep)
        sleep.assert_not_called()


class TestCancellationCoordinator:
    """Tests for CancellationCoordinator state transitions."""

    def test_force_kill_delay(self) -> None:
        assert make_coordinator()[0].force_kill_delay == DEFAULT_FORCE_KILL_DELAY
        assert make_coordinator(privileged=True)[0].force_kill_delay == PRIVILEGED_FORCE_KILL_DELAY

    def test_first_signal_cancels_and_arms_watchdog(self) -> None:
        coordinator, token, exit_func, _ = make_coordinator()
        assert coordinator.state == CoordinatorState.ARMED

        coordinator.handle_signal(signal.SIGINT)

        assert token.cancelled is True
        assert coordinator.state == CoordinatorState.CANCELLING
        assert len(FakeTimer.instances) == 1
        timer = FakeTimer.instances[0]
        assert timer.started and timer.daemon
        assert timer.interval == DEFAULT_FORCE_KILL_DELAY
        exit_func.assert_not_called()

    def test_clean_exit_disarms_watchdog(self) -> None:
        coordinator, _, exit_func, _ = make_coordinator()
        coordinator.handle_signal(signal.SIGTERM)
        coordinator.mark_exited()

        timer = FakeTimer.instances[0]
        assert timer.cancelled is True
        assert coordinator.state == CoordinatorState.CLEAN_EXIT

        timer.fire()
        exit_func.assert_not_called()

    def test_watchdog_kills_registered_processes(self) -> None:
        registry = ProcessRegistry()
        registry.register(555)
        coordinator, _, exit_func, sent = make_coordinator(registry=registry)

        coordinator.handle_signal(signal.SIGINT)
        FakeTimer.instances[0].fire()

        assert coordinator.state == CoordinatorState.FORCE_KILLED
        assert (-555, signal.SIGKILL) in sent
        assert (555, signal.SIGKILL) in sent
        exit_func.assert_called_once_with(EXIT_CANCELLED)

    def test_second_signal_forces_exit(self) -> None:
        coordinator, _, exit_func, sent = make_coordinator()
        coordinator.handle_signal(signal.SIGINT)
        coordinator.handle_signal(signal.SIGINT)

        assert coordinator.state == CoordinatorState.FORCE_KILLED
        assert FakeTimer.instances[0].cancelled is True
        exit_func.assert_called_once_with(EXIT_CANCELLED)
        assert (0, signal.SIGKILL) not in sent

    def test_privileged_second_signal_kills_group_zero(self) -> None:
        coordinator, _, exit_func, sent = make_coordinator(privileged=True)
        coordinator.handle_signal(signal.SIGINT)
        coordinator.handle_signal(signal.SIGQUIT)

        assert (0, signal.SIGKILL) in sent
        exit_func.assert_called_once_with(EXIT_CANCELLED)

    def test_signal_after_clean_exit_is_ignored(self) -> None:
        coordinator, token, exit_func, _ = make_coordinator()
        coordinator.mark_exited()
        coordinator.handle_signal(signal.SIGINT)

        assert token.cancelled is False
        exit_func.assert_not_called()

    def test_install_and_uninstall_restore_handlers(self) -> None:
        coordinator, _, _, _ = make_coordinator()
        previous = signal.getsignal(signal.SIGTERM)

        coordinator.install([signal.SIGTERM])
        try:
            assert signal.getsignal(signal.SIGTERM) == coordinator.handle_signal
        finally:
            coordinator.uninstall()

        assert signal.getsignal(signal.SIGTERM) == previous


class TestSignalDuringLockedSection:
    """Signals delivered while the main thread holds a coordinator lock."""

    def test_first_signal_while_coordinator_locked(self) -> None:
        coordinator, token, _, _ = make_coordinator()

        with coordinator._lock:
            coordinator.handle_signal(signal.SIGINT)

        assert token.cancelled is True
        assert coordinator.state == CoordinatorState.CANCELLING

    def test_second_signal_while_registering_pid(self) -> None:
        registry = ProcessRegistry()
        coordinator, _, exit_func, sent = make_coordinator(registry=registry)
        coordinator.handle_signal(signal.SIGINT)

        with registry._lock:
            registry.register(777)
            coordinator.handle_signal(signal.SIGINT)

        assert (-777, signal.SIGKILL) in sent
        exit_func.assert_called_once_with(EXIT_CANCELLED)

    def test_signal_during_mark_exited(self) -> None:
        coordinator, token, exit_func, _ = make_coordinator()

        with coordinator._lock:
            coordinator.mark_exited()
            coordinator.handle_signal(signal.SIGTERM)

        assert coordinator.state == CoordinatorState.CLEAN_EXIT
        assert token.cancelled is False
        exit_func.assert_not_called()
