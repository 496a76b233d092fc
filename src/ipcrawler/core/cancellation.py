"""Cooperative cancellation for scan runs.

OS signals are turned into a shared CancellationToken that every layer of
the engine checks at its boundaries. A watchdog force-kills whatever is
still running when the run does not wind down on its own.
"""

from __future__ import annotations

import os
import signal
import threading
import time
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from ipcrawler.core.errors import CancellationError
from ipcrawler.core.logging import get_logger

LOGGER = get_logger(__name__)

EXIT_CANCELLED = 130

PRIVILEGED_FORCE_KILL_DELAY = 2.0
DEFAULT_FORCE_KILL_DELAY = 3.0

TERMINATION_GRACE = 0.05


class CancellationToken:
    """Thread-safe cancellation flag shared by one run."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason = ""

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str:
        return self._reason

    def raise_if_cancelled(self) -> None:
        """Raise CancellationError if the token has been cancelled."""
        if self._event.is_set():
            raise CancellationError(self._reason or "cancelled")

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until cancelled or timeout expires.

        Returns:
            True if the token was cancelled.
        """
        return self._event.wait(timeout)


class ProcessRegistry:
    """Set of live child process ids the watchdog may need to kill."""

    def __init__(self) -> None:
        self._pids: Set[int] = set()
        # Reentrant: read by signal handlers on the thread that registers pids
        self._lock = threading.RLock()

    def register(self, pid: int) -> None:
        with self._lock:
            self._pids.add(pid)

    def unregister(self, pid: int) -> None:
        with self._lock:
            self._pids.discard(pid)

    def pids(self) -> List[int]:
        with self._lock:
            return sorted(self._pids)

    def kill_all(
        self,
        hard_kill_signal: int = signal.SIGKILL,
        send_signal: Callable[[int, int], None] = os.kill,
    ) -> None:
        for pid in self.pids():
            terminate_process_tree(pid, grace=0, hard_kill_signal=hard_kill_signal, send_signal=send_signal)


def _send(send_signal: Callable[[int, int], None], pid: int, sig: int) -> None:
    try:
        send_signal(pid, sig)
    except (ProcessLookupError, PermissionError):
        pass
    except OSError as e:
        LOGGER.debug(f"Failed to send signal {sig} to {pid}: {e}")


def terminate_process_tree(
    pid: int,
    grace: float = TERMINATION_GRACE,
    hard_kill_signal: int = signal.SIGKILL,
    send_signal: Callable[[int, int], None] = os.kill,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """Terminate a process and the process group it leads.

    The child is expected to have been started in its own session, so its
    pid is also its process group id.

    Args:
        pid: Process id of the group leader.
        grace: Seconds between SIGTERM and the hard kill of the group.
        hard_kill_signal: Signal used for the hard kill.
        send_signal: Signal sender, ``os.kill`` by default.
        sleep: Sleep function, ``time.sleep`` by default.
    """
    _send(send_signal, pid, hard_kill_signal)
    _send(send_signal, -pid, signal.SIGTERM)
    if grace > 0:
        sleep(grace)
    _send(send_signal, -pid, hard_kill_signal)
    _send(send_signal, pid, hard_kill_signal)


class CoordinatorState(str, Enum):
    """Lifecycle of a CancellationCoordinator."""

    ARMED = "armed"
    SIGNAL_RECEIVED = "signal_received"
    CANCELLING = "cancelling"
    FORCE_KILLED = "force_killed"
    CLEAN_EXIT = "clean_exit"


DEFAULT_SIGNALS = (signal.SIGINT, signal.SIGTERM, signal.SIGQUIT)


class CancellationCoordinator:
    """Converts OS signals into token cancellation and forced exits.

    The first signal cancels the token and starts a watchdog. If the run
    has not called ``mark_exited`` when the watchdog fires, every registered
    process tree is killed and the interpreter exits with status 130. A
    second signal skips the watchdog and exits at once.
    """

    def __init__(
        self,
        token: CancellationToken,
        registry: Optional[ProcessRegistry] = None,
        privileged: bool = False,
        exit_func: Callable[[int], None] = os._exit,
        send_signal: Callable[[int, int], None] = os.kill,
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
    ):
        self._token = token
        self._registry = registry or ProcessRegistry()
        self._privileged = privileged
        self._exit = exit_func
        self._send_signal = send_signal
        self._timer_factory = timer_factory
        self._timer: Optional[threading.Timer] = None
        self._state = CoordinatorState.ARMED
        # Reentrant: handle_signal may interrupt the main thread while it holds the lock
        self._lock = threading.RLock()
        self._previous_handlers: Dict[int, Any] = {}

    @property
    def state(self) -> CoordinatorState:
        return self._state

    @property
    def registry(self) -> ProcessRegistry:
        return self._registry

    @property
    def force_kill_delay(self) -> float:
        if self._privileged:
            return PRIVILEGED_FORCE_KILL_DELAY
        return DEFAULT_FORCE_KILL_DELAY

    def install(self, signals: Iterable[int] = DEFAULT_SIGNALS) -> None:
        """Install the coordinator as handler for the given signals.

        Must be called from the main thread.
        """
        for sig in signals:
            self._previous_handlers[sig] = signal.signal(sig, self.handle_signal)

    def uninstall(self) -> None:
        """Restore the handlers replaced by install."""
        for sig, handler in self._previous_handlers.items():
            signal.signal(sig, handler if handler is not None else signal.SIG_DFL)
        self._previous_handlers.clear()

    def handle_signal(self, signum: int, frame: object = None) -> None:
        with self._lock:
            state = self._state
            if state == CoordinatorState.ARMED:
                self._state = CoordinatorState.SIGNAL_RECEIVED
            elif state in (CoordinatorState.SIGNAL_RECEIVED, CoordinatorState.CANCELLING):
                self._state = CoordinatorState.FORCE_KILLED
            else:
                return

        if state == CoordinatorState.ARMED:
            LOGGER.warning(f"Received signal {signum}, cancelling scan...")
            self._token.cancel(f"received signal {signum}")
            self._start_watchdog()
            with self._lock:
                if self._state == CoordinatorState.SIGNAL_RECEIVED:
                    self._state = CoordinatorState.CANCELLING
            return

        LOGGER.warning("Second signal received, forcing exit")
        self._cancel_watchdog()
        self._force_exit()

    def mark_exited(self) -> None:
        """Disarm the watchdog once the run has wound down."""
        with self._lock:
            if self._state == CoordinatorState.FORCE_KILLED:
                return
            self._state = CoordinatorState.CLEAN_EXIT
        self._cancel_watchdog()

    def _start_watchdog(self) -> None:
        timer = self._timer_factory(self.force_kill_delay, self._on_watchdog)
        timer.daemon = True
        self._timer = timer
        timer.start()

    def _cancel_watchdog(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_watchdog(self) -> None:
        with self._lock:
            if self._state == CoordinatorState.CLEAN_EXIT:
                return
            self._state = CoordinatorState.FORCE_KILLED
        LOGGER.warning("Scan did not stop in time, killing remaining processes")
        self._force_exit()

    def _force_exit(self) -> None:
        self._registry.kill_all(send_signal=self._send_signal)
        if self._privileged:
            _send(self._send_signal, 0, signal.SIGKILL)
        self._exit(EXIT_CANCELLED)
