"""Stream handler abstraction for live output during scans.

Provides a unified interface for streaming tool output and workflow
progress to different targets:
- CLI: Print to console (see ipcrawler.cli.output)
- Callback: Forward events to another system
- Null: No-op
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable, Optional

if TYPE_CHECKING:
    from ipcrawler.core.models import ScanResults


class StreamType(str, Enum):
    """Type of stream output."""

    STDOUT = "stdout"
    STDERR = "stderr"
    STATUS = "status"


@dataclass
class StreamEvent:
    """A streaming event from a tool execution."""

    tool_name: str
    stream_type: StreamType
    content: str
    line_number: Optional[int] = None


class StreamHandler(ABC):
    """Abstract base class for stream handlers.

    Implementations must be thread-safe as workflows in the same parallel
    group emit events concurrently from different threads.
    """

    @abstractmethod
    def emit(self, event: StreamEvent) -> None:
        """Emit a stream event.

        Args:
            event: The stream event to emit.
        """

    @abstractmethod
    def start_workflow(self, workflow_key: str, name: str) -> None:
        """Signal that a workflow has started execution.

        Args:
            workflow_key: Composite workflow key.
            name: Human readable workflow name.
        """

    @abstractmethod
    def end_workflow(self, workflow_key: str, success: bool) -> None:
        """Signal that a workflow has finished execution.

        Args:
            workflow_key: Composite workflow key.
            success: Whether every step completed successfully.
        """

    def report_results(self, workflow_key: str, results: "ScanResults") -> None:
        """Present the parsed results of a successful workflow."""


class NullStreamHandler(StreamHandler):
    """No-op handler used when nothing should be displayed."""

    def emit(self, event: StreamEvent) -> None:
        pass

    def start_workflow(self, workflow_key: str, name: str) -> None:
        pass

    def end_workflow(self, workflow_key: str, success: bool) -> None:
        pass


class CallbackStreamHandler(StreamHandler):
    """Handler that invokes callbacks for stream events.

    Useful for tests and embedding, where events need to be forwarded to
    another system.
    """

    def __init__(
        self,
        on_event: Optional[Callable[[StreamEvent], None]] = None,
        on_start: Optional[Callable[[str, str], None]] = None,
        on_end: Optional[Callable[[str, bool], None]] = None,
        on_results: Optional[Callable[[str, "ScanResults"], None]] = None,
    ):
        """Initialize CallbackStreamHandler.

        Args:
            on_event: Callback for stream events.
            on_start: Callback when a workflow starts.
            on_end: Callback when a workflow ends.
            on_results: Callback with the results of a successful workflow.
        """
        self._on_event = on_event
        self._on_start = on_start
        self._on_end = on_end
        self._on_results = on_results
        self._lock = threading.Lock()

    def emit(self, event: StreamEvent) -> None:
        if self._on_event:
            with self._lock:
                self._on_event(event)

    def start_workflow(self, workflow_key: str, name: str) -> None:
        if self._on_start:
            with self._lock:
                self._on_start(workflow_key, name)
        if self._on_event:
            self.emit(
                StreamEvent(
                    tool_name=workflow_key,
                    stream_type=StreamType.STATUS,
                    content="started",
                )
            )

    def end_workflow(self, workflow_key: str, success: bool) -> None:
        if self._on_end:
            with self._lock:
                self._on_end(workflow_key, success)
        if self._on_event:
            status = "completed" if success else "failed"
            self.emit(
                StreamEvent(
                    tool_name=workflow_key,
                    stream_type=StreamType.STATUS,
                    content=status,
                )
            )

    def report_results(self, workflow_key: str, results: "ScanResults") -> None:
        if self._on_results:
            with self._lock:
                self._on_results(workflow_key, results)
