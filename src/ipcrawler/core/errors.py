"""Exception hierarchy for the scan engine.

Only GraphError and CancellationError stop a whole run. The other kinds
are confined to the workflow or step that raised them.
"""

from __future__ import annotations

from typing import Optional


class IPCrawlerError(Exception):
    """Base class for all ipcrawler errors."""


class GraphError(IPCrawlerError):
    """Workflow dependency graph cannot be resolved."""

    def __init__(self, message: str, workflow: Optional[str] = None) -> None:
        super().__init__(message)
        self.workflow = workflow


class SubstitutionError(IPCrawlerError):
    """A ``{{placeholder}}`` survived until process launch."""

    def __init__(self, message: str, placeholder: str = "", position: int = 0) -> None:
        super().__init__(message)
        self.placeholder = placeholder
        self.position = position


class ExecutionError(IPCrawlerError):
    """An external tool could not be started or exited non-zero."""

    def __init__(
        self,
        message: str,
        tool: str = "",
        returncode: Optional[int] = None,
        command: str = "",
    ) -> None:
        super().__init__(message)
        self.tool = tool
        self.returncode = returncode
        self.command = command


class CancellationError(IPCrawlerError):
    """The run was cancelled while work was in flight."""


class ExtractionError(IPCrawlerError):
    """A provided value could not be extracted from report artifacts."""
