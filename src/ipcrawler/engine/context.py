"""Per-run execution context shared by the scheduler and executors."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Optional

from ipcrawler.core.cancellation import CancellationToken
from ipcrawler.core.streaming import NullStreamHandler, StreamHandler

if TYPE_CHECKING:
    from ipcrawler.config.models import IPCrawlerConfig


@dataclass
class ScanContext:
    """Constants of one scan run.

    Attributes:
        target: Host, IP address or network being scanned.
        template: Name of the workflow template in use.
        report_dir: Report directory of this run.
        use_sudo: Whether privileged argument sets and sudo are used.
        debug: Verbose mode; failing steps do not stop a workflow.
        token: Cancellation token for the run.
        stream_handler: Receives tool output and workflow progress.
        config: Loaded configuration, if any.
    """

    target: str
    template: str
    report_dir: Path
    use_sudo: bool = False
    debug: bool = False
    token: CancellationToken = field(default_factory=CancellationToken)
    stream_handler: StreamHandler = field(default_factory=NullStreamHandler)
    config: Optional["IPCrawlerConfig"] = None

    def global_vars(self) -> Dict[str, str]:
        """Placeholder values every workflow starts from."""
        return {
            "target": self.target,
            "template": self.template,
            "report_dir": str(self.report_dir),
        }
