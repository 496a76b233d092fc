"""Health command implementation."""

from __future__ import annotations

import shutil
from argparse import Namespace
from typing import TYPE_CHECKING, Callable, Optional, Sequence

if TYPE_CHECKING:
    from ipcrawler.config.models import IPCrawlerConfig

from ipcrawler.cli.commands import Command
from ipcrawler.cli.exit_codes import EXIT_SUCCESS
from ipcrawler.core.privilege import is_running_as_root
from ipcrawler.core.tools import KNOWN_TOOLS, ToolStatus, check_tools


class HealthCommand(Command):
    """Shows system status, version and installed tools."""

    def __init__(
        self,
        version: str,
        tools: Sequence[str] = KNOWN_TOOLS,
        which: Callable[[str], Optional[str]] = shutil.which,
    ):
        """Initialize HealthCommand.

        Args:
            version: Current ipcrawler version string.
            tools: Tool binaries to report on.
            which: PATH lookup used for the tool checks.
        """
        self._version = version
        self._tools = tools
        self._which = which

    @property
    def name(self) -> str:
        """Command identifier."""
        return "health"

    def execute(self, args: Namespace, config: Optional["IPCrawlerConfig"] = None) -> int:
        """Print the health report.

        Missing tools are reported but do not fail the check; workflows
        using them fail individually at run time.

        Returns:
            Exit code (always 0 for health).
        """
        print("System Status: OK")
        print(f"Version: {self._version}")
        print(f"Running as root: {'yes' if is_running_as_root() else 'no'}")
        if config is not None:
            sources = ", ".join(config.config_sources) or "defaults"
            print(f"Config: {sources}")
            print(f"Templates: {', '.join(config.templates)}")
        print()

        print("Tools:")
        statuses = check_tools(self._tools, which=self._which)
        width = max((len(tool) for tool in statuses), default=0)
        for tool, status in statuses.items():
            marker = "[OK]" if status == ToolStatus.PRESENT else "[!!]"
            print(f"  {marker} {tool.ljust(width)}  {status.value}")

        return EXIT_SUCCESS
