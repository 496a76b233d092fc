"""CLI commands package.

This module provides the base Command class and exports all command implementations.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from argparse import Namespace
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from ipcrawler.config.models import IPCrawlerConfig


class Command(ABC):
    """Base class for CLI commands.

    All CLI commands should inherit from this class and implement
    the execute method.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Command identifier.

        Returns:
            String name of the command.
        """

    @abstractmethod
    def execute(self, args: Namespace, config: Optional["IPCrawlerConfig"] = None) -> int:
        """Execute the command.

        Args:
            args: Parsed command-line arguments.
            config: Optional ipcrawler configuration.

        Returns:
            Exit code (0 for success, non-zero for error).
        """


# Import command implementations for convenience
# ruff: noqa: E402
from ipcrawler.cli.commands.health import HealthCommand
from ipcrawler.cli.commands.scan import ScanCommand

__all__ = [
    "Command",
    "HealthCommand",
    "ScanCommand",
]
