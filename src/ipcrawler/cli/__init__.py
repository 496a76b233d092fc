"""Command-line interface for ipcrawler."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version
from typing import List, Optional

from ipcrawler import __version__
from ipcrawler.cli.arguments import build_parser
from ipcrawler.cli.runner import CLIRunner


def _get_version() -> str:
    try:
        return version("ipcrawler")
    except PackageNotFoundError:
        return __version__


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entrypoint.

    Args:
        argv: Arguments without the program name, sys.argv[1:] if None.

    Returns:
        Process exit code.
    """
    runner = CLIRunner(_get_version())
    return runner.run(argv)


__all__ = ["CLIRunner", "build_parser", "main"]
