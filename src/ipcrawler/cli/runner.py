"""CLI runner that parses arguments and dispatches to commands."""

from __future__ import annotations

import sys
from argparse import ArgumentParser, Namespace
from typing import List, Optional

from ipcrawler.cli.arguments import build_parser
from ipcrawler.cli.commands import HealthCommand, ScanCommand
from ipcrawler.cli.exit_codes import EXIT_INVALID_USAGE, EXIT_SCAN_ERROR, EXIT_SUCCESS
from ipcrawler.config import ConfigError, IPCrawlerConfig, load_config
from ipcrawler.core.logging import configure_logging, get_logger
from ipcrawler.core.privilege import strip_sudo_restart_flag

LOGGER = get_logger(__name__)


class CLIRunner:
    """Parses the command line and runs the selected command."""

    def __init__(self, version: str):
        self._version = version
        self._parser: ArgumentParser = build_parser()

    def run(self, argv: Optional[List[str]] = None) -> int:
        """Run the CLI.

        Args:
            argv: Arguments without the program name, sys.argv[1:] if None.

        Returns:
            Process exit code.
        """
        raw_argv = list(sys.argv[1:] if argv is None else argv)
        cleaned, sudo_restarted = strip_sudo_restart_flag(raw_argv)

        try:
            args = self._parser.parse_args(cleaned)
        except SystemExit as e:
            # argparse exits 0 for --help and 2 for usage errors
            if e.code in (0, None):
                return EXIT_SUCCESS
            return EXIT_INVALID_USAGE

        configure_logging(debug=args.debug, verbose=args.verbose, quiet=args.quiet)
        if sudo_restarted:
            LOGGER.debug("Running as sudo restart")

        if args.version:
            print(self._version)
            return EXIT_SUCCESS

        if args.health:
            return HealthCommand(self._version).execute(args, self._load_config_quietly(args))

        if not args.target:
            print("Error: a target is required", file=sys.stderr)
            self._parser.print_usage(sys.stderr)
            return EXIT_INVALID_USAGE

        try:
            config = load_config(args.config)
        except ConfigError as e:
            LOGGER.error(str(e))
            return EXIT_SCAN_ERROR

        command = ScanCommand(self._version, argv=cleaned, sudo_restarted=sudo_restarted)
        return command.execute(args, config)

    def _load_config_quietly(self, args: Namespace) -> Optional[IPCrawlerConfig]:
        try:
            return load_config(args.config)
        except ConfigError as e:
            LOGGER.warning(f"Config not loaded: {e}")
            return None
