"""Argument parser for the ipcrawler CLI."""

from __future__ import annotations

import argparse
from pathlib import Path


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level argument parser.

    The hidden ``--sudo-restart`` marker is removed from argv before
    parsing and is therefore not declared here.
    """
    parser = argparse.ArgumentParser(
        prog="ipcrawler",
        description="Run dependency-ordered network scanning workflows against a target.",
    )

    parser.add_argument(
        "target",
        nargs="?",
        help="Host name, IP address or network to scan.",
    )

    parser.add_argument(
        "-w",
        "--workflow",
        metavar="TEMPLATE",
        help="Workflow template to run (default: default_template from config).",
    )
    parser.add_argument(
        "--config",
        metavar="PATH",
        type=Path,
        help="Path to config file (default: ./config.yaml or ~/.ipcrawler/config.yaml).",
    )

    output = parser.add_argument_group("output")
    output.add_argument(
        "-d",
        "--debug",
        action="store_true",
        help="Debug mode: show tool output, keep running steps after failures.",
    )
    output.add_argument(
        "--verbose",
        action="store_true",
        help="Enable informational logging.",
    )
    output.add_argument(
        "--quiet",
        action="store_true",
        help="Only show errors.",
    )

    parser.add_argument(
        "--health",
        action="store_true",
        help="Show system status and installed tools, then exit.",
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Show ipcrawler version and exit.",
    )

    return parser
