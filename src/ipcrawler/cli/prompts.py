"""Interactive prompts."""

from __future__ import annotations

import sys

import questionary
from questionary import Style

STYLE = Style([
    ("qmark", "fg:cyan bold"),
    ("question", "bold"),
    ("answer", "fg:cyan"),
    ("pointer", "fg:cyan bold"),
    ("highlighted", "fg:cyan bold"),
    ("instruction", "fg:gray"),
])


def is_interactive() -> bool:
    return sys.stdin.isatty() and sys.stdout.isatty()


def confirm_privileged_scan() -> bool:
    """Ask whether to restart under sudo for privileged scan types.

    Returns:
        True if the user accepted. Aborted prompts count as a refusal.
    """
    answer = questionary.confirm(
        "Run privileged scans (SYN scan, OS detection) with sudo?",
        default=False,
        style=STYLE,
    ).ask()
    return bool(answer)
