"""Shared helpers for output parsers."""

from __future__ import annotations

from typing import Sequence


def flag_value(args: Sequence[str], flag: str) -> str:
    """Return the argument following the first occurrence of flag, or ''."""
    for i, arg in enumerate(args):
        if arg == flag and i + 1 < len(args):
            return args[i + 1]
    return ""
