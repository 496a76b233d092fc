"""Detection of the external scanning tools on PATH."""

from __future__ import annotations

import shutil
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Optional, Sequence

KNOWN_TOOLS = ("nmap", "naabu", "nuclei", "masscan", "sudo")


class ToolStatus(str, Enum):
    """Status of an external tool binary."""

    PRESENT = "present"
    MISSING = "missing"
    NOT_EXECUTABLE = "not_executable"


def validate_binary(
    name: str,
    which: Callable[[str], Optional[str]] = shutil.which,
) -> ToolStatus:
    """Check whether a tool can be launched.

    Args:
        name: Binary name looked up on PATH.
        which: Lookup function, ``shutil.which`` by default.

    Returns:
        ToolStatus of the binary.
    """
    found = which(name)
    if found:
        return ToolStatus.PRESENT

    # which() skips files without the executable bit
    path = Path(name)
    if path.is_absolute() and path.is_file():
        return ToolStatus.NOT_EXECUTABLE
    return ToolStatus.MISSING


def check_tools(
    tools: Sequence[str] = KNOWN_TOOLS,
    which: Callable[[str], Optional[str]] = shutil.which,
) -> Dict[str, ToolStatus]:
    return {tool: validate_binary(tool, which=which) for tool in tools}
