"""Privilege detection and sudo re-invocation."""

from __future__ import annotations

import os
import shutil
import sys
from typing import Callable, List, Optional, Sequence, Tuple

from ipcrawler.core.errors import IPCrawlerError
from ipcrawler.core.logging import get_logger

LOGGER = get_logger(__name__)

SUDO_RESTART_FLAG = "--sudo-restart"


class PrivilegeEscalationError(IPCrawlerError):
    """Raised when the process cannot be restarted under sudo."""


def is_running_as_root() -> bool:
    geteuid = getattr(os, "geteuid", None)
    return geteuid is not None and geteuid() == 0


def strip_sudo_restart_flag(argv: Sequence[str]) -> Tuple[List[str], bool]:
    """Remove the hidden restart marker from argv.

    Returns:
        Tuple of (argv without the flag, whether the flag was present).
    """
    cleaned = [arg for arg in argv if arg != SUDO_RESTART_FLAG]
    return cleaned, len(cleaned) != len(argv)


def restart_with_sudo(
    argv: Sequence[str],
    execvp: Callable[[str, List[str]], None] = os.execvp,
    which: Callable[[str], Optional[str]] = shutil.which,
) -> None:
    """Replace the current process with ``sudo python -m ipcrawler ...``.

    Only returns by raising, since a successful exec never comes back.

    Args:
        argv: Command line arguments without the program name.

    Raises:
        PrivilegeEscalationError: If sudo is unavailable or exec fails.
    """
    if which("sudo") is None:
        raise PrivilegeEscalationError("sudo is not installed or not in PATH")

    cmd = ["sudo", sys.executable, "-m", "ipcrawler", *argv, SUDO_RESTART_FLAG]
    LOGGER.debug(f"Restarting with: {' '.join(cmd)}")
    try:
        execvp("sudo", cmd)
    except OSError as e:
        raise PrivilegeEscalationError(f"failed to restart with sudo: {e}") from e
    raise PrivilegeEscalationError("unexpected return from exec")
