"""Exit codes for the ipcrawler CLI.

- 0: Success
- 2: Scan setup error (config, workflow loading, dependency graph)
- 3: Invalid usage (missing target, bad arguments)
- 4: Privilege escalation failure (sudo restart failed)
- 130: Cancelled by signal
"""

from __future__ import annotations

from ipcrawler.core.cancellation import EXIT_CANCELLED

EXIT_SUCCESS = 0
EXIT_SCAN_ERROR = 2
EXIT_INVALID_USAGE = 3
EXIT_PRIVILEGE_FAILURE = 4

__all__ = [
    "EXIT_CANCELLED",
    "EXIT_INVALID_USAGE",
    "EXIT_PRIVILEGE_FAILURE",
    "EXIT_SCAN_ERROR",
    "EXIT_SUCCESS",
]
