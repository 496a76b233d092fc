"""Report directory layout.

    <base_dir>/<sanitized target>/timestamp_<YYYYmmdd_HHMMSS>/
        raw/        tool output files
        processed/  parsed results, one JSON file per workflow
        summary/    run summary
        logs/
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from ipcrawler.core.logging import get_logger

LOGGER = get_logger(__name__)

REPORT_SUBDIRS = ("raw", "processed", "summary", "logs")


def sanitize_target(target: str) -> str:
    """Make a target usable as a single path component."""
    for char in (".", ":", "/"):
        target = target.replace(char, "_")
    return target


def create_report_directory(
    base_dir: Union[str, Path],
    target: str,
    now: Optional[datetime] = None,
) -> Path:
    """Create the report directory tree for one run.

    Args:
        base_dir: Root directory for all reports.
        target: Scan target.
        now: Timestamp to use, defaults to the current time.

    Returns:
        Path to the run's report directory.

    Raises:
        OSError: If a directory cannot be created.
    """
    timestamp = (now or datetime.now()).strftime("%Y%m%d_%H%M%S")
    report_dir = Path(base_dir) / sanitize_target(target) / f"timestamp_{timestamp}"

    for subdir in REPORT_SUBDIRS:
        (report_dir / subdir).mkdir(mode=0o755, parents=True, exist_ok=True)

    LOGGER.debug(f"Created report directory {report_dir}")
    return report_dir
