"""Waiting for tool output files to be fully written.

Some tools flush their output files after the process has already been
reported as finished, so the reporting step waits until every expected
file exists, is non-empty and has stopped growing.
"""

from __future__ import annotations

import os
import time
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Union

from ipcrawler.core.cancellation import CancellationToken
from ipcrawler.core.logging import get_logger
from ipcrawler.core.subprocess_runner import OUTPUT_FILE_FLAGS
from ipcrawler.workflow.models import Step, Workflow

LOGGER = get_logger(__name__)

WAIT_TIMEOUT = 30.0
POLL_INTERVAL = 0.25
SETTLE_INTERVAL = 0.05


def output_files_in_args(args: Sequence[str]) -> List[str]:
    """Paths following output flags such as ``-oN`` or ``-o``."""
    return [
        args[i + 1]
        for i, arg in enumerate(args)
        if arg in OUTPUT_FILE_FLAGS and i + 1 < len(args)
    ]


def step_output_files(step: Step) -> List[str]:
    """Output files named in any argument form of a step."""
    files: List[str] = []
    for args in (step.args, step.args_sudo, step.args_normal):
        for path in output_files_in_args(args):
            if path not in files:
                files.append(path)
    return files


def collect_expected_output_files(
    report_dir: Union[str, Path],
    workflow: Workflow,
    use_sudo: bool,
) -> List[str]:
    """Output files the workflow's steps will write in this run.

    Only the argument set selected by use_sudo is considered, since the
    other one is never executed.
    """
    files: List[str] = []
    for step in workflow.steps:
        for path in output_files_in_args(step.get_args(use_sudo)):
            files.append(path.replace("{{report_dir}}", str(report_dir)))
    return files


def is_file_completely_written(
    path: Union[str, Path],
    settle: float = SETTLE_INTERVAL,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """Whether path exists, is non-empty and kept its size across settle."""
    try:
        size = os.path.getsize(path)
    except OSError:
        return False
    if size == 0:
        return False
    sleep(settle)
    try:
        return os.path.getsize(path) == size
    except OSError:
        return False


def wait_for_tool_outputs(
    files: Sequence[str],
    timeout: float = WAIT_TIMEOUT,
    poll_interval: float = POLL_INTERVAL,
    token: Optional[CancellationToken] = None,
) -> List[str]:
    """Wait until every file is completely written.

    Args:
        files: Paths to wait for.
        timeout: Maximum seconds to wait.
        poll_interval: Seconds between checks.
        token: Optional cancellation token; cancellation ends the wait.

    Returns:
        Files that were still incomplete when the wait ended. Empty when
        everything is ready.
    """
    if not files:
        return []

    LOGGER.debug(f"Waiting for {len(files)} output file(s): {', '.join(files)}")
    start = time.monotonic()
    deadline = start + timeout

    while True:
        missing = [f for f in files if not is_file_completely_written(f)]
        if not missing:
            LOGGER.debug(f"All output files ready after {time.monotonic() - start:.2f}s")
            return []
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            LOGGER.warning(f"Timed out waiting for tool output files: {missing}")
            return missing
        if token is not None:
            if token.wait(min(poll_interval, remaining)):
                return missing
        else:
            time.sleep(min(poll_interval, remaining))
