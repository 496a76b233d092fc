"""Subprocess execution for scanning tools.

Two execution modes are supported:

- fast: buffered, combined stdout/stderr; used where live display is not
  needed.
- streaming: stdout and stderr read line by line on reader threads and
  forwarded to the stream handler as they arrive.

Both modes launch the tool in its own session so that cancellation can
take down the whole process group.
"""

from __future__ import annotations

import os
import queue
import shlex
import subprocess
import threading
from typing import List, Optional, Sequence, Tuple

from ipcrawler.core.cancellation import (
    CancellationToken,
    ProcessRegistry,
    terminate_process_tree,
)
from ipcrawler.core.errors import CancellationError, ExecutionError
from ipcrawler.core.logging import get_logger
from ipcrawler.core.models import ScanResults
from ipcrawler.core.streaming import NullStreamHandler, StreamEvent, StreamHandler, StreamType
from ipcrawler.parsers import parse_tool_output
from ipcrawler.workflow.substitution import validate_args_substitution

LOGGER = get_logger(__name__)

# nmap scan types that need raw sockets
NMAP_PRIVILEGED_FLAGS = frozenset({"-sS", "-sF", "-sN", "-sX", "-sA", "-sW", "-sM", "-O"})

OUTPUT_FILE_FLAGS = frozenset({"-o", "-oX", "-oN", "-oG", "-oJ"})

# Tools whose output is parsed and displayed while they run
STREAMING_TOOLS = frozenset({"nmap", "nuclei"})
# Tools whose combined output is parsed once they exit
FAST_PARSED_TOOLS = frozenset({"naabu"})

POLL_INTERVAL = 0.05


def needs_sudo(tool: str, args: Sequence[str], use_sudo: bool) -> bool:
    """Decide whether a tool invocation must be prefixed with sudo.

    Args:
        tool: Tool binary name.
        args: Tool arguments.
        use_sudo: Whether the user opted into privileged scanning.

    Returns:
        True only when use_sudo is set and the tool/flag combination
        requires root.
    """
    if not use_sudo:
        return False
    if tool == "nmap":
        return any(arg in NMAP_PRIVILEGED_FLAGS for arg in args)
    if tool == "masscan":
        return True
    return False


def build_command(tool: str, args: Sequence[str], use_sudo: bool) -> List[str]:
    if needs_sudo(tool, args, use_sudo):
        return ["sudo", tool, *args]
    return [tool, *args]


def format_command(tool: str, args: Sequence[str]) -> str:
    return " ".join([tool, *args])


def ensure_output_directories(args: Sequence[str]) -> None:
    """Create parent directories for output files named in args.

    Raises:
        ExecutionError: If a directory cannot be created.
    """
    for i, arg in enumerate(args):
        if arg not in OUTPUT_FILE_FLAGS or i + 1 >= len(args):
            continue
        directory = os.path.dirname(args[i + 1])
        if not directory or directory == ".":
            continue
        LOGGER.debug(f"Creating output directory: {directory}")
        try:
            os.makedirs(directory, mode=0o755, exist_ok=True)
        except OSError as e:
            raise ExecutionError(f"failed to create directory {directory}: {e}") from e


class ToolRunner:
    """Runs external scanning tools for the workflow engine.

    Args:
        stream_handler: Receives output lines as they are produced.
        registry: Registry of live child pids for the cancellation watchdog.
        poll_interval: Seconds between cancellation checks while waiting.
    """

    def __init__(
        self,
        stream_handler: Optional[StreamHandler] = None,
        registry: Optional[ProcessRegistry] = None,
        poll_interval: float = POLL_INTERVAL,
    ):
        self._stream_handler = stream_handler or NullStreamHandler()
        self._registry = registry or ProcessRegistry()
        self._poll_interval = poll_interval

    def execute(
        self,
        tool: str,
        args: Sequence[str],
        use_sudo: bool,
        token: CancellationToken,
    ) -> Optional[ScanResults]:
        """Run one workflow step.

        naabu runs in fast mode, nmap and nuclei in streaming mode; all
        three are parsed. Any other tool runs in fast mode and its output
        is discarded.

        Returns:
            Parsed ScanResults, or None for tools without a parser.

        Raises:
            SubstitutionError: If an argument still holds a placeholder.
            ExecutionError: If the tool cannot be started or fails.
            CancellationError: If the token is cancelled while running.
        """
        token.raise_if_cancelled()

        if tool in STREAMING_TOOLS:
            stdout_lines, stderr_lines = self.run_streaming(tool, args, use_sudo, token)
            if not stdout_lines and stderr_lines:
                LOGGER.debug(f"{tool} wrote nothing to stdout, parsing stderr instead")
                stdout_lines = stderr_lines
            return parse_tool_output(tool, stdout_lines, args)

        output = self.run_fast(tool, args, use_sudo, token)
        if tool in FAST_PARSED_TOOLS:
            return parse_tool_output(tool, output.splitlines(), args)
        return None

    def _prepare(self, tool: str, args: Sequence[str], use_sudo: bool) -> List[str]:
        validate_args_substitution(args)
        ensure_output_directories(args)
        cmd = build_command(tool, args, use_sudo)
        LOGGER.debug(f"Running: {shlex.join(cmd)}")
        return cmd

    def _start(self, tool: str, cmd: List[str], **kwargs) -> subprocess.Popen:
        try:
            proc = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                start_new_session=True,
                text=True,
                errors="replace",
                **kwargs,
            )
        except OSError as e:
            raise ExecutionError(
                f"failed to start {tool}: {e}",
                tool=tool,
                command=shlex.join(cmd),
            ) from e
        self._registry.register(proc.pid)
        return proc

    def _cancel(self, tool: str, proc: subprocess.Popen, token: CancellationToken) -> None:
        LOGGER.debug(f"Cancelling {tool} (pid {proc.pid})")
        terminate_process_tree(proc.pid)
        try:
            proc.wait(timeout=1)
        except subprocess.TimeoutExpired:
            LOGGER.debug(f"{tool} (pid {proc.pid}) did not exit after kill")
        self._registry.unregister(proc.pid)
        raise CancellationError(token.reason or f"{tool} cancelled")

    def run_fast(
        self,
        tool: str,
        args: Sequence[str],
        use_sudo: bool,
        token: CancellationToken,
    ) -> str:
        """Run a tool and return its combined stdout and stderr."""
        cmd = self._prepare(tool, args, use_sudo)
        proc = self._start(tool, cmd, stdout=subprocess.PIPE, stderr=subprocess.STDOUT)

        while True:
            if token.cancelled:
                self._cancel(tool, proc, token)
            try:
                output, _ = proc.communicate(timeout=self._poll_interval)
                break
            except subprocess.TimeoutExpired:
                continue

        self._registry.unregister(proc.pid)
        output = output or ""

        if proc.returncode != 0:
            message = f"failed to execute {tool}"
            if output:
                message += f"\nOutput:\n{output.rstrip()}"
            message += f"\nCommand: {format_command(tool, args)}"
            raise ExecutionError(
                message,
                tool=tool,
                returncode=proc.returncode,
                command=format_command(tool, args),
            )

        return output

    def run_streaming(
        self,
        tool: str,
        args: Sequence[str],
        use_sudo: bool,
        token: CancellationToken,
    ) -> Tuple[List[str], List[str]]:
        """Run a tool while forwarding its output line by line.

        Returns:
            Tuple of (stdout lines, stderr lines).
        """
        cmd = self._prepare(tool, args, use_sudo)
        proc = self._start(
            tool,
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            bufsize=1,
        )

        lines: "queue.Queue[Tuple[StreamType, Optional[str]]]" = queue.Queue()
        stdout_lines: List[str] = []
        stderr_lines: List[str] = []
        done = threading.Event()

        def read_pipe(pipe, stream_type: StreamType) -> None:
            try:
                for line in pipe:
                    lines.put((stream_type, line.rstrip("\r\n")))
            except (OSError, ValueError):
                pass
            finally:
                lines.put((stream_type, None))

        def multiplex() -> None:
            open_streams = 2
            while open_streams:
                stream_type, line = lines.get()
                if line is None:
                    open_streams -= 1
                    continue
                collected = stdout_lines if stream_type == StreamType.STDOUT else stderr_lines
                collected.append(line)
                self._stream_handler.emit(
                    StreamEvent(
                        tool_name=tool,
                        stream_type=stream_type,
                        content=line,
                        line_number=len(collected),
                    )
                )
            proc.wait()
            done.set()

        for pipe, stream_type in ((proc.stdout, StreamType.STDOUT), (proc.stderr, StreamType.STDERR)):
            threading.Thread(
                target=read_pipe,
                args=(pipe, stream_type),
                name=f"{tool}-{stream_type.value}",
                daemon=True,
            ).start()
        threading.Thread(target=multiplex, name=f"{tool}-output", daemon=True).start()

        # Reader threads are abandoned on cancellation
        while not done.wait(self._poll_interval):
            if token.cancelled:
                self._cancel(tool, proc, token)

        self._registry.unregister(proc.pid)
        for pipe in (proc.stdout, proc.stderr):
            if pipe is not None:
                pipe.close()

        if proc.returncode != 0:
            message = f"failed to execute {tool}"
            if stderr_lines:
                message += "\nStderr output:\n" + "\n".join(stderr_lines)
            message += f"\nCommand: {format_command(tool, args)}"
            raise ExecutionError(
                message,
                tool=tool,
                returncode=proc.returncode,
                command=format_command(tool, args),
            )

        return stdout_lines, stderr_lines
