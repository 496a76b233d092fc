"""Terminal presentation of scan progress and results."""

from __future__ import annotations

import sys
import threading
from typing import List, Optional, TextIO

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ipcrawler.core.models import ScanResults, ScanType, Severity
from ipcrawler.core.streaming import StreamEvent, StreamHandler, StreamType

SEVERITY_STYLES = {
    Severity.CRITICAL: "bold red",
    Severity.HIGH: "red",
    Severity.MEDIUM: "yellow",
    Severity.LOW: "cyan",
    Severity.INFO: "dim",
    Severity.UNKNOWN: "dim",
}

SEVERITY_ORDER = [
    Severity.CRITICAL,
    Severity.HIGH,
    Severity.MEDIUM,
    Severity.LOW,
    Severity.INFO,
    Severity.UNKNOWN,
]


class CLIStreamHandler(StreamHandler):
    """Thread-safe console handler.

    Workflow progress and result tables are always shown. Raw tool output
    lines are only shown when show_output is set (``--debug``).
    """

    def __init__(
        self,
        output: TextIO = sys.stderr,
        show_output: bool = False,
        console: Optional[Console] = None,
    ):
        """Initialize CLIStreamHandler.

        Args:
            output: Output stream to write to (default: stderr).
            show_output: Whether to show raw tool output lines.
            console: Rich console to render with, created on output if omitted.
        """
        self._show_output = show_output
        self._console = console or Console(file=output, highlight=False)
        self._lock = threading.Lock()

    def emit(self, event: StreamEvent) -> None:
        if not self._show_output:
            return

        with self._lock:
            if event.stream_type == StreamType.STATUS:
                self._console.print(f"[bold cyan]{escape(f'[{event.tool_name}]')} {escape(event.content)}[/bold cyan]")
            elif event.stream_type == StreamType.STDERR:
                self._console.print(f"[dim]  {event.tool_name} (stderr): [/dim]{escape(event.content)}")
            else:
                self._console.print(f"[dim]  {event.tool_name}: [/dim]{escape(event.content)}")

    def start_workflow(self, workflow_key: str, name: str) -> None:
        with self._lock:
            self._console.print(f"[bold cyan]>[/bold cyan] {escape(name)} [dim]({workflow_key})[/dim]")

    def end_workflow(self, workflow_key: str, success: bool) -> None:
        with self._lock:
            if success:
                self._console.print(f"[green]done[/green] [dim]{workflow_key}[/dim]")
            else:
                self._console.print(f"[red]failed[/red] [dim]{workflow_key}[/dim]")

    def report_results(self, workflow_key: str, results: ScanResults) -> None:
        renderable = render_results(results)
        if renderable is None:
            return
        with self._lock:
            self._console.print(renderable)


def render_results(results: ScanResults) -> Optional[Table]:
    """Build a result table for the scan type, or None if there is nothing to show."""
    if results.scan_type == ScanType.PORT_DISCOVERY:
        return _ports_table(results, "Open ports", with_version=False)
    if results.scan_type == ScanType.DEEP_SCAN:
        return _ports_table(results, "Services", with_version=True)
    if results.scan_type == ScanType.VULNERABILITY_SCAN:
        return _vulnerability_table(results)
    return None


def _ports_table(results: ScanResults, title: str, with_version: bool) -> Optional[Table]:
    open_ports = [p for p in results.ports if p.is_open]
    if not open_ports:
        return None

    table = Table(title=f"{title} on {results.target}" if results.target else title)
    table.add_column("Port", justify="right")
    table.add_column("State")
    table.add_column("Service")
    if with_version:
        table.add_column("Version")

    for port in open_ports:
        row: List[str] = [str(port.number), port.state, escape(port.service or "unknown")]
        if with_version:
            row.append(escape(port.version))
        table.add_row(*row)
    return table


def _vulnerability_table(results: ScanResults) -> Optional[Table]:
    if not results.vulnerabilities:
        return None

    table = Table(title=f"Findings ({len(results.vulnerabilities)})")
    table.add_column("Severity")
    table.add_column("Template")
    table.add_column("Name")
    table.add_column("Matched at", overflow="fold")

    ordered = sorted(
        results.vulnerabilities,
        key=lambda v: SEVERITY_ORDER.index(Severity.from_string(v.severity)),
    )
    for vuln in ordered:
        severity = Severity.from_string(vuln.severity)
        table.add_row(
            f"[{SEVERITY_STYLES[severity]}]{severity.value}[/]",
            escape(vuln.template_id),
            escape(vuln.name),
            escape(vuln.url),
        )
    return table
