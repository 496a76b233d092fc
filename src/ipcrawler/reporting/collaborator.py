"""Reporting collaborator used by the engine.

The engine only needs two things from reporting: turning a workflow's raw
tool output into processed results, and reading provided values (such as
discovered ports) back from the report directory. Both are best-effort;
every failure is an ExtractionError the engine recovers from.
"""

from __future__ import annotations

import json
import re
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, Union

from ipcrawler.core.errors import ExtractionError
from ipcrawler.core.logging import get_logger
from ipcrawler.core.models import ScanResults
from ipcrawler.parsers import has_parser, parse_tool_output
from ipcrawler.reporting.completion import step_output_files
from ipcrawler.workflow.models import Workflow

if TYPE_CHECKING:
    from ipcrawler.config.models import IPCrawlerConfig

LOGGER = get_logger(__name__)

DISCOVERED_PORTS = "discovered_ports"

SUMMARY_FILE = "summary.json"

# Open port lines in nmap normal output, e.g. "80/tcp   open  http"
RAW_NMAP_OPEN_PORT_RE = re.compile(r"(?m)^(\d+)/tcp\s+open\s+")
RAW_NMAP_PATTERN = "nmap_port_discovery_*.txt"
RAW_NAABU_PATTERN = "naabu_*.json"

PathLike = Union[str, Path]


def _join_unique(ports: Sequence[int]) -> str:
    seen: List[int] = []
    for port in ports:
        if port not in seen:
            seen.append(port)
    return ",".join(str(p) for p in seen)


class ReportingCollaborator(ABC):
    """Interface between the engine and report generation."""

    @abstractmethod
    def run_workflow_reporting(
        self,
        report_dir: PathLike,
        target: str,
        workflow_key: str,
        workflow: Workflow,
        config: Optional["IPCrawlerConfig"],
        debug: bool,
    ) -> None:
        """Process a finished workflow's raw output.

        Raises:
            ExtractionError: If the workflow output cannot be processed.
        """

    @abstractmethod
    def extract_provided_data(
        self,
        report_dir: PathLike,
        provides: Sequence[str],
    ) -> Dict[str, str]:
        """Read provided values from processed results.

        Raises:
            ExtractionError: If any key cannot be extracted.
        """

    def extract_from_raw_files(
        self,
        report_dir: PathLike,
        provides: Sequence[str],
    ) -> Dict[str, str]:
        """Read provided values straight from raw tool output."""
        raise ExtractionError("raw file extraction not supported")

    def write_run_summary(
        self,
        report_dir: PathLike,
        target: str,
        summary: Dict[str, Any],
    ) -> Optional[Path]:
        """Persist the summary of a whole run."""
        return None


class FileReportingCollaborator(ReportingCollaborator):
    """Reporting backed by the report directory's JSON files.

    Processed results are written to ``processed/<workflow_key>.json``.
    """

    def run_workflow_reporting(
        self,
        report_dir: PathLike,
        target: str,
        workflow_key: str,
        workflow: Workflow,
        config: Optional["IPCrawlerConfig"],
        debug: bool,
    ) -> None:
        if config is not None and not config.reporting.enabled:
            raise ExtractionError("reporting is disabled in config")
        if not workflow.has_reporting:
            raise ExtractionError(f"reporting not enabled for workflow {workflow_key}")

        LOGGER.debug(f"Running reporting for workflow: {workflow_key}")

        results = ScanResults(target=target)
        processed_files: List[str] = []
        for step in workflow.steps:
            if not has_parser(step.tool):
                continue
            for output_file in step_output_files(step):
                path = Path(output_file)
                if not path.is_file():
                    continue
                try:
                    lines = path.read_text(encoding="utf-8", errors="replace").splitlines()
                except OSError as e:
                    LOGGER.debug(f"Could not read {path}: {e}")
                    continue
                step_results = parse_tool_output(step.tool, lines, step.args or step.args_normal)
                results.ports.extend(step_results.ports)
                results.vulnerabilities.extend(step_results.vulnerabilities)
                results.scan_type = step_results.scan_type or results.scan_type
                processed_files.append(str(path))

        if not processed_files:
            raise ExtractionError(f"no raw output files found for workflow {workflow_key}")

        document = {
            "workflow": workflow_key,
            "name": workflow.name,
            "sources": processed_files,
            **results.to_dict(),
        }
        out_path = Path(report_dir) / "processed" / f"{workflow_key}.json"
        try:
            out_path.parent.mkdir(parents=True, exist_ok=True)
            with open(out_path, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2)
        except OSError as e:
            raise ExtractionError(f"failed to write {out_path}: {e}") from e

        LOGGER.debug(f"Wrote processed results for {workflow_key} to {out_path}")

    def extract_provided_data(
        self,
        report_dir: PathLike,
        provides: Sequence[str],
    ) -> Dict[str, str]:
        extracted: Dict[str, str] = {}
        for key in provides:
            if key != DISCOVERED_PORTS:
                raise ExtractionError(f"unsupported provided data type: {key}")
            extracted[key] = self._ports_from_processed(Path(report_dir) / "processed")
        return extracted

    def extract_from_raw_files(
        self,
        report_dir: PathLike,
        provides: Sequence[str],
    ) -> Dict[str, str]:
        extracted: Dict[str, str] = {}
        for key in provides:
            if key != DISCOVERED_PORTS:
                raise ExtractionError(f"unsupported provided data type: {key}")
            extracted[key] = self._ports_from_raw(Path(report_dir) / "raw")
        return extracted

    def write_run_summary(
        self,
        report_dir: PathLike,
        target: str,
        summary: Dict[str, Any],
    ) -> Optional[Path]:
        path = Path(report_dir) / "summary" / SUMMARY_FILE
        document = {
            "target": target,
            "generated_at": datetime.now().isoformat(timespec="seconds"),
            **summary,
        }
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(document, f, indent=2)
        return path

    def _ports_from_processed(self, processed_dir: Path) -> str:
        ports: List[int] = []
        for path in sorted(processed_dir.glob("*.json")):
            try:
                with open(path, "r", encoding="utf-8") as f:
                    data = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                LOGGER.debug(f"Skipping unreadable processed file {path}: {e}")
                continue
            for port in data.get("ports") or []:
                if isinstance(port, dict) and port.get("state") == "open":
                    try:
                        ports.append(int(port["number"]))
                    except (KeyError, TypeError, ValueError):
                        continue

        if not ports:
            raise ExtractionError(f"no open ports found in {processed_dir}")
        return _join_unique(ports)

    def _ports_from_raw(self, raw_dir: Path) -> str:
        for path in sorted(raw_dir.glob(RAW_NMAP_PATTERN)):
            content = _read_text(path)
            ports = [int(m) for m in RAW_NMAP_OPEN_PORT_RE.findall(content)]
            if ports:
                return _join_unique(ports)

        for path in sorted(raw_dir.glob(RAW_NAABU_PATTERN)):
            lines = _read_text(path).splitlines()
            ports = parse_tool_output("naabu", lines, []).open_ports()
            if ports:
                return _join_unique(ports)

        raise ExtractionError(f"no open ports found in raw files under {raw_dir}")


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        LOGGER.debug(f"Could not read {path}: {e}")
        return ""
