"""Configuration data models for ipcrawler.

Defines typed configuration classes that represent the config.yaml
structure.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, List

DEFAULT_TEMPLATE = "default"
DEFAULT_WORKFLOWS_DIR = "workflows"
DEFAULT_REPORT_BASE_DIR = "reports"
DEFAULT_OUTPUT_TIMEOUT = "30s"

DURATION_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h)?\s*$")
DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_duration(value: Any) -> float:
    """Convert a duration such as ``30s``, ``500ms`` or ``2m`` to seconds.

    Bare numbers are seconds.

    Raises:
        ValueError: If value is not a positive duration.
    """
    if isinstance(value, bool):
        raise ValueError(f"invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        seconds = float(value)
    else:
        match = DURATION_PATTERN.match(str(value))
        if not match:
            raise ValueError(f"invalid duration: {value!r}")
        seconds = float(match.group(1)) * DURATION_UNITS[match.group(2) or "s"]
    if seconds <= 0:
        raise ValueError(f"duration must be positive: {value!r}")
    return seconds


@dataclass
class ReportingPipelineConfig:
    """Tuning options for workflow reporting."""

    # How long to wait for a workflow's output files before reporting on it
    timeout: str = DEFAULT_OUTPUT_TIMEOUT

    @property
    def timeout_seconds(self) -> float:
        return parse_duration(self.timeout)


@dataclass
class ReportingConfig:
    """Report output configuration."""

    enabled: bool = True
    base_dir: str = DEFAULT_REPORT_BASE_DIR
    pipeline: ReportingPipelineConfig = field(default_factory=ReportingPipelineConfig)


@dataclass
class IPCrawlerConfig:
    """Complete ipcrawler configuration.

    Example config.yaml:
        default_template: default
        templates:
          - default
          - quick
        workflows_dir: workflows
        reporting:
          enabled: true
          base_dir: ${IPCRAWLER_REPORTS:-reports}
    """

    default_template: str = DEFAULT_TEMPLATE
    templates: List[str] = field(default_factory=lambda: [DEFAULT_TEMPLATE])
    workflows_dir: str = DEFAULT_WORKFLOWS_DIR
    reporting: ReportingConfig = field(default_factory=ReportingConfig)

    # Metadata (not from YAML, set by loader)
    _config_sources: List[str] = field(default_factory=list, repr=False)

    @property
    def report_base_dir(self) -> str:
        return self.reporting.base_dir or DEFAULT_REPORT_BASE_DIR

    @property
    def config_sources(self) -> List[str]:
        return list(self._config_sources)
