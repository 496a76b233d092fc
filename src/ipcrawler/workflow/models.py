"""Workflow definition models.

A workflow is one YAML file under ``workflows/<template>/``:

    name: Port Discovery
    description: Fast port discovery with naabu
    parallel_group: discovery
    provides:
      - discovered_ports
    report: true
    steps:
      - tool: naabu
        args: ["-host", "{{target}}", "-json"]
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional

from ipcrawler.workflow.substitution import substitute_args

DEFAULT_REPORT_FORMATS = ["json", "txt"]
DEFAULT_REPORT_AGENTS = ["receiver", "validator", "reporter"]

UNKNOWN_TOOL = "unknown"


class WorkflowDefinitionError(ValueError):
    """A workflow mapping does not describe a valid workflow."""


def _string_list(data: Mapping[str, Any], key: str) -> List[str]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise WorkflowDefinitionError(f"'{key}' must be a list, got {type(value).__name__}")
    return [str(item) for item in value]


@dataclass
class ReportConfig:
    """Per-workflow reporting options.

    The YAML ``report`` field may be a plain boolean or a mapping; both
    forms are decoded here once.
    """

    enabled: bool = False
    output_format: List[str] = field(default_factory=lambda: list(DEFAULT_REPORT_FORMATS))
    agents: List[str] = field(default_factory=list)
    coordination: bool = False

    @classmethod
    def from_value(cls, value: Any) -> Optional["ReportConfig"]:
        """Decode a ``report`` field.

        Returns:
            ReportConfig, or None when the field is absent or false.

        Raises:
            WorkflowDefinitionError: For values that are neither bool nor mapping.
        """
        if value is None or value is False:
            return None
        if value is True:
            return cls(enabled=True, agents=list(DEFAULT_REPORT_AGENTS))
        if isinstance(value, dict):
            output_format = value.get("output_format") or list(DEFAULT_REPORT_FORMATS)
            return cls(
                enabled=bool(value.get("enabled", False)),
                output_format=[str(f) for f in output_format],
                agents=[str(a) for a in value.get("agents") or []],
                coordination=bool(value.get("coordination", False)),
            )
        raise WorkflowDefinitionError(
            f"'report' must be a boolean or a mapping, got {type(value).__name__}"
        )


@dataclass
class Step:
    """A single tool invocation within a workflow."""

    tool: str
    args: List[str] = field(default_factory=list)
    args_sudo: List[str] = field(default_factory=list)
    args_normal: List[str] = field(default_factory=list)

    @property
    def has_dual_args(self) -> bool:
        return bool(self.args_sudo) and bool(self.args_normal)

    def get_args(self, use_sudo: bool) -> List[str]:
        """Arguments for the chosen privilege mode.

        The sudo/normal pair is only used when both lists are non-empty;
        otherwise the plain ``args`` list applies.
        """
        if self.has_dual_args:
            return self.args_sudo if use_sudo else self.args_normal
        return self.args

    def replace_vars(self, variables: Mapping[str, str]) -> None:
        self.args = substitute_args(self.args, variables)
        self.args_sudo = substitute_args(self.args_sudo, variables)
        self.args_normal = substitute_args(self.args_normal, variables)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Step":
        if not isinstance(data, dict):
            raise WorkflowDefinitionError("each step must be a mapping")
        tool = data.get("tool")
        if not tool:
            raise WorkflowDefinitionError("step is missing 'tool'")
        step = cls(
            tool=str(tool),
            args=_string_list(data, "args"),
            args_sudo=_string_list(data, "args_sudo"),
            args_normal=_string_list(data, "args_normal"),
        )
        if not step.args and not step.has_dual_args:
            raise WorkflowDefinitionError(
                f"step '{tool}' needs 'args' or both 'args_sudo' and 'args_normal'"
            )
        return step


@dataclass
class Workflow:
    """A named sequence of tool steps with dependency metadata."""

    name: str
    description: str = ""
    requires: List[str] = field(default_factory=list)
    provides: List[str] = field(default_factory=list)
    parallel_group: Optional[str] = None
    steps: List[Step] = field(default_factory=list)
    report: Optional[ReportConfig] = None

    @property
    def primary_tool(self) -> str:
        """Tool of the first step, used as the workflow key prefix."""
        if self.steps:
            return self.steps[0].tool
        return UNKNOWN_TOOL

    @property
    def has_reporting(self) -> bool:
        return self.report is not None and self.report.enabled

    def replace_vars(self, variables: Mapping[str, str]) -> None:
        """Substitute placeholders in every argument form of every step."""
        for step in self.steps:
            step.replace_vars(variables)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Workflow":
        if not isinstance(data, dict):
            raise WorkflowDefinitionError("workflow must be a mapping")

        steps_data = data.get("steps") or []
        if not isinstance(steps_data, list):
            raise WorkflowDefinitionError("'steps' must be a list")

        parallel_group = data.get("parallel_group")

        return cls(
            name=str(data.get("name", "")),
            description=str(data.get("description", "")),
            requires=_string_list(data, "requires"),
            provides=_string_list(data, "provides"),
            parallel_group=str(parallel_group) if parallel_group else None,
            steps=[Step.from_dict(s) for s in steps_data],
            report=ReportConfig.from_value(data.get("report")),
        )


def workflow_key(workflow: Workflow, basename: str) -> str:
    """Composite key ``{tool}_{basename}`` identifying a loaded workflow."""
    return f"{workflow.primary_tool}_{basename}"
