"""Workflow definitions, loading, substitution and dependency leveling."""

from __future__ import annotations

from ipcrawler.workflow.graph import (
    SEQUENTIAL_GROUP,
    ExecutionLevel,
    build_levels,
    logical_name,
)
from ipcrawler.workflow.loader import WorkflowLoadError, load_template_workflows
from ipcrawler.workflow.models import ReportConfig, Step, Workflow

__all__ = [
    "ExecutionLevel",
    "ReportConfig",
    "SEQUENTIAL_GROUP",
    "Step",
    "Workflow",
    "WorkflowLoadError",
    "build_levels",
    "load_template_workflows",
    "logical_name",
]
