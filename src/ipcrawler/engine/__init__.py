"""Workflow scheduling and execution engine."""

from ipcrawler.engine.context import ScanContext
from ipcrawler.engine.propagation import (
    FALLBACK_PORTS,
    DataPropagationBridge,
    convert_ports_to_urls,
    derive_workflow_vars,
)
from ipcrawler.engine.provided_data import PROVIDES_PLACEHOLDER, ProvidedDataStore
from ipcrawler.engine.scheduler import LevelScheduler, RunSummary
from ipcrawler.engine.workflow_executor import WorkflowExecutor, WorkflowOutcome

__all__ = [
    "DataPropagationBridge",
    "FALLBACK_PORTS",
    "LevelScheduler",
    "PROVIDES_PLACEHOLDER",
    "ProvidedDataStore",
    "RunSummary",
    "ScanContext",
    "WorkflowExecutor",
    "WorkflowOutcome",
    "convert_ports_to_urls",
    "derive_workflow_vars",
]
