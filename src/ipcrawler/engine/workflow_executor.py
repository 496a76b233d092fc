"""Execution of a single workflow."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ipcrawler.core.errors import CancellationError, ExecutionError, SubstitutionError
from ipcrawler.core.logging import get_logger
from ipcrawler.core.models import ScanResults
from ipcrawler.core.subprocess_runner import ToolRunner
from ipcrawler.engine.context import ScanContext
from ipcrawler.engine.propagation import DataPropagationBridge, derive_workflow_vars
from ipcrawler.engine.provided_data import ProvidedDataStore
from ipcrawler.workflow.models import Workflow

LOGGER = get_logger(__name__)


@dataclass
class WorkflowOutcome:
    """Result of running one workflow."""

    key: str
    name: str
    success: bool = True
    results: Optional[ScanResults] = None
    errors: List[str] = field(default_factory=list)
    provided: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "name": self.name,
            "success": self.success,
            "errors": list(self.errors),
            "provided": dict(self.provided),
            "results": self.results.to_dict() if self.results else None,
        }


class WorkflowExecutor:
    """Runs the steps of a workflow and propagates what it provides.

    Args:
        context: Run constants, cancellation token and stream handler.
        store: Shared provided data.
        runner: Tool runner used for every step.
        bridge: Publishes results into the store.
    """

    def __init__(
        self,
        context: ScanContext,
        store: ProvidedDataStore,
        runner: ToolRunner,
        bridge: DataPropagationBridge,
    ):
        self._context = context
        self._store = store
        self._runner = runner
        self._bridge = bridge

    def execute(self, key: str, workflow: Workflow) -> WorkflowOutcome:
        """Run a workflow to completion.

        Step failures are recorded on the outcome. In debug mode the
        remaining steps still run; otherwise the workflow stops at the
        first failure. A failed workflow publishes nothing.

        Raises:
            CancellationError: If the run is cancelled.
        """
        context = self._context
        token = context.token
        token.raise_if_cancelled()

        variables = context.global_vars()
        variables.update(self._store.snapshot())
        variables = derive_workflow_vars(key, workflow, variables, context.target)
        workflow.replace_vars(variables)

        outcome = WorkflowOutcome(key=key, name=workflow.name)
        context.stream_handler.start_workflow(key, workflow.name)
        LOGGER.debug(f"[{key}] Starting workflow {workflow.name}")

        try:
            self._run_steps(key, workflow, outcome)
        except CancellationError:
            context.stream_handler.end_workflow(key, False)
            raise

        context.stream_handler.end_workflow(key, outcome.success)
        if not outcome.success:
            return outcome

        if outcome.results is not None:
            context.stream_handler.report_results(key, outcome.results)

        self._bridge.publish_scan_results(key, outcome.results)
        outcome.provided = self._bridge.fold_provides(context, key, workflow)
        return outcome

    def _run_steps(self, key: str, workflow: Workflow, outcome: WorkflowOutcome) -> None:
        context = self._context
        for index, step in enumerate(workflow.steps, start=1):
            context.token.raise_if_cancelled()
            args = step.get_args(context.use_sudo)
            LOGGER.debug(f"[{key}] Step {index}: {step.tool} {' '.join(args)}")

            try:
                results = self._runner.execute(step.tool, args, context.use_sudo, context.token)
            except (ExecutionError, SubstitutionError) as e:
                outcome.success = False
                outcome.errors.append(str(e))
                if context.debug:
                    LOGGER.error(f"[{key}] Step {index} ({step.tool}) failed: {e}")
                    continue
                LOGGER.error(f"[{key}] {workflow.name} failed: {str(e).splitlines()[0]}")
                return

            if results is not None:
                outcome.results = results
