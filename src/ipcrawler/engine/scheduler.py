"""Level and parallel group scheduling.

Levels run strictly one after another. Inside a level the sequential
workflows run first, one at a time on the calling thread. Named parallel
groups follow, one group at a time; the members of a multi-member group
run on their own worker threads and the group finishes only when every
member has.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from ipcrawler.core.cancellation import CancellationToken
from ipcrawler.core.logging import get_logger
from ipcrawler.engine.workflow_executor import WorkflowExecutor, WorkflowOutcome
from ipcrawler.workflow.graph import ExecutionLevel, build_levels
from ipcrawler.workflow.models import Workflow

LOGGER = get_logger(__name__)


@dataclass
class RunSummary:
    """Outcome of a whole scheduler run."""

    succeeded: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    outcomes: Dict[str, WorkflowOutcome] = field(default_factory=dict)
    cancelled: bool = False

    @property
    def success(self) -> bool:
        return not self.failed and not self.cancelled

    def record(self, outcome: WorkflowOutcome) -> None:
        self.outcomes[outcome.key] = outcome
        if outcome.success:
            self.succeeded.append(outcome.key)
        else:
            self.failed.append(outcome.key)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "succeeded": list(self.succeeded),
            "failed": list(self.failed),
            "cancelled": self.cancelled,
            "workflows": {key: o.to_dict() for key, o in self.outcomes.items()},
        }


class LevelScheduler:
    """Dispatches workflows level by level.

    Args:
        executor: Runs individual workflows.
        token: Cancellation token checked at every level boundary.
    """

    def __init__(self, executor: WorkflowExecutor, token: CancellationToken):
        self._executor = executor
        self._token = token
        self.summary = RunSummary()

    def run(
        self,
        workflows: Mapping[str, Workflow],
        levels: Optional[List[ExecutionLevel]] = None,
    ) -> RunSummary:
        """Execute every workflow.

        Args:
            workflows: Mapping of workflow key to Workflow.
            levels: Precomputed levels; built from workflows when omitted.

        Returns:
            RunSummary of the run. The same object stays available as
            ``summary`` when run raises.

        Raises:
            GraphError: If the dependency graph cannot be resolved.
            CancellationError: If the run is cancelled.
        """
        if levels is None:
            levels = build_levels(workflows)
        self.summary = RunSummary()

        try:
            for level in levels:
                self._token.raise_if_cancelled()
                LOGGER.debug(f"Starting level {level.level} with {len(level.workflow_keys)} workflow(s)")
                self._run_level(level, workflows)
        except Exception:
            self.summary.cancelled = self._token.cancelled
            raise

        return self.summary

    def _run_level(self, level: ExecutionLevel, workflows: Mapping[str, Workflow]) -> None:
        for key in level.sequential:
            self.summary.record(self._executor.execute(key, workflows[key]))

        for group, members in level.parallel_groups.items():
            self._token.raise_if_cancelled()
            if len(members) == 1:
                key = members[0]
                self.summary.record(self._executor.execute(key, workflows[key]))
            else:
                self._run_group(group, members, workflows)

    def _run_group(
        self,
        group: str,
        members: List[str],
        workflows: Mapping[str, Workflow],
    ) -> None:
        LOGGER.debug(f"Running parallel group {group}: {', '.join(members)}")
        outcomes: List[WorkflowOutcome] = []
        errors: List[BaseException] = []

        with ThreadPoolExecutor(
            max_workers=len(members),
            thread_name_prefix=f"group-{group}",
        ) as pool:
            futures = [
                pool.submit(self._executor.execute, key, workflows[key])
                for key in members
            ]
            for future in as_completed(futures):
                try:
                    outcomes.append(future.result())
                except Exception as e:
                    errors.append(e)

        for outcome in sorted(outcomes, key=lambda o: members.index(o.key)):
            self.summary.record(outcome)

        if errors:
            LOGGER.debug(f"Parallel group {group} finished with {len(errors)} error(s)")
            raise errors[0]
