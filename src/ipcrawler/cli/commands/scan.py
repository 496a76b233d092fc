"""Scan command implementation."""

from __future__ import annotations

import sys
from argparse import Namespace
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Mapping, Optional, Sequence

from rich.console import Console
from rich.markup import escape

from ipcrawler.cli.commands import Command
from ipcrawler.cli.exit_codes import (
    EXIT_CANCELLED,
    EXIT_PRIVILEGE_FAILURE,
    EXIT_SCAN_ERROR,
    EXIT_SUCCESS,
)
from ipcrawler.cli.output import CLIStreamHandler
from ipcrawler.cli.prompts import confirm_privileged_scan, is_interactive
from ipcrawler.core.cancellation import (
    CancellationCoordinator,
    CancellationToken,
    ProcessRegistry,
)
from ipcrawler.core.errors import CancellationError, ExtractionError, GraphError
from ipcrawler.core.logging import get_logger
from ipcrawler.core.privilege import (
    PrivilegeEscalationError,
    is_running_as_root,
    restart_with_sudo,
)
from ipcrawler.core.subprocess_runner import ToolRunner, needs_sudo
from ipcrawler.engine import (
    DataPropagationBridge,
    LevelScheduler,
    ProvidedDataStore,
    RunSummary,
    ScanContext,
    WorkflowExecutor,
)
from ipcrawler.reporting import (
    FileReportingCollaborator,
    ReportingCollaborator,
    create_report_directory,
)
from ipcrawler.workflow import (
    ExecutionLevel,
    Workflow,
    WorkflowLoadError,
    build_levels,
    load_template_workflows,
)

if TYPE_CHECKING:
    from ipcrawler.config.models import IPCrawlerConfig

LOGGER = get_logger(__name__)


def wants_privileges(workflows: Mapping[str, Workflow]) -> bool:
    """Whether any step has a privileged variant or needs root to run."""
    for workflow in workflows.values():
        for step in workflow.steps:
            if step.has_dual_args or needs_sudo(step.tool, step.args, True):
                return True
    return False


class ScanCommand(Command):
    """Runs the workflows of a template against a target."""

    def __init__(
        self,
        version: str,
        argv: Sequence[str] = (),
        sudo_restarted: bool = False,
        collaborator: Optional[ReportingCollaborator] = None,
        console: Optional[Console] = None,
    ):
        """Initialize ScanCommand.

        Args:
            version: Current ipcrawler version string.
            argv: Command line without the program name, used when the
                process restarts itself under sudo.
            sudo_restarted: Whether this process is already a sudo restart.
            collaborator: Reporting collaborator, file based by default.
            console: Rich console for progress output.
        """
        self._version = version
        self._argv = list(argv)
        self._sudo_restarted = sudo_restarted
        self._collaborator = collaborator or FileReportingCollaborator()
        self._console = console or Console(file=sys.stderr, highlight=False)

    @property
    def name(self) -> str:
        """Command identifier."""
        return "scan"

    def execute(self, args: Namespace, config: Optional["IPCrawlerConfig"] = None) -> int:
        """Execute the scan command.

        Args:
            args: Parsed command-line arguments.
            config: Loaded configuration.

        Returns:
            EXIT_SUCCESS when the run completes (individual workflows may
            still have failed), EXIT_SCAN_ERROR for setup errors,
            EXIT_PRIVILEGE_FAILURE when the sudo restart fails and
            EXIT_CANCELLED when the run was interrupted.
        """
        if config is None:
            LOGGER.error("Configuration is required for scan command")
            return EXIT_SCAN_ERROR

        template = args.workflow or config.default_template
        if template not in config.templates:
            LOGGER.warning(f"Template {template} is not listed in config templates")

        try:
            workflows = load_template_workflows(config.workflows_dir, template)
        except WorkflowLoadError as e:
            LOGGER.error(str(e))
            return EXIT_SCAN_ERROR

        if not workflows:
            LOGGER.warning(f"No workflows found for template {template}")
            return EXIT_SUCCESS

        try:
            levels = build_levels(workflows)
        except GraphError as e:
            LOGGER.error(f"Invalid workflow dependencies: {e}")
            return EXIT_SCAN_ERROR

        try:
            use_sudo = self._resolve_privileges(workflows)
        except PrivilegeEscalationError as e:
            LOGGER.error(f"Privilege escalation failed: {e}")
            return EXIT_PRIVILEGE_FAILURE

        try:
            report_dir = create_report_directory(config.report_base_dir, args.target)
        except OSError as e:
            LOGGER.error(f"Failed to create report directory: {e}")
            return EXIT_SCAN_ERROR

        return self._run(args, config, template, workflows, levels, report_dir, use_sudo)

    def _resolve_privileges(self, workflows: Mapping[str, Workflow]) -> bool:
        """Decide whether this run uses sudo.

        Root and sudo-restarted processes always do. Interactive users are
        asked when a workflow has a privileged variant; accepting restarts
        the process under sudo and does not return.

        Raises:
            PrivilegeEscalationError: If the sudo restart fails.
        """
        if self._sudo_restarted or is_running_as_root():
            return True
        if not wants_privileges(workflows) or not is_interactive():
            return False
        if not confirm_privileged_scan():
            return False

        restart_with_sudo(self._argv)
        return True

    def _run(
        self,
        args: Namespace,
        config: "IPCrawlerConfig",
        template: str,
        workflows: Dict[str, Workflow],
        levels: List[ExecutionLevel],
        report_dir: Path,
        use_sudo: bool,
    ) -> int:
        token = CancellationToken()
        registry = ProcessRegistry()
        coordinator = CancellationCoordinator(token, registry, privileged=use_sudo)
        coordinator.install()

        handler = CLIStreamHandler(show_output=args.debug, console=self._console)
        context = ScanContext(
            target=args.target,
            template=template,
            report_dir=report_dir,
            use_sudo=use_sudo,
            debug=args.debug,
            token=token,
            stream_handler=handler,
            config=config,
        )
        store = ProvidedDataStore()
        runner = ToolRunner(stream_handler=handler, registry=registry)
        bridge = DataPropagationBridge(
            store,
            self._collaborator,
            wait_timeout=config.reporting.pipeline.timeout_seconds,
        )
        scheduler = LevelScheduler(WorkflowExecutor(context, store, runner, bridge), token)

        self._console.print(
            f"[bold]ipcrawler {self._version}[/bold] scanning [cyan]{escape(args.target)}[/cyan] "
            f"with template [cyan]{escape(template)}[/cyan] ({len(workflows)} workflows)"
        )
        LOGGER.debug(f"Report directory: {report_dir}")

        exit_code = EXIT_SUCCESS
        try:
            scheduler.run(workflows, levels)
        except CancellationError as e:
            LOGGER.warning(f"Scan cancelled: {e}")
            exit_code = EXIT_CANCELLED
        finally:
            coordinator.mark_exited()
            coordinator.uninstall()

        summary = scheduler.summary
        if exit_code == EXIT_SUCCESS:
            self._finish_reporting(context, workflows, summary)
        self._write_summary(context, summary)

        if summary.failed:
            self._console.print(f"[yellow]{len(summary.failed)} workflow(s) failed:[/yellow] {', '.join(summary.failed)}")
        self._console.print(f"Reports saved to [cyan]{escape(str(report_dir))}[/cyan]")
        return exit_code

    def _finish_reporting(
        self,
        context: ScanContext,
        workflows: Mapping[str, Workflow],
        summary: RunSummary,
    ) -> None:
        """Process results of succeeded workflows not yet processed."""
        if not context.config or not context.config.reporting.enabled:
            return

        for key in summary.succeeded:
            workflow = workflows[key]
            if not workflow.has_reporting:
                continue
            if (context.report_dir / "processed" / f"{key}.json").exists():
                continue
            try:
                self._collaborator.run_workflow_reporting(
                    context.report_dir,
                    context.target,
                    key,
                    workflow,
                    context.config,
                    context.debug,
                )
            except ExtractionError as e:
                LOGGER.debug(f"[{key}] Reporting skipped: {e}")

    def _write_summary(self, context: ScanContext, summary: RunSummary) -> None:
        document = {
            "template": context.template,
            "use_sudo": context.use_sudo,
            **summary.to_dict(),
        }
        try:
            path = self._collaborator.write_run_summary(context.report_dir, context.target, document)
        except OSError as e:
            LOGGER.warning(f"Failed to write run summary: {e}")
            return
        if path is not None:
            LOGGER.info(f"Run summary written to {path}")
