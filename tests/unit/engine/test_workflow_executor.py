"""Tests for ipcrawler.engine.workflow_executor."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Sequence, Tuple
from unittest.mock import MagicMock

import pytest

from ipcrawler.core.cancellation import CancellationToken
from ipcrawler.core.errors import CancellationError, ExecutionError, SubstitutionError
from ipcrawler.core.models import PortInfo, ScanResults, ScanType
from ipcrawler.core.streaming import CallbackStreamHandler
from ipcrawler.engine.context import ScanContext
from ipcrawler.engine.propagation import DataPropagationBridge
from ipcrawler.engine.provided_data import ProvidedDataStore
from ipcrawler.engine.workflow_executor import WorkflowExecutor
from ipcrawler.reporting.collaborator import ReportingCollaborator
from ipcrawler.workflow.models import Step, Workflow


class RecordingRunner:
    """ToolRunner stand-in returning scripted results per tool."""

    def __init__(self, results: Dict[str, object]) -> None:
        self.results = results
        self.calls: List[Tuple[str, List[str], bool]] = []

    def execute(self, tool: str, args: Sequence[str], use_sudo: bool, token: CancellationToken):
        self.calls.append((tool, list(args), use_sudo))
        result = self.results.get(tool)
        if isinstance(result, BaseException):
            raise result
        return result


class Handler:
    """Collects lifecycle callbacks."""

    def __init__(self) -> None:
        self.started: List[str] = []
        self.ended: List[Tuple[str, bool]] = []
        self.reported: List[str] = []

    def build(self) -> CallbackStreamHandler:
        return CallbackStreamHandler(
            on_start=lambda key, name: self.started.append(key),
            on_end=lambda key, ok: self.ended.append((key, ok)),
            on_results=lambda key, results: self.reported.append(key),
        )


def make_executor(
    tmp_path: Path,
    runner: RecordingRunner,
    debug: bool = False,
    use_sudo: bool = False,
    token: CancellationToken = None,
):
    handler = Handler()
    context = ScanContext(
        target="example.com",
        template="default",
        report_dir=tmp_path,
        use_sudo=use_sudo,
        debug=debug,
        token=token or CancellationToken(),
        stream_handler=handler.build(),
    )
    store = ProvidedDataStore()
    collaborator = MagicMock(spec=ReportingCollaborator)
    bridge = DataPropagationBridge(store, collaborator, wait_timeout=0)
    executor = WorkflowExecutor(context, store, runner, bridge)
    return executor, store, handler


def discovery() -> Workflow:
    return Workflow(
        name="Port Discovery",
        provides=["discovered_ports"],
        steps=[Step(tool="naabu", args=["-host", "{{target}}", "-json"])],
    )


def vuln_scan() -> Workflow:
    return Workflow(
        name="Vulnerability Scan",
        requires=["port-discovery"],
        steps=[Step(tool="nuclei", args=["-u", "{{target_urls}}", "-jsonl"])],
    )


def port_results(*ports: int) -> ScanResults:
    return ScanResults(
        ports=[PortInfo(p, "open") for p in ports],
        target="example.com",
        scan_type=ScanType.PORT_DISCOVERY,
    )


class TestWorkflowExecutor:
    """Tests for WorkflowExecutor.execute."""

    def test_ports_flow_into_target_urls(self, tmp_path: Path) -> None:
        runner = RecordingRunner({"naabu": port_results(22, 80), "nuclei": ScanResults()})
        executor, store, handler = make_executor(tmp_path, runner)

        first = executor.execute("naabu_port-discovery", discovery())
        second = executor.execute("nuclei_vulnerability-scan", vuln_scan())

        assert first.success and second.success
        assert store.get("discovered_ports") == "22,80"
        assert runner.calls[0] == ("naabu", ["-host", "example.com", "-json"], False)
        assert runner.calls[1][1] == ["-u", "example.com:22,http://example.com", "-jsonl"]
        assert handler.started == ["naabu_port-discovery", "nuclei_vulnerability-scan"]
        assert handler.reported == ["naabu_port-discovery", "nuclei_vulnerability-scan"]

    def test_dual_args_follow_use_sudo(self, tmp_path: Path) -> None:
        workflow = Workflow(
            name="Deep",
            steps=[Step(tool="nmap", args_sudo=["-sS", "{{target}}"], args_normal=["-sT", "{{target}}"])],
        )
        runner = RecordingRunner({})
        executor, _, _ = make_executor(tmp_path, runner, use_sudo=True)

        executor.execute("nmap_deep-scan", workflow)

        assert runner.calls == [("nmap", ["-sS", "example.com"], True)]
        assert workflow.steps[0].args_normal == ["-sT", "example.com"]

    def test_failure_stops_workflow_and_publishes_nothing(self, tmp_path: Path) -> None:
        workflow = discovery()
        workflow.steps.append(Step(tool="nmap", args=["{{target}}"]))
        runner = RecordingRunner({"naabu": ExecutionError("failed to execute naabu\nOutput:\nboom")})
        executor, store, handler = make_executor(tmp_path, runner)

        outcome = executor.execute("naabu_port-discovery", workflow)

        assert outcome.success is False
        assert outcome.errors == ["failed to execute naabu\nOutput:\nboom"]
        assert [c[0] for c in runner.calls] == ["naabu"]
        assert handler.ended == [("naabu_port-discovery", False)]
        assert handler.reported == []
        assert outcome.provided == {}
        assert len(store) == 0

    def test_debug_mode_runs_remaining_steps(self, tmp_path: Path) -> None:
        workflow = Workflow(
            name="Multi",
            steps=[Step(tool="nmap", args=["a"]), Step(tool="curl", args=["b"])],
        )
        runner = RecordingRunner({"nmap": ExecutionError("failed to execute nmap")})
        executor, _, handler = make_executor(tmp_path, runner, debug=True)

        outcome = executor.execute("nmap_multi", workflow)

        assert [c[0] for c in runner.calls] == ["nmap", "curl"]
        assert outcome.success is False
        assert handler.ended == [("nmap_multi", False)]

    def test_unresolved_placeholder_fails_step(self, tmp_path: Path) -> None:
        runner = RecordingRunner({"nmap": SubstitutionError("unsubstituted placeholder found in argument 1: {{x}}")})
        executor, _, _ = make_executor(tmp_path, runner)

        outcome = executor.execute("nmap_x", Workflow(name="x", steps=[Step(tool="nmap", args=["{{x}}"])]))

        assert outcome.success is False
        assert "unsubstituted placeholder" in outcome.errors[0]

    def test_cancellation_propagates(self, tmp_path: Path) -> None:
        runner = RecordingRunner({"naabu": CancellationError("received signal 2")})
        executor, _, handler = make_executor(tmp_path, runner)

        with pytest.raises(CancellationError):
            executor.execute("naabu_port-discovery", discovery())

        assert handler.ended == [("naabu_port-discovery", False)]

    def test_cancelled_token_prevents_start(self, tmp_path: Path) -> None:
        token = CancellationToken()
        token.cancel()
        runner = RecordingRunner({})
        executor, _, handler = make_executor(tmp_path, runner, token=token)

        with pytest.raises(CancellationError):
            executor.execute("naabu_port-discovery", discovery())

        assert runner.calls == []
        assert handler.started == []

    def test_outcome_to_dict(self, tmp_path: Path) -> None:
        executor, _, _ = make_executor(tmp_path, RecordingRunner({"naabu": port_results(443)}))
        data = executor.execute("naabu_port-discovery", discovery()).to_dict()

        assert data["key"] == "naabu_port-discovery"
        assert data["success"] is True
        assert data["results"]["ports"][0]["number"] == 443
