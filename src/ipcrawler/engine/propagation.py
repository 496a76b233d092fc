"""Data hand-off between workflows.

Before a workflow runs, tool-specific variables are derived from what
earlier levels discovered. After it succeeds, the values it provides are
folded back into the shared ProvidedDataStore.
"""

from __future__ import annotations

from typing import Dict, Mapping, Optional, Sequence

from ipcrawler.core.errors import ExtractionError
from ipcrawler.core.logging import get_logger
from ipcrawler.core.models import ScanResults, ScanType
from ipcrawler.engine.context import ScanContext
from ipcrawler.engine.provided_data import PROVIDES_PLACEHOLDER, ProvidedDataStore
from ipcrawler.reporting.collaborator import DISCOVERED_PORTS, ReportingCollaborator
from ipcrawler.reporting.completion import (
    POLL_INTERVAL,
    WAIT_TIMEOUT,
    collect_expected_output_files,
    wait_for_tool_outputs,
)
from ipcrawler.workflow.models import Workflow

LOGGER = get_logger(__name__)

TARGET_URLS = "target_urls"

# Used for deep scans when no port discovery result is available
FALLBACK_PORTS = "22,53,80,135,139,443,445,993,995,3306,3389,5432,5900,8080,8443"

HTTP_DEFAULT_PORTS = {"80": "http", "443": "https"}
HTTP_PORTS = {"8080", "8000", "3000", "5000", "8888"}
HTTPS_PORTS = {"8443", "9443"}


def convert_ports_to_urls(target: str, discovered_ports: str) -> str:
    """Turn a comma separated port list into nuclei targets.

    Well-known web ports become URLs, everything else ``target:port``.
    With no ports the bare target is returned.

    >>> convert_ports_to_urls("example.com", "22,80")
    'example.com:22,http://example.com'
    """
    urls = []
    for port in discovered_ports.split(","):
        port = port.strip()
        if not port:
            continue
        if port in HTTP_DEFAULT_PORTS:
            urls.append(f"{HTTP_DEFAULT_PORTS[port]}://{target}")
        elif port in HTTP_PORTS:
            urls.append(f"http://{target}:{port}")
        elif port in HTTPS_PORTS:
            urls.append(f"https://{target}:{port}")
        else:
            urls.append(f"{target}:{port}")
    return ",".join(urls) if urls else target


def is_vulnerability_workflow(key: str, workflow: Workflow) -> bool:
    if "nuclei" in key or "vulnerability-scan" in key:
        return True
    if workflow.primary_tool == "nuclei":
        return True
    return (
        "vulnerability" in workflow.name.lower()
        or "vulnerability" in workflow.description.lower()
    )


def is_nmap_deep_scan(key: str) -> bool:
    return "nmap" in key and "deep" in key


def derive_workflow_vars(
    key: str,
    workflow: Workflow,
    variables: Mapping[str, str],
    target: str,
) -> Dict[str, str]:
    """Build the private variable map for one workflow run.

    Args:
        key: Workflow key.
        workflow: The workflow about to run.
        variables: Snapshot of globals and provided data.
        target: Scan target.

    Returns:
        A new dict; variables is left untouched.
    """
    derived = dict(variables)
    discovered = derived.get(DISCOVERED_PORTS, "")

    if is_vulnerability_workflow(key, workflow):
        if discovered:
            derived[TARGET_URLS] = convert_ports_to_urls(target, discovered)
            LOGGER.debug(f"[{key}] target_urls from ports {discovered}: {derived[TARGET_URLS]}")
        else:
            derived[TARGET_URLS] = target
            LOGGER.debug(f"[{key}] No discovered ports, using target directly")

    if is_nmap_deep_scan(key) and not discovered:
        derived[DISCOVERED_PORTS] = FALLBACK_PORTS
        LOGGER.debug(f"[{key}] No discovered ports, using common ports for deep scan")

    return derived


def fallback_values(provides: Sequence[str]) -> Dict[str, str]:
    return {
        key: FALLBACK_PORTS if key == DISCOVERED_PORTS else PROVIDES_PLACEHOLDER
        for key in provides
    }


class DataPropagationBridge:
    """Publishes workflow results into the shared store.

    Args:
        store: Shared provided data.
        collaborator: Reporting collaborator used for extraction.
        wait_timeout: Seconds to wait for tool output files.
        poll_interval: Seconds between output file checks.
    """

    def __init__(
        self,
        store: ProvidedDataStore,
        collaborator: ReportingCollaborator,
        wait_timeout: float = WAIT_TIMEOUT,
        poll_interval: float = POLL_INTERVAL,
    ):
        self._store = store
        self._collaborator = collaborator
        self._wait_timeout = wait_timeout
        self._poll_interval = poll_interval

    def publish_scan_results(self, key: str, results: Optional[ScanResults]) -> Optional[str]:
        """Publish open ports of a port discovery result.

        Returns:
            The published port list, or None if nothing was published.
        """
        if results is None or results.scan_type != ScanType.PORT_DISCOVERY:
            return None
        open_ports = results.open_ports()
        if not open_ports:
            return None
        value = ",".join(str(p) for p in open_ports)
        self._store.set(DISCOVERED_PORTS, value)
        LOGGER.info(f"[{key}] Discovered ports: {value}")
        return value

    def fold_provides(self, context: ScanContext, key: str, workflow: Workflow) -> Dict[str, str]:
        """Make sure every provided key of a finished workflow has a value.

        Tries, in order: reporting then processed results, raw output
        files, and finally fixed fallback values.

        Returns:
            The values written to the store, empty if nothing was needed.
        """
        if not workflow.provides or self._store.has_valid(workflow.provides):
            return {}

        expected = collect_expected_output_files(context.report_dir, workflow, context.use_sudo)
        wait_for_tool_outputs(
            expected,
            timeout=self._wait_timeout,
            poll_interval=self._poll_interval,
            token=context.token,
        )
        context.token.raise_if_cancelled()

        if workflow.has_reporting:
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
                LOGGER.debug(f"[{key}] Reporting failed: {e}")

        values = self._extract(key, context, workflow)
        self._store.update(values)
        for name, value in values.items():
            LOGGER.info(f"[{key}] Provides {name} = {value}")
        return values

    def _extract(self, key: str, context: ScanContext, workflow: Workflow) -> Dict[str, str]:
        try:
            return self._collaborator.extract_provided_data(context.report_dir, workflow.provides)
        except ExtractionError as e:
            LOGGER.debug(f"[{key}] Extraction from processed results failed: {e}")

        try:
            return self._collaborator.extract_from_raw_files(context.report_dir, workflow.provides)
        except ExtractionError as e:
            LOGGER.debug(f"[{key}] Extraction from raw files failed: {e}")

        LOGGER.warning(f"[{key}] Could not extract provided data, using fallback values")
        return fallback_values(workflow.provides)
