"""Parser for nuclei JSON-lines output (``nuclei -jsonl``)."""

from __future__ import annotations

import json
from typing import Any, Dict, Iterable, List, Sequence

from ipcrawler.core.logging import get_logger
from ipcrawler.core.models import ScanResults, ScanType, VulnerabilityInfo
from ipcrawler.parsers.utils import flag_value

LOGGER = get_logger(__name__)


def _string_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        return [str(v) for v in value if v is not None]
    return []


def _vulnerability_from_record(record: Dict[str, Any]) -> VulnerabilityInfo:
    info = record.get("info") or {}
    classification = info.get("classification") or {}

    return VulnerabilityInfo(
        template_id=str(record.get("template-id", "")),
        name=str(info.get("name") or record.get("template") or ""),
        severity=str(info.get("severity", "")),
        description=str(info.get("description", "")),
        url=str(record.get("matched-at", "")),
        cve=_string_list(classification.get("cve-id")),
        cwe=_string_list(classification.get("cwe-id")),
        tags=_string_list(info.get("tags")),
    )


def parse_nuclei_output(lines: Iterable[str], args: Sequence[str]) -> ScanResults:
    """Parse one nuclei finding per JSON line.

    Malformed lines are skipped. The target is the value passed to ``-u``.
    """
    results = ScanResults(
        target=flag_value(args, "-u"),
        scan_type=ScanType.VULNERABILITY_SCAN,
    )

    for line in lines:
        line = line.strip()
        if not line.startswith("{"):
            continue
        try:
            record = json.loads(line)
            vuln = _vulnerability_from_record(record)
        except (json.JSONDecodeError, AttributeError) as e:
            LOGGER.debug(f"Skipping malformed nuclei line: {e}")
            continue
        results.vulnerabilities.append(vuln)

    return results
