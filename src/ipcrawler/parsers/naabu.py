"""Parser for naabu JSON-lines output (``naabu -json``)."""

from __future__ import annotations

import json
from typing import Any, Iterable, Sequence

from ipcrawler.core.logging import get_logger
from ipcrawler.core.models import PortInfo, ScanResults, ScanType
from ipcrawler.parsers.utils import flag_value

LOGGER = get_logger(__name__)

MAX_PORT = 65535


def _port_number(value: Any) -> int:
    """Port of a naabu record.

    Raises:
        ValueError: If value is missing or not a port in 1-65535.
    """
    if value is None or isinstance(value, bool):
        raise ValueError(f"invalid port: {value!r}")
    number = int(value)
    if not 0 < number <= MAX_PORT:
        raise ValueError(f"port out of range: {number}")
    return number


def parse_naabu_output(lines: Iterable[str], args: Sequence[str]) -> ScanResults:
    """Parse naabu records of the form ``{"host", "ip", "port", "protocol"}``.

    naabu only reports open ports, so every record becomes an open port.
    Non-JSON lines (banners, progress) are ignored.
    """
    results = ScanResults(
        target=flag_value(args, "-host"),
        scan_type=ScanType.PORT_DISCOVERY,
    )

    for line in lines:
        line = line.strip()
        if not line.startswith("{"):
            continue
        try:
            record = json.loads(line)
            number = _port_number(record.get("port"))
        except (json.JSONDecodeError, TypeError, ValueError, AttributeError):
            LOGGER.debug(f"Skipping malformed naabu line: {line}")
            continue
        results.ports.append(PortInfo(number=number, state="open"))

    return results
