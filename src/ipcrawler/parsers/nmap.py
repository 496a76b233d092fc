"""Parser for nmap's normal (human readable) output."""

from __future__ import annotations

import re
from typing import Iterable, Sequence

from ipcrawler.core.models import PortInfo, ScanResults, ScanType

PORT_LINE_RE = re.compile(r"^(\d+)/(tcp|udp)\s+(\w+)\s+(.*)$")

# Any of these flags turns a port sweep into a service/script scan
DEEP_SCAN_FLAGS = frozenset({"-sV", "-sC", "-A"})


def parse_nmap_output(lines: Iterable[str], args: Sequence[str]) -> ScanResults:
    """Parse nmap port table lines such as ``22/tcp open ssh OpenSSH 7.4``.

    Args:
        lines: Output lines of the nmap run.
        args: Arguments nmap was invoked with. The target is the last one.

    Returns:
        ScanResults with one PortInfo per port line, whatever its state.
    """
    if any(arg in DEEP_SCAN_FLAGS for arg in args):
        scan_type = ScanType.DEEP_SCAN
    else:
        scan_type = ScanType.PORT_DISCOVERY

    results = ScanResults(
        target=args[-1] if args else "",
        scan_type=scan_type,
    )

    for line in lines:
        match = PORT_LINE_RE.match(line.strip())
        if not match:
            continue

        port = PortInfo(number=int(match.group(1)), state=match.group(3))
        parts = match.group(4).split()
        if parts:
            port.service = parts[0]
            port.version = " ".join(parts[1:])
        results.ports.append(port)

    return results
