"""Canonical scan result models shared by parsers, engine and reporting."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class ScanType(str, Enum):
    """Kind of result a tool invocation produced."""

    PORT_DISCOVERY = "port-discovery"
    DEEP_SCAN = "deep-scan"
    VULNERABILITY_SCAN = "vulnerability-scan"


class Severity(str, Enum):
    """Vulnerability severity levels reported by nuclei."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"
    UNKNOWN = "unknown"

    @classmethod
    def from_string(cls, value: Optional[str]) -> "Severity":
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return cls.UNKNOWN


@dataclass
class PortInfo:
    """A single port line from a port scanner."""

    number: int
    state: str
    service: str = ""
    version: str = ""

    @property
    def is_open(self) -> bool:
        return self.state == "open"


@dataclass
class VulnerabilityInfo:
    """A single nuclei finding."""

    template_id: str
    name: str
    severity: str
    description: str = ""
    url: str = ""
    cve: List[str] = field(default_factory=list)
    cwe: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)


@dataclass
class ScanResults:
    """Tool-agnostic result of one tool invocation.

    scan_type is None for tools that have no output parser.
    """

    ports: List[PortInfo] = field(default_factory=list)
    vulnerabilities: List[VulnerabilityInfo] = field(default_factory=list)
    target: str = ""
    scan_type: Optional[ScanType] = None

    def open_ports(self) -> List[int]:
        """Port numbers in state ``open``, in the order they were reported."""
        return [port.number for port in self.ports if port.is_open]

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["scan_type"] = self.scan_type.value if self.scan_type else None
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScanResults":
        scan_type = data.get("scan_type")
        return cls(
            ports=[PortInfo(**p) for p in data.get("ports", [])],
            vulnerabilities=[
                VulnerabilityInfo(**v) for v in data.get("vulnerabilities", [])
            ],
            target=data.get("target", ""),
            scan_type=ScanType(scan_type) if scan_type else None,
        )
