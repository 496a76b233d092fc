"""Tests for ipcrawler.core.models."""

from __future__ import annotations

from ipcrawler.core.models import (
    PortInfo,
    ScanResults,
    ScanType,
    Severity,
    VulnerabilityInfo,
)


class TestSeverity:
    """Tests for Severity.from_string."""

    def test_known_values_case_insensitive(self) -> None:
        assert Severity.from_string("HIGH") == Severity.HIGH
        assert Severity.from_string(" critical ") == Severity.CRITICAL

    def test_unknown_and_empty(self) -> None:
        assert Severity.from_string("severe") == Severity.UNKNOWN
        assert Severity.from_string(None) == Severity.UNKNOWN


class TestScanResults:
    """Tests for ScanResults."""

    def test_open_ports_keep_report_order(self) -> None:
        results = ScanResults(ports=[
            PortInfo(443, "open"),
            PortInfo(25, "filtered"),
            PortInfo(22, "open"),
        ])
        assert results.open_ports() == [443, 22]

    def test_to_dict_serializes_scan_type(self) -> None:
        results = ScanResults(
            ports=[PortInfo(22, "open", "ssh", "OpenSSH 8.9")],
            target="10.0.0.1",
            scan_type=ScanType.DEEP_SCAN,
        )
        data = results.to_dict()
        assert data["scan_type"] == "deep-scan"
        assert data["ports"] == [{"number": 22, "state": "open", "service": "ssh", "version": "OpenSSH 8.9"}]

    def test_from_dict_restores_results(self) -> None:
        original = ScanResults(
            vulnerabilities=[VulnerabilityInfo("cve-2021-1", "Thing", "high", cve=["CVE-2021-1"])],
            target="t",
            scan_type=ScanType.VULNERABILITY_SCAN,
        )
        assert ScanResults.from_dict(original.to_dict()) == original

    def test_from_dict_without_scan_type(self) -> None:
        assert ScanResults.from_dict({}).scan_type is None
