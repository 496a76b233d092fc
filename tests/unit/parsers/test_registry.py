"""Tests for the ipcrawler.parsers dispatch table."""

from __future__ import annotations

from ipcrawler.core.models import ScanType
from ipcrawler.parsers import has_parser, parse_tool_output


class TestParseToolOutput:
    """Tests for parse_tool_output."""

    def test_known_tools(self) -> None:
        assert has_parser("nmap")
        assert has_parser("naabu")
        assert has_parser("nuclei")
        assert not has_parser("masscan")

    def test_dispatch(self) -> None:
        results = parse_tool_output("nmap", ["443/tcp open https"], ["-sV", "t"])
        assert results.scan_type == ScanType.DEEP_SCAN
        assert results.open_ports() == [443]

    def test_unknown_tool_gives_empty_results(self) -> None:
        results = parse_tool_output("gobuster", ["/admin (Status: 200)"], [])
        assert results.ports == []
        assert results.scan_type is None
