"""Tests for ipcrawler.parsers.naabu."""

from __future__ import annotations

from ipcrawler.core.models import ScanType
from ipcrawler.parsers.naabu import parse_naabu_output


class TestParseNaabuOutput:
    """Tests for parse_naabu_output."""

    def test_json_records(self) -> None:
        lines = [
            '{"host":"scanme.example","ip":"10.0.0.5","port":22,"protocol":"tcp"}',
            '{"host":"scanme.example","ip":"10.0.0.5","port":80,"protocol":"tcp"}',
        ]
        results = parse_naabu_output(lines, ["-host", "scanme.example", "-json"])

        assert results.scan_type == ScanType.PORT_DISCOVERY
        assert results.target == "scanme.example"
        assert results.open_ports() == [22, 80]
        assert all(p.state == "open" for p in results.ports)

    def test_skips_banner_and_malformed_lines(self) -> None:
        lines = [
            "[INF] Running CONNECT scan with non root privileges",
            "",
            "{not json",
            '{"port": "443"}',
            '{"port": "https"}',
        ]
        results = parse_naabu_output(lines, [])

        assert results.open_ports() == [443]
        assert results.target == ""

    def test_skips_records_without_a_valid_port(self) -> None:
        lines = [
            '{"host": "10.0.0.1", "ip": "10.0.0.1"}',
            '{"host": "10.0.0.1", "port": null}',
            '{"host": "10.0.0.1", "port": 0}',
            '{"host": "10.0.0.1", "port": 70000}',
            '{"host": "10.0.0.1", "port": true}',
            '{"host": "10.0.0.1", "port": 8080}',
        ]
        results = parse_naabu_output(lines, ["-host", "10.0.0.1"])

        assert results.open_ports() == [8080]

    def test_record_without_port_publishes_nothing(self) -> None:
        results = parse_naabu_output(['{"host": "10.0.0.1", "ip": "10.0.0.1"}'], [])
        assert results.ports == []
