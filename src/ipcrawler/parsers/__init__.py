"""Tool output parsers.

Each parser is a pure function ``(lines, args) -> ScanResults``.
"""

from __future__ import annotations

from typing import Callable, Dict, Iterable, Sequence

from ipcrawler.core.models import ScanResults
from ipcrawler.parsers.naabu import parse_naabu_output
from ipcrawler.parsers.nmap import parse_nmap_output
from ipcrawler.parsers.nuclei import parse_nuclei_output

Parser = Callable[[Iterable[str], Sequence[str]], ScanResults]

PARSERS: Dict[str, Parser] = {
    "nmap": parse_nmap_output,
    "naabu": parse_naabu_output,
    "nuclei": parse_nuclei_output,
}


def has_parser(tool: str) -> bool:
    return tool in PARSERS


def parse_tool_output(tool: str, lines: Iterable[str], args: Sequence[str]) -> ScanResults:
    """Parse tool output, returning empty results for tools without a parser."""
    parser = PARSERS.get(tool)
    if parser is None:
        return ScanResults()
    return parser(lines, args)


__all__ = [
    "PARSERS",
    "Parser",
    "has_parser",
    "parse_naabu_output",
    "parse_nmap_output",
    "parse_nuclei_output",
    "parse_tool_output",
]
