"""Report directory management and the engine's reporting collaborator."""

from ipcrawler.reporting.collaborator import (
    FileReportingCollaborator,
    ReportingCollaborator,
)
from ipcrawler.reporting.completion import (
    collect_expected_output_files,
    is_file_completely_written,
    wait_for_tool_outputs,
)
from ipcrawler.reporting.directories import create_report_directory, sanitize_target

__all__ = [
    "FileReportingCollaborator",
    "ReportingCollaborator",
    "collect_expected_output_files",
    "create_report_directory",
    "is_file_completely_written",
    "sanitize_target",
    "wait_for_tool_outputs",
]
