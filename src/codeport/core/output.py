"""Report handlers for run summaries."""

import json
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field

from codeport.core.types import RunSummary


class OutputFormat(str, Enum):
    """Supported report formats."""

    TEXT = "text"
    JSON = "json"


class RunMetadata(BaseModel):
    """Metadata about the run."""

    source_language: str
    target_language: str
    model_name: str
    source_path: Path
    destination_path: Path
    timestamp: datetime = Field(default_factory=datetime.now)

    model_config = ConfigDict(protected_namespaces=())


class RunReport(BaseModel):
    """Complete run report including metadata."""

    metadata: RunMetadata
    summary: RunSummary


class ReportHandler(Protocol):
    """Protocol for report handlers."""

    def write(
        self,
        report: RunReport,
        file: Optional[Path] = None,
    ) -> None:
        """Write the run report.

        Args:
            report: The run report to write
            file: Optional file to write to. If None, writes to stdout.
        """
        ...


class JSONReportHandler:
    """Handler for JSON reports."""

    def write(
        self,
        report: RunReport,
        file: Optional[Path] = None,
    ) -> None:
        data = report.model_dump(mode="json")
        data["summary"]["ok"] = report.summary.ok
        json_str = json.dumps(data, indent=2)

        if file:
            file.write_text(json_str)
        else:
            print(json_str)


class TextReportHandler:
    """Handler for plain text reports."""

    def write(
        self,
        report: RunReport,
        file: Optional[Path] = None,
    ) -> None:
        summary = report.summary
        lines = [
            f"Translated {summary.succeeded} of {summary.total_units} file(s) "
            f"from {report.metadata.source_language} to {report.metadata.target_language} "
            f"with {report.metadata.model_name}",
            f"Destination: {report.metadata.destination_path}",
            f"Tokens used: {summary.tokens_used:,}",
            f"Cost: ${summary.cost:.4f}",
            f"Time taken: {summary.time_taken:.1f}s",
        ]
        if summary.failed:
            lines.append(f"Failed ({len(summary.failed)}):")
            lines.extend(f"  {failed.path}: {failed.reason}" for failed in summary.failed)

        text = "\n".join(lines)
        if file:
            file.write_text(text + "\n")
        else:
            print(text)


def create_handler(format: OutputFormat) -> ReportHandler:
    """Create a report handler for the specified format.

    Args:
        format: The desired report format

    Returns:
        An appropriate report handler

    Raises:
        ValueError: If the format is not supported
    """
    handlers = {
        OutputFormat.TEXT: TextReportHandler(),
        OutputFormat.JSON: JSONReportHandler(),
    }

    handler = handlers.get(format)
    if not handler:
        raise ValueError(f"Unsupported report format: {format}")

    return handler
