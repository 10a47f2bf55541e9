"""Rendering and export of health reports.

JSON and YAML carry the overall verdict ahead of the individual checks so a
caller can gate on one key; the table form is what an operator reads.
"""

from __future__ import annotations

import io
import json
from enum import StrEnum
from pathlib import Path
from typing import Any

import yaml
from rich.console import Console
from rich.table import Table

from profile_engine.models.report import CheckStatus, HealthReport

_STATUS_STYLE = {
    CheckStatus.OK: "green",
    CheckStatus.WARNING: "yellow",
    CheckStatus.UNKNOWN: "red",
}


class ReportFormat(StrEnum):
    TABLE = "table"
    JSON = "json"
    YAML = "yaml"


def report_data(report: HealthReport) -> dict[str, Any]:
    return {"healthy": report.healthy, **report.model_dump(mode="json")}


def report_table(report: HealthReport) -> Table:
    table = Table(
        title="Profile provisioning health",
        caption=f"Generated {report.generated_at.isoformat(timespec='seconds')}",
    )
    table.add_column("Check")
    table.add_column("Status")
    table.add_column("Detail")
    for check in report.checks:
        style = _STATUS_STYLE[check.status]
        table.add_row(check.check_name, f"[{style}]{check.status.value}[/{style}]", check.detail)
    return table


def render_report(report: HealthReport, fmt: ReportFormat) -> str:
    """Render ``report`` as text in the given format (tables without colour)."""
    if fmt == ReportFormat.JSON:
        return json.dumps(report_data(report), indent=2)
    if fmt == ReportFormat.YAML:
        return yaml.dump(report_data(report), default_flow_style=False, sort_keys=False)
    buffer = io.StringIO()
    Console(file=buffer, width=120, color_system=None).print(report_table(report))
    return buffer.getvalue()


def export_report(report: HealthReport, output_path: Path, fmt: ReportFormat) -> None:
    output_path.write_text(render_report(report, fmt))


def export_report_json(report: HealthReport, output_path: Path) -> None:
    export_report(report, output_path, ReportFormat.JSON)


def export_report_yaml(report: HealthReport, output_path: Path) -> None:
    export_report(report, output_path, ReportFormat.YAML)
