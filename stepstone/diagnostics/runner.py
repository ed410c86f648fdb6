"""Report formatting and exit-code policy."""

from __future__ import annotations

from datetime import datetime, timezone
import json
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from stepstone.diagnostics.models import CheckStatus, Report

_STATUS_STYLES = {
    CheckStatus.PASS: "green",
    CheckStatus.WARNING: "yellow",
    CheckStatus.FAIL: "red",
}


def report_to_dict(report: Report, config_file: str | None = None) -> dict[str, Any]:
    """Return the JSON-shaped view of a report."""

    return {
        "component": report.component.value,
        "overallStatus": report.overall_status.value,
        "message": report.message,
        "config_file": config_file,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "totalDuration": round(report.total_duration, 6),
        "counts": {
            "total": report.counts.total,
            "passed": report.counts.passed,
            "failed": report.counts.failed,
            "warned": report.counts.warned,
        },
        "details": [
            {
                "item": detail.item,
                "status": detail.status.value,
                "message": detail.message,
                "duration": None if detail.duration is None else round(detail.duration, 6),
                "suggestion": detail.suggestion,
                "category": detail.category.value if detail.category is not None else None,
            }
            for detail in report.details
        ],
    }


def report_to_json(report: Report, config_file: str | None = None) -> str:
    return json.dumps(report_to_dict(report, config_file), indent=2)


def format_report(report: Report, config_file: str | None = None) -> str:
    """Return a plain-text report."""

    lines = [f"{report.component.display_name} pre-flight check", "-" * 60]
    if config_file:
        lines.append(f"Config: {config_file}")
    for detail in report.details:
        line = f"[{detail.status.label}] {detail.item}: {detail.message}"
        if detail.duration is not None:
            line = f"{line} ({_format_duration(detail.duration)})"
        lines.append(line)
        if detail.suggestion:
            lines.append(f"       -> {detail.suggestion}")
    lines.append("-" * 60)
    lines.append(f"Overall: {report.overall_status.label} - {report.message}")
    lines.append(f"Total time: {_format_duration(report.total_duration)}")
    return "\n".join(lines)


def render_report(report: Report, console: Console, config_file: str | None = None) -> None:
    """Print a report as a rich table."""

    table = Table(
        title=f"{report.component.display_name} pre-flight check",
        show_header=True,
        header_style="bold cyan",
    )
    table.add_column("Status")
    table.add_column("Item")
    table.add_column("Message", overflow="fold")
    table.add_column("Duration", justify="right")
    table.add_column("Suggestion", overflow="fold")

    for detail in report.details:
        style = _STATUS_STYLES[detail.status]
        table.add_row(
            f"[{style}]{detail.status.label}[/]",
            escape(detail.item),
            escape(detail.message),
            _format_duration(detail.duration) if detail.duration is not None else "-",
            escape(detail.suggestion or ""),
        )

    if config_file:
        console.print(f"Config: {escape(config_file)}")
    console.print(table)
    overall_style = _STATUS_STYLES[report.overall_status]
    console.print(
        f"[bold {overall_style}]Overall: {report.overall_status.label}[/] {report.message} "
        f"in {_format_duration(report.total_duration)}"
    )


def exit_code(report: Report) -> int:
    """0 when nothing failed, 1 otherwise."""

    return 0 if report.success else 1


def _format_duration(seconds: float) -> str:
    if seconds < 1.0:
        return f"{seconds * 1000:.1f}ms"
    return f"{seconds:.2f}s"
