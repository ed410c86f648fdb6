"""Tests for report formatting and the exit-code policy."""

from __future__ import annotations

import io
import json

from rich.console import Console

from stepstone.diagnostics.errors import ErrorCategory
from stepstone.diagnostics.models import CheckDetail, ComponentKind, Report
from stepstone.diagnostics.runner import exit_code, format_report, render_report, report_to_dict, report_to_json


def _report() -> Report:
    return Report.seal(
        ComponentKind.DATANODE,
        [
            CheckDetail.passed("Metasrv Connectivity 1", "Connected to metasrv at 127.0.0.1:3002", duration=0.0042),
            CheckDetail.warning(
                "S3 DELETE Operation",
                "Failed to delete test object: Access Denied",
                "Test object may remain in S3, but this doesn't affect functionality",
                duration=1.5,
                category=ErrorCategory.AUTHORIZATION,
            ),
            CheckDetail.failed(
                "S3 GET Operation",
                "[bold]Access Denied[/bold]",
                "Grant s3:GetObject on the bucket",
                category=ErrorCategory.AUTHORIZATION,
            ),
        ],
        total_duration=2.25,
    )


def test_report_to_dict_shape() -> None:
    payload = report_to_dict(_report(), "datanode.toml")

    assert payload["component"] == "datanode"
    assert payload["overallStatus"] == "FAIL"
    assert payload["config_file"] == "datanode.toml"
    assert payload["counts"] == {"total": 3, "passed": 1, "failed": 1, "warned": 1}
    assert payload["totalDuration"] == 2.25
    first, second, third = payload["details"]
    assert first["suggestion"] is None and first["category"] is None
    assert second["status"] == "WARNING"
    assert second["category"] == "authorization"
    assert third["duration"] is None


def test_report_to_json_is_parseable() -> None:
    payload = json.loads(report_to_json(_report()))

    assert payload["message"].startswith("Some checks failed")
    assert payload["config_file"] is None


def test_format_report_lines() -> None:
    text = format_report(_report(), "datanode.toml")

    assert "Config: datanode.toml" in text
    assert "[PASS] Metasrv Connectivity 1: Connected to metasrv at 127.0.0.1:3002 (4.2ms)" in text
    assert "[WARN] S3 DELETE Operation" in text
    assert "(1.50s)" in text
    assert "-> Grant s3:GetObject on the bucket" in text
    assert text.splitlines()[-1] == "Total time: 2.25s"


def test_render_report_escapes_markup() -> None:
    buffer = io.StringIO()
    console = Console(file=buffer, width=200, color_system=None)

    render_report(_report(), console, "datanode.toml")

    output = buffer.getvalue()
    assert "[bold]Access Denied[/bold]" in output
    assert "Overall: FAIL" in output


def test_exit_code_policy() -> None:
    assert exit_code(_report()) == 1
    warned = Report.seal(
        ComponentKind.METASRV,
        [CheckDetail.warning("Server Configuration", "No server configuration found", "Add one")],
        total_duration=0.1,
    )
    assert exit_code(warned) == 0
    assert exit_code(Report.seal(ComponentKind.FRONTEND, [], total_duration=0.0)) == 0
