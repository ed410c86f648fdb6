"""Result model, error taxonomy and report formatting."""

from stepstone.diagnostics.errors import BackendKind, ClassifiedError, ErrorCategory
from stepstone.diagnostics.models import (
    CheckDetail,
    CheckStatus,
    ComponentKind,
    Report,
    ReportCounts,
)
from stepstone.diagnostics.runner import exit_code, format_report, report_to_dict

__all__ = [
    "BackendKind",
    "CheckDetail",
    "CheckStatus",
    "ClassifiedError",
    "ComponentKind",
    "ErrorCategory",
    "Report",
    "ReportCounts",
    "exit_code",
    "format_report",
    "report_to_dict",
]
