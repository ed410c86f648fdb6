"""Models for check details and component reports."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum

from stepstone.diagnostics.errors import ErrorCategory


class CheckStatus(str, Enum):
    """Outcome of a single probe."""

    PASS = "PASS"
    WARNING = "WARNING"
    FAIL = "FAIL"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]

    @property
    def label(self) -> str:
        """Short tag used in human-readable reports."""

        return "WARN" if self is CheckStatus.WARNING else self.value


_SEVERITY = {
    CheckStatus.PASS: 0,
    CheckStatus.WARNING: 1,
    CheckStatus.FAIL: 2,
}


def worst(statuses: Iterable[CheckStatus]) -> CheckStatus:
    """Return the most severe status, PASS for an empty iterable."""

    return max(statuses, key=lambda status: status.severity, default=CheckStatus.PASS)


class ComponentKind(str, Enum):
    """Cluster component kinds that can be checked."""

    METASRV = "metasrv"
    FRONTEND = "frontend"
    DATANODE = "datanode"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


@dataclass(frozen=True)
class CheckDetail:
    """Result for a single probe."""

    item: str
    status: CheckStatus
    message: str
    duration: float | None = None
    suggestion: str | None = None
    category: ErrorCategory | None = None

    def __post_init__(self) -> None:
        if not self.item:
            raise ValueError("Check detail requires an item name")
        if not self.message:
            raise ValueError(f"Check detail '{self.item}' requires a message")
        if self.status is not CheckStatus.PASS and not self.suggestion:
            raise ValueError(
                f"Check detail '{self.item}' with status {self.status.value} requires a suggestion"
            )
        if self.duration is not None and self.duration < 0:
            raise ValueError(f"Check detail '{self.item}' has a negative duration")

    @classmethod
    def passed(cls, item: str, message: str, duration: float | None = None) -> "CheckDetail":
        return cls(item=item, status=CheckStatus.PASS, message=message, duration=duration)

    @classmethod
    def warning(
        cls,
        item: str,
        message: str,
        suggestion: str,
        duration: float | None = None,
        category: ErrorCategory | None = None,
    ) -> "CheckDetail":
        return cls(
            item=item,
            status=CheckStatus.WARNING,
            message=message,
            duration=duration,
            suggestion=suggestion,
            category=category,
        )

    @classmethod
    def failed(
        cls,
        item: str,
        message: str,
        suggestion: str,
        duration: float | None = None,
        category: ErrorCategory | None = None,
    ) -> "CheckDetail":
        return cls(
            item=item,
            status=CheckStatus.FAIL,
            message=message,
            duration=duration,
            suggestion=suggestion,
            category=category,
        )


@dataclass(frozen=True)
class ReportCounts:
    """Number of details per status."""

    total: int = 0
    passed: int = 0
    failed: int = 0
    warned: int = 0

    @classmethod
    def tally(cls, details: Iterable[CheckDetail]) -> "ReportCounts":
        passed = failed = warned = 0
        for detail in details:
            if detail.status is CheckStatus.PASS:
                passed += 1
            elif detail.status is CheckStatus.FAIL:
                failed += 1
            else:
                warned += 1
        return cls(total=passed + failed + warned, passed=passed, failed=failed, warned=warned)


@dataclass(frozen=True)
class Report:
    """Sealed aggregate of every detail produced by one check run."""

    component: ComponentKind
    overall_status: CheckStatus
    counts: ReportCounts
    total_duration: float
    details: tuple[CheckDetail, ...] = field(default_factory=tuple)

    @classmethod
    def seal(
        cls,
        component: ComponentKind,
        details: Iterable[CheckDetail],
        total_duration: float,
    ) -> "Report":
        """Aggregate details into a report.

        Args:
            component: Component kind that was checked.
            details: Details in probe execution order.
            total_duration: Wall-clock seconds of the whole check run.

        Returns:
            Report whose overall status is the most severe detail status.
        """

        sealed = tuple(details)
        return cls(
            component=component,
            overall_status=worst(detail.status for detail in sealed),
            counts=ReportCounts.tally(sealed),
            total_duration=max(0.0, total_duration),
            details=sealed,
        )

    @property
    def success(self) -> bool:
        return self.overall_status is not CheckStatus.FAIL

    @property
    def message(self) -> str:
        counts = self.counts
        if self.overall_status is CheckStatus.FAIL:
            return (
                f"Some checks failed ({counts.passed} passed, "
                f"{counts.warned} warnings, {counts.failed} failed)"
            )
        if self.overall_status is CheckStatus.WARNING:
            return f"Checks completed with warnings ({counts.passed} passed, {counts.warned} warnings)"
        return f"All checks passed ({counts.passed} passed)"
