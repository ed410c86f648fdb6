"""Base class shared by the component checkers."""

from __future__ import annotations

from abc import ABC, abstractmethod
import asyncio
import time
from typing import Any

from stepstone.clients import BackendClients
from stepstone.config.models import ProbeSettings
from stepstone.core.logging import logger as LOGGER
from stepstone.diagnostics.classifier import classify
from stepstone.diagnostics.errors import BackendKind
from stepstone.diagnostics.models import CheckDetail, ComponentKind, Report


class ComponentChecker(ABC):
    """Check the external dependencies of one component.

    ``check`` never raises: an unexpected fault becomes one classified FAIL
    detail and the report is still sealed.
    """

    kind: ComponentKind
    error_backend: BackendKind = BackendKind.NETWORK

    def __init__(
        self,
        config: Any,
        *,
        clients: BackendClients | None = None,
        settings: ProbeSettings | None = None,
    ) -> None:
        self.config = config
        self.clients = clients or BackendClients()
        self.settings = settings or ProbeSettings()

    @property
    def component_name(self) -> str:
        return self.kind.display_name

    async def check(self) -> Report:
        start = time.perf_counter()
        LOGGER.debug("Checking %s dependencies", self.component_name)
        try:
            details = await self._collect()
        except Exception as exc:  # noqa: BLE001 - a check run always produces a report
            details = [self._unexpected(f"{self.component_name} Check", self.error_backend, exc)]
        report = Report.seal(self.kind, details, time.perf_counter() - start)
        LOGGER.debug("%s: %s", self.component_name, report.message)
        return report

    def _unexpected(self, item: str, backend: BackendKind, exc: BaseException) -> CheckDetail:
        """One FAIL detail standing in for a branch that raised."""

        LOGGER.error("%s failed unexpectedly", item, exc_info=exc)
        classified = classify(exc, backend, item)
        return CheckDetail.failed(
            item,
            f"Unexpected error: {classified.description}",
            classified.suggestion,
            category=classified.category,
        )

    def run(self) -> Report:
        """Run ``check`` on a fresh event loop."""

        return asyncio.run(self.check())

    @abstractmethod
    async def _collect(self) -> list[CheckDetail]:
        """Return details in probe order."""
