"""Ordered probe steps with halting, preconditions and failure classification."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
import time
from typing import Any, TypeVar

from stepstone.core.logging import logger as LOGGER
from stepstone.diagnostics.classifier import classify
from stepstone.diagnostics.errors import BackendKind, ProbeTimeoutError
from stepstone.diagnostics.models import CheckDetail, CheckStatus

T = TypeVar("T")

StepAction = Callable[[dict[str, Any]], Awaitable["StepOutcome"]]


async def call_io(
    fn: Callable[..., T],
    *args: Any,
    timeout: float,
    operation: str,
) -> T:
    """Run a blocking client call in a worker thread under a deadline.

    Raises:
        ProbeTimeoutError: When the deadline expires first.
    """

    try:
        return await asyncio.wait_for(asyncio.to_thread(fn, *args), timeout)
    except asyncio.TimeoutError as exc:
        raise ProbeTimeoutError(operation, timeout) from exc


@dataclass(frozen=True)
class StepOutcome:
    """What a step action reports when it completes without raising."""

    status: CheckStatus
    message: str
    suggestion: str | None = None
    value: Any = None

    @classmethod
    def ok(cls, message: str, value: Any = None) -> "StepOutcome":
        return cls(status=CheckStatus.PASS, message=message, value=value)

    @classmethod
    def warn(cls, message: str, suggestion: str, value: Any = None) -> "StepOutcome":
        return cls(status=CheckStatus.WARNING, message=message, suggestion=suggestion, value=value)


@dataclass(frozen=True)
class ProbeStep:
    """One named step of a pipeline."""

    key: str
    item: str
    action: StepAction
    blocking: bool = False
    requires: tuple[str, ...] = ()
    failure_status: CheckStatus = CheckStatus.FAIL
    failure_message: str = "{error}"
    suggestion: str | None = None
    field: str | None = None
    when: Callable[[dict[str, Any]], bool] | None = None


@dataclass
class ProbePipeline:
    """Run steps in order, producing at most one detail per step.

    A failed blocking step ends the pipeline without further details. A step
    whose required step did not pass emits a FAIL detail instead of running.
    A step whose ``when`` predicate is false does not apply and emits nothing.
    """

    backend: BackendKind
    steps: list[ProbeStep] = field(default_factory=list)
    statuses: dict[str, CheckStatus] = field(default_factory=dict, init=False)
    halted: bool = field(default=False, init=False)

    def add(
        self,
        key: str,
        item: str,
        action: StepAction,
        *,
        blocking: bool = False,
        requires: Sequence[str] = (),
        failure_status: CheckStatus = CheckStatus.FAIL,
        failure_message: str = "{error}",
        suggestion: str | None = None,
        field: str | None = None,
        when: Callable[[dict[str, Any]], bool] | None = None,
    ) -> "ProbePipeline":
        self.steps.append(
            ProbeStep(
                key=key,
                item=item,
                action=action,
                blocking=blocking,
                requires=tuple(requires),
                failure_status=failure_status,
                failure_message=failure_message,
                suggestion=suggestion,
                field=field,
                when=when,
            )
        )
        return self

    async def run(self) -> list[CheckDetail]:
        details: list[CheckDetail] = []
        values: dict[str, Any] = {}
        passed: set[str] = set()

        for step in self.steps:
            if step.when is not None and not step.when(values):
                LOGGER.debug("Step %s does not apply", step.item)
                continue

            unmet = [key for key in step.requires if key not in passed]
            if unmet:
                details.append(self._precondition_detail(step, unmet))
                self.statuses[step.key] = CheckStatus.FAIL
                if step.blocking:
                    self.halted = True
                    break
                continue

            detail, outcome = await self._run_step(step, values)
            details.append(detail)
            self.statuses[step.key] = detail.status
            if outcome is not None:
                values[step.key] = outcome.value
            if detail.status is CheckStatus.PASS:
                passed.add(step.key)
            elif detail.status is CheckStatus.FAIL and step.blocking:
                LOGGER.debug("Blocking step %s failed; halting pipeline", step.item)
                self.halted = True
                break

        return details

    async def _run_step(
        self,
        step: ProbeStep,
        values: dict[str, Any],
    ) -> tuple[CheckDetail, StepOutcome | None]:
        LOGGER.debug("Running step %s", step.item)
        start = time.perf_counter()
        try:
            outcome = await step.action(values)
        except Exception as exc:  # noqa: BLE001 - every failure becomes a detail
            duration = time.perf_counter() - start
            classified = classify(exc, self.backend, step.item, step.field)
            message = step.failure_message.format(error=classified.description)
            LOGGER.warning("%s failed (%s): %s", step.item, classified.category.value, message)
            detail = CheckDetail(
                item=step.item,
                status=step.failure_status,
                message=message,
                duration=duration,
                suggestion=step.suggestion or classified.suggestion,
                category=classified.category,
            )
            return detail, None

        duration = time.perf_counter() - start
        detail = CheckDetail(
            item=step.item,
            status=outcome.status,
            message=outcome.message,
            duration=duration,
            suggestion=outcome.suggestion,
        )
        return detail, outcome

    def passed(self, key: str) -> bool:
        return self.statuses.get(key) is CheckStatus.PASS

    def _precondition_detail(self, step: ProbeStep, unmet: list[str]) -> CheckDetail:
        return precondition_failed(step.item, [self._item_for(key) for key in unmet])

    def _item_for(self, key: str) -> str:
        for step in self.steps:
            if step.key == key:
                return step.item
        return key


def precondition_failed(item: str, unmet: Sequence[str]) -> CheckDetail:
    """Detail for a step that did not run because an earlier step failed."""

    names = ", ".join(unmet)
    LOGGER.debug("Step %s skipped: %s did not pass", item, names)
    return CheckDetail.failed(
        item,
        f"Precondition not met: {names} did not pass",
        f"Resolve the {names} failure first",
    )


async def close_quietly(client: Any, timeout: float) -> None:
    """Close a backend client; failures are logged and do not affect the report."""

    try:
        await call_io(client.close, timeout=timeout, operation="close")
    except Exception as exc:  # noqa: BLE001 - closing must not mask probe results
        LOGGER.debug("Closing %s failed: %s", type(client).__name__, exc)
