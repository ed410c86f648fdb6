"""Timed write/read benchmarks against an object store."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
import threading
import time
import uuid

from stepstone.clients.base import ObjectStoreClient
from stepstone.core.logging import logger as LOGGER
from stepstone.diagnostics.classifier import classify
from stepstone.diagnostics.errors import BackendKind, DataMismatchError, ErrorCategory, ProbeTimeoutError
from stepstone.diagnostics.models import CheckDetail
from stepstone.probes.pipeline import call_io

KIB = 1024
MIB = 1024 * 1024

DEFAULT_SIZES: tuple[tuple[int, str], ...] = (
    (KIB, "1KB"),
    (MIB, "1MB"),
    (10 * MIB, "10MB"),
)


class BenchmarkOperation(str, Enum):
    """Kinds of timed benchmark operations."""

    WRITE = "write"
    READ = "read"
    CONCURRENT_WRITE = "concurrent_write"


@dataclass(frozen=True)
class BenchmarkPlan:
    """Fixed benchmark policy: payload sizes, concurrency and deadlines."""

    sizes: tuple[tuple[int, str], ...] = DEFAULT_SIZES
    concurrency: tuple[int, int] = (10, KIB)
    task_timeout_s: float = 30.0
    stage_timeout_s: float = 120.0
    min_success_ratio: float = 0.5

    def __post_init__(self) -> None:
        count, payload = self.concurrency
        if count < 1 or payload < 0:
            raise ValueError("Benchmark concurrency needs at least one task and a non-negative payload")
        if self.stage_timeout_s <= self.task_timeout_s:
            raise ValueError("Benchmark stage timeout must exceed the per-task timeout")
        if not 0.0 <= self.min_success_ratio <= 1.0:
            raise ValueError("Benchmark min_success_ratio must be between 0 and 1")


@dataclass(frozen=True)
class BenchmarkResult:
    """Outcome of one timed benchmark operation."""

    payload_size: int
    operation: BenchmarkOperation
    elapsed: float
    success_count: int = 1
    attempt_count: int = 1

    def __post_init__(self) -> None:
        if self.success_count > self.attempt_count:
            raise ValueError("Benchmark success count cannot exceed the attempt count")

    @property
    def success_ratio(self) -> float:
        return self.success_count / self.attempt_count if self.attempt_count else 0.0

    @property
    def throughput_mb_s(self) -> float:
        """MiB transferred per second by the successful operations."""

        if self.elapsed <= 0:
            return 0.0
        return self.payload_size * self.success_count / self.elapsed / MIB

    @property
    def ops_per_second(self) -> float:
        if self.elapsed <= 0:
            return 0.0
        return self.success_count / self.elapsed


class BenchmarkHarness:
    """Run the sequential and concurrent benchmark stages against one store.

    Details produced before a stage deadline expires are kept; the expired
    stage adds one warning. Keys written by the concurrent stage are deleted
    in the background once the stage detail is final; call ``drain`` before
    closing the store.
    """

    def __init__(
        self,
        store: ObjectStoreClient,
        plan: BenchmarkPlan | None = None,
        *,
        item_prefix: str,
        key_prefix: str = "stepstone-perf-test",
        backend: BackendKind = BackendKind.OBJECT_STORE,
        field: str | None = None,
    ) -> None:
        self.store = store
        self.plan = plan or BenchmarkPlan()
        self.item_prefix = item_prefix
        self.key_prefix = key_prefix.rstrip("/")
        self.backend = backend
        self.field = field
        self.results: list[BenchmarkResult] = []
        self._cleanup_tasks: list[asyncio.Task[None]] = []

    async def run(self) -> list[CheckDetail]:
        details: list[CheckDetail] = []
        await self._run_stage("Sequential", self.sequential(details), details)
        await self._run_stage("Concurrent", self._concurrent_into(details), details)
        return details

    async def sequential(self, sink: list[CheckDetail] | None = None) -> list[CheckDetail]:
        """Write, read back and delete one zero-filled payload per size."""

        details = sink if sink is not None else []
        timeout = self.plan.task_timeout_s
        for size, label in self.plan.sizes:
            key = f"{self.key_prefix}/{label}/{uuid.uuid4()}"
            payload = bytes(size)

            start = time.perf_counter()
            try:
                await call_io(self.store.write, key, payload, timeout=timeout, operation=f"benchmark write {label}")
            except Exception as exc:  # noqa: BLE001 - recorded as a detail
                details.append(
                    self._failure(f"Write Test ({label})", "Write failed", exc, time.perf_counter() - start)
                )
                continue
            write = self._record(size, BenchmarkOperation.WRITE, time.perf_counter() - start)
            details.append(
                CheckDetail.passed(
                    f"{self.item_prefix} Write Latency ({label})",
                    f"Write latency: {format_latency(write.elapsed)} ({write.throughput_mb_s:.2f} MB/s)",
                    duration=write.elapsed,
                )
            )

            start = time.perf_counter()
            try:
                data = await call_io(self.store.read, key, timeout=timeout, operation=f"benchmark read {label}")
            except Exception as exc:  # noqa: BLE001 - recorded as a detail
                details.append(
                    self._failure(f"Read Test ({label})", "Read failed", exc, time.perf_counter() - start)
                )
            else:
                elapsed = time.perf_counter() - start
                if len(data) != size:
                    mismatch = DataMismatchError(key, size, len(data))
                    details.append(self._failure(f"Read Verification ({label})", "Read failed", mismatch, elapsed))
                else:
                    read = self._record(size, BenchmarkOperation.READ, elapsed)
                    details.append(
                        CheckDetail.passed(
                            f"{self.item_prefix} Read Latency ({label})",
                            f"Read latency: {format_latency(read.elapsed)} ({read.throughput_mb_s:.2f} MB/s)",
                            duration=read.elapsed,
                        )
                    )

            try:
                await call_io(self.store.delete, key, timeout=timeout, operation=f"benchmark delete {label}")
            except Exception as exc:  # noqa: BLE001 - leftover objects only warrant a warning
                LOGGER.warning("Failed to delete benchmark object %s: %s", key, exc)
                details.append(
                    CheckDetail.warning(
                        f"{self.item_prefix} Benchmark Cleanup ({label})",
                        f"Failed to delete benchmark object '{key}': {exc}",
                        "Remove the leftover benchmark object manually; it does not affect functionality",
                        category=classify(exc, self.backend, "benchmark cleanup", self.field).category,
                    )
                )
        return details

    async def concurrent(self) -> CheckDetail:
        """Write N payloads to distinct keys at once and rate the success ratio.

        Each write gets its own worker thread so the per-task deadline covers
        the write alone. Writes that land after their deadline are still
        removed by the background cleanup.
        """

        count, size = self.plan.concurrency
        payload = bytes(size)
        run_id = uuid.uuid4().hex[:8]
        keys = [f"{self.key_prefix}/concurrent/{run_id}/{index}" for index in range(count)]
        executor = ThreadPoolExecutor(max_workers=count, thread_name_prefix="stepstone-bench")
        landed: list[str] = []
        landed_lock = threading.Lock()

        def write(key: str) -> None:
            self.store.write(key, payload)
            with landed_lock:
                landed.append(key)

        start = time.perf_counter()
        try:
            outcomes = await asyncio.gather(
                *(self._write_one(executor, write, key) for key in keys),
                return_exceptions=True,
            )
        finally:
            self._schedule_cleanup(executor, landed, landed_lock)
        elapsed = time.perf_counter() - start

        errors = [outcome for outcome in outcomes if isinstance(outcome, BaseException)]
        result = self._record(
            size,
            BenchmarkOperation.CONCURRENT_WRITE,
            elapsed,
            success_count=count - len(errors),
            attempt_count=count,
        )
        return self._concurrent_detail(result, errors)

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for background cleanup, giving up after the bound."""

        pending = [task for task in self._cleanup_tasks if not task.done()]
        self._cleanup_tasks.clear()
        if not pending:
            return
        bound = self.plan.stage_timeout_s if timeout is None else timeout
        try:
            await asyncio.wait_for(asyncio.gather(*pending, return_exceptions=True), bound)
        except asyncio.TimeoutError:
            LOGGER.warning("Benchmark cleanup did not finish within %.1fs", bound)

    async def _run_stage(self, stage: str, work: Awaitable[object], details: list[CheckDetail]) -> None:
        timeout = self.plan.stage_timeout_s
        try:
            await asyncio.wait_for(work, timeout)
        except asyncio.TimeoutError:
            LOGGER.warning("%s %s benchmark timed out after %.1fs", self.item_prefix, stage, timeout)
            details.append(
                CheckDetail.warning(
                    f"{self.item_prefix} {stage} Benchmark",
                    f"benchmark timed out after {timeout:.1f}s",
                    "Check storage latency and bandwidth; the benchmark could not finish in time",
                    category=ErrorCategory.CONNECTIVITY,
                )
            )

    async def _concurrent_into(self, sink: list[CheckDetail]) -> None:
        sink.append(await self.concurrent())

    async def _write_one(
        self,
        executor: ThreadPoolExecutor,
        write: Callable[[str], None],
        key: str,
    ) -> None:
        timeout = self.plan.task_timeout_s
        loop = asyncio.get_running_loop()
        try:
            await asyncio.wait_for(loop.run_in_executor(executor, write, key), timeout)
        except asyncio.TimeoutError as exc:
            raise ProbeTimeoutError("benchmark concurrent write", timeout) from exc

    def _concurrent_detail(self, result: BenchmarkResult, errors: Sequence[BaseException]) -> CheckDetail:
        item = f"{self.item_prefix} Concurrent Write"
        if result.success_count == result.attempt_count:
            return CheckDetail.passed(
                item,
                (
                    f"Successfully wrote {result.attempt_count} objects concurrently in "
                    f"{format_latency(result.elapsed)} ({result.ops_per_second:.1f} ops/s, "
                    f"{result.throughput_mb_s:.2f} MB/s)"
                ),
                duration=result.elapsed,
            )

        classified = classify(errors[0], self.backend, item, self.field) if errors else None
        message = (
            f"Only {result.success_count}/{result.attempt_count} concurrent writes succeeded "
            f"({result.success_ratio:.0%})"
        )
        if classified is not None:
            message = f"{message}: {classified.description}"
        suggestion = "Check storage rate limits and connection pool settings"
        category = classified.category if classified is not None else None
        if result.success_ratio >= self.plan.min_success_ratio:
            return CheckDetail.warning(item, message, suggestion, duration=result.elapsed, category=category)
        return CheckDetail.failed(
            item,
            message,
            classified.suggestion if classified is not None else suggestion,
            duration=result.elapsed,
            category=category,
        )

    def _schedule_cleanup(
        self,
        executor: ThreadPoolExecutor,
        landed: list[str],
        lock: threading.Lock,
    ) -> None:
        self._cleanup_tasks.append(asyncio.create_task(self._cleanup(executor, landed, lock)))

    async def _cleanup(self, executor: ThreadPoolExecutor, landed: list[str], lock: threading.Lock) -> None:
        # late writes are only visible once every worker has returned
        await asyncio.to_thread(executor.shutdown, True)
        with lock:
            keys = list(landed)
        if not keys:
            return
        outcomes = await asyncio.gather(
            *(
                call_io(self.store.delete, key, timeout=self.plan.task_timeout_s, operation="benchmark cleanup")
                for key in keys
            ),
            return_exceptions=True,
        )
        failures = sum(1 for outcome in outcomes if isinstance(outcome, BaseException))
        if failures:
            LOGGER.warning("%d of %d concurrent benchmark objects were not deleted", failures, len(keys))

    def _record(
        self,
        size: int,
        operation: BenchmarkOperation,
        elapsed: float,
        *,
        success_count: int = 1,
        attempt_count: int = 1,
    ) -> BenchmarkResult:
        result = BenchmarkResult(
            payload_size=size,
            operation=operation,
            elapsed=elapsed,
            success_count=success_count,
            attempt_count=attempt_count,
        )
        self.results.append(result)
        LOGGER.debug(
            "Benchmark %s %s: %d/%d in %.4fs",
            operation.value,
            size,
            success_count,
            attempt_count,
            elapsed,
        )
        return result

    def _failure(self, suffix: str, prefix: str, exc: BaseException, elapsed: float) -> CheckDetail:
        item = f"{self.item_prefix} {suffix}"
        classified = classify(exc, self.backend, item, self.field)
        return CheckDetail.failed(
            item,
            f"{prefix}: {classified.description}",
            classified.suggestion,
            duration=elapsed,
            category=classified.category,
        )


def format_latency(seconds: float) -> str:
    if seconds < 1.0:
        return f"{seconds * 1000:.2f}ms"
    return f"{seconds:.2f}s"
