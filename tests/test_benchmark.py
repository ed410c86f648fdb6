"""Tests for the benchmark harness."""

from __future__ import annotations

import asyncio
import threading
import time

import pytest

from stepstone.benchmark.harness import (
    BenchmarkHarness,
    BenchmarkOperation,
    BenchmarkPlan,
    BenchmarkResult,
)
from stepstone.diagnostics.models import CheckStatus


class _MemoryStore:
    """Thread-safe in-memory store; can reject a subset of writes or slow them down."""

    def __init__(
        self,
        *,
        reject_every: int = 0,
        write_delay_s: float = 0.0,
        fail_deletes: bool = False,
        slow_index: int = -1,
        slow_delay_s: float = 0.0,
    ) -> None:
        self.objects: dict[str, bytes] = {}
        self.reject_every = reject_every
        self.write_delay_s = write_delay_s
        self.fail_deletes = fail_deletes
        self.slow_index = slow_index
        self.slow_delay_s = slow_delay_s
        self.writes = 0
        self._lock = threading.Lock()

    def connect(self) -> None:
        return None

    def list(self, prefix: str = "") -> list[str]:
        return [key for key in self.objects if key.startswith(prefix)]

    def write(self, key: str, data: bytes) -> None:
        index = int(key.rsplit("/", 1)[-1]) if key.rsplit("/", 1)[-1].isdigit() else -1
        if self.write_delay_s:
            time.sleep(self.write_delay_s)
        if self.slow_index >= 0 and index == self.slow_index:
            time.sleep(self.slow_delay_s)
        with self._lock:
            self.writes += 1
            if self.reject_every and index >= 0 and index % self.reject_every == 0:
                raise ConnectionResetError(104, "Connection reset by peer")
            self.objects[key] = data

    def read(self, key: str) -> bytes:
        return self.objects[key]

    def delete(self, key: str) -> None:
        if self.fail_deletes:
            raise PermissionError(13, "Permission denied")
        with self._lock:
            self.objects.pop(key, None)

    def close(self) -> None:
        return None


def _plan(count: int, **overrides) -> BenchmarkPlan:
    values = {
        "sizes": ((1024, "1KB"),),
        "concurrency": (count, 1024),
        "task_timeout_s": 2.0,
        "stage_timeout_s": 10.0,
    }
    values.update(overrides)
    return BenchmarkPlan(**values)


async def _concurrent(store: _MemoryStore, plan: BenchmarkPlan):
    harness = BenchmarkHarness(store, plan, item_prefix="Test")
    detail = await harness.concurrent()
    await harness.drain()
    return harness, detail


def test_all_concurrent_writes_succeed() -> None:
    store = _MemoryStore()

    harness, detail = asyncio.run(_concurrent(store, _plan(100)))

    assert detail.status is CheckStatus.PASS
    assert "100 objects" in detail.message
    result = harness.results[-1]
    assert result.operation is BenchmarkOperation.CONCURRENT_WRITE
    assert (result.success_count, result.attempt_count) == (100, 100)
    assert store.objects == {}


def test_partial_concurrent_success_is_warning_with_ratio() -> None:
    store = _MemoryStore(reject_every=10)

    harness, detail = asyncio.run(_concurrent(store, _plan(100)))

    assert detail.status is CheckStatus.WARNING
    assert "90/100" in detail.message
    assert harness.results[-1].success_count == 90
    assert store.writes == 100
    assert store.objects == {}


def test_concurrent_success_below_threshold_is_failure() -> None:
    store = _MemoryStore(reject_every=1)

    _, detail = asyncio.run(_concurrent(store, _plan(10)))

    assert detail.status is CheckStatus.FAIL
    assert "0/10" in detail.message
    assert detail.suggestion


def test_sequential_stage_reports_write_and_read_per_size() -> None:
    store = _MemoryStore()
    plan = _plan(2, sizes=((16, "16B"), (2048, "2KB")))
    harness = BenchmarkHarness(store, plan, item_prefix="Test")

    details = asyncio.run(harness.sequential())

    assert [detail.item for detail in details] == [
        "Test Write Latency (16B)",
        "Test Read Latency (16B)",
        "Test Write Latency (2KB)",
        "Test Read Latency (2KB)",
    ]
    assert all("MB/s" in detail.message for detail in details)
    assert store.objects == {}


def test_cleanup_failure_is_warning() -> None:
    store = _MemoryStore(fail_deletes=True)
    harness = BenchmarkHarness(store, _plan(2), item_prefix="Test")

    details = asyncio.run(harness.sequential())

    assert details[-1].status is CheckStatus.WARNING
    assert details[-1].item == "Test Benchmark Cleanup (1KB)"


def test_stage_timeout_keeps_earlier_details() -> None:
    store = _MemoryStore(write_delay_s=0.15)
    plan = BenchmarkPlan(
        sizes=((16, "a"), (16, "b"), (16, "c"), (16, "d"), (16, "e"), (16, "f")),
        concurrency=(2, 16),
        task_timeout_s=0.5,
        stage_timeout_s=0.6,
    )
    harness = BenchmarkHarness(store, plan, item_prefix="Test")

    async def _run():
        details = await harness.run()
        await harness.drain()
        return details

    details = asyncio.run(_run())

    timed_out = [detail for detail in details if "timed out" in detail.message]
    assert timed_out
    assert timed_out[0].status is CheckStatus.WARNING
    assert details[0].item == "Test Write Latency (a)"
    assert details[-1].item == "Test Concurrent Write"


def test_plan_validation() -> None:
    with pytest.raises(ValueError):
        BenchmarkPlan(task_timeout_s=10.0, stage_timeout_s=5.0)
    with pytest.raises(ValueError):
        BenchmarkPlan(concurrency=(0, 1024))
    with pytest.raises(ValueError):
        BenchmarkPlan(min_success_ratio=1.5)


def test_result_invariants_and_throughput() -> None:
    with pytest.raises(ValueError):
        BenchmarkResult(payload_size=1, operation=BenchmarkOperation.WRITE, elapsed=1.0, success_count=2)

    result = BenchmarkResult(
        payload_size=1024 * 1024,
        operation=BenchmarkOperation.CONCURRENT_WRITE,
        elapsed=2.0,
        success_count=4,
        attempt_count=5,
    )
    assert result.throughput_mb_s == pytest.approx(2.0)
    assert result.ops_per_second == pytest.approx(2.0)
    assert result.success_ratio == pytest.approx(0.8)


def test_task_deadline_excludes_time_waiting_for_a_worker() -> None:
    store = _MemoryStore(write_delay_s=0.3)
    plan = _plan(100, task_timeout_s=1.0)

    harness, detail = asyncio.run(_concurrent(store, plan))

    assert detail.status is CheckStatus.PASS
    assert harness.results[-1].success_count == 100
    assert store.objects == {}


def test_write_landing_after_deadline_is_cleaned_up() -> None:
    store = _MemoryStore(slow_index=0, slow_delay_s=0.8)
    plan = _plan(4, task_timeout_s=0.3, stage_timeout_s=5.0)

    _, detail = asyncio.run(_concurrent(store, plan))

    assert detail.status is CheckStatus.WARNING
    assert "3/4" in detail.message
    assert "timed out" in detail.message
    assert store.writes == 4
    assert store.objects == {}


def test_concurrent_stage_timeout_is_warning(monkeypatch) -> None:
    store = _MemoryStore()
    plan = _plan(2, task_timeout_s=0.2, stage_timeout_s=0.3)
    harness = BenchmarkHarness(store, plan, item_prefix="Test")

    async def _stuck():
        await asyncio.sleep(5)

    monkeypatch.setattr(harness, "concurrent", _stuck)

    details = asyncio.run(harness.run())

    assert [detail.item for detail in details] == [
        "Test Write Latency (1KB)",
        "Test Read Latency (1KB)",
        "Test Concurrent Benchmark",
    ]
    assert details[-1].status is CheckStatus.WARNING
    assert details[-1].message == "benchmark timed out after 0.3s"
