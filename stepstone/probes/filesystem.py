"""Local storage directory probe."""

from __future__ import annotations

from pathlib import Path
from typing import Any
import uuid

from stepstone.benchmark.harness import BenchmarkHarness, BenchmarkPlan
from stepstone.clients.base import ObjectStoreClient
from stepstone.clients.local_fs import LocalFsStore
from stepstone.config.models import FileStorageConfig, ProbeSettings
from stepstone.diagnostics.errors import BackendKind
from stepstone.diagnostics.models import CheckDetail
from stepstone.probes.pipeline import (
    ProbePipeline,
    StepOutcome,
    call_io,
    close_quietly,
    precondition_failed,
)


def _ensure_directory(root: Path) -> None:
    root.stat()
    if not root.is_dir():
        raise NotADirectoryError(f"Storage path '{root}' exists but is not a directory")


def _write_sentinel(root: Path) -> Path:
    sentinel = root / f"stepstone_test_{uuid.uuid4()}"
    try:
        sentinel.write_bytes(b"test")
    finally:
        sentinel.unlink(missing_ok=True)
    return sentinel


async def check_filesystem(
    config: FileStorageConfig,
    settings: ProbeSettings | None = None,
    *,
    include_performance: bool = False,
    plan: BenchmarkPlan | None = None,
    store: ObjectStoreClient | None = None,
) -> list[CheckDetail]:
    """Check that the storage root exists and is writable.

    Args:
        config: File storage configuration with the root directory.
        settings: Probe deadlines.
        include_performance: Run the benchmark through a directory-backed store.
        plan: Benchmark plan override.
        store: Store used for the benchmark, defaults to ``LocalFsStore(root)``.

    Returns:
        Details in probe order.
    """

    settings = settings or ProbeSettings()
    root = config.root
    timeout = settings.operation_timeout_s
    field = f"'{root}'"
    escaped = str(root).replace("{", "{{").replace("}", "}}")

    async def directory_exists(_: dict[str, Any]) -> StepOutcome:
        await call_io(_ensure_directory, root, timeout=timeout, operation="stat storage root")
        return StepOutcome.ok(f"Storage directory '{root}' exists")

    async def write_permission(_: dict[str, Any]) -> StepOutcome:
        await call_io(_write_sentinel, root, timeout=timeout, operation="write sentinel file")
        return StepOutcome.ok("Write permission verified")

    pipeline = (
        ProbePipeline(BackendKind.FILESYSTEM)
        .add(
            "directory",
            "File Storage Directory",
            directory_exists,
            blocking=True,
            failure_message=f"Storage directory '{escaped}' does not exist or is not accessible: {{error}}",
            field=field,
        )
        .add(
            "write",
            "File Storage Write Permission",
            write_permission,
            failure_message="Write permission test failed: {error}",
            field=field,
        )
    )
    bench_store = store if store is not None else LocalFsStore(root)
    try:
        details = await pipeline.run()
        if include_performance and not pipeline.halted:
            if not pipeline.passed("write"):
                details.append(
                    precondition_failed("File Storage Performance", ["File Storage Write Permission"])
                )
                return details
            harness = BenchmarkHarness(
                bench_store,
                plan,
                item_prefix="File Storage",
                key_prefix=f"stepstone-perf-test-{uuid.uuid4().hex[:8]}",
                backend=BackendKind.FILESYSTEM,
                field=field,
            )
            try:
                details.extend(await harness.run())
            finally:
                await harness.drain()
        return details
    finally:
        await close_quietly(bench_store, settings.connect_timeout_s)
