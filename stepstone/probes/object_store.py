"""Object store probe: client init, list, write, read back, delete, benchmark."""

from __future__ import annotations

from typing import Any
import uuid

from stepstone.benchmark.harness import BenchmarkHarness, BenchmarkPlan
from stepstone.clients.base import ObjectStoreClient
from stepstone.config.models import ProbeSettings, S3Config
from stepstone.diagnostics.errors import BackendKind, DataMismatchError
from stepstone.diagnostics.models import CheckDetail, CheckStatus
from stepstone.probes.pipeline import (
    ProbePipeline,
    StepOutcome,
    call_io,
    close_quietly,
    precondition_failed,
)

TEST_KEY_PREFIX = "stepstone-test"
TEST_DATA = b"stepstone-test-data"


async def check_object_store(
    config: S3Config,
    client: ObjectStoreClient,
    settings: ProbeSettings | None = None,
    *,
    include_performance: bool = False,
    plan: BenchmarkPlan | None = None,
    payload: bytes = TEST_DATA,
) -> list[CheckDetail]:
    """Probe an S3-compatible bucket with one uniquely named test object."""

    settings = settings or ProbeSettings()
    timeout = settings.operation_timeout_s
    bucket = f"bucket '{config.bucket}'"
    key = f"{TEST_KEY_PREFIX}/{uuid.uuid4()}"

    async def init(_: dict[str, Any]) -> StepOutcome:
        await call_io(client.connect, timeout=settings.connect_timeout_s, operation="S3 client init")
        return StepOutcome.ok(f"S3 client created for {bucket}")

    async def list_root(_: dict[str, Any]) -> StepOutcome:
        await call_io(client.list, timeout=timeout, operation="S3 list")
        root = config.root or "/"
        return StepOutcome.ok(f"Listed objects under root '{root}'")

    async def write(_: dict[str, Any]) -> StepOutcome:
        await call_io(client.write, key, payload, timeout=timeout, operation="S3 put")
        return StepOutcome.ok("PUT operation successful")

    async def read(_: dict[str, Any]) -> StepOutcome:
        data = await call_io(client.read, key, timeout=timeout, operation="S3 get")
        if data != payload:
            raise DataMismatchError(key, len(payload), len(data))
        return StepOutcome.ok("GET operation successful and data matches")

    async def delete(_: dict[str, Any]) -> StepOutcome:
        await call_io(client.delete, key, timeout=timeout, operation="S3 delete")
        return StepOutcome.ok("DELETE operation successful")

    pipeline = (
        ProbePipeline(BackendKind.OBJECT_STORE)
        .add(
            "init",
            "S3 Client Creation",
            init,
            blocking=True,
            failure_message="Failed to create S3 client: {error}",
            field=bucket,
        )
        .add(
            "list",
            "S3 List Permission",
            list_root,
            failure_message="LIST operation failed: {error}",
            field=bucket,
        )
        .add(
            "write",
            "S3 PUT Operation",
            write,
            blocking=True,
            failure_message="PUT operation failed: {error}",
            field=bucket,
        )
        .add(
            "read",
            "S3 GET Operation",
            read,
            failure_message="GET operation failed: {error}",
            field=bucket,
        )
        .add(
            "delete",
            "S3 DELETE Operation",
            delete,
            failure_status=CheckStatus.WARNING,
            failure_message="DELETE operation failed: {error}",
            suggestion="Test object may remain in S3, but this doesn't affect functionality",
            field=bucket,
        )
    )

    try:
        details = await pipeline.run()
        if include_performance and not pipeline.halted:
            if pipeline.passed("read"):
                harness = BenchmarkHarness(client, plan, item_prefix="S3", field=bucket)
                try:
                    details.extend(await harness.run())
                finally:
                    await harness.drain()
            else:
                details.append(precondition_failed("S3 Performance", ["S3 GET Operation"]))
        return details
    finally:
        await close_quietly(client, settings.connect_timeout_s)
