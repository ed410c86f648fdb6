"""Key-value metadata store probe: connect, write, read back, delete."""

from __future__ import annotations

from typing import Any

from stepstone.clients.base import KvClient
from stepstone.config.models import ProbeSettings, StoreConfig
from stepstone.diagnostics.errors import BackendKind, DataMismatchError, ErrorCategory
from stepstone.diagnostics.models import CheckDetail, CheckStatus
from stepstone.probes.pipeline import ProbePipeline, StepOutcome, call_io, close_quietly

TEST_KEY_SUFFIX = "__stepstone_test"
TEST_VALUE = b"stepstone_test_value"


def probe_key(config: StoreConfig) -> bytes:
    return f"{config.store_key_prefix}{TEST_KEY_SUFFIX}".encode("utf-8")


async def check_kv_store(
    config: StoreConfig,
    client: KvClient,
    settings: ProbeSettings | None = None,
    *,
    payload: bytes = TEST_VALUE,
) -> list[CheckDetail]:
    """Probe an etcd store with a single test key.

    An unreachable store yields exactly one connectivity failure. A delete
    failure is reported as a warning because only the test key is left over.
    """

    settings = settings or ProbeSettings()
    if not config.store_addrs:
        return [
            CheckDetail.failed(
                "Etcd Configuration",
                "No etcd endpoints configured in store_addrs",
                "Add etcd endpoints (host:port) to store_addrs",
                category=ErrorCategory.CONFIGURATION,
            )
        ]

    key = probe_key(config)
    endpoints = ", ".join(config.store_addrs)
    timeout = settings.operation_timeout_s

    async def connect(_: dict[str, Any]) -> StepOutcome:
        await call_io(client.connect, timeout=settings.connect_timeout_s, operation="etcd connect")
        return StepOutcome.ok(f"Successfully connected to etcd endpoints: {endpoints}")

    async def write(_: dict[str, Any]) -> StepOutcome:
        await call_io(client.put, key, payload, timeout=timeout, operation="etcd put")
        return StepOutcome.ok("PUT operation successful")

    async def read(_: dict[str, Any]) -> StepOutcome:
        data = await call_io(client.get, key, timeout=timeout, operation="etcd get")
        if data != payload:
            raise DataMismatchError(
                key.decode("utf-8", "replace"),
                len(payload),
                None if data is None else len(data),
            )
        return StepOutcome.ok("GET operation successful and data matches")

    async def delete(_: dict[str, Any]) -> StepOutcome:
        await call_io(client.delete, key, timeout=timeout, operation="etcd delete")
        return StepOutcome.ok("DELETE operation successful")

    pipeline = (
        ProbePipeline(BackendKind.KV_STORE)
        .add(
            "connect",
            "Etcd Connection",
            connect,
            blocking=True,
            failure_message="Failed to connect to etcd: {error}",
            field=endpoints,
        )
        .add(
            "write",
            "Etcd PUT Operation",
            write,
            blocking=True,
            failure_message="PUT operation failed: {error}",
            field=config.store_key_prefix or endpoints,
        )
        .add(
            "read",
            "Etcd GET Operation",
            read,
            failure_message="GET operation failed: {error}",
            field=endpoints,
        )
        .add(
            "delete",
            "Etcd DELETE Operation",
            delete,
            failure_status=CheckStatus.WARNING,
            failure_message="DELETE operation failed: {error}",
            suggestion=(
                f"Test key '{key.decode('utf-8', 'replace')}' may remain in etcd; "
                "grant delete permission on the key prefix and remove it manually"
            ),
        )
    )
    try:
        return await pipeline.run()
    finally:
        await close_quietly(client, settings.connect_timeout_s)
