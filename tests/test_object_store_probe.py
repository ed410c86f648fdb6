"""Tests for the S3 probe sequence."""

from __future__ import annotations

import asyncio

import pytest
from botocore.exceptions import ClientError

from stepstone.benchmark.harness import BenchmarkPlan
from stepstone.config.models import S3Config
from stepstone.diagnostics.errors import ErrorCategory
from stepstone.diagnostics.models import CheckStatus, ComponentKind, Report
from stepstone.probes.object_store import check_object_store


def _access_denied(operation: str) -> ClientError:
    return ClientError(
        {
            "Error": {"Code": "AccessDenied", "Message": "Access Denied"},
            "ResponseMetadata": {"HTTPStatusCode": 403},
        },
        operation,
    )


class _FakeBucket:
    def __init__(
        self,
        *,
        deny: set[str] | None = None,
        init_error: Exception | None = None,
    ) -> None:
        self.objects: dict[str, bytes] = {}
        self.deny = deny or set()
        self.init_error = init_error
        self.closed = False

    def connect(self) -> None:
        if self.init_error is not None:
            raise self.init_error

    def list(self, prefix: str = "") -> list[str]:
        if "list" in self.deny:
            raise _access_denied("ListObjectsV2")
        return sorted(key for key in self.objects if key.startswith(prefix))[:1]

    def write(self, key: str, data: bytes) -> None:
        if "write" in self.deny:
            raise _access_denied("PutObject")
        self.objects[key] = data

    def read(self, key: str) -> bytes:
        if "read" in self.deny:
            raise _access_denied("GetObject")
        return self.objects[key]

    def delete(self, key: str) -> None:
        if "delete" in self.deny:
            raise _access_denied("DeleteObject")
        self.objects.pop(key, None)

    def close(self) -> None:
        self.closed = True


_CONFIG = S3Config(bucket="greptime", root="data")
_SMALL_PLAN = BenchmarkPlan(
    sizes=((16, "16B"), (1024, "1KB")),
    concurrency=(4, 64),
    task_timeout_s=2.0,
    stage_timeout_s=5.0,
)


def test_object_store_all_pass() -> None:
    bucket = _FakeBucket()

    details = asyncio.run(check_object_store(_CONFIG, bucket))

    assert [detail.item for detail in details] == [
        "S3 Client Creation",
        "S3 List Permission",
        "S3 PUT Operation",
        "S3 GET Operation",
        "S3 DELETE Operation",
    ]
    assert all(detail.status is CheckStatus.PASS for detail in details)
    assert bucket.objects == {}
    assert bucket.closed


def test_delete_denied_gives_overall_warning() -> None:
    bucket = _FakeBucket(deny={"delete"})

    details = asyncio.run(check_object_store(_CONFIG, bucket))
    report = Report.seal(ComponentKind.DATANODE, details, total_duration=0.1)

    assert details[-1].status is CheckStatus.WARNING
    assert details[-1].category is ErrorCategory.AUTHORIZATION
    assert report.overall_status is CheckStatus.WARNING


def test_write_denied_halts_pipeline() -> None:
    bucket = _FakeBucket(deny={"write"})

    details = asyncio.run(check_object_store(_CONFIG, bucket, include_performance=True, plan=_SMALL_PLAN))

    assert details[-1].item == "S3 PUT Operation"
    assert details[-1].status is CheckStatus.FAIL
    assert details[-1].category is ErrorCategory.AUTHORIZATION
    assert len(details) == 3


def test_client_init_failure_yields_single_detail() -> None:
    bucket = _FakeBucket(init_error=ValueError("Invalid endpoint: not a url"))

    details = asyncio.run(check_object_store(_CONFIG, bucket))

    assert len(details) == 1
    assert details[0].category is ErrorCategory.CONFIGURATION


def test_benchmark_requires_successful_read() -> None:
    bucket = _FakeBucket(deny={"read"})

    details = asyncio.run(check_object_store(_CONFIG, bucket, include_performance=True, plan=_SMALL_PLAN))

    assert details[-1].item == "S3 Performance"
    assert details[-1].status is CheckStatus.FAIL
    assert "precondition not met" in details[-1].message.lower()


def test_benchmark_details_follow_basic_operations() -> None:
    bucket = _FakeBucket()

    details = asyncio.run(check_object_store(_CONFIG, bucket, include_performance=True, plan=_SMALL_PLAN))

    items = [detail.item for detail in details]
    assert items[5:] == [
        "S3 Write Latency (16B)",
        "S3 Read Latency (16B)",
        "S3 Write Latency (1KB)",
        "S3 Read Latency (1KB)",
        "S3 Concurrent Write",
    ]
    assert all(detail.status is CheckStatus.PASS for detail in details)
    assert bucket.objects == {}


@pytest.mark.parametrize("size", [0, 512, 64 * 1024 * 1024])
def test_round_trip_for_payload_sizes(size: int) -> None:
    bucket = _FakeBucket()

    details = asyncio.run(check_object_store(_CONFIG, bucket, payload=b"x" * size))

    assert all(detail.status is CheckStatus.PASS for detail in details)
    assert bucket.objects == {}


@pytest.mark.parametrize("deny", [set(), {"list"}])
def test_list_permission_is_stable_across_runs(deny: set[str]) -> None:
    bucket = _FakeBucket(deny=deny)

    first = asyncio.run(check_object_store(_CONFIG, bucket))
    second = asyncio.run(check_object_store(_CONFIG, bucket))

    def _list_status(details):
        return next(detail.status for detail in details if detail.item == "S3 List Permission")

    assert _list_status(first) is _list_status(second)
    expected = CheckStatus.FAIL if deny else CheckStatus.PASS
    assert _list_status(first) is expected
