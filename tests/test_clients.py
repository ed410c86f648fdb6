"""Tests for the backend client adapters that run without a live service."""

from __future__ import annotations

import base64
import json

import httpx
import pytest

from stepstone.clients.etcd import EtcdClient
from stepstone.clients.sql import dialect_of, normalize_url
from stepstone.config.models import StoreConfig
from stepstone.diagnostics.errors import ConfigError, KvStoreError


class _FakeGateway:
    """In-memory etcd JSON gateway behind ``httpx.MockTransport``."""

    def __init__(self, *, down_hosts: set[str] | None = None, deny_writes: bool = False) -> None:
        self.data: dict[str, str] = {}
        self.down_hosts = down_hosts or set()
        self.deny_writes = deny_writes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host in self.down_hosts:
            return httpx.Response(503, json={"error": "unavailable", "code": 14, "message": "etcdserver: unavailable"})
        body = json.loads(request.content or b"{}")
        path = request.url.path
        if path == "/v3/maintenance/status":
            return httpx.Response(200, json={"version": "3.5.9"})
        if path == "/v3/auth/authenticate":
            return httpx.Response(200, json={"token": "token-123"})
        if path == "/v3/kv/put":
            if self.deny_writes:
                return httpx.Response(
                    403,
                    json={"error": "permission denied", "code": 7, "message": "etcdserver: permission denied"},
                )
            self.data[body["key"]] = body["value"]
            return httpx.Response(200, json={})
        if path == "/v3/kv/range":
            value = self.data.get(body["key"])
            if value is None:
                return httpx.Response(200, json={"count": "0"})
            return httpx.Response(200, json={"kvs": [{"key": body["key"], "value": value}], "count": "1"})
        if path == "/v3/kv/deleterange":
            self.data.pop(body["key"], None)
            return httpx.Response(200, json={"deleted": "1"})
        return httpx.Response(404, text="not found")


def _client(gateway: _FakeGateway, **store) -> EtcdClient:
    values = {"backend": "etcd_store", "store_addrs": ("etcd-a:2379", "etcd-b:2379")}
    values.update(store)
    return EtcdClient(StoreConfig(**values), timeout_s=1.0, transport=httpx.MockTransport(gateway))


def test_etcd_falls_back_to_next_endpoint_and_round_trips() -> None:
    gateway = _FakeGateway(down_hosts={"etcd-a"})
    client = _client(gateway)

    client.connect()
    client.put(b"/greptime/__stepstone_test", b"value")

    assert client.endpoint == "http://etcd-b:2379"
    assert gateway.data == {base64.b64encode(b"/greptime/__stepstone_test").decode(): base64.b64encode(b"value").decode()}
    assert client.get(b"/greptime/__stepstone_test") == b"value"
    client.delete(b"/greptime/__stepstone_test")
    assert client.get(b"/greptime/__stepstone_test") is None
    client.close()
    assert client.endpoint is None


def test_etcd_authenticates_and_sends_token() -> None:
    gateway = _FakeGateway()
    client = _client(gateway, username="root", password="secret")

    client.connect()
    client.put(b"k", b"v")

    assert gateway.requests[1].url.path == "/v3/auth/authenticate"
    assert gateway.requests[-1].headers["Authorization"] == "token-123"


def test_etcd_gateway_error_carries_code_and_status() -> None:
    client = _client(_FakeGateway(deny_writes=True))
    client.connect()

    with pytest.raises(KvStoreError) as excinfo:
        client.put(b"k", b"v")

    assert excinfo.value.code == 7
    assert excinfo.value.http_status == 403
    assert "permission denied" in str(excinfo.value)


def test_etcd_all_endpoints_down_raises_last_error() -> None:
    client = _client(_FakeGateway(down_hosts={"etcd-a", "etcd-b"}))

    with pytest.raises(KvStoreError) as excinfo:
        client.connect()

    assert excinfo.value.code == 14


def test_etcd_without_endpoints_is_config_error() -> None:
    client = EtcdClient(StoreConfig(backend="etcd_store"))

    with pytest.raises(ConfigError):
        client.connect()


def test_etcd_call_before_connect() -> None:
    with pytest.raises(KvStoreError, match="not connected"):
        _client(_FakeGateway()).get(b"k")


@pytest.mark.parametrize(
    ("url", "expected"),
    [
        ("postgres://user:pw@db:5432/meta", "postgresql+psycopg2://user:pw@db:5432/meta"),
        ("postgresql://db/meta", "postgresql+psycopg2://db/meta"),
        ("mysql://user@db:3306/meta", "mysql+pymysql://user@db:3306/meta"),
        ("postgresql+psycopg2://db/meta", "postgresql+psycopg2://db/meta"),
    ],
)
def test_normalize_url(url: str, expected: str) -> None:
    assert normalize_url(url) == expected


def test_normalize_url_requires_scheme() -> None:
    with pytest.raises(ConfigError):
        normalize_url("db:5432/meta")


def test_dialect_of() -> None:
    assert dialect_of("postgres://db/meta") == "postgresql"
    assert dialect_of("postgresql+psycopg2://db/meta") == "postgresql"
    assert dialect_of("mysql://db/meta") == "mysql"
