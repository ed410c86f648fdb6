"""etcd v3 client speaking the JSON gRPC gateway."""

from __future__ import annotations

import base64
from typing import Any

import httpx

from stepstone.config.models import StoreConfig
from stepstone.core.logging import logger as LOGGER
from stepstone.diagnostics.errors import ConfigError, KvStoreError


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


class EtcdClient:
    """Minimal etcd v3 client: status, put, range and delete on single keys."""

    def __init__(
        self,
        config: StoreConfig,
        *,
        timeout_s: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        scheme = "https" if config.tls is not None else "http"
        self._endpoints = [_normalize_endpoint(addr, scheme) for addr in config.store_addrs]
        self._username = config.username
        self._password = config.password
        self._base_url: str | None = None
        self._token: str | None = None
        self._tls = config.tls
        self._timeout_s = timeout_s
        self._transport = transport
        self._http: httpx.Client | None = None

    @property
    def endpoint(self) -> str | None:
        return self._base_url

    def connect(self) -> None:
        """Find the first endpoint that answers a status request and authenticate."""

        if not self._endpoints:
            raise ConfigError("No etcd endpoints configured in store_addrs")
        if self._http is None:
            self._http = self._build_http_client()

        last_error: Exception | None = None
        for endpoint in self._endpoints:
            try:
                self._post(endpoint, "/v3/maintenance/status", {})
            except (httpx.HTTPError, KvStoreError) as exc:
                LOGGER.debug("etcd endpoint %s unavailable: %s", endpoint, exc)
                last_error = exc
                continue
            self._base_url = endpoint
            break

        if self._base_url is None:
            assert last_error is not None
            raise last_error

        if self._username:
            payload = self._post(
                self._base_url,
                "/v3/auth/authenticate",
                {"name": self._username, "password": self._password or ""},
            )
            self._token = str(payload.get("token") or "") or None

    def put(self, key: bytes, value: bytes) -> None:
        self._call("/v3/kv/put", {"key": _b64(key), "value": _b64(value)})

    def get(self, key: bytes) -> bytes | None:
        payload = self._call("/v3/kv/range", {"key": _b64(key)})
        kvs = payload.get("kvs") or []
        if not kvs:
            return None
        return base64.b64decode(kvs[0].get("value", ""))

    def delete(self, key: bytes) -> None:
        self._call("/v3/kv/deleterange", {"key": _b64(key)})

    def close(self) -> None:
        if self._http is not None:
            self._http.close()
            self._http = None
        self._base_url = None

    def _build_http_client(self) -> httpx.Client:
        client_kwargs: dict[str, Any] = {"timeout": httpx.Timeout(self._timeout_s)}
        if self._tls is not None:
            if self._tls.ca:
                client_kwargs["verify"] = self._tls.ca
            if self._tls.cert and self._tls.key:
                client_kwargs["cert"] = (self._tls.cert, self._tls.key)
        if self._transport is not None:
            client_kwargs["transport"] = self._transport
        return httpx.Client(**client_kwargs)

    def _call(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        if self._base_url is None:
            raise KvStoreError("etcd client is not connected")
        return self._post(self._base_url, path, body)

    def _post(self, base_url: str, path: str, body: dict[str, Any]) -> dict[str, Any]:
        assert self._http is not None
        headers = {"Authorization": self._token} if self._token else {}
        response = self._http.post(f"{base_url}{path}", json=body, headers=headers)
        if response.status_code >= 400:
            raise _gateway_error(response)
        payload = response.json() if response.content else {}
        if isinstance(payload, dict) and payload.get("error"):
            raise _gateway_error(response)
        return payload if isinstance(payload, dict) else {}


def _normalize_endpoint(addr: str, scheme: str) -> str:
    addr = addr.strip().rstrip("/")
    if addr.startswith(("http://", "https://")):
        return addr
    return f"{scheme}://{addr}"


def _gateway_error(response: httpx.Response) -> KvStoreError:
    code: int | None = None
    message = response.reason_phrase or f"HTTP {response.status_code}"
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        raw_code = payload.get("code")
        code = int(raw_code) if isinstance(raw_code, (int, str)) and str(raw_code).isdigit() else None
        message = str(payload.get("message") or payload.get("error") or message)
    return KvStoreError(
        f"etcd request {response.request.url.path} failed: {message}",
        code=code,
        http_status=response.status_code,
    )
