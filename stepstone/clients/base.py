"""Capability interfaces the probes use to talk to backends.

Every method is blocking; probes run them in worker threads under a
deadline, so adapters only need to honour their own client timeouts.
"""

from __future__ import annotations

from typing import Any, Mapping, Protocol


class KvClient(Protocol):
    """Distributed key-value store (etcd)."""

    def connect(self) -> None: ...

    def put(self, key: bytes, value: bytes) -> None: ...

    def get(self, key: bytes) -> bytes | None: ...

    def delete(self, key: bytes) -> None: ...

    def close(self) -> None: ...


class SqlClient(Protocol):
    """Relational metadata store."""

    dialect: str

    def connect(self) -> None: ...

    def scalar(self, sql: str, params: Mapping[str, Any] | None = None) -> Any: ...

    def execute(self, sql: str, params: Mapping[str, Any] | None = None) -> None: ...

    def close(self) -> None: ...


class ObjectStoreClient(Protocol):
    """Object store with a flat key space under a root prefix."""

    def connect(self) -> None: ...

    def list(self, prefix: str = "") -> list[str]: ...

    def write(self, key: str, data: bytes) -> None: ...

    def read(self, key: str) -> bytes: ...

    def delete(self, key: str) -> None: ...

    def close(self) -> None: ...
