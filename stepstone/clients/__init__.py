"""Backend client interfaces, adapters and the factory bundle used by checkers."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from stepstone.clients.base import KvClient, ObjectStoreClient, SqlClient
from stepstone.clients.etcd import EtcdClient
from stepstone.clients.local_fs import LocalFsStore
from stepstone.clients.s3 import S3Client
from stepstone.clients.sql import SqlAlchemyClient
from stepstone.config.models import ProbeSettings, S3Config, StoreConfig


def _etcd_factory(config: StoreConfig, settings: ProbeSettings) -> KvClient:
    return EtcdClient(config, timeout_s=settings.connect_timeout_s)


def _sql_factory(url: str, settings: ProbeSettings) -> SqlClient:
    return SqlAlchemyClient(url, connect_timeout_s=settings.connect_timeout_s)


def _s3_factory(config: S3Config, settings: ProbeSettings) -> ObjectStoreClient:
    return S3Client(config, timeout_s=settings.operation_timeout_s)


def _local_fs_factory(root: Path) -> ObjectStoreClient:
    return LocalFsStore(root)


@dataclass(frozen=True)
class BackendClients:
    """Factories for backend clients; replace any of them to inject fakes."""

    kv: Callable[[StoreConfig, ProbeSettings], KvClient] = _etcd_factory
    sql: Callable[[str, ProbeSettings], SqlClient] = _sql_factory
    object_store: Callable[[S3Config, ProbeSettings], ObjectStoreClient] = _s3_factory
    local_fs: Callable[[Path], ObjectStoreClient] = _local_fs_factory


__all__ = [
    "BackendClients",
    "EtcdClient",
    "KvClient",
    "LocalFsStore",
    "ObjectStoreClient",
    "S3Client",
    "SqlAlchemyClient",
    "SqlClient",
]
