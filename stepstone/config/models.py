"""Typed configuration values consumed by the checkers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Mapping

from stepstone.diagnostics.errors import ConfigError


class StoreBackend(str, Enum):
    """Metadata store backends supported by metasrv."""

    ETCD = "etcd_store"
    POSTGRES = "postgres_store"
    MYSQL = "mysql_store"
    MEMORY = "memory_store"

    @classmethod
    def parse(cls, value: str) -> "StoreBackend | None":
        try:
            return cls(value)
        except ValueError:
            return None


class StorageType(str, Enum):
    """Datanode storage types."""

    S3 = "S3"
    OSS = "Oss"
    AZBLOB = "Azblob"
    GCS = "Gcs"
    FILE = "File"

    @classmethod
    def parse(cls, value: str) -> "StorageType | None":
        lowered = value.lower()
        for member in cls:
            if member.value.lower() == lowered:
                return member
        return None


@dataclass(frozen=True)
class ProbeSettings:
    """Deadlines applied to probe I/O."""

    connect_timeout_s: float = 10.0
    operation_timeout_s: float = 30.0


@dataclass(frozen=True)
class TlsConfig:
    """TLS material for metadata store connections."""

    cert: str | None = None
    key: str | None = None
    ca: str | None = None
    server_name: str | None = None


@dataclass(frozen=True)
class StoreConfig:
    """Metadata store configuration for metasrv."""

    backend: str
    store_addrs: tuple[str, ...] = ()
    store_key_prefix: str = ""
    meta_table_name: str = "greptime_metasrv"
    max_txn_ops: int | None = None
    username: str | None = None
    password: str | None = None
    tls: TlsConfig | None = None

    @property
    def kind(self) -> StoreBackend | None:
        return StoreBackend.parse(self.backend)


@dataclass(frozen=True)
class ServerConfig:
    """Listen addresses declared by a component."""

    addr: str | None = None
    http_addr: str | None = None
    grpc_addr: str | None = None


@dataclass(frozen=True)
class S3Config:
    """S3-compatible object storage configuration."""

    bucket: str
    access_key_id: str | None = None
    secret_access_key: str | None = None
    root: str = ""
    endpoint: str | None = None
    region: str | None = None


@dataclass(frozen=True)
class FileStorageConfig:
    """Local filesystem storage configuration."""

    root: Path


@dataclass(frozen=True)
class StorageConfig:
    """Datanode storage configuration: a type plus type-specific options."""

    storage_type: str
    options: Mapping[str, Any] = field(default_factory=dict)

    @property
    def kind(self) -> StorageType | None:
        return StorageType.parse(self.storage_type)

    def as_s3_config(self) -> S3Config:
        """Return the S3 view of the options.

        Raises:
            ConfigError: When the bucket name is missing.
        """

        bucket = optional_str(self.options.get("bucket"))
        if not bucket:
            raise ConfigError("S3 configuration error: missing bucket name")
        return S3Config(
            bucket=bucket,
            access_key_id=optional_str(self.options.get("access_key_id")),
            secret_access_key=optional_str(self.options.get("secret_access_key")),
            root=optional_str(self.options.get("root")) or "",
            endpoint=optional_str(self.options.get("endpoint")),
            region=optional_str(self.options.get("region")),
        )

    def as_file_config(self) -> FileStorageConfig:
        root = optional_str(self.options.get("root") or self.options.get("data_home"))
        return FileStorageConfig(root=Path(root or "./data").expanduser())


@dataclass(frozen=True)
class MetasrvConfig:
    """Configuration for the metasrv component."""

    store: StoreConfig
    server: ServerConfig | None = None


@dataclass(frozen=True)
class FrontendConfig:
    """Configuration for the frontend component."""

    metasrv_addrs: tuple[str, ...] = ()
    server: ServerConfig | None = None


@dataclass(frozen=True)
class DatanodeConfig:
    """Configuration for the datanode component."""

    storage: StorageConfig
    metasrv_addrs: tuple[str, ...] = ()
    server: ServerConfig | None = None


def optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
