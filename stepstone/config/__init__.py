"""Configuration package utilities."""

from stepstone.config.loader import (
    ConfigLoader,
    parse_datanode_config,
    parse_frontend_config,
    parse_metasrv_config,
)
from stepstone.config.models import (
    DatanodeConfig,
    FileStorageConfig,
    FrontendConfig,
    MetasrvConfig,
    ProbeSettings,
    S3Config,
    ServerConfig,
    StorageConfig,
    StorageType,
    StoreBackend,
    StoreConfig,
    TlsConfig,
)

__all__ = [
    "ConfigLoader",
    "DatanodeConfig",
    "FileStorageConfig",
    "FrontendConfig",
    "MetasrvConfig",
    "ProbeSettings",
    "S3Config",
    "ServerConfig",
    "StorageConfig",
    "StorageType",
    "StoreBackend",
    "StoreConfig",
    "TlsConfig",
    "parse_datanode_config",
    "parse_frontend_config",
    "parse_metasrv_config",
]
