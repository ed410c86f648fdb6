"""Load component configuration files into typed configuration values."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import tomllib
from typing import Any, Mapping

import yaml

from stepstone.config.models import (
    DatanodeConfig,
    FrontendConfig,
    MetasrvConfig,
    ServerConfig,
    StorageConfig,
    StoreConfig,
    TlsConfig,
    optional_str,
)
from stepstone.diagnostics.errors import ConfigError

_YAML_SUFFIXES = {".yaml", ".yml"}
_TOML_SUFFIXES = {".toml"}


@dataclass(frozen=True)
class ConfigPaths:
    """Filesystem paths for a component configuration."""

    config_file: Path
    override_file: Path | None = None


class ConfigLoader:
    """Read a component configuration file with an optional override file."""

    def __init__(self, config_file: str | Path, override_file: str | Path | None = None) -> None:
        self.paths = ConfigPaths(
            config_file=Path(config_file).expanduser(),
            override_file=Path(override_file).expanduser() if override_file else None,
        )

    def load(self) -> dict[str, Any]:
        """Load the configuration file, deep-merging the override file if given."""

        config = _read_file(self.paths.config_file)
        if self.paths.override_file is not None:
            override_config = _read_file(self.paths.override_file)
            if override_config:
                config = self._deep_merge(config, override_config)
        return config

    def metasrv(self) -> MetasrvConfig:
        return metasrv_config_from_dict(self.load())

    def frontend(self) -> FrontendConfig:
        return frontend_config_from_dict(self.load())

    def datanode(self) -> DatanodeConfig:
        return datanode_config_from_dict(self.load())

    def _deep_merge(self, base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        """Deep merge dictionaries, overriding base values with override values."""

        merged = dict(base)
        for key, value in override.items():
            if (
                key in merged
                and isinstance(merged[key], dict)
                and isinstance(value, dict)
            ):
                merged[key] = self._deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged


def parse_metasrv_config(path: str | Path, override: str | Path | None = None) -> MetasrvConfig:
    return ConfigLoader(path, override).metasrv()


def parse_frontend_config(path: str | Path, override: str | Path | None = None) -> FrontendConfig:
    return ConfigLoader(path, override).frontend()


def parse_datanode_config(path: str | Path, override: str | Path | None = None) -> DatanodeConfig:
    return ConfigLoader(path, override).datanode()


def metasrv_config_from_dict(data: Mapping[str, Any]) -> MetasrvConfig:
    """Build a metasrv configuration from a nested ``[store]`` table or flat keys."""

    store_section = _section(data, "store")
    source = store_section if store_section else data
    backend = source.get("store_type", source.get("backend"))
    if not backend:
        raise ConfigError("Metasrv configuration error: missing store backend (backend/store_type)")

    tls_section = _section(source, "tls")
    store = StoreConfig(
        backend=str(backend),
        store_addrs=_str_tuple(source.get("store_addrs"), "store_addrs"),
        store_key_prefix=str(source.get("store_key_prefix") or ""),
        meta_table_name=str(source.get("meta_table_name") or "greptime_metasrv"),
        max_txn_ops=_optional_int(source.get("max_txn_ops"), "max_txn_ops"),
        username=optional_str(source.get("username")),
        password=optional_str(source.get("password")),
        tls=TlsConfig(
            cert=optional_str(tls_section.get("cert")),
            key=optional_str(tls_section.get("key")),
            ca=optional_str(tls_section.get("ca")),
            server_name=optional_str(tls_section.get("server_name")),
        )
        if tls_section
        else None,
    )
    return MetasrvConfig(store=store, server=_server_config(data))


def frontend_config_from_dict(data: Mapping[str, Any]) -> FrontendConfig:
    return FrontendConfig(
        metasrv_addrs=_metasrv_addrs(data),
        server=_server_config(data),
    )


def datanode_config_from_dict(data: Mapping[str, Any]) -> DatanodeConfig:
    """Build a datanode configuration; ``[storage]`` accepts ``type`` or ``storage_type``."""

    storage_section = _section(data, "storage")
    if not storage_section:
        raise ConfigError("Datanode configuration error: missing [storage] section")
    storage_type = storage_section.get("storage_type", storage_section.get("type"))
    if not storage_type:
        raise ConfigError("Datanode configuration error: missing storage type")
    options = {
        key: value
        for key, value in storage_section.items()
        if key not in {"storage_type", "type"}
    }
    return DatanodeConfig(
        storage=StorageConfig(storage_type=str(storage_type), options=options),
        metasrv_addrs=_metasrv_addrs(data),
        server=_server_config(data),
    )


def _read_file(path: Path) -> dict[str, Any]:
    suffix = path.suffix.lower()
    try:
        if suffix in _TOML_SUFFIXES:
            with path.open("rb") as file:
                data = tomllib.load(file)
        elif suffix in _YAML_SUFFIXES:
            with path.open("r", encoding="utf-8") as file:
                data = yaml.safe_load(file) or {}
        else:
            raise ConfigError(
                f"Failed to load configuration: unsupported file type '{path.suffix}' for {path}"
            )
    except OSError as exc:
        raise ConfigError(f"Failed to load configuration: cannot read {path}: {exc}") from exc
    except (tomllib.TOMLDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"Failed to load configuration: cannot parse {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"Failed to load configuration: {path} must contain a mapping")
    return data


def _section(data: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = data.get(name)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"Configuration error: [{name}] must be a table")
    return value


def _metasrv_addrs(data: Mapping[str, Any]) -> tuple[str, ...]:
    meta_client = _section(data, "meta_client")
    raw = data.get("metasrv_addrs", meta_client.get("metasrv_addrs"))
    return _str_tuple(raw, "metasrv_addrs")


def _server_config(data: Mapping[str, Any]) -> ServerConfig | None:
    if "server" not in data:
        return None
    server = _section(data, "server")
    return ServerConfig(
        addr=optional_str(server.get("addr")),
        http_addr=optional_str(server.get("http_addr")),
        grpc_addr=optional_str(server.get("grpc_addr")),
    )


def _str_tuple(value: Any, name: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return tuple(part.strip() for part in value.split(",") if part.strip())
    if not isinstance(value, (list, tuple)):
        raise ConfigError(f"Configuration error: {name} must be a list of strings")
    return tuple(str(item).strip() for item in value if str(item).strip())


def _optional_int(value: Any, name: str) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Configuration error: {name} must be an integer") from exc
