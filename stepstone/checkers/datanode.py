"""Datanode checker: metasrv reachability and storage backend."""

from __future__ import annotations

import asyncio

from stepstone.benchmark.harness import BenchmarkPlan
from stepstone.checkers.base import ComponentChecker
from stepstone.clients import BackendClients
from stepstone.config.models import DatanodeConfig, ProbeSettings, StorageType
from stepstone.diagnostics.errors import BackendKind, ConfigError, ErrorCategory
from stepstone.diagnostics.models import CheckDetail, ComponentKind
from stepstone.probes.filesystem import check_filesystem
from stepstone.probes.object_store import check_object_store
from stepstone.probes.reachability import check_reachability

SUPPORTED_STORAGE = ", ".join(storage.value for storage in StorageType)

_PLANNED = {
    StorageType.OSS: ("OSS Storage", "OSS"),
    StorageType.AZBLOB: ("Azure Blob Storage", "Azure Blob"),
    StorageType.GCS: ("Google Cloud Storage", "GCS"),
}


class DatanodeChecker(ComponentChecker):
    kind = ComponentKind.DATANODE
    error_backend = BackendKind.OBJECT_STORE
    config: DatanodeConfig

    def __init__(
        self,
        config: DatanodeConfig,
        *,
        include_performance: bool = False,
        clients: BackendClients | None = None,
        settings: ProbeSettings | None = None,
        plan: BenchmarkPlan | None = None,
    ) -> None:
        super().__init__(config, clients=clients, settings=settings)
        self.include_performance = include_performance
        self.plan = plan

    async def _collect(self) -> list[CheckDetail]:
        reachability, storage = await asyncio.gather(
            check_reachability(self.config.metasrv_addrs, timeout_s=self.settings.connect_timeout_s),
            self._check_storage(),
            return_exceptions=True,
        )
        details: list[CheckDetail] = []
        for item, backend, outcome in (
            ("Metasrv Reachability", BackendKind.NETWORK, reachability),
            ("Storage Check", self.error_backend, storage),
        ):
            if isinstance(outcome, BaseException):
                details.append(self._unexpected(item, backend, outcome))
            else:
                details.extend(outcome)
        return details

    async def _check_storage(self) -> list[CheckDetail]:
        storage = self.config.storage
        storage_type = storage.kind

        if storage_type is StorageType.S3:
            try:
                s3_config = storage.as_s3_config()
            except ConfigError as exc:
                return [
                    CheckDetail.failed(
                        "S3 Configuration",
                        f"Failed to parse S3 configuration: {exc}",
                        "Check S3 configuration parameters (bucket, endpoint, region, credentials)",
                        category=ErrorCategory.CONFIGURATION,
                    )
                ]
            return await check_object_store(
                s3_config,
                self.clients.object_store(s3_config, self.settings),
                self.settings,
                include_performance=self.include_performance,
                plan=self.plan,
            )
        if storage_type is StorageType.FILE:
            file_config = storage.as_file_config()
            return await check_filesystem(
                file_config,
                self.settings,
                include_performance=self.include_performance,
                plan=self.plan,
                store=self.clients.local_fs(file_config.root),
            )
        if storage_type in _PLANNED:
            item, name = _PLANNED[storage_type]
            return [
                CheckDetail.warning(
                    item,
                    f"{name} storage check not implemented yet",
                    f"{name} support is planned for future versions",
                )
            ]
        return [
            CheckDetail.failed(
                "Storage Type",
                f"Unsupported storage type: {storage.storage_type}",
                f"Use one of: {SUPPORTED_STORAGE}",
                category=ErrorCategory.CONFIGURATION,
            )
        ]
