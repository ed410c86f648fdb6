"""Metasrv checker: probes the configured metadata store."""

from __future__ import annotations

from stepstone.checkers.base import ComponentChecker
from stepstone.config.models import MetasrvConfig, StoreBackend
from stepstone.diagnostics.errors import BackendKind, ErrorCategory
from stepstone.diagnostics.models import CheckDetail, ComponentKind
from stepstone.probes.kv_store import check_kv_store
from stepstone.probes.relational import check_relational

SUPPORTED_BACKENDS = ", ".join(backend.value for backend in StoreBackend)


class MetasrvChecker(ComponentChecker):
    kind = ComponentKind.METASRV
    error_backend = BackendKind.KV_STORE
    config: MetasrvConfig

    async def _collect(self) -> list[CheckDetail]:
        store = self.config.store
        backend = store.kind

        if backend is StoreBackend.ETCD:
            return await check_kv_store(store, self.clients.kv(store, self.settings), self.settings)
        if backend in (StoreBackend.POSTGRES, StoreBackend.MYSQL):
            url = store.store_addrs[0] if store.store_addrs else ""
            return await check_relational(store, self.clients.sql(url, self.settings), self.settings)
        if backend is StoreBackend.MEMORY:
            return [CheckDetail.passed("Memory Store", "Memory store requires no external dependencies")]
        return [
            CheckDetail.failed(
                "Store Type",
                f"Unsupported store type: {store.backend}",
                f"Use one of: {SUPPORTED_BACKENDS}",
                category=ErrorCategory.CONFIGURATION,
            )
        ]
