"""Frontend checker: metasrv reachability and listen addresses."""

from __future__ import annotations

from stepstone.checkers.base import ComponentChecker
from stepstone.config.models import FrontendConfig
from stepstone.diagnostics.models import CheckDetail, ComponentKind
from stepstone.probes.reachability import check_reachability
from stepstone.probes.server import check_server_config


class FrontendChecker(ComponentChecker):
    kind = ComponentKind.FRONTEND
    config: FrontendConfig

    async def _collect(self) -> list[CheckDetail]:
        details = await check_reachability(
            self.config.metasrv_addrs,
            timeout_s=self.settings.connect_timeout_s,
        )
        details.extend(check_server_config(self.config.server))
        return details
