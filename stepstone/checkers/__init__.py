"""Component checkers and the factory that selects one."""

from __future__ import annotations

from typing import Any

from stepstone.benchmark.harness import BenchmarkPlan
from stepstone.checkers.base import ComponentChecker
from stepstone.checkers.datanode import DatanodeChecker
from stepstone.checkers.frontend import FrontendChecker
from stepstone.checkers.metasrv import MetasrvChecker
from stepstone.clients import BackendClients
from stepstone.config.models import (
    DatanodeConfig,
    FrontendConfig,
    MetasrvConfig,
    ProbeSettings,
)
from stepstone.diagnostics.errors import ConfigError
from stepstone.diagnostics.models import ComponentKind

_CONFIG_TYPES = {
    ComponentKind.METASRV: MetasrvConfig,
    ComponentKind.FRONTEND: FrontendConfig,
    ComponentKind.DATANODE: DatanodeConfig,
}


def build_checker(
    kind: ComponentKind | str,
    config: Any,
    *,
    clients: BackendClients | None = None,
    settings: ProbeSettings | None = None,
    include_performance: bool = False,
    plan: BenchmarkPlan | None = None,
) -> ComponentChecker:
    """Return the checker for a component kind.

    Raises:
        ConfigError: When the configuration value does not match the kind.
    """

    kind = ComponentKind(kind)
    expected = _CONFIG_TYPES[kind]
    if not isinstance(config, expected):
        raise ConfigError(
            f"{kind.display_name} checker requires {expected.__name__}, got {type(config).__name__}"
        )
    if kind is ComponentKind.METASRV:
        return MetasrvChecker(config, clients=clients, settings=settings)
    if kind is ComponentKind.FRONTEND:
        return FrontendChecker(config, clients=clients, settings=settings)
    return DatanodeChecker(
        config,
        include_performance=include_performance,
        clients=clients,
        settings=settings,
        plan=plan,
    )


__all__ = [
    "ComponentChecker",
    "DatanodeChecker",
    "FrontendChecker",
    "MetasrvChecker",
    "build_checker",
]
