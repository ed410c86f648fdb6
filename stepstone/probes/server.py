"""Validation of a component's own listen addresses."""

from __future__ import annotations

from stepstone.config.models import ServerConfig
from stepstone.diagnostics.errors import AddressError, ErrorCategory
from stepstone.diagnostics.models import CheckDetail
from stepstone.probes.reachability import parse_address


def check_server_config(server: ServerConfig | None) -> list[CheckDetail]:
    """Validate ``addr``, ``http_addr`` and ``grpc_addr`` when configured."""

    if server is None:
        return [
            CheckDetail.warning(
                "Server Configuration",
                "No server configuration found, using defaults",
                "Consider adding server configuration for production use",
            )
        ]

    details: list[CheckDetail] = []
    for label, kind, value in (
        ("Server", "server", server.addr),
        ("HTTP", "HTTP", server.http_addr),
        ("gRPC", "gRPC", server.grpc_addr),
    ):
        if value is None:
            continue
        item = f"{label} Address Configuration"
        try:
            parse_address(value)
        except AddressError as exc:
            details.append(
                CheckDetail.failed(
                    item,
                    f"Invalid {kind} address '{value}': {exc.reason}",
                    f"Check {kind} address format (should be host:port)",
                    category=ErrorCategory.CONFIGURATION,
                )
            )
            continue
        details.append(CheckDetail.passed(item, f"{label} address '{value}' is valid"))
    return details
