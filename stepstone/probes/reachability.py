"""TCP reachability probes for peer endpoints."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
import time

from stepstone.core.logging import logger as LOGGER
from stepstone.diagnostics.classifier import classify
from stepstone.diagnostics.errors import AddressError, BackendKind, ErrorCategory, ProbeTimeoutError
from stepstone.diagnostics.models import CheckDetail

_SCHEMES = ("http://", "https://")


def parse_address(address: str) -> tuple[str, int]:
    """Split ``[scheme://]host:port[/path]`` into host and port.

    Raises:
        AddressError: When the port is missing or not a valid port number.
    """

    text = address.strip()
    for scheme in _SCHEMES:
        if text.startswith(scheme):
            text = text[len(scheme):]
            break
    text = text.split("/", 1)[0]

    if text.startswith("["):
        host, sep, rest = text[1:].partition("]")
        if not sep or not rest.startswith(":"):
            raise AddressError(address, "Address must contain port number (host:port)")
        port_text = rest[1:]
    else:
        host, sep, port_text = text.rpartition(":")
        if not sep:
            raise AddressError(address, "Address must contain port number (host:port)")

    if not host:
        raise AddressError(address, "Address is missing a host")
    if not port_text.isdigit() or int(port_text) > 65535:
        raise AddressError(address, f"Invalid port number: {port_text}")
    return host, int(port_text)


async def probe_endpoint(host: str, port: int, timeout_s: float) -> float:
    """Open and close one TCP connection, returning the connect latency.

    Raises:
        ProbeTimeoutError: When the connection is not established in time.
        OSError: When the connection is refused or the host does not resolve.
    """

    start = time.perf_counter()
    try:
        _, writer = await asyncio.wait_for(asyncio.open_connection(host, port), timeout_s)
    except asyncio.TimeoutError as exc:
        raise ProbeTimeoutError(f"connect to {host}:{port}", timeout_s) from exc
    latency = time.perf_counter() - start
    writer.close()
    try:
        await writer.wait_closed()
    except OSError as exc:
        LOGGER.debug("Closing connection to %s:%s failed: %s", host, port, exc)
    return latency


async def check_reachability(
    addresses: Sequence[str],
    *,
    name: str = "Metasrv",
    timeout_s: float = 10.0,
) -> list[CheckDetail]:
    """Probe every endpoint concurrently; details follow configuration order."""

    if not addresses:
        return [
            CheckDetail.failed(
                f"{name} Configuration",
                f"No {name.lower()} addresses configured",
                f"Add {name.lower()} addresses to {name.lower()}_addrs configuration",
                category=ErrorCategory.CONFIGURATION,
            )
        ]

    probes = [
        _check_one(address, index, name=name, timeout_s=timeout_s)
        for index, address in enumerate(addresses, start=1)
    ]
    return list(await asyncio.gather(*probes))


async def _check_one(address: str, index: int, *, name: str, timeout_s: float) -> CheckDetail:
    label = name.lower()
    try:
        host, port = parse_address(address)
    except AddressError as exc:
        classified = classify(exc, BackendKind.NETWORK, f"{name} Address {index} Parsing", address)
        return CheckDetail.failed(
            f"{name} Address {index} Parsing",
            f"Failed to parse address '{address}': {exc.reason}",
            classified.suggestion,
            category=classified.category,
        )

    item = f"{name} Connectivity {index}"
    start = time.perf_counter()
    try:
        latency = await probe_endpoint(host, port, timeout_s)
    except ProbeTimeoutError as exc:
        classified = classify(exc, BackendKind.NETWORK, item, address)
        LOGGER.warning("Connection to %s at %s timed out", label, address)
        return CheckDetail.failed(
            item,
            f"Connection to {label} at {address} timed out",
            classified.suggestion,
            duration=time.perf_counter() - start,
            category=classified.category,
        )
    except Exception as exc:  # noqa: BLE001 - one endpoint never hides the others
        classified = classify(exc, BackendKind.NETWORK, item, address)
        LOGGER.warning("Failed to connect to %s at %s: %s", label, address, exc)
        return CheckDetail.failed(
            item,
            f"Failed to connect to {label} at {address}: {classified.description}",
            classified.suggestion,
            duration=time.perf_counter() - start,
            category=classified.category,
        )

    LOGGER.debug("Connected to %s at %s in %.4fs", label, address, latency)
    return CheckDetail.passed(
        item,
        f"Successfully connected to {label} at {address}",
        duration=latency,
    )
