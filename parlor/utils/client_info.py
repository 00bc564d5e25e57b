"""
Client Fingerprinting.

Best-effort capture of where a session originates: the public network
address (looked up over HTTP) and a short descriptor of the local
machine.  Neither is security-relevant; both end up in the activity log.
"""

from __future__ import annotations

import getpass
import platform
import socket
from typing import Callable

import httpx

from parlor.logger import StructuredLogger

__all__ = [
    "AddressResolver",
    "LOCAL_ADDRESS",
    "describe_client",
    "make_address_resolver",
    "resolve_network_address",
]

LOCAL_ADDRESS: str = "local"

AddressResolver = Callable[[], str]


def resolve_network_address(
    url: str,
    timeout_s: float,
    logger: StructuredLogger,
) -> str:
    """Return the caller's public address, or ``"local"`` on any failure.

    The lookup service is expected to answer ``{"ip": "..."}``.
    """
    if not url:
        return LOCAL_ADDRESS
    try:
        response = httpx.get(url, timeout=timeout_s)
        response.raise_for_status()
        address = response.json().get("ip")
    except (httpx.HTTPError, ValueError, AttributeError) as exc:
        logger.debug("Network address lookup failed: %s", exc)
        return LOCAL_ADDRESS
    return str(address) if address else LOCAL_ADDRESS


def make_address_resolver(
    url: str,
    timeout_s: float,
    logger: StructuredLogger,
) -> AddressResolver:
    """Bind lookup settings into a zero-argument resolver."""
    return lambda: resolve_network_address(url, timeout_s, logger)


def describe_client() -> str:
    """``"<os> <release> (<python>) <user>@<host>"``, degrading gracefully."""
    try:
        user = getpass.getuser()
    except (KeyError, OSError):
        user = "unknown"
    try:
        host = socket.gethostname()
    except OSError:
        host = "unknown"
    return (
        f"{platform.system()} {platform.release()} "
        f"(Python {platform.python_version()}) {user}@{host}"
    )
