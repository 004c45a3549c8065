"""
host:port parsing and normalization for RPC connect and listen addresses.

Splitting follows the usual ``host:port`` rules: IPv6 hosts must be
bracketed (``[::1]:9244``), a bare IPv6 literal has no port.
"""

from __future__ import annotations

import ipaddress
import socket
from collections.abc import Iterable

from lbcwallet.errors import ConfigError

LOCALHOST_NAMES = frozenset({"localhost"})


class AddressError(ConfigError):
    """Raised when a string is not a valid host:port address."""

    def __init__(self, addr: str, reason: str) -> None:
        self.addr = addr
        self.reason = reason
        super().__init__(f"address {addr}: {reason}")


def split_host_port(addr: str) -> tuple[str, str]:
    """
    Split ``addr`` into host and port.

    Raises:
        AddressError: If the port is missing or the address is malformed
    """
    if addr.startswith("["):
        end = addr.find("]")
        if end < 0:
            raise AddressError(addr, "missing ']' in address")
        host = addr[1:end]
        tail = addr[end + 1 :]
        if not tail:
            raise AddressError(addr, "missing port in address")
        if not tail.startswith(":"):
            raise AddressError(addr, "unexpected characters after ']'")
        port = tail[1:]
        if ":" in port:
            raise AddressError(addr, "too many colons in address")
    else:
        idx = addr.rfind(":")
        if idx < 0:
            raise AddressError(addr, "missing port in address")
        host, port = addr[:idx], addr[idx + 1 :]
        if ":" in host:
            raise AddressError(addr, "too many colons in address")

    if "[" in host or "]" in host:
        raise AddressError(addr, "unexpected bracket in host")
    if "[" in port or "]" in port:
        raise AddressError(addr, "unexpected bracket in port")

    return host, port


def join_host_port(host: str, port: str | int) -> str:
    """Combine host and port, bracketing IPv6 hosts."""
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def normalize_address(addr: str, default_port: str) -> str:
    """
    Append ``default_port`` to ``addr`` when it has no port.

    Examples:
        normalize_address("localhost", "9244") -> "localhost:9244"
        normalize_address("localhost:9244", "9244") -> "localhost:9244"
        normalize_address("::1", "9244") -> "[::1]:9244"

    Raises:
        AddressError: If the address is malformed (for a reason other than
            a missing port)
    """
    try:
        host, port = split_host_port(addr)
    except AddressError as orig_err:
        candidate = join_host_port(addr, default_port)
        try:
            split_host_port(candidate)
        except AddressError:
            raise orig_err from None
        return candidate
    return join_host_port(host, port)


def normalize_addresses(addrs: Iterable[str], default_port: str) -> list[str]:
    """Normalize every address and drop duplicates, keeping first occurrences."""
    normalized: list[str] = []
    seen: set[str] = set()
    for addr in addrs:
        normalized_addr = normalize_address(addr, default_port)
        if normalized_addr not in seen:
            normalized.append(normalized_addr)
            seen.add(normalized_addr)
    return normalized


def lookup_host(host: str) -> list[str]:
    """
    Resolve ``host`` to its IP addresses, in resolver order without duplicates.

    Raises:
        OSError: (socket.gaierror) If resolution fails
    """
    addresses: list[str] = []
    for _family, _type, _proto, _canonname, sockaddr in socket.getaddrinfo(
        host, None, proto=socket.IPPROTO_TCP
    ):
        addr = str(sockaddr[0]).split("%", 1)[0]
        if addr not in addresses:
            addresses.append(addr)
    return addresses


def is_loopback_host(host: str) -> bool:
    """Return whether ``host`` names the local machine (``localhost`` or a loopback IP)."""
    if host.lower() in LOCALHOST_NAMES:
        return True
    try:
        return ipaddress.ip_address(host).is_loopback
    except ValueError:
        return False


__all__ = [
    "AddressError",
    "split_host_port",
    "join_host_port",
    "normalize_address",
    "normalize_addresses",
    "lookup_host",
    "is_loopback_host",
]
