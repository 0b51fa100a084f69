"""Outbound URL gating for HTTP calls and browser navigation (SSRF defense)."""

from __future__ import annotations

import ipaddress
import re
import socket
from dataclasses import dataclass
from typing import Iterable, Optional, Union
from urllib.parse import urlsplit, urlunsplit

from ..errors import (
    DisallowedScheme,
    HostNotAllowed,
    InvalidFormat,
    PrivateAddressBlocked,
)

ALLOWED_SCHEMES = ("http", "https")
LOOPBACK_NAME = "localhost"
METADATA_HOSTS = frozenset({"169.254.169.254", "metadata.google.internal", "metadata"})
INTERNAL_SUFFIXES = (".local", ".internal", ".localhost")

_LEGACY_IPV4 = re.compile(r"^(0x[0-9a-f]*|\d+)(\.(0x[0-9a-f]*|\d+)){0,3}$")


@dataclass(frozen=True)
class ValidatedURL:
    """A parsed URL that passed scheme, private-address and allow-list checks."""

    url: str
    scheme: str
    hostname: str
    port: Optional[int]
    path: str
    is_private: bool

    def __str__(self) -> str:
        return self.url


def _parse_ip(host: str) -> Optional[Union[ipaddress.IPv4Address, ipaddress.IPv6Address]]:
    try:
        return ipaddress.ip_address(host)
    except ValueError:
        pass
    # Browsers accept shorthand IPv4 forms such as 127.1, 0x7f.0.0.1 or 2130706433.
    if _LEGACY_IPV4.match(host):
        try:
            return ipaddress.IPv4Address(socket.inet_aton(host))
        except OSError:
            return None
    return None


def is_private_host(hostname: str) -> bool:
    """Classify a hostname as loopback, private, link-local or internal-only."""
    host = str(hostname or "").strip().lower().rstrip(".")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    if not host:
        return False
    if host == LOOPBACK_NAME or host in METADATA_HOSTS:
        return True
    if host.endswith(INTERNAL_SUFFIXES):
        return True

    ip = _parse_ip(host.split("%", 1)[0])
    if ip is None:
        return False
    mapped = getattr(ip, "ipv4_mapped", None)
    if mapped is not None:
        ip = mapped
    return bool(
        ip.is_loopback
        or ip.is_private
        or ip.is_link_local
        or ip.is_unspecified
        or ip.is_reserved
    )


def host_matches(hostname: str, allowed: Iterable[str]) -> bool:
    """True when `hostname` equals an allow-list entry or is a subdomain of one."""
    host = str(hostname or "").strip().lower().rstrip(".")
    for raw in allowed or ():
        entry = str(raw or "").strip().lower().lstrip(".").rstrip(".")
        if not entry:
            continue
        if host == entry or host.endswith("." + entry):
            return True
    return False


def _parse(raw: str) -> ValidatedURL:
    if not isinstance(raw, str) or not raw.strip():
        raise InvalidFormat("Invalid URL format", field="url")
    candidate = raw.strip()
    try:
        parts = urlsplit(candidate)
        port = parts.port
    except ValueError:
        raise InvalidFormat("Invalid URL format", field="url") from None

    scheme = (parts.scheme or "").lower()
    if not scheme:
        raise InvalidFormat("Invalid URL format", field="url")
    if scheme not in ALLOWED_SCHEMES:
        raise DisallowedScheme("Only HTTP and HTTPS URLs are allowed", field="url")

    hostname = (parts.hostname or "").lower()
    if not hostname or any(ch.isspace() for ch in candidate):
        raise InvalidFormat("Invalid URL format", field="url")

    netloc = parts.netloc
    userinfo, sep, hostport = netloc.rpartition("@")
    normalized_netloc = f"{userinfo}{sep}{hostport.lower()}"
    normalized = urlunsplit((scheme, normalized_netloc, parts.path or "/", parts.query, parts.fragment))
    return ValidatedURL(
        url=normalized,
        scheme=scheme,
        hostname=hostname,
        port=port,
        path=parts.path or "/",
        is_private=is_private_host(hostname),
    )


def validate_url(
    raw: str,
    allowed_hosts: Optional[Iterable[str]] = None,
    allow_localhost: bool = False,
) -> ValidatedURL:
    """Validate an outbound HTTP target.

    Private and internal hosts are rejected. The only exception is the
    literal hostname ``localhost`` when `allow_localhost` is set; loopback
    IP literals stay blocked.
    """
    parsed = _parse(raw)

    if parsed.is_private and not (parsed.hostname == LOOPBACK_NAME and allow_localhost):
        raise PrivateAddressBlocked(
            "Access to internal/private IP addresses is not allowed for security reasons",
            field="url",
        )

    hosts = [h for h in (allowed_hosts or []) if str(h or "").strip()]
    if hosts and not host_matches(parsed.hostname, hosts):
        raise HostNotAllowed(
            f"Host {parsed.hostname} is not in the allowed hosts list",
            field="url",
        )
    return parsed


def validate_navigation_url(
    raw: str,
    allowed_domains: Optional[Iterable[str]] = None,
) -> ValidatedURL:
    """Validate a browser navigation target (scheme and optional domain allow-list)."""
    parsed = _parse(raw)
    domains = [d for d in (allowed_domains or []) if str(d or "").strip()]
    if domains and not host_matches(parsed.hostname, domains):
        raise HostNotAllowed(
            f"Domain {parsed.hostname} is not in the allowed domains list",
            field="url",
        )
    return parsed
