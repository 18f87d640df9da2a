"""URL validation with SSRF protection. Runs before any request is issued, and on every redirect hop.

A URL passes only when its scheme is http(s), it has a host, and every address the
host resolves to is publicly routable. One blocked address rejects the whole URL.
"""

import ipaddress
import logging
import socket
from dataclasses import dataclass
from enum import Enum
from typing import Callable
from urllib.parse import urlsplit, urlunsplit

from apps.linkvault.services.result import Err, Ok, Result
from apps.linkvault.services.state_machine import ArchiveState

logger = logging.getLogger(__name__)

ALLOWED_SCHEMES = ("http", "https")

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address
Resolver = Callable[..., list]

# Not covered by is_private on every Python version.
_EXTRA_BLOCKED_NETWORKS = (
    ipaddress.ip_network("100.64.0.0/10"),  # carrier-grade NAT
    ipaddress.ip_network("192.0.0.0/24"),
    ipaddress.ip_network("198.18.0.0/15"),
)


class ValidationReason(str, Enum):
    INVALID_FORMAT = "invalid_format"
    UNSUPPORTED_SCHEME = "unsupported_scheme"
    PRIVATE_IP = "private_ip"
    LOOPBACK = "loopback"
    DNS_RESOLUTION_FAILED = "dns_resolution_failed"


BLOCKING_REASONS = frozenset({ValidationReason.PRIVATE_IP, ValidationReason.LOOPBACK})


@dataclass(frozen=True)
class ValidatedUrl:
    url: str
    hostname: str
    addresses: tuple[str, ...]


def reason_to_state(reason: ValidationReason | str) -> ArchiveState:
    """blocked for address-range rejections, invalid_url for everything else."""
    return ArchiveState.BLOCKED if ValidationReason(reason) in BLOCKING_REASONS else ArchiveState.INVALID_URL


def classify_address(address: IPAddress) -> ValidationReason | None:
    """Return the blocking reason for address, or None when it is publicly routable."""
    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped is not None:
        address = address.ipv4_mapped
    if address.is_loopback:
        return ValidationReason.LOOPBACK
    if (
        address.is_private
        or address.is_link_local
        or address.is_multicast
        or address.is_reserved
        or address.is_unspecified
        or any(address in net for net in _EXTRA_BLOCKED_NETWORKS if net.version == address.version)
        or not address.is_global
    ):
        return ValidationReason.PRIVATE_IP
    return None


def _literal_ip(host: str) -> IPAddress | None:
    try:
        return ipaddress.ip_address(host.strip("[]"))
    except ValueError:
        return None


class UrlValidator:
    """Classifies a URL as fetchable or rejected. resolver defaults to socket.getaddrinfo."""

    def __init__(self, resolver: Resolver | None = None) -> None:
        self._resolver = resolver or socket.getaddrinfo

    def validate(self, url: str) -> Result:
        """Ok(ValidatedUrl) or Err(kind=ValidationReason value, message, details)."""
        parsed = self._parse(url)
        if isinstance(parsed, Err):
            return parsed
        scheme, host, normalized = parsed

        if scheme not in ALLOWED_SCHEMES:
            return self._reject(
                ValidationReason.UNSUPPORTED_SCHEME,
                "URL scheme must be http or https",
                url,
                scheme=scheme,
            )

        literal = _literal_ip(host)
        if literal is not None:
            addresses = [literal]
        else:
            resolved = self._resolve(host, url)
            if isinstance(resolved, Err):
                return resolved
            addresses = resolved

        for address in addresses:
            reason = classify_address(address)
            if reason is not None:
                return self._reject(
                    reason,
                    f"URL resolves to a non-public address {address} (SSRF protection)",
                    url,
                    hostname=host,
                    address=str(address),
                )

        return Ok(ValidatedUrl(url=normalized, hostname=host, addresses=tuple(str(a) for a in addresses)))

    def _parse(self, url: str) -> tuple[str, str, str] | Err:
        if not isinstance(url, str) or not url.strip():
            return self._reject(ValidationReason.INVALID_FORMAT, "Invalid URL format", url)
        raw = url.strip()
        if any(ch in raw for ch in ("\n", "\r", "\t", " ")):
            return self._reject(ValidationReason.INVALID_FORMAT, "URL contains whitespace", url)
        try:
            parts = urlsplit(raw)
            host = parts.hostname
            _ = parts.port  # raises ValueError on a bad port
        except ValueError as e:
            return self._reject(ValidationReason.INVALID_FORMAT, f"Malformed URL: {e}", url)

        scheme = (parts.scheme or "").lower()
        if not scheme:
            return self._reject(ValidationReason.INVALID_FORMAT, "URL has no scheme", url)
        if scheme in ALLOWED_SCHEMES and not host:
            return self._reject(ValidationReason.INVALID_FORMAT, "URL has no host", url)
        if host:
            try:
                host = host.encode("idna").decode("ascii").lower() if _literal_ip(host) is None else host
            except UnicodeError:
                return self._reject(ValidationReason.INVALID_FORMAT, f"Invalid hostname {host!r}", url)
        normalized = urlunsplit((scheme, parts.netloc, parts.path, parts.query, ""))
        return scheme, host or "", normalized

    def _resolve(self, host: str, url: str) -> list[IPAddress] | Err:
        try:
            infos = self._resolver(host, None, 0, socket.SOCK_STREAM)
        except (socket.gaierror, socket.herror, UnicodeError, OSError) as e:
            logger.info("dns resolution failed host=%s error=%s", host, e)
            return self._reject(
                ValidationReason.DNS_RESOLUTION_FAILED,
                f"DNS resolution failed: {e}",
                url,
                hostname=host,
            )
        addresses: list[IPAddress] = []
        for info in infos:
            try:
                addr = ipaddress.ip_address(info[4][0].split("%", 1)[0])
            except (ValueError, IndexError, TypeError):
                continue
            if addr not in addresses:
                addresses.append(addr)
        if not addresses:
            return self._reject(
                ValidationReason.DNS_RESOLUTION_FAILED,
                "DNS resolution returned no addresses",
                url,
                hostname=host,
            )
        return addresses

    @staticmethod
    def _reject(reason: ValidationReason, message: str, url, **details) -> Err:
        logger.info("url rejected url=%s reason=%s", url, reason.value)
        return Err(kind=reason.value, message=message, details={"url": url, "validation_reason": reason.value, **details})


def validate_url(url: str, resolver: Resolver | None = None) -> Result:
    """Module-level shortcut for UrlValidator(resolver).validate(url)."""
    return UrlValidator(resolver).validate(url)
