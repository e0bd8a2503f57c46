"""URL safety checks run before any outbound request.

``UrlSafetyValidator.check`` is a pure function of the URL string: it parses
the URL, enforces the single allowed scheme and rejects hostnames that name
loopback, link-local or private address space. ``check_resolved`` adds the
DNS step: the hostname is resolved and every returned address goes through
the same network rules, so a public-looking name that points inside the
network is refused too.
"""

from __future__ import annotations

import asyncio
import ipaddress
import logging
import socket
from dataclasses import dataclass
from urllib.parse import urlsplit

from guarded_fetch.core.config import FetchConfig
from guarded_fetch.schemas.fetch import DenialReason, SafetyVerdict


logger = logging.getLogger(__name__)

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address


@dataclass(frozen=True, slots=True)
class ParsedTarget:
    scheme: str
    hostname: str
    port: int | None
    path: str
    address: IPAddress | None


def normalize_hostname(hostname: str) -> str:
    """Lower-case, strip IPv6 brackets and trailing dots, IDNA-encode names."""
    host = hostname.strip().lower().strip("[]").rstrip(".")
    if not host or _is_ascii(host):
        return host
    try:
        return host.encode("idna").decode("ascii")
    except UnicodeError:
        return host


def _is_ascii(value: str) -> bool:
    return all(ord(c) < 128 for c in value)


def _parse_ip_literal(host: str) -> IPAddress | None:
    try:
        return ipaddress.ip_address(host)
    except ValueError:
        pass
    # Forms such as "2130706433", "0x7f.1" or "127.1" are still accepted by
    # resolvers and must be checked as the address they decode to.
    if host and all(c in "0123456789abcdefx." for c in host):
        try:
            return ipaddress.IPv4Address(socket.inet_aton(host))
        except (OSError, ValueError):
            return None
    return None


def parse_target(url: str) -> ParsedTarget | None:
    """Parse ``url`` once into its scheme/host parts; ``None`` when malformed."""
    if not isinstance(url, str):
        return None
    try:
        parts = urlsplit(url.strip())
        port = parts.port
    except ValueError:
        return None
    if not parts.scheme or parts.hostname is None:
        return None
    hostname = normalize_hostname(parts.hostname)
    if not hostname:
        return None
    return ParsedTarget(
        scheme=parts.scheme.lower(),
        hostname=hostname,
        port=port,
        path=parts.path or "/",
        address=_parse_ip_literal(hostname),
    )


class UrlSafetyValidator:
    """Decides whether a URL may be fetched from inside the hosting network."""

    def __init__(self, config: FetchConfig | None = None) -> None:
        self.config = config or FetchConfig()

    def check(self, url: str) -> SafetyVerdict:
        """Return the verdict for ``url`` without performing any I/O."""
        target = parse_target(url)
        if target is None:
            return SafetyVerdict.deny(DenialReason.MALFORMED_URL, "could not parse URL")

        if target.scheme != self.config.allowed_scheme:
            return SafetyVerdict.deny(
                DenialReason.INSECURE_SCHEME, f"scheme '{target.scheme}' is not allowed"
            )

        host = target.hostname
        if host in self.config.blocked_hostnames:
            return SafetyVerdict.deny(DenialReason.BLOCKED_TARGET, host)

        if host.endswith(".localhost") or any(
            host.endswith(suffix) for suffix in self.config.blocked_suffixes
        ):
            return SafetyVerdict.deny(DenialReason.BLOCKED_TARGET, host)

        if target.address is not None and self.is_blocked_address(target.address):
            return SafetyVerdict.deny(DenialReason.BLOCKED_TARGET, host)

        return SafetyVerdict.allow()

    def is_blocked_address(self, address: IPAddress) -> bool:
        if isinstance(address, ipaddress.IPv6Address):
            mapped = address.ipv4_mapped or address.sixtofour
            if mapped is not None and self.is_blocked_address(mapped):
                return True
        return any(
            address.version == network.version and address in network
            for network in self.config.blocked_networks
        )

    def check_addresses(self, url: str, addresses: list[str]) -> SafetyVerdict:
        """Apply the network rules to addresses ``url``'s host resolved to."""
        verdict = self.check(url)
        if not verdict.allowed:
            return verdict
        for raw in addresses:
            try:
                address = ipaddress.ip_address(raw.split("%", 1)[0])
            except ValueError:
                return SafetyVerdict.deny(
                    DenialReason.MALFORMED_URL, f"unexpected resolved address {raw!r}"
                )
            if self.is_blocked_address(address):
                target = parse_target(url)
                host = target.hostname if target else url
                return SafetyVerdict.deny(
                    DenialReason.BLOCKED_TARGET, f"{host} resolves to {address}"
                )
        return verdict

    async def check_resolved(self, url: str) -> SafetyVerdict:
        """Check ``url`` and, when enabled, every address its host resolves to.

        Raises:
            TimeoutError: If the lookup takes longer than ``timeout_seconds``
        """
        verdict = self.check(url)
        if not verdict.allowed:
            logger.info("URL denied: %s (%s)", verdict.reason, verdict.detail)
            return verdict

        target = parse_target(url)
        if not self.config.resolve_dns or target is None or target.address is not None:
            return verdict

        loop = asyncio.get_running_loop()
        async with asyncio.timeout(self.config.timeout_seconds):
            try:
                infos = await loop.getaddrinfo(
                    target.hostname, target.port or 443, type=socket.SOCK_STREAM
                )
            except (OSError, UnicodeError) as e:
                logger.info("Could not resolve %s: %s", target.hostname, e)
                return SafetyVerdict.deny(
                    DenialReason.MALFORMED_URL,
                    f"could not resolve host {target.hostname}",
                )

        addresses = [str(info[4][0]) for info in infos]
        if not addresses:
            return SafetyVerdict.deny(
                DenialReason.MALFORMED_URL, f"could not resolve host {target.hostname}"
            )
        verdict = self.check_addresses(url, addresses)
        if not verdict.allowed:
            logger.info("URL denied after DNS lookup: %s", verdict.detail)
        return verdict


def is_safe_url(url: str, config: FetchConfig | None = None) -> bool:
    """Convenience wrapper around ``UrlSafetyValidator.check``."""
    return UrlSafetyValidator(config).check(url).allowed
