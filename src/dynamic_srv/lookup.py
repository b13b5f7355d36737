"""DNS lookups used for peer discovery.

``SrvRecord`` is the shape every resolver returns.  ``DnsPythonLookup`` is
the production implementation on top of ``dnspython``'s async resolver;
tests and callers with their own resolution needs plug in anything matching
``SrvLookup`` or ``DnsLookup`` instead.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from ipaddress import IPv4Address
from typing import Protocol, TypeAlias

import dns.asyncresolver
import dns.exception
import dns.resolver

from dynamic_srv.errors import ResolutionError


@dataclass(frozen=True)
class SrvRecord:
    """A single DNS SRV answer.

    Parameters
    ----------
    priority : int
        Lower values are preferred.
    weight : int
        Relative weight among records of equal priority.
    port : int
        Port the target listens on.
    target : str
        Target host, without the trailing root dot.

    Examples
    --------
    >>> SrvRecord(0, 1, 8001, "node-a.my-service.service.consul").port
    8001
    """

    priority: int
    weight: int
    port: int
    target: str


SrvLookup: TypeAlias = Callable[[str], Awaitable[Sequence[SrvRecord]]]
"""Resolver strategy: service name -> SRV records (empty when none exist)."""


class DnsLookup(Protocol):
    """Address and SRV lookups needed to dial a single peer."""

    async def lookup_ipv4(self, host: str) -> IPv4Address: ...

    async def lookup_srv(self, name: str) -> list[SrvRecord]: ...


class DnsPythonLookup:
    """``DnsLookup`` backed by ``dns.asyncresolver``.

    Records are returned in answer order; no priority or weight sorting is
    applied.

    Parameters
    ----------
    resolver : dns.asyncresolver.Resolver | None
        Resolver to use. Defaults to one configured from the system
        resolver settings.
    lifetime : float
        Upper bound in seconds for each query, retries included.

    Examples
    --------
    >>> lookup = DnsPythonLookup(lifetime=2.0)
    >>> records = await lookup.lookup_srv("my-service.service.consul")
    """

    def __init__(
        self,
        resolver: dns.asyncresolver.Resolver | None = None,
        lifetime: float = 5.0,
    ) -> None:
        self._resolver = resolver
        self._lifetime = lifetime

    @property
    def resolver(self) -> dns.asyncresolver.Resolver:
        # Reads /etc/resolv.conf, so only built on the first query.
        if self._resolver is None:
            self._resolver = dns.asyncresolver.Resolver()
        self._resolver.lifetime = self._lifetime
        return self._resolver

    async def lookup_srv(self, name: str) -> list[SrvRecord]:
        """Query SRV records for *name*.

        A name that does not exist or has no SRV records yields an empty
        list.

        Raises
        ------
        ResolutionError
            On timeouts or when no nameserver could answer.
        """
        try:
            answer = await self.resolver.resolve(name, "SRV")
        except (dns.resolver.NXDOMAIN, dns.resolver.NoAnswer):
            return []
        except dns.exception.DNSException as exc:
            raise ResolutionError(name, f"SRV query failed: {exc}") from exc

        return [
            SrvRecord(
                priority=rdata.priority,
                weight=rdata.weight,
                port=rdata.port,
                target=rdata.target.to_text(omit_final_dot=True),
            )
            for rdata in answer
        ]

    async def lookup_ipv4(self, host: str) -> IPv4Address:
        """Return the first A record of *host*.

        Raises
        ------
        ResolutionError
            If *host* has no A record or the query fails.
        """
        try:
            answer = await self.resolver.resolve(host, "A")
        except dns.exception.DNSException as exc:
            raise ResolutionError(host, f"A query failed: {exc}") from exc

        for rdata in answer:
            return IPv4Address(rdata.address)
        raise ResolutionError(host, "no A record")

    async def __call__(self, name: str) -> list[SrvRecord]:
        return await self.lookup_srv(name)
