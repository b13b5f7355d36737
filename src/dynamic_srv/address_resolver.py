"""Daemon-less peer address resolution.

Answers the queries a runtime normally sends to a local name daemon, using
DNS instead: A records give a peer's address, SRV records its dynamically
assigned distribution port.  Nothing is registered anywhere, so the local
port comes from configuration and name listing is unsupported.

Node ``<label>@<domain>`` is looked up as ``<label>.<domain>``.  Helper
nodes named ``rpc-<...>-<label>`` or ``rem-<...>-<label>`` ride on their
parent's connection and resolve to the parent's local port.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Mapping
from dataclasses import dataclass
from ipaddress import IPv4Address

from dynamic_srv.config import DIST_PORT_ENV, DistributionConfig
from dynamic_srv.errors import ConfigError, ResolutionError, UnsupportedOperationError
from dynamic_srv.lookup import DnsLookup, DnsPythonLookup
from dynamic_srv.naming import NodeIdentity, is_ephemeral, matches_self


DISTRIBUTION_VERSION = 5
"""Distribution protocol version; unchanged since it was introduced."""

LOOPBACK = IPv4Address("127.0.0.1")


@dataclass(frozen=True)
class ResolvedAddress:
    """Where to dial a peer.

    Parameters
    ----------
    ip : IPv4Address
        Peer address.
    port : int
        Peer distribution port.
    version : int
        Distribution protocol version.

    Examples
    --------
    >>> addr = ResolvedAddress(IPv4Address("10.0.0.7"), 8001)
    >>> addr.octets
    (10, 0, 0, 7)
    """

    ip: IPv4Address
    port: int
    version: int = DISTRIBUTION_VERSION

    @property
    def octets(self) -> tuple[int, int, int, int]:
        a, b, c, d = self.ip.packed
        return (a, b, c, d)


class AddressResolver:
    """Resolve peers through DNS on behalf of the local node.

    Holds only read-only configuration, so a single instance may serve any
    number of concurrent connection attempts.

    Parameters
    ----------
    local_node : NodeIdentity
        Identity of the node this resolver runs in.
    dist_port : int | None
        Local distribution port. ``None`` makes every query that needs it
        raise ``ConfigError``.
    dns : DnsLookup | None
        Lookup backend. Defaults to ``DnsPythonLookup()``.
    logger : logging.Logger | None
        Logger to use instead of ``dynamic_srv.address_resolver``.

    Examples
    --------
    >>> resolver = AddressResolver.from_env(NodeIdentity.parse("node_a@my-service.service.consul"))
    >>> await resolver.resolve_address("node_b", "my-service.service.consul")
    ResolvedAddress(ip=IPv4Address('10.0.0.8'), port=8017, version=5)
    """

    def __init__(
        self,
        local_node: NodeIdentity,
        dist_port: int | None,
        dns: DnsLookup | None = None,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._local_node = local_node
        self._dist_port = dist_port
        self._dns: DnsLookup = dns if dns is not None else DnsPythonLookup()
        self._log = logger or logging.getLogger("dynamic_srv.address_resolver")

    @classmethod
    def from_env(
        cls,
        local_node: NodeIdentity,
        environ: Mapping[str, str] | None = None,
        dns: DnsLookup | None = None,
    ) -> AddressResolver:
        """Build a resolver with the distribution port read from ``DIST_PORT``."""
        return cls(local_node, DistributionConfig.from_env(environ).port, dns)

    @property
    def local_node(self) -> NodeIdentity:
        return self._local_node

    def register_listen_port(self, name: str, port: int, family: str | None = None) -> int:
        """Acknowledge the local listening port.

        Nothing is registered. The runtime still expects a "creation" value
        in ``1..3``, so a random one is returned.
        """
        return random.randint(1, 3)

    async def resolve_address(self, label: str, domain: str) -> ResolvedAddress:
        """Find the address and port of node ``<label>@<domain>``.

        The local node, or a helper of it, resolves to loopback and the
        local distribution port without touching DNS.  Any other node is
        looked up as ``<label>.<domain>``: first A record for the address,
        first SRV record for the port.

        Raises
        ------
        ResolutionError
            If there is no A record, no SRV record, or DNS fails.
        ConfigError
            If the local node is targeted and no distribution port is set.
        """
        target = f"{label}.{domain}"

        if matches_self(self._local_node.dns_name, target):
            return ResolvedAddress(ip=LOOPBACK, port=self.local_distribution_port())

        ip = await self._dns.lookup_ipv4(target)
        records = await self._dns.lookup_srv(target)
        if not records:
            raise ResolutionError(target, "no SRV record")

        # First answer wins; priority and weight are not consulted.
        port = records[0].port
        self._log.debug("Resolved %s to %s:%d", target, ip, port)
        return ResolvedAddress(ip=ip, port=port)

    def local_listen_port(self, name: str) -> int:
        """Port the local node named *name* should listen on.

        Helper nodes answer ``0``: they do not publish a port of their own.
        """
        if is_ephemeral(name):
            return 0
        return self.local_distribution_port()

    def local_distribution_port(self) -> int:
        """The configured distribution port.

        Raises
        ------
        ConfigError
            If no port was configured.
        """
        if self._dist_port is None:
            msg = f"{DIST_PORT_ENV} is not set"
            raise ConfigError(msg)
        return self._dist_port

    def list_names(self, host: str) -> list[tuple[str, int]]:
        """Not available without a name daemon.

        Raises
        ------
        UnsupportedOperationError
            Always, with reason ``"address"``.
        """
        raise UnsupportedOperationError("address")
