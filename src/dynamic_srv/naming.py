"""Node naming convention shared by the resolver and the reconciler.

A node is known externally as ``<label>@<domain>`` and published in DNS as
``<label>.<domain>``.  Swapping the separator is the whole contract between
peers, so both directions live here together with the helpers that decide
whether a requested name refers to the local node.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass
from functools import total_ordering
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from dynamic_srv.lookup import SrvRecord


LABEL_PATTERN = r"[a-z0-9-_]+"
EPHEMERAL_PREFIXES = ("rpc-", "rem-")


@total_ordering
@dataclass(frozen=True)
class NodeIdentity:
    """Name of a participant in the cluster.

    Parameters
    ----------
    label : str
        Per-node label, e.g. ``"node-a"``.
    domain : str
        Service domain shared by every node of a topology.

    Examples
    --------
    >>> node = NodeIdentity("node-a", "my-service.service.consul")
    >>> str(node)
    'node-a@my-service.service.consul'
    >>> node.dns_name
    'node-a.my-service.service.consul'
    """

    label: str
    domain: str

    def __str__(self) -> str:
        return f"{self.label}@{self.domain}"

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, NodeIdentity):
            return NotImplemented
        return (self.label, self.domain) < (other.label, other.domain)

    @property
    def dns_name(self) -> str:
        """The ``<label>.<domain>`` form used for DNS queries."""
        return f"{self.label}.{self.domain}"

    @property
    def is_ephemeral(self) -> bool:
        return is_ephemeral(self.label)

    @classmethod
    def parse(cls, raw: str) -> NodeIdentity:
        """Parse ``"<label>@<domain>"``.

        Raises
        ------
        ValueError
            If *raw* has no ``@`` or either side is empty.

        Examples
        --------
        >>> NodeIdentity.parse("node_a@my-service.service.consul").label
        'node_a'
        """
        label, sep, domain = raw.partition("@")
        if not sep or not label or not domain:
            msg = f"Invalid node identity {raw!r}, expected '<label>@<domain>'"
            raise ValueError(msg)
        return cls(label=label, domain=domain)

    @classmethod
    def from_dns_name(cls, dns_name: str, domain: str) -> NodeIdentity:
        """Invert ``dns_name`` for a known *domain*.

        Examples
        --------
        >>> NodeIdentity.from_dns_name("node-a.svc.consul", "svc.consul")
        NodeIdentity(label='node-a', domain='svc.consul')
        """
        suffix = f".{domain}"
        if not dns_name.endswith(suffix) or len(dns_name) == len(suffix):
            msg = f"{dns_name!r} is not a name under {domain!r}"
            raise ValueError(msg)
        return cls(label=dns_name[: -len(suffix)], domain=domain)


def is_ephemeral(name: str) -> bool:
    """Whether *name* belongs to a short-lived helper sharing its parent's port.

    Examples
    --------
    >>> is_ephemeral("rpc-worker-1")
    True
    >>> is_ephemeral("RPC-worker-1")
    False
    """
    return name.startswith(EPHEMERAL_PREFIXES)


def matches_self(own: str, target: str) -> bool:
    """Whether DNS name *own* refers to *target*, possibly as a helper of it.

    Accepts *own* equal to *target*, or *target* decorated with a helper
    prefix of the form ``rpc-<anything>-`` / ``rem-<anything>-``.  *target* is
    compared literally.

    Examples
    --------
    >>> matches_self("node_a.svc.consul", "node_a.svc.consul")
    True
    >>> matches_self("rpc-1234-node_a.svc.consul", "node_a.svc.consul")
    True
    >>> matches_self("rpc-node_a.svc.consul", "node_a.svc.consul")
    False
    """
    if not target or not own.endswith(target):
        return False
    prefix = own[: len(own) - len(target)]
    if not prefix:
        return True
    return (
        prefix.startswith(EPHEMERAL_PREFIXES)
        and prefix.endswith("-")
        and len(prefix) > len("rpc-")
        and "\n" not in prefix
    )


def srv_target_pattern(service: str) -> re.Pattern[str]:
    return re.compile(
        rf"(?P<label>{LABEL_PATTERN})\.{re.escape(service)}",
        re.IGNORECASE,
    )


def format_nodes(
    records: Iterable[SrvRecord],
    service: str,
    *,
    logger: logging.Logger | None = None,
) -> list[NodeIdentity]:
    """Turn SRV answers into node identities under *service*.

    Records whose target is not ``<label>.<service>`` are dropped.

    Examples
    --------
    >>> from dynamic_srv.lookup import SrvRecord
    >>> format_nodes([SrvRecord(1, 1, 8001, "my-node.erl.service.consul")],
    ...              "erl.service.consul")
    [NodeIdentity(label='my-node', domain='erl.service.consul')]
    """
    log = logger or logging.getLogger("dynamic_srv.naming")
    pattern = srv_target_pattern(service)

    nodes: list[NodeIdentity] = []
    for record in records:
        match = pattern.fullmatch(record.target)
        if match is None:
            log.debug("Ignoring SRV target %r outside of %s", record.target, service)
            continue
        nodes.append(NodeIdentity(label=match["label"], domain=service))
    return nodes
