"""Batch connect/disconnect helpers shared by discovery strategies.

The runtime exposes per-node ``connect`` / ``disconnect`` callbacks and a
``list_nodes`` view of its live connections.  These helpers apply a whole
target set through them, skip work that is already done, and report the
nodes that could not be handled so the caller can fold them into its next
state.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Any, TypeAlias

from dynamic_srv.naming import NodeIdentity


ConnectFn: TypeAlias = Callable[[NodeIdentity], Awaitable[bool]]
DisconnectFn: TypeAlias = Callable[[NodeIdentity], Awaitable[bool]]
ListNodesFn: TypeAlias = Callable[[], Iterable[NodeIdentity]]


@dataclass(frozen=True)
class NodeFailure:
    """A node the runtime refused to connect to or disconnect from.

    Parameters
    ----------
    node : NodeIdentity
        The node concerned.
    reason : Any
        ``False`` when the callback declined, otherwise the exception it
        raised.
    """

    node: NodeIdentity
    reason: Any


async def connect_nodes(
    topology: str,
    connect: ConnectFn,
    list_nodes: ListNodesFn,
    nodes: Iterable[NodeIdentity],
    *,
    self_node: NodeIdentity | None = None,
    logger: logging.Logger | None = None,
) -> list[NodeFailure]:
    """Connect to every node in *nodes* that is not connected yet.

    Nodes already present in ``list_nodes()`` and *self_node* are skipped.

    Returns
    -------
    list[NodeFailure]
        Nodes that could not be connected; empty when all succeeded.
    """
    log = logger or logging.getLogger(f"dynamic_srv.strategy.{topology}")
    connected = set(list_nodes())
    if self_node is not None:
        connected.add(self_node)

    failures: list[NodeFailure] = []
    for node in nodes:
        if node in connected:
            continue
        try:
            ok = await connect(node)
        except Exception as exc:
            log.warning("[%s] unable to connect to %s: %r", topology, node, exc)
            failures.append(NodeFailure(node=node, reason=exc))
            continue

        if ok:
            log.info("[%s] connected to %s", topology, node)
        else:
            log.warning("[%s] unable to connect to %s", topology, node)
            failures.append(NodeFailure(node=node, reason=False))
    return failures


async def disconnect_nodes(
    topology: str,
    disconnect: DisconnectFn,
    list_nodes: ListNodesFn,
    nodes: Iterable[NodeIdentity],
    *,
    logger: logging.Logger | None = None,
) -> list[NodeFailure]:
    """Disconnect from every node in *nodes* that is still connected.

    Nodes absent from ``list_nodes()`` are already gone and count as
    disconnected.

    Returns
    -------
    list[NodeFailure]
        Nodes that could not be disconnected; empty when all succeeded.
    """
    log = logger or logging.getLogger(f"dynamic_srv.strategy.{topology}")
    connected = set(list_nodes())

    failures: list[NodeFailure] = []
    for node in nodes:
        if node not in connected:
            log.debug("[%s] %s already disconnected", topology, node)
            continue
        try:
            ok = await disconnect(node)
        except Exception as exc:
            log.warning("[%s] disconnect from %s failed: %r", topology, node, exc)
            failures.append(NodeFailure(node=node, reason=exc))
            continue

        if ok:
            log.info("[%s] disconnected from %s", topology, node)
        else:
            log.warning("[%s] disconnect from %s failed", topology, node)
            failures.append(NodeFailure(node=node, reason=False))
    return failures
