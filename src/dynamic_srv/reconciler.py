"""Cluster membership driven by DNS SRV records.

``MembershipReconciler`` periodically asks DNS which nodes exist under a
service domain and drives the runtime's connect/disconnect callbacks until
the live connection set matches.  SRV targets must be named
``<label>.<service>``; each becomes node ``<label>@<service>``.

The reconciler behaves like a single actor: one task drains a mailbox of
``Poll`` / ``Stop`` messages, so poll cycles never overlap, and the next
``Poll`` is only scheduled once the current one has finished.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from types import TracebackType
from typing import TypeAlias

from dynamic_srv.config import DEFAULT_POLLING_INTERVAL_MS, TopologyConfig
from dynamic_srv.errors import ResolutionError
from dynamic_srv.lookup import DnsPythonLookup, SrvLookup
from dynamic_srv.naming import NodeIdentity, format_nodes
from dynamic_srv.strategy import (
    ConnectFn,
    DisconnectFn,
    ListNodesFn,
    connect_nodes,
    disconnect_nodes,
)


@dataclass(frozen=True)
class Poll:
    """Run one reconciliation cycle."""


@dataclass(frozen=True)
class Stop:
    """Stop the reconciler after the current cycle."""


ReconcilerMsg: TypeAlias = Poll | Stop


class MembershipReconciler:
    """Keep the runtime connected to the nodes published under a service.

    Parameters
    ----------
    topology : str
        Topology name, used to tag log lines.
    service : str
        Service domain queried for SRV records.
    local_node : NodeIdentity
        This node; never connected to or disconnected from.
    connect : ConnectFn
        Connects to one node, returning ``True`` on success.
    disconnect : DisconnectFn
        Disconnects from one node, returning ``True`` on success.
    list_nodes : ListNodesFn
        Returns the nodes currently connected.
    resolver : SrvLookup | None
        SRV lookup strategy. Defaults to live DNS via ``DnsPythonLookup``.
    polling_interval_ms : int
        Delay between the end of a cycle and the start of the next.
    known : Iterable[NodeIdentity]
        Initial membership set.
    logger : logging.Logger | None
        Logger to use instead of ``dynamic_srv.reconciler.<topology>``.

    Examples
    --------
    >>> reconciler = MembershipReconciler(
    ...     "dyn_srv",
    ...     "my-service.service.consul",
    ...     local_node=NodeIdentity.parse("node-a@my-service.service.consul"),
    ...     connect=runtime.connect,
    ...     disconnect=runtime.disconnect,
    ...     list_nodes=runtime.list_nodes,
    ... )
    >>> async with reconciler:
    ...     await serve_forever()
    """

    def __init__(
        self,
        topology: str,
        service: str,
        *,
        local_node: NodeIdentity,
        connect: ConnectFn,
        disconnect: DisconnectFn,
        list_nodes: ListNodesFn,
        resolver: SrvLookup | None = None,
        polling_interval_ms: int = DEFAULT_POLLING_INTERVAL_MS,
        known: Iterable[NodeIdentity] = (),
        logger: logging.Logger | None = None,
    ) -> None:
        self._topology = topology
        self._service = service
        self._local_node = local_node
        self._connect = connect
        self._disconnect = disconnect
        self._list_nodes = list_nodes
        self._resolver: SrvLookup = resolver if resolver is not None else DnsPythonLookup()
        self._polling_interval_ms = polling_interval_ms
        self._known: frozenset[NodeIdentity] = frozenset(known)
        self._log = logger or logging.getLogger(f"dynamic_srv.reconciler.{topology}")

        self._lock = asyncio.Lock()
        self._mailbox: asyncio.Queue[ReconcilerMsg] = asyncio.Queue()
        self._task: asyncio.Task[None] | None = None
        self._timer: asyncio.TimerHandle | None = None
        self._stopping = False

    @classmethod
    def from_config(
        cls,
        config: TopologyConfig,
        *,
        local_node: NodeIdentity,
        connect: ConnectFn,
        disconnect: DisconnectFn,
        list_nodes: ListNodesFn,
        resolver: SrvLookup | None = None,
        logger: logging.Logger | None = None,
    ) -> MembershipReconciler:
        return cls(
            config.name,
            config.service,
            local_node=local_node,
            connect=connect,
            disconnect=disconnect,
            list_nodes=list_nodes,
            resolver=resolver,
            polling_interval_ms=config.polling_interval_ms,
            logger=logger,
        )

    @property
    def topology(self) -> str:
        return self._topology

    @property
    def known(self) -> frozenset[NodeIdentity]:
        """Nodes considered members after the last completed cycle."""
        return self._known

    @property
    def polling_interval(self) -> float:
        return self._polling_interval_ms / 1000

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def reconcile(self) -> frozenset[NodeIdentity]:
        """Run one cycle and return the new membership set.

        Nodes that could not be disconnected stay members; nodes that could
        not be connected do not become members.  A failed SRV lookup leaves
        the membership set untouched.
        """
        async with self._lock:
            try:
                candidates = await self._candidates()
            except ResolutionError as exc:
                self._log.warning("[%s] %s", self._topology, exc)
                return self._known

            removed = self._known - candidates
            members = set(candidates)

            failed = await disconnect_nodes(
                self._topology,
                self._disconnect,
                self._list_nodes,
                sorted(removed),
                logger=self._log,
            )
            members.update(failure.node for failure in failed)

            failed = await connect_nodes(
                self._topology,
                self._connect,
                self._list_nodes,
                sorted(members),
                self_node=self._local_node,
                logger=self._log,
            )
            members.difference_update(failure.node for failure in failed)

            self._known = frozenset(members)
            return self._known

    async def _candidates(self) -> frozenset[NodeIdentity]:
        records = await self._resolver(self._service)
        if not records:
            self._log.info("[%s] No nodes found", self._topology)
            return frozenset()

        self._log.debug("[%s] Found %d nodes", self._topology, len(records))
        nodes = format_nodes(records, self._service, logger=self._log)
        return frozenset(node for node in nodes if node != self._local_node)

    def tell(self, msg: ReconcilerMsg) -> None:
        self._mailbox.put_nowait(msg)

    def start(self) -> None:
        """Start the poll loop; the first cycle runs immediately.

        Must be called from a running event loop.
        """
        if self.is_running:
            return
        self._stopping = False
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"dynamic_srv.reconciler.{self._topology}"
        )
        self.tell(Poll())

    async def stop(self) -> None:
        """Stop the poll loop, letting an in-flight cycle finish first."""
        self._stopping = True
        self._cancel_timer()
        if self._task is None:
            return
        self.tell(Stop())
        await self._task
        self._task = None
        self._cancel_timer()

    async def _run(self) -> None:
        while True:
            msg = await self._mailbox.get()
            match msg:
                case Poll():
                    self._timer = None
                    self._log.debug("[%s] Polling for new nodes", self._topology)
                    try:
                        await self.reconcile()
                    except Exception:
                        self._log.exception("[%s] Poll failed", self._topology)
                    self._schedule_poll()
                case Stop():
                    return

    def _schedule_poll(self) -> None:
        if self._stopping:
            return
        self._timer = asyncio.get_running_loop().call_later(
            self.polling_interval, self.tell, Poll()
        )

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def __aenter__(self) -> MembershipReconciler:
        self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.stop()
