"""Test utilities and doubles for dynamic_srv tests."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from ipaddress import IPv4Address

from dynamic_srv import NodeIdentity, ResolutionError, SrvRecord


SERVICE = "my-service.service.consul"


def node(label: str, service: str = SERVICE) -> NodeIdentity:
    return NodeIdentity(label=label, domain=service)


def srv(label: str, port: int = 8001, service: str = SERVICE) -> SrvRecord:
    return SrvRecord(priority=1, weight=1, port=port, target=f"{label}.{service}")


async def retry_until(
    condition: Callable[[], bool | Awaitable[bool]],
    *,
    timeout: float = 5.0,
    interval: float = 0.01,
    message: str = "Condition not met within timeout",
) -> None:
    """Wait until a condition is met, with timeout.

    Args:
        condition: A callable that returns True when the condition is met
        timeout: Maximum time to wait in seconds
        interval: Time between checks in seconds
        message: Error message if timeout is reached

    Raises:
        TimeoutError: If condition is not met within timeout
    """
    start = time.monotonic()
    while time.monotonic() - start < timeout:
        result = condition()

        if asyncio.iscoroutine(result):
            result = await result

        if result:
            return

        await asyncio.sleep(interval)
    raise TimeoutError(message)


@dataclass
class FakeDns:
    """Scripted ``DnsLookup`` that records every query."""

    addresses: dict[str, str] = field(default_factory=dict)
    srv_records: dict[str, list[SrvRecord]] = field(default_factory=dict)
    queries: list[tuple[str, str]] = field(default_factory=list)

    async def lookup_ipv4(self, host: str) -> IPv4Address:
        self.queries.append(("A", host))
        if host not in self.addresses:
            raise ResolutionError(host, "NXDOMAIN")
        return IPv4Address(self.addresses[host])

    async def lookup_srv(self, name: str) -> list[SrvRecord]:
        self.queries.append(("SRV", name))
        return list(self.srv_records.get(name, []))


@dataclass
class ScriptedResolver:
    """SRV resolver strategy returning whatever ``answer`` currently holds."""

    answer: Sequence[SrvRecord] = ()
    error: Exception | None = None
    queries: list[str] = field(default_factory=list)

    async def __call__(self, service: str) -> Sequence[SrvRecord]:
        self.queries.append(service)
        if self.error is not None:
            raise self.error
        return self.answer


@dataclass
class FakeRuntime:
    """Connection layer double: tracks live connections and records calls."""

    connected: set[NodeIdentity] = field(default_factory=set)
    refuse_connect: set[NodeIdentity] = field(default_factory=set)
    refuse_disconnect: set[NodeIdentity] = field(default_factory=set)
    connects: list[NodeIdentity] = field(default_factory=list)
    disconnects: list[NodeIdentity] = field(default_factory=list)

    async def connect(self, target: NodeIdentity) -> bool:
        self.connects.append(target)
        if target in self.refuse_connect:
            return False
        self.connected.add(target)
        return True

    async def disconnect(self, target: NodeIdentity) -> bool:
        self.disconnects.append(target)
        if target in self.refuse_disconnect:
            return False
        self.connected.discard(target)
        return True

    def list_nodes(self) -> list[NodeIdentity]:
        return sorted(self.connected)

    def reset_calls(self) -> None:
        self.connects.clear()
        self.disconnects.clear()
