from __future__ import annotations

import asyncio
from ipaddress import IPv4Address

import pytest

from dynamic_srv import (
    DISTRIBUTION_VERSION,
    AddressResolver,
    ConfigError,
    NodeIdentity,
    ResolutionError,
    ResolvedAddress,
    SrvRecord,
    UnsupportedOperationError,
)
from tests.utils import SERVICE, FakeDns, node


LOCAL = NodeIdentity.parse(f"node_a@{SERVICE}")
DIST_PORT = 9100


@pytest.fixture
def address_resolver(fake_dns: FakeDns) -> AddressResolver:
    return AddressResolver(LOCAL, DIST_PORT, fake_dns)


# ---------------------------------------------------------------------------
# register_listen_port
# ---------------------------------------------------------------------------


def test_register_returns_creation_in_range(address_resolver: AddressResolver) -> None:
    creations = {address_resolver.register_listen_port("node_a", 9100) for _ in range(200)}
    assert creations <= {1, 2, 3}
    assert len(creations) > 1


def test_register_accepts_address_family(
    address_resolver: AddressResolver, fake_dns: FakeDns
) -> None:
    assert address_resolver.register_listen_port("node_a", 9100, "inet_tcp") in {1, 2, 3}
    assert fake_dns.queries == []


# ---------------------------------------------------------------------------
# resolve_address
# ---------------------------------------------------------------------------


async def test_resolve_self_returns_loopback_without_dns(
    address_resolver: AddressResolver, fake_dns: FakeDns
) -> None:
    result = await address_resolver.resolve_address("node_a", SERVICE)

    assert result == ResolvedAddress(IPv4Address("127.0.0.1"), DIST_PORT, 5)
    assert result.octets == (127, 0, 0, 1)
    assert fake_dns.queries == []


async def test_resolve_from_helper_node_returns_loopback(fake_dns: FakeDns) -> None:
    helper = NodeIdentity.parse(f"rpc-7f3a-node_a@{SERVICE}")
    resolver = AddressResolver(helper, DIST_PORT, fake_dns)

    result = await resolver.resolve_address("node_a", SERVICE)

    assert result.ip == IPv4Address("127.0.0.1")
    assert result.port == DIST_PORT
    assert fake_dns.queries == []


async def test_resolve_self_without_port_fails(fake_dns: FakeDns) -> None:
    resolver = AddressResolver(LOCAL, None, fake_dns)
    with pytest.raises(ConfigError, match="DIST_PORT is not set"):
        await resolver.resolve_address("node_a", SERVICE)


async def test_resolve_remote_uses_a_and_first_srv_record(
    address_resolver: AddressResolver, fake_dns: FakeDns
) -> None:
    target = f"node_b.{SERVICE}"
    fake_dns.addresses[target] = "10.0.0.8"
    fake_dns.srv_records[target] = [
        SrvRecord(10, 1, 8017, target),
        SrvRecord(0, 100, 9999, target),
    ]

    result = await address_resolver.resolve_address("node_b", SERVICE)

    assert result == ResolvedAddress(IPv4Address("10.0.0.8"), 8017, DISTRIBUTION_VERSION)
    assert fake_dns.queries == [("A", target), ("SRV", target)]


async def test_resolve_remote_without_a_record_fails(
    address_resolver: AddressResolver, fake_dns: FakeDns
) -> None:
    target = f"node_b.{SERVICE}"
    fake_dns.srv_records[target] = [SrvRecord(0, 1, 8017, target)]

    with pytest.raises(ResolutionError) as exc_info:
        await address_resolver.resolve_address("node_b", SERVICE)

    assert exc_info.value.hostname == target


async def test_resolve_remote_without_srv_record_fails(
    address_resolver: AddressResolver, fake_dns: FakeDns
) -> None:
    target = f"node_b.{SERVICE}"
    fake_dns.addresses[target] = "10.0.0.8"

    with pytest.raises(ResolutionError, match="no SRV record"):
        await address_resolver.resolve_address("node_b", SERVICE)


async def test_resolve_other_domain_is_not_self(
    address_resolver: AddressResolver, fake_dns: FakeDns
) -> None:
    with pytest.raises(ResolutionError):
        await address_resolver.resolve_address("node_a", "other.service.consul")
    assert fake_dns.queries[0] == ("A", "node_a.other.service.consul")


async def test_resolve_is_safe_to_call_concurrently(
    address_resolver: AddressResolver, fake_dns: FakeDns
) -> None:
    for label, port in [("node_b", 8001), ("node_c", 8002)]:
        target = f"{label}.{SERVICE}"
        fake_dns.addresses[target] = "10.0.0.9"
        fake_dns.srv_records[target] = [SrvRecord(0, 1, port, target)]

    results = await asyncio.gather(
        address_resolver.resolve_address("node_b", SERVICE),
        address_resolver.resolve_address("node_c", SERVICE),
        address_resolver.resolve_address("node_a", SERVICE),
    )

    assert [r.port for r in results] == [8001, 8002, DIST_PORT]


# ---------------------------------------------------------------------------
# Listen ports
# ---------------------------------------------------------------------------


def test_local_listen_port_for_helper_is_zero(address_resolver: AddressResolver) -> None:
    assert address_resolver.local_listen_port("rpc-worker-1") == 0
    assert address_resolver.local_listen_port("rem-shell-2") == 0


def test_local_listen_port_for_node(address_resolver: AddressResolver) -> None:
    assert address_resolver.local_listen_port("node_a") == DIST_PORT


def test_helper_listen_port_does_not_need_config(fake_dns: FakeDns) -> None:
    resolver = AddressResolver(LOCAL, None, fake_dns)
    assert resolver.local_listen_port("rpc-worker-1") == 0


def test_local_listen_port_without_config_fails(fake_dns: FakeDns) -> None:
    resolver = AddressResolver(LOCAL, None, fake_dns)
    with pytest.raises(ConfigError, match="DIST_PORT is not set"):
        resolver.local_listen_port("node_a")


def test_from_env_reads_port(fake_dns: FakeDns) -> None:
    resolver = AddressResolver.from_env(LOCAL, {"DIST_PORT": "4370"}, fake_dns)
    assert resolver.local_distribution_port() == 4370


def test_from_env_reads_environment_once(
    fake_dns: FakeDns, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("DIST_PORT", "4370")
    resolver = AddressResolver.from_env(LOCAL, dns=fake_dns)
    monkeypatch.delenv("DIST_PORT")

    assert resolver.local_distribution_port() == 4370


def test_from_env_unset_fails_at_first_use(fake_dns: FakeDns) -> None:
    resolver = AddressResolver.from_env(LOCAL, {}, fake_dns)
    with pytest.raises(ConfigError):
        resolver.local_distribution_port()


# ---------------------------------------------------------------------------
# list_names
# ---------------------------------------------------------------------------


def test_list_names_is_unsupported(address_resolver: AddressResolver) -> None:
    with pytest.raises(UnsupportedOperationError) as exc_info:
        address_resolver.list_names("localhost")
    assert exc_info.value.reason == "address"


def test_local_node_property(address_resolver: AddressResolver) -> None:
    assert address_resolver.local_node == node("node_a")
