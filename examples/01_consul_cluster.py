"""Wire the reconciler and the address resolver to a toy runtime.

Run a Consul agent publishing ``my-service.service.consul`` and drop the
``resolver=`` argument to use live DNS.  As written the SRV answer is
static so the example runs anywhere:

    DIST_PORT=9100 python examples/01_consul_cluster.py
"""

import asyncio
import logging

from dynamic_srv import (
    AddressResolver,
    MembershipReconciler,
    NodeIdentity,
    SrvRecord,
    TopologyConfig,
)

SERVICE = "my-service.service.consul"
ME = NodeIdentity.parse(f"node-a@{SERVICE}")

connected: set[NodeIdentity] = set()


async def static_srv(service: str) -> list[SrvRecord]:
    return [
        SrvRecord(0, 1, 9100, f"node-a.{service}"),
        SrvRecord(0, 1, 9101, f"node-b.{service}"),
        SrvRecord(0, 1, 9102, f"node-c.{service}"),
    ]


async def connect(target: NodeIdentity) -> bool:
    connected.add(target)
    return True


async def disconnect(target: NodeIdentity) -> bool:
    connected.discard(target)
    return True


async def main() -> None:
    logging.basicConfig(level=logging.INFO)

    resolver = AddressResolver.from_env(ME)
    print("listen port:", resolver.local_listen_port(ME.label))
    print("helper listen port:", resolver.local_listen_port("rpc-1-node-a"))
    print("self:", await resolver.resolve_address("node-a", SERVICE))

    topology = TopologyConfig(name="dyn_srv", service=SERVICE, polling_interval_ms=500)
    reconciler = MembershipReconciler.from_config(
        topology,
        local_node=ME,
        connect=connect,
        disconnect=disconnect,
        list_nodes=lambda: connected,
        resolver=static_srv,
    )

    async with reconciler:
        await asyncio.sleep(1.2)

    print("members:", sorted(str(n) for n in reconciler.known))


asyncio.run(main())
