from dynamic_srv.address_resolver import (
    DISTRIBUTION_VERSION,
    AddressResolver,
    ResolvedAddress,
)
from dynamic_srv.config import (
    DistributionConfig,
    DynamicSrvConfig,
    TopologyConfig,
    discover_config,
    load_config,
)
from dynamic_srv.errors import ConfigError, ResolutionError, UnsupportedOperationError
from dynamic_srv.lookup import DnsLookup, DnsPythonLookup, SrvLookup, SrvRecord
from dynamic_srv.naming import NodeIdentity, format_nodes, is_ephemeral, matches_self
from dynamic_srv.reconciler import MembershipReconciler, Poll, Stop
from dynamic_srv.strategy import NodeFailure, connect_nodes, disconnect_nodes


__all__ = [
    # Address resolution
    "AddressResolver",
    "DISTRIBUTION_VERSION",
    "ResolvedAddress",
    # Membership
    "MembershipReconciler",
    "NodeFailure",
    "Poll",
    "Stop",
    "connect_nodes",
    "disconnect_nodes",
    # Naming
    "NodeIdentity",
    "format_nodes",
    "is_ephemeral",
    "matches_self",
    # DNS
    "DnsLookup",
    "DnsPythonLookup",
    "SrvLookup",
    "SrvRecord",
    # Config
    "DistributionConfig",
    "DynamicSrvConfig",
    "TopologyConfig",
    "discover_config",
    "load_config",
    # Errors
    "ConfigError",
    "ResolutionError",
    "UnsupportedOperationError",
]
