"""TOML and environment configuration.

Provides ``load_config`` / ``discover_config`` for loading
``dynamic_srv.toml`` into frozen dataclasses.  The distribution port is
never read from the file: it is assigned per process by the orchestrator
and exported as ``DIST_PORT``.
"""

from __future__ import annotations

import os
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from dynamic_srv.errors import ConfigError
from dynamic_srv.naming import NodeIdentity


__all__ = [
    "CONFIG_FILENAME",
    "DEFAULT_POLLING_INTERVAL_MS",
    "DIST_PORT_ENV",
    "DistributionConfig",
    "DynamicSrvConfig",
    "TopologyConfig",
    "discover_config",
    "load_config",
]


CONFIG_FILENAME = "dynamic_srv.toml"
DIST_PORT_ENV = "DIST_PORT"
DEFAULT_POLLING_INTERVAL_MS = 5_000


@dataclass(frozen=True)
class DistributionConfig:
    """Port the local runtime listens on for peer connections.

    Parameters
    ----------
    port : int | None
        The distribution port. ``None`` when the environment does not set
        one; callers fail when they first need it.

    Examples
    --------
    >>> DistributionConfig.from_env({"DIST_PORT": "9100"})
    DistributionConfig(port=9100)
    >>> DistributionConfig.from_env({})
    DistributionConfig(port=None)
    """

    port: int | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> DistributionConfig:
        """Read ``DIST_PORT`` once.

        Raises
        ------
        ConfigError
            If the variable is set but is not a valid port number.
        """
        env = os.environ if environ is None else environ
        raw = env.get(DIST_PORT_ENV)
        if raw is None:
            return cls()

        try:
            port = int(raw)
        except ValueError:
            msg = f"{DIST_PORT_ENV} must be an integer, got {raw!r}"
            raise ConfigError(msg) from None

        if not 0 < port < 65536:
            msg = f"{DIST_PORT_ENV} out of range: {port}"
            raise ConfigError(msg)
        return cls(port=port)


@dataclass(frozen=True)
class TopologyConfig:
    """One DNS SRV backed topology.

    Parameters
    ----------
    name : str
        Topology name, used to tag log lines.
    service : str
        Service domain queried for SRV records and used as the domain of
        every discovered node.
    polling_interval_ms : int
        Milliseconds between the end of one poll and the start of the next.

    Examples
    --------
    >>> TopologyConfig(name="dyn_srv", service="my-service.service.consul")
    TopologyConfig(name='dyn_srv', service='my-service.service.consul', polling_interval_ms=5000)
    """

    name: str
    service: str
    polling_interval_ms: int = DEFAULT_POLLING_INTERVAL_MS

    @property
    def polling_interval(self) -> float:
        """Polling interval in seconds."""
        return self.polling_interval_ms / 1000


@dataclass(frozen=True)
class DynamicSrvConfig:
    """Top-level configuration.

    Parameters
    ----------
    node : NodeIdentity | None
        Identity of the local node.
    distribution : DistributionConfig
        Local distribution port settings.
    topologies : tuple[TopologyConfig, ...]
        Topologies to reconcile, each run independently.
    """

    node: NodeIdentity | None = None
    distribution: DistributionConfig = field(default_factory=DistributionConfig)
    topologies: tuple[TopologyConfig, ...] = ()

    def topology(self, name: str) -> TopologyConfig:
        for topology in self.topologies:
            if topology.name == name:
                return topology
        msg = f"Unknown topology: {name!r}"
        raise KeyError(msg)


def discover_config(start: Path | None = None) -> Path | None:
    """Walk up from *start* (default: cwd) looking for ``dynamic_srv.toml``.

    Examples
    --------
    >>> discover_config(Path("/my/project"))
    PosixPath('/my/project/dynamic_srv.toml')
    """
    current = (start or Path.cwd()).resolve()
    while True:
        candidate = current / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            return None
        current = parent


def _parse_topology(name: str, raw: dict[str, Any]) -> TopologyConfig:
    if "service" not in raw:
        msg = f"Topology {name!r} is missing required key 'service'"
        raise ConfigError(msg)

    interval = raw.get("polling_interval_ms", DEFAULT_POLLING_INTERVAL_MS)
    if not isinstance(interval, int) or isinstance(interval, bool) or interval <= 0:
        msg = f"Topology {name!r}: polling_interval_ms must be a positive integer"
        raise ConfigError(msg)

    return TopologyConfig(name=name, service=raw["service"], polling_interval_ms=interval)


def load_config(
    path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> DynamicSrvConfig:
    """Load a ``DynamicSrvConfig`` from a TOML file and the environment.

    If *path* is ``None``, auto-discovers ``dynamic_srv.toml`` by walking up
    from the current working directory.  Without a file only the
    environment is consulted.

    Raises
    ------
    FileNotFoundError
        If an explicit *path* is given but does not exist.
    ConfigError
        If the file or the environment holds invalid values.

    Examples
    --------
    >>> config = load_config(Path("dynamic_srv.toml"))
    >>> config.topologies[0].service
    'my-service.service.consul'
    """
    distribution = DistributionConfig.from_env(environ)

    if path is None:
        discovered = discover_config()
        if discovered is None:
            return DynamicSrvConfig(distribution=distribution)
        path = discovered

    if not path.exists():
        msg = f"Config file not found: {path}"
        raise FileNotFoundError(msg)

    with path.open("rb") as f:
        raw = tomllib.load(f)

    node: NodeIdentity | None = None
    node_raw = raw.get("node", {})
    if "name" in node_raw:
        try:
            node = NodeIdentity.parse(node_raw["name"])
        except ValueError as exc:
            raise ConfigError(str(exc)) from exc

    topologies_raw: dict[str, Any] = raw.get("topologies", {})
    topologies = tuple(
        _parse_topology(name, topology_raw)
        for name, topology_raw in topologies_raw.items()
    )

    return DynamicSrvConfig(
        node=node,
        distribution=distribution,
        topologies=topologies,
    )
