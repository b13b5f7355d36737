"""Exceptions raised by the address resolver and configuration loader."""

from __future__ import annotations


class ConfigError(Exception):
    """Raised when required configuration is missing or malformed.

    Examples
    --------
    >>> raise ConfigError("DIST_PORT is not set")
    Traceback (most recent call last):
    ...
    dynamic_srv.errors.ConfigError: DIST_PORT is not set
    """


class ResolutionError(Exception):
    """Raised when a DNS lookup for a peer yields nothing or fails.

    Parameters
    ----------
    hostname : str
        The name that was being resolved.
    reason : str
        Short description of the failure.

    Examples
    --------
    >>> err = ResolutionError("node-b.my-service.service.consul", "NXDOMAIN")
    >>> err.hostname
    'node-b.my-service.service.consul'
    """

    def __init__(self, hostname: str, reason: str) -> None:
        self.hostname = hostname
        self.reason = reason
        super().__init__(f"DNS resolution failed for '{hostname}': {reason}")


class UnsupportedOperationError(Exception):
    """Raised for queries that need a name daemon, which does not exist here."""

    def __init__(self, reason: str = "address") -> None:
        self.reason = reason
        super().__init__(reason)
