"""Exception types raised by the oracle server."""

from __future__ import annotations


class OracleServerError(Exception):
    """Base class for oracle server errors."""


class RemoteUnavailableError(OracleServerError):
    """The ledger node cannot be reached at all."""


class RemoteCallError(OracleServerError):
    """A contract call or transaction was rejected by the remote side."""

    def __init__(self, operation: str, reason: str):
        super().__init__(f"{operation}: {reason}")
        self.operation = operation
        self.reason = reason


class RegistryInvariantError(OracleServerError):
    """An identity was recorded twice with differing indices."""


class StartupError(OracleServerError):
    """Initialisation finished without a single usable oracle."""
