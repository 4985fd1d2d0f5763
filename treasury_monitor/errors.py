"""
Errors
======

Failure taxonomy for the monitor cycle.

Cycle-terminal (no persistence, no publish):
- BalanceQueryFailed
- StateCorrupt
- StateWriteFailed (and StateConflict)

Publish-terminal (state already persisted):
- PublishFailed

Absorbed by the report builder:
- PriceUnavailable
"""

from typing import Optional


class MonitorError(Exception):
    """Base class for all monitor failures."""


class ConfigError(MonitorError):
    """Invalid or missing process configuration."""


class RPCError(MonitorError):
    """Solana JSON-RPC call failed or returned an error object."""

    def __init__(self, method: str, message: str, code: Optional[int] = None):
        self.method = method
        self.code = code
        super().__init__(f"{method} failed: {message}" + (f" (code {code})" if code is not None else ""))


class BalanceQueryFailed(MonitorError):
    """Balance lookup for a tracked account failed."""

    def __init__(self, account, cause: BaseException):
        self.account = account
        self.cause = cause
        address = getattr(account, "address", account)
        super().__init__(f"Balance query failed for {address}: {cause}")


class StateCorrupt(MonitorError):
    """Durable state file is missing or not well-formed."""


class StateWriteFailed(MonitorError):
    """Durable state file could not be written."""


class StateConflict(StateWriteFailed):
    """Durable state file was changed by another writer since it was loaded."""


class PriceUnavailable(MonitorError):
    """Price source returned no usable price."""


class PublishFailed(MonitorError):
    """Dashboard message could not be edited."""

    def __init__(self, cause):
        self.cause = cause
        super().__init__(f"Publish failed: {cause}")
