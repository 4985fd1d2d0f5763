"""
Shared Data Models
==================

This package contains dataclasses used across the project.
"""

from .account import (
    AccountKind,
    Direction,
    BalanceSnapshot,
    BalanceChange,
    TrackedAccount,
    PersistedState,
)

__all__ = [
    "AccountKind",
    "Direction",
    "BalanceSnapshot",
    "BalanceChange",
    "TrackedAccount",
    "PersistedState",
]
