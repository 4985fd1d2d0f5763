"""
Account Models
==============

Dataclasses for tracked treasury accounts and the persisted balances file.

On-disk shape (balances.json):
    {
      "last_updated": 1700000000,
      "accounts": [
        {
          "address": "...",
          "type": "SOL" | "USDC",
          "symbol": "◎",
          "name": "Hot Wallet",
          "prevBalances": {"str": "1.5", "num": 1.5},
          "currentBalances": {"str": "1.5", "num": 1.5},
          "balanceChange": {"str": "0", "num": 0, "direction": null}
        }
      ]
    }
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from numbers import Real
from typing import Any, Dict, List, Optional


class AccountKind(Enum):
    """Tracked account kinds, keyed by the persisted ``type`` string."""
    NATIVE = "SOL"   # system account, balance in lamports
    TOKEN = "USDC"   # SPL token account, balance already decimal-adjusted

    @classmethod
    def parse(cls, value: str) -> Optional["AccountKind"]:
        """Return the kind for a persisted ``type`` string, or None if unrecognized."""
        for kind in cls:
            if kind.value == value:
                return kind
        return None


class Direction(Enum):
    """Direction of a display-visible balance change."""
    POSITIVE = "+"
    NEGATIVE = "-"


_KNOWN_ACCOUNT_KEYS = (
    "address", "type", "symbol", "name",
    "prevBalances", "currentBalances", "balanceChange",
)


def _require_number(value: Any, where: str) -> float:
    if isinstance(value, bool) or not isinstance(value, Real):
        raise ValueError(f"{where}: expected a number, got {type(value).__name__}")
    if not math.isfinite(value):
        raise ValueError(f"{where}: expected a finite number, got {value!r}")
    return value


def _require_mapping(value: Any, where: str) -> dict:
    if not isinstance(value, dict):
        raise ValueError(f"{where}: expected an object, got {type(value).__name__}")
    return value


@dataclass(frozen=True)
class BalanceSnapshot:
    """A normalized amount together with its display string."""
    num: float = 0
    text: str = "0"

    def to_dict(self) -> dict:
        return {"str": self.text, "num": self.num}

    @classmethod
    def from_dict(cls, data: Any, where: str = "balance") -> "BalanceSnapshot":
        if data is None:
            return cls()
        data = _require_mapping(data, where)
        num = _require_number(data.get("num", 0), f"{where}.num")
        text = data.get("str", "0")
        if not isinstance(text, str):
            raise ValueError(f"{where}.str: expected a string")
        return cls(num=num, text=text)


@dataclass(frozen=True)
class BalanceChange:
    """Signed delta, display string of its magnitude, and direction (None = unchanged)."""
    num: float = 0
    text: str = "0"
    direction: Optional[Direction] = None

    def to_dict(self) -> dict:
        return {
            "str": self.text,
            "num": self.num,
            "direction": self.direction.value if self.direction else None,
        }

    @classmethod
    def from_dict(cls, data: Any, where: str = "balanceChange") -> "BalanceChange":
        if data is None:
            return cls()
        data = _require_mapping(data, where)
        num = _require_number(data.get("num", 0), f"{where}.num")
        text = data.get("str", "0")
        if not isinstance(text, str):
            raise ValueError(f"{where}.str: expected a string")
        raw_direction = data.get("direction")
        try:
            direction = Direction(raw_direction) if raw_direction is not None else None
        except ValueError:
            raise ValueError(f"{where}.direction: unknown value {raw_direction!r}")
        return cls(num=num, text=text, direction=direction)


@dataclass(frozen=True)
class TrackedAccount:
    """
    A monitored account as stored in the balances file.

    ``type`` is kept as the raw persisted string so unrecognized kinds
    survive a load/persist round trip untouched. ``extra`` carries any
    keys this model does not know about.
    """
    address: str
    type: str
    symbol: str = ""
    name: str = ""
    prev_balances: BalanceSnapshot = field(default_factory=BalanceSnapshot)
    current_balances: BalanceSnapshot = field(default_factory=BalanceSnapshot)
    balance_change: BalanceChange = field(default_factory=BalanceChange)
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def kind(self) -> Optional[AccountKind]:
        """Account kind, or None for unrecognized ``type`` strings."""
        return AccountKind.parse(self.type)

    @property
    def is_tracked(self) -> bool:
        """Whether this account is queried and reported."""
        return self.kind is not None

    def to_dict(self) -> dict:
        data = {
            "address": self.address,
            "type": self.type,
            "symbol": self.symbol,
            "name": self.name,
            "prevBalances": self.prev_balances.to_dict(),
            "currentBalances": self.current_balances.to_dict(),
            "balanceChange": self.balance_change.to_dict(),
        }
        data.update(self.extra)
        return data

    @classmethod
    def from_dict(cls, data: Any, index: int = 0) -> "TrackedAccount":
        where = f"accounts[{index}]"
        data = _require_mapping(data, where)

        address = data.get("address")
        if not isinstance(address, str) or not address:
            raise ValueError(f"{where}.address: expected a non-empty string")
        account_type = data.get("type")
        if not isinstance(account_type, str):
            raise ValueError(f"{where}.type: expected a string")

        return cls(
            address=address,
            type=account_type,
            symbol=str(data.get("symbol", "")),
            name=str(data.get("name", "")),
            prev_balances=BalanceSnapshot.from_dict(data.get("prevBalances"), f"{where}.prevBalances"),
            current_balances=BalanceSnapshot.from_dict(data.get("currentBalances"), f"{where}.currentBalances"),
            balance_change=BalanceChange.from_dict(data.get("balanceChange"), f"{where}.balanceChange"),
            extra={k: v for k, v in data.items() if k not in _KNOWN_ACCOUNT_KEYS},
        )


@dataclass(frozen=True)
class PersistedState:
    """The whole balances file: timestamp of the last cycle plus ordered accounts."""
    last_updated: int = 0
    accounts: List[TrackedAccount] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        data = {
            "last_updated": self.last_updated,
            "accounts": [account.to_dict() for account in self.accounts],
        }
        data.update(self.extra)
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "PersistedState":
        data = _require_mapping(data, "state")
        last_updated = data.get("last_updated", 0)
        if isinstance(last_updated, bool) or not isinstance(last_updated, int):
            raise ValueError("last_updated: expected an integer")
        raw_accounts = data.get("accounts")
        if not isinstance(raw_accounts, list):
            raise ValueError("accounts: expected a list")
        accounts = [TrackedAccount.from_dict(item, i) for i, item in enumerate(raw_accounts)]
        return cls(
            last_updated=last_updated,
            accounts=accounts,
            extra={k: v for k, v in data.items() if k not in ("last_updated", "accounts")},
        )
