"""
Balances State Store
====================

JSON persistence for the tracked accounts file.

The file is the single source of truth across restarts. It is always
rewritten whole: the new content is serialized in memory, written to a
sibling temp file, fsynced, then swapped in with os.replace. A failed write
leaves the previous file untouched.

Writers in other processes (the account management script) share the file.
A store remembers the digest of the content it last loaded or wrote and
refuses to replace a file that has changed since, raising StateConflict.
"""

import hashlib
import json
import logging
import os
import time
from dataclasses import replace
from pathlib import Path
from typing import Iterable, Optional, Union

from ..errors import StateConflict, StateCorrupt, StateWriteFailed
from ..models import AccountKind, PersistedState, TrackedAccount

logger = logging.getLogger(__name__)


def _digest(raw: bytes) -> str:
    return hashlib.sha256(raw).hexdigest()


class StateStore:
    """Loads and atomically persists PersistedState to a JSON file."""

    def __init__(self, path: Union[str, Path]):
        """
        Initialize the store.

        Args:
            path: Path to the balances JSON file
        """
        self.path = Path(path)
        # Digest of the file as last seen by this store (None: not read yet)
        self._seen_digest: Optional[str] = None

    @property
    def temp_path(self) -> Path:
        return self.path.with_name(self.path.name + ".tmp")

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> PersistedState:
        """
        Read and validate the balances file.

        Raises:
            StateCorrupt: If the file is missing, unreadable, or malformed
        """
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            raise StateCorrupt(f"State file not found: {self.path}")
        except OSError as e:
            raise StateCorrupt(f"State file unreadable: {self.path}: {e}")

        try:
            data = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise StateCorrupt(f"State file is not valid JSON: {self.path}: {e}")

        try:
            state = PersistedState.from_dict(data)
        except ValueError as e:
            raise StateCorrupt(f"State file is malformed: {self.path}: {e}")

        self._seen_digest = _digest(raw)
        logger.debug(f"Loaded {len(state.accounts)} accounts from {self.path}")
        return state

    def _check_unchanged(self) -> None:
        """Raise StateConflict if the file differs from what this store last saw."""
        if self._seen_digest is None:
            return
        try:
            current = _digest(self.path.read_bytes())
        except FileNotFoundError:
            raise StateConflict(f"State file was removed since it was loaded: {self.path}")
        if current != self._seen_digest:
            raise StateConflict(f"State file was modified since it was loaded: {self.path}")

    def _discard_temp(self) -> None:
        try:
            self.temp_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove temp state file {self.temp_path}: {e}")

    def persist(self, state: PersistedState) -> None:
        """
        Replace the balances file with ``state``.

        Raises:
            StateConflict: If the file changed since this store loaded it
            StateWriteFailed: On any I/O error (the previous file is kept)
        """
        try:
            content = json.dumps(state.to_dict(), indent=2, ensure_ascii=False, allow_nan=False) + "\n"
        except ValueError as e:
            raise StateWriteFailed(f"State is not serializable: {e}")
        raw = content.encode("utf-8")

        temp_file = self.temp_path
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(temp_file, "wb") as f:
                f.write(raw)
                f.flush()
                os.fsync(f.fileno())
            self._check_unchanged()
            os.replace(temp_file, self.path)
        except StateConflict:
            self._discard_temp()
            raise
        except OSError as e:
            self._discard_temp()
            raise StateWriteFailed(f"Could not write state file {self.path}: {e}")

        self._seen_digest = _digest(raw)
        logger.info(f"Persisted {len(state.accounts)} accounts to {self.path}")

    def initialize(self, accounts: Iterable[TrackedAccount] = ()) -> PersistedState:
        """
        Create a fresh balances file.

        Raises:
            StateWriteFailed: If the file already exists or cannot be written
        """
        if self.exists():
            raise StateWriteFailed(f"State file already exists: {self.path}")
        state = PersistedState(last_updated=int(time.time()), accounts=list(accounts))
        self.persist(state)
        return state


def add_account(
    state: PersistedState,
    address: str,
    kind: AccountKind,
    name: str,
    symbol: Optional[str] = None,
) -> PersistedState:
    """
    Append a new account to the end of the report order.

    Raises:
        ValueError: If the address is already tracked
    """
    if any(acc.address == address for acc in state.accounts):
        raise ValueError(f"Account already tracked: {address}")
    account = TrackedAccount(
        address=address,
        type=kind.value,
        symbol=symbol if symbol is not None else kind.value,
        name=name,
    )
    return replace(state, accounts=[*state.accounts, account])


def remove_account(state: PersistedState, address: str) -> PersistedState:
    """
    Drop an account, keeping the order of the rest.

    Raises:
        KeyError: If the address is not tracked
    """
    remaining = [acc for acc in state.accounts if acc.address != address]
    if len(remaining) == len(state.accounts):
        raise KeyError(address)
    return replace(state, accounts=remaining)
