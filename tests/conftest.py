"""
Shared fixtures and fakes for the treasury monitor tests.
"""
import json
import sys
import threading
import time
from pathlib import Path

import pytest

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from treasury_monitor.api.coingecko import PriceOracle, PriceQuote
from treasury_monitor.errors import BalanceQueryFailed, PriceUnavailable, PublishFailed


NATIVE_ADDR = "So1Treasury11111111111111111111111111111111"
TOKEN_ADDR = "UsdcTreasury1111111111111111111111111111111"
OTHER_ADDR = "Bonk111111111111111111111111111111111111111"


def make_account(address, account_type, name, prev_num=0, prev_str="0", cur_num=None, cur_str=None, **extra):
    data = {
        "address": address,
        "type": account_type,
        "symbol": "◎" if account_type == "SOL" else "$",
        "name": name,
        "prevBalances": {"str": prev_str, "num": prev_num},
        "currentBalances": {
            "str": cur_str if cur_str is not None else prev_str,
            "num": cur_num if cur_num is not None else prev_num,
        },
        "balanceChange": {"str": "0", "num": 0, "direction": None},
    }
    data.update(extra)
    return data


@pytest.fixture
def state_dict():
    return {
        "last_updated": 1700000000,
        "accounts": [
            make_account(NATIVE_ADDR, "SOL", "Hot Wallet", prev_num=3.0, prev_str="3"),
            make_account(TOKEN_ADDR, "USDC", "Ops USDC", prev_num=100, prev_str="100.00"),
            make_account(OTHER_ADDR, "BONK", "Memes", prev_num=5, prev_str="5", note="keep me"),
        ],
    }


@pytest.fixture
def state_file(tmp_path, state_dict):
    path = tmp_path / "balances.json"
    path.write_text(json.dumps(state_dict, indent=2), encoding="utf-8")
    return path


class FakeOracle(PriceOracle):
    def __init__(self, price=20.0, error=None, raises=False):
        self.price = price
        self.error = error
        self.raises = raises
        self.calls = 0

    def fetch_price(self):
        self.calls += 1
        if self.raises:
            raise PriceUnavailable("oracle down")
        if self.error:
            return PriceQuote(price_usd=0.0, error=self.error)
        return PriceQuote(price_usd=self.price)


class FakeReader:
    """Stands in for BalanceReader.fetch_balances."""

    def __init__(self, balances=None, fail_address=None, delay=0.0):
        self.balances = balances or {}
        self.fail_address = fail_address
        self.delay = delay
        self.calls = 0
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def fetch_balances(self, accounts):
        with self._lock:
            self.calls += 1
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                time.sleep(self.delay)
            result = {}
            for i, acc in enumerate(accounts):
                if not acc.is_tracked:
                    continue
                if acc.address == self.fail_address:
                    raise BalanceQueryFailed(acc, RuntimeError("rpc down"))
                result[i] = self.balances.get(acc.address, acc.current_balances.num)
            return result
        finally:
            with self._lock:
                self.active -= 1


class RecordingPublisher:
    def __init__(self, fail=False):
        self.fail = fail
        self.reports = []
        self.statuses = []
        self.presence = []

    def publish(self, report):
        if self.fail:
            raise PublishFailed("telegram down")
        self.reports.append(report)

    def announce_presence(self, name, description):
        self.presence.append((name, description))
        return True

    def send_service_status(self, status, details="", timestamp=None):
        self.statuses.append((status, details))
        return True


@pytest.fixture
def oracle():
    return FakeOracle(price=20.0)


@pytest.fixture
def publisher():
    return RecordingPublisher()
