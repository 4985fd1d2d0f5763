"""
Price Source
============

USD price of the reference asset from the CoinGecko simple-price endpoint.

A missing price is not fatal: ``fetch_price`` always returns a PriceQuote,
with ``error`` set and ``price_usd`` 0 when no price could be obtained.
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional

import requests

from ..errors import PriceUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PriceQuote:
    """Result of a price lookup."""
    price_usd: float = 0.0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class PriceOracle:
    """Interface: resolve the current USD price of the reference asset."""

    def fetch_price(self) -> PriceQuote:
        raise NotImplementedError


class CoinGeckoPriceOracle(PriceOracle):
    def __init__(
        self,
        *,
        base_url: str,
        asset_id: str = "solana",
        currency: str = "usd",
        timeout_s: float = 10.0,
        retries: int = 1,
    ) -> None:
        self.base_url = base_url
        self.asset_id = asset_id
        self.currency = currency
        self.timeout_s = timeout_s
        self.retries = max(0, int(retries))
        self._session = requests.Session()
        self._session.headers.update({"User-Agent": "treasury-monitor/price"})

    def _get_price(self) -> float:
        params = {"ids": self.asset_id, "vs_currencies": self.currency}
        last_err: Optional[str] = None
        for i in range(self.retries + 1):
            try:
                r = self._session.get(self.base_url, params=params, timeout=self.timeout_s)
                if r.status_code == 200:
                    data = r.json()
                    price = (data.get(self.asset_id) or {}).get(self.currency)
                    if price is None:
                        raise PriceUnavailable(f"no {self.currency} price for {self.asset_id} in response")
                    return float(price)
                last_err = f"HTTP {r.status_code}: {r.text[:200]}"
            except PriceUnavailable:
                raise
            except (requests.RequestException, ValueError, AttributeError) as e:
                last_err = str(e)
            if i < self.retries:
                time.sleep(0.5 * (2 ** i))
        raise PriceUnavailable(last_err or "price request failed")

    def fetch_price(self) -> PriceQuote:
        logger.info(f"Fetching {self.asset_id} price")
        try:
            price = self._get_price()
        except PriceUnavailable as e:
            logger.warning(f"Price unavailable for {self.asset_id}: {e}")
            return PriceQuote(price_usd=0.0, error=str(e))
        logger.info(f"{self.asset_id} price: ${price}")
        return PriceQuote(price_usd=price)
