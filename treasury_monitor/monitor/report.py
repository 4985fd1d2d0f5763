"""
Report Aggregation
==================

Folds tracked accounts into the dashboard report: one field per account in
state order, then totals, fiat valuation, price, and update time.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Sequence

import pytz

from ..api.coingecko import PriceOracle, PriceQuote
from ..errors import PriceUnavailable
from ..models import AccountKind, TrackedAccount
from .delta import format_amount

logger = logging.getLogger(__name__)

NATIVE_GLYPH = "◎"
FIAT_GLYPH = "$"

TOTAL_NATIVE_FIELD = "Total SOL Balance:"
TOTAL_FIAT_FIELD = "Total USDC Value:"
PRICE_FIELD = "Current SOL Price:"
# Absolute wall-clock time in the report timezone
UPDATED_FIELD = "Last Updated At:"


def format_timestamp(epoch_seconds: int, tz_name: str = "America/New_York") -> str:
    """Render a unix timestamp as wall-clock time in ``tz_name``."""
    moment = datetime.fromtimestamp(epoch_seconds, tz=timezone.utc)
    local = moment.astimezone(pytz.timezone(tz_name))
    return local.strftime("%Y-%m-%d %H:%M:%S %Z")


@dataclass(frozen=True)
class ReportField:
    """A named entry of the report. ``link`` points to the account explorer."""
    name: str
    value: str
    link: Optional[str] = None
    inline: bool = True


@dataclass(frozen=True)
class Report:
    title: str
    fields: List[ReportField] = field(default_factory=list)
    updated_at: int = 0
    total_native: float = 0.0
    total_token: float = 0.0
    price: float = 0.0
    fiat_valuation: float = 0.0
    price_error: Optional[str] = None

    @property
    def account_fields(self) -> List[ReportField]:
        return [f for f in self.fields if f.link is not None]


class ReportAggregator:
    """Builds a Report from accounts and the price oracle."""

    def __init__(
        self,
        title: str = "Funds",
        explorer_url: str = "https://solscan.io/account/{address}",
        tz_name: str = "America/New_York",
    ):
        self.title = title
        self.explorer_url = explorer_url
        # Fail at construction on an unknown zone
        self.tz_name = pytz.timezone(tz_name).zone

    def account_link(self, address: str) -> str:
        return self.explorer_url.format(address=address)

    def account_field(self, account: TrackedAccount) -> ReportField:
        lines = [f"{account.symbol} {account.current_balances.text}"]
        change = account.balance_change
        if change.direction is not None:
            lines.append(f"Change: {change.direction.value} {change.text}")
        return ReportField(
            name=f"{account.name}:",
            value="\n".join(lines),
            link=self.account_link(account.address),
        )

    @staticmethod
    def _quote(oracle: PriceOracle) -> PriceQuote:
        try:
            return oracle.fetch_price()
        except PriceUnavailable as e:
            logger.warning(f"Price unavailable, valuing at 0: {e}")
            return PriceQuote(price_usd=0.0, error=str(e))

    def build(
        self,
        accounts: Sequence[TrackedAccount],
        oracle: PriceOracle,
        updated_at: Optional[int] = None,
    ) -> Report:
        """
        Aggregate accounts into a report.

        Args:
            accounts: Accounts in state order (field order follows it)
            oracle: Price source for the native asset
            updated_at: Unix seconds of the observation (default: now)

        Returns:
            Report ready to publish
        """
        if updated_at is None:
            updated_at = int(time.time())

        total_native = 0.0
        total_token = 0.0
        fields: List[ReportField] = []

        for account in accounts:
            kind = account.kind
            if kind is AccountKind.NATIVE:
                total_native += account.current_balances.num
            elif kind is AccountKind.TOKEN:
                total_token += account.current_balances.num
            else:
                continue
            fields.append(self.account_field(account))

        quote = self._quote(oracle)
        price = quote.price_usd if quote.ok else 0.0
        fiat_valuation = total_native * price + total_token

        price_text = format_amount(price)
        if not quote.ok:
            price_text += " (unavailable)"

        fields.extend([
            ReportField(TOTAL_NATIVE_FIELD, f"{NATIVE_GLYPH} {format_amount(total_native)}", inline=False),
            ReportField(TOTAL_FIAT_FIELD, f"{FIAT_GLYPH} {format_amount(fiat_valuation)}", inline=False),
            ReportField(PRICE_FIELD, price_text, inline=False),
            ReportField(UPDATED_FIELD, format_timestamp(updated_at, self.tz_name), inline=False),
        ])

        logger.info(
            f"Report: {len(fields) - 4} accounts, {format_amount(total_native)} SOL, "
            f"{format_amount(total_token)} USDC, valuation ${format_amount(fiat_valuation)}"
        )

        return Report(
            title=self.title,
            fields=fields,
            updated_at=updated_at,
            total_native=total_native,
            total_token=total_token,
            price=price,
            fiat_valuation=fiat_valuation,
            price_error=quote.error,
        )
