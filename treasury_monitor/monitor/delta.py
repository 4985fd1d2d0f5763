"""
Balance Delta Engine
====================

Turns a freshly observed balance into updated account state.

Change detection works on display strings, not raw numbers: a balance only
counts as changed when its rendered form (grouped, at most 3 decimals)
differs from the stored previous rendering. Floating-point noise below
display precision is therefore ignored, and so is any real movement smaller
than half of the last displayed digit. That precision boundary is accepted:
two amounts that render identically are the same balance for reporting
purposes, and the stored previous amount is not advanced until the
rendering moves.
"""

import math
from dataclasses import replace
from decimal import Decimal, ROUND_HALF_UP
from typing import Tuple

from ..models import BalanceChange, BalanceSnapshot, Direction, TrackedAccount

# Display precision (en-US style: grouped thousands, up to 3 fraction digits)
DISPLAY_DECIMALS = 3
_QUANTUM = Decimal(1).scaleb(-DISPLAY_DECIMALS)

UNCHANGED = BalanceChange(num=0, text="0", direction=None)


def format_amount(value: float) -> str:
    """
    Render an amount the way the dashboard displays it.

    Examples:
        1234.5678 -> "1,234.568"
        150.0     -> "150"
        0.0004    -> "0"
        -2.5      -> "-2.5"
    """
    if isinstance(value, float) and not math.isfinite(value):
        raise ValueError(f"Cannot format non-finite amount {value!r}")
    # str() of a float is its shortest round-tripping repr
    rounded = Decimal(str(value)).quantize(_QUANTUM, rounding=ROUND_HALF_UP)
    if rounded == 0:
        return "0"
    text = f"{rounded:,f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def display_changed(previous_display: str, current_display: str) -> bool:
    """Whether two display strings represent a reportable balance change."""
    return previous_display != current_display


def compute_change(previous: BalanceSnapshot, current: float) -> Tuple[str, BalanceChange]:
    """
    Compare a new observation against the stored previous balance.

    Args:
        previous: Last reported amount and its display string
        current: Newly observed amount

    Returns:
        Tuple of (display string for ``current``, BalanceChange)

    A display change whose numeric delta is exactly zero (possible when the
    stored previous string was written by another formatter) is classified
    NEGATIVE: only a strictly positive delta is POSITIVE.
    """
    display = format_amount(current)
    if not display_changed(previous.text, display):
        return display, UNCHANGED

    delta = current - previous.num
    direction = Direction.POSITIVE if delta > 0 else Direction.NEGATIVE
    return display, BalanceChange(num=delta, text=format_amount(abs(delta)), direction=direction)


def apply_observation(account: TrackedAccount, current: float) -> TrackedAccount:
    """
    Return a copy of ``account`` updated with a new observation.

    - currentBalances is always overwritten
    - prevBalances and balanceChange advance only on a display change
    - balanceChange resets to zero/no direction otherwise
    """
    display, change = compute_change(account.prev_balances, current)
    snapshot = BalanceSnapshot(num=current, text=display)

    if change.direction is None:
        return replace(account, current_balances=snapshot, balance_change=change)

    return replace(
        account,
        prev_balances=snapshot,
        current_balances=snapshot,
        balance_change=change,
    )
