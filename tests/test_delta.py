#!/usr/bin/env python3
"""
Unit tests for the balance delta engine

Tests cover:
- Display formatting
- Change detection on display strings
- Direction and tie-break rules
- Applying an observation to an account
"""
import pytest

from treasury_monitor.models import BalanceSnapshot, Direction, TrackedAccount
from treasury_monitor.monitor.delta import (
    apply_observation,
    compute_change,
    display_changed,
    format_amount,
)


class TestFormatAmount:
    """Test format_amount rendering"""

    @pytest.mark.parametrize("value,expected", [
        (150, "150"),
        (150.0, "150"),
        (1234.5678, "1,234.568"),
        (1234567, "1,234,567"),
        (0.1 + 0.2, "0.3"),
        (3.5, "3.5"),
        (-2.5, "-2.5"),
        (0.0004, "0"),
        (-0.0004, "0"),
        (0.0005, "0.001"),
    ])
    def test_values(self, value, expected):
        assert format_amount(value) == expected

    def test_non_finite_rejected(self):
        with pytest.raises(ValueError):
            format_amount(float("nan"))


class TestComputeChange:
    """Test compute_change"""

    def test_increase_is_positive_with_exact_delta(self):
        previous = BalanceSnapshot(num=3.25, text="3.25")
        current = 7.75
        display, change = compute_change(previous, current)

        assert display == "7.75"
        assert change.direction is Direction.POSITIVE
        assert change.num == current - previous.num
        assert change.text == "4.5"

    def test_decrease_is_negative_with_magnitude_text(self):
        display, change = compute_change(BalanceSnapshot(num=1000, text="1,000"), 995.5)

        assert display == "995.5"
        assert change.direction is Direction.NEGATIVE
        assert change.num == -4.5
        assert change.text == "4.5"

    def test_same_display_string_is_unchanged(self):
        """Numeric noise below display precision is not a change"""
        display, change = compute_change(BalanceSnapshot(num=1.0, text="1"), 1.0001)

        assert display == "1"
        assert change.direction is None
        assert change.num == 0
        assert change.text == "0"

    def test_zero_delta_with_changed_display_is_negative(self):
        """Stored string from another formatter: delta 0 still resolves"""
        display, change = compute_change(BalanceSnapshot(num=100, text="100.00"), 100)

        assert display == "100"
        assert change.direction is Direction.NEGATIVE
        assert change.num == 0

    def test_token_scenario(self):
        """previous "100.00" -> current 150"""
        display, change = compute_change(BalanceSnapshot(num=100, text="100.00"), 150)

        assert display == "150"
        assert change.num == 50
        assert change.text == "50"
        assert change.direction is Direction.POSITIVE

    def test_display_changed(self):
        assert display_changed("1", "2")
        assert not display_changed("1,000", "1,000")


class TestApplyObservation:
    """Test apply_observation"""

    def _account(self, num, text):
        return TrackedAccount(
            address="addr",
            type="USDC",
            symbol="$",
            name="Ops",
            prev_balances=BalanceSnapshot(num=num, text=text),
            current_balances=BalanceSnapshot(num=num, text=text),
        )

    def test_change_advances_previous(self):
        account = self._account(100, "100.00")
        updated = apply_observation(account, 150)

        assert updated.current_balances == BalanceSnapshot(num=150, text="150")
        assert updated.prev_balances == BalanceSnapshot(num=150, text="150")
        assert updated.balance_change.direction is Direction.POSITIVE
        assert updated.balance_change.num == 50

    def test_no_change_keeps_previous_and_overwrites_current(self):
        account = self._account(2.0, "2")
        updated = apply_observation(account, 2.0002)

        assert updated.prev_balances == BalanceSnapshot(num=2.0, text="2")
        assert updated.current_balances == BalanceSnapshot(num=2.0002, text="2")
        assert updated.balance_change.direction is None
        assert updated.balance_change.num == 0

    def test_original_account_untouched(self):
        account = self._account(100, "100.00")
        apply_observation(account, 150)

        assert account.current_balances.num == 100
        assert account.prev_balances.text == "100.00"

    def test_immutable_fields_preserved(self):
        account = self._account(1, "1")
        updated = apply_observation(account, 9)

        assert (updated.address, updated.type, updated.name, updated.symbol) == \
            (account.address, account.type, account.name, account.symbol)
