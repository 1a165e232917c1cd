"""Tests for LedgerEngine - pure balance arithmetic and transaction creation."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from custom_components.wondernest.engines.ledger_engine import LedgerEngine
from custom_components.wondernest.exceptions import (
    InsufficientFundsError,
    ValidationError,
)
from custom_components.wondernest.models import CurrencyTransaction

NOW = datetime(2026, 3, 1, 9, 30, tzinfo=UTC)


def _txn(amount: int, balance_after: int) -> CurrencyTransaction:
    return CurrencyTransaction(
        amount=amount, reason="test", timestamp=NOW, balance_after=balance_after
    )


class TestValidation:
    """Delta and amount validation."""

    @pytest.mark.parametrize("delta", [0, 1.5, "5", True, None])
    def test_invalid_deltas(self, delta: object) -> None:
        """Zero and non-integers never become transactions."""
        with pytest.raises(ValidationError):
            LedgerEngine.validate_delta(delta)  # type: ignore[arg-type]

    @pytest.mark.parametrize("amount", [0, -5, 2.0])
    def test_invalid_amounts(self, amount: object) -> None:
        """Spend amounts must be positive integers."""
        with pytest.raises(ValidationError):
            LedgerEngine.validate_positive_amount(amount)  # type: ignore[arg-type]

    def test_sufficient_funds_is_inclusive(self) -> None:
        """Spending the whole balance is allowed."""
        assert LedgerEngine.validate_sufficient_funds(50, 50)
        assert not LedgerEngine.validate_sufficient_funds(50, 51)


class TestCreateTransaction:
    """Transaction creation with balance_after bookkeeping."""

    def test_earning(self) -> None:
        """A positive delta raises the balance."""
        txn = LedgerEngine.create_transaction("child_1", 10, 25, "Reward", NOW)
        assert txn.amount == 25
        assert txn.balance_after == 35
        assert txn.timestamp == NOW
        assert txn.is_earning

    def test_spend_to_zero(self) -> None:
        """Spending exactly the balance leaves zero."""
        txn = LedgerEngine.create_transaction("child_1", 40, -40, "Sticker", NOW)
        assert txn.balance_after == 0
        assert txn.is_spending

    def test_overdraw_raises(self) -> None:
        """The balance never goes negative."""
        with pytest.raises(InsufficientFundsError) as exc_info:
            LedgerEngine.create_transaction("child_1", 30, -50, "Toy", NOW)
        err = exc_info.value
        assert err.child_id == "child_1"
        assert err.current_balance == 30
        assert err.requested_amount == 50
        assert err.shortfall == 20

    def test_transaction_ids_unique(self) -> None:
        """Every transaction gets its own id."""
        first = LedgerEngine.create_transaction("child_1", 0, 1, "a", NOW)
        second = LedgerEngine.create_transaction("child_1", 1, 1, "b", NOW)
        assert first.transaction_id != second.transaction_id


class TestStats:
    """Statistics over a history."""

    def test_stats(self) -> None:
        """Earned, spent and integer average of earnings."""
        history = [_txn(10, 10), _txn(25, 35), _txn(-15, 20)]
        stats = LedgerEngine.calculate_stats(20, history)
        assert stats.current_balance == 20
        assert stats.total_earned == 35
        assert stats.total_spent == 15
        assert stats.net_earned == 20
        assert stats.transaction_count == 3
        assert stats.average_earning_per_transaction == 17

    def test_empty_history(self) -> None:
        """No transactions means zero everywhere."""
        stats = LedgerEngine.calculate_stats(0, [])
        assert stats.transaction_count == 0
        assert stats.average_earning_per_transaction == 0

    def test_consistency(self) -> None:
        """The history must sum to the balance and end on it."""
        history = [_txn(10, 10), _txn(-4, 6)]
        assert LedgerEngine.is_consistent(6, history)
        assert not LedgerEngine.is_consistent(7, history)
        assert LedgerEngine.is_consistent(0, [])
