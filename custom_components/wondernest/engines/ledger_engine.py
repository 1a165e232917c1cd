"""Ledger Engine - Pure logic for currency transactions.

This engine provides stateless, pure Python functions for:
- Delta and spend validation
- Sufficient funds checks (balance never goes negative)
- Transaction creation with balance_after bookkeeping
- Currency statistics over a transaction history

ARCHITECTURE: This is a pure logic engine with NO Home Assistant dependencies.
All functions are static methods that operate on passed-in data.
State management and locking belong in LedgerManager.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from ..exceptions import InsufficientFundsError, ValidationError
from ..models import CurrencyStats, CurrencyTransaction
from ..utils.dt_utils import dt_now_utc


class LedgerEngine:
    """Pure logic engine for balance arithmetic and transactions.

    All methods are static - no instance state. Balances are whole currency
    units (ints); there is no rounding.
    """

    @staticmethod
    def validate_delta(delta: int) -> None:
        """Reject deltas that would create meaningless transactions.

        Raises:
            ValidationError: Delta is zero or not an integer
        """
        if isinstance(delta, bool) or not isinstance(delta, int):
            raise ValidationError(f"Currency delta must be an integer, got {delta!r}")
        if delta == 0:
            raise ValidationError("Currency delta must not be zero")

    @staticmethod
    def validate_positive_amount(amount: int) -> None:
        """Spend and add amounts are positive; the sign is applied internally.

        Raises:
            ValidationError: Amount is not a positive integer
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValidationError(f"Amount must be a positive integer, got {amount!r}")

    @staticmethod
    def validate_sufficient_funds(balance: int, cost: int) -> bool:
        """Check if balance is sufficient for a withdrawal.

        Args:
            balance: Current currency balance
            cost: Amount to withdraw (positive value)

        Returns:
            True if balance >= cost, False otherwise
        """
        return balance >= cost

    @classmethod
    def calculate_new_balance(cls, child_id: str, balance: int, delta: int) -> int:
        """Calculate the balance after applying ``delta``.

        Raises:
            InsufficientFundsError: The result would be negative
        """
        if delta < 0 and not cls.validate_sufficient_funds(balance, -delta):
            raise InsufficientFundsError(child_id, balance, -delta)
        return balance + delta

    @classmethod
    def create_transaction(
        cls,
        child_id: str,
        current_balance: int,
        delta: int,
        reason: str,
        now: datetime | None = None,
    ) -> CurrencyTransaction:
        """Create an immutable transaction for ``delta`` against ``current_balance``.

        Args:
            child_id: Owner of the account (for error reporting)
            current_balance: Balance BEFORE the transaction
            delta: Amount to add (positive) or subtract (negative)
            reason: Human-readable reason
            now: Optional timestamp override for deterministic tests

        Raises:
            ValidationError: Delta is zero
            InsufficientFundsError: The balance would go negative
        """
        cls.validate_delta(delta)
        new_balance = cls.calculate_new_balance(child_id, current_balance, delta)
        return CurrencyTransaction(
            amount=delta,
            reason=reason,
            timestamp=now or dt_now_utc(),
            balance_after=new_balance,
        )

    @staticmethod
    def calculate_stats(
        balance: int, transactions: Sequence[CurrencyTransaction]
    ) -> CurrencyStats:
        """Summarize a transaction history."""
        earnings = [t.amount for t in transactions if t.is_earning]
        total_earned = sum(earnings)
        total_spent = -sum(t.amount for t in transactions if t.is_spending)
        return CurrencyStats(
            current_balance=balance,
            total_earned=total_earned,
            total_spent=total_spent,
            transaction_count=len(transactions),
            average_earning_per_transaction=(
                total_earned // len(earnings) if earnings else 0
            ),
        )

    @staticmethod
    def is_consistent(balance: int, transactions: Sequence[CurrencyTransaction]) -> bool:
        """Return True when the history sums to the balance.

        The newest transaction's balance_after must also equal the balance.
        """
        if sum(t.amount for t in transactions) != balance:
            return False
        if transactions and transactions[-1].balance_after != balance:
            return False
        return True
