"""Ledger Manager - Currency balances and transaction history.

This manager handles all currency operations:
- Applying signed deltas (earnings and spending) with NSF checks
- Spending and crediting with positive amounts
- Transaction history and statistics
- Notifying currency listeners and queueing transactions for sync

ARCHITECTURE:
- LedgerManager = "The Bank" (STATEFUL, one asyncio.Lock per child)
- LedgerEngine = Pure arithmetic and transaction creation (STATELESS)

A rejected operation leaves balance and history untouched.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from .. import const
from ..engines.ledger_engine import LedgerEngine
from ..exceptions import InsufficientFundsError
from .base_manager import BaseManager

if TYPE_CHECKING:
    from ..models import CurrencyStats, CurrencyTransaction


__all__ = ["InsufficientFundsError", "LedgerManager"]


class LedgerManager(BaseManager):
    """Manager for currency accounts.

    Responsibilities:
    - Serialize every read-check-write of a child's balance
    - Persist the transaction before anyone is notified
    - Notify currency listeners and queue the transaction for sync

    NOT responsible for:
    - Deciding how much to award (RewardManager)
    """

    async def async_setup(self) -> None:
        """Nothing to restore; accounts are read from the store on demand."""

    async def async_apply(
        self,
        child_id: str,
        delta: int,
        reason: str,
        now: datetime | None = None,
    ) -> int:
        """Apply a signed delta to the child's balance.

        Args:
            child_id: Account owner
            delta: Positive to earn, negative to spend (never zero)
            reason: Human-readable reason stored on the transaction
            now: Optional timestamp override for deterministic tests

        Returns:
            New balance after the transaction

        Raises:
            ValidationError: Delta is zero or not an integer
            InsufficientFundsError: The balance would go negative
            PersistenceError: The transaction could not be saved
        """
        LedgerEngine.validate_delta(delta)

        async with self._get_lock(child_id):
            balance = await self.store.async_get_balance(child_id)
            try:
                transaction = LedgerEngine.create_transaction(
                    child_id, balance, delta, reason, now
                )
            except InsufficientFundsError as err:
                const.LOGGER.warning("LedgerManager: %s (%s)", err, reason)
                raise
            await self.store.async_append_transaction(child_id, transaction)

        const.LOGGER.debug(
            "LedgerManager: %s %+d for '%s' -> balance %s",
            child_id,
            delta,
            reason,
            transaction.balance_after,
        )
        await self.listeners.async_notify_currency(
            child_id, transaction.balance_after, transaction
        )
        await self.coordinator.sync_manager.async_enqueue(
            const.SYNC_KIND_TRANSACTION,
            transaction.transaction_id,
            {"child_id": child_id, **transaction.as_dict()},
        )
        return transaction.balance_after

    async def async_spend(
        self, child_id: str, amount: int, reason: str, now: datetime | None = None
    ) -> int:
        """Spend a positive amount. Same as applying ``-amount``.

        Raises:
            ValidationError: Amount is not positive
            InsufficientFundsError: The balance is too low
        """
        LedgerEngine.validate_positive_amount(amount)
        return await self.async_apply(child_id, -amount, reason, now)

    async def async_add(
        self, child_id: str, amount: int, reason: str, now: datetime | None = None
    ) -> int:
        """Credit a positive amount (bonus or purchase)."""
        LedgerEngine.validate_positive_amount(amount)
        return await self.async_apply(child_id, amount, reason, now)

    async def async_get_balance(self, child_id: str) -> int:
        return await self.store.async_get_balance(child_id)

    async def async_get_history(self, child_id: str) -> list[CurrencyTransaction]:
        """Transactions oldest first."""
        return await self.store.async_get_transactions(child_id)

    async def async_get_stats(self, child_id: str) -> CurrencyStats:
        balance = await self.store.async_get_balance(child_id)
        transactions = await self.store.async_get_transactions(child_id)
        return LedgerEngine.calculate_stats(balance, transactions)
