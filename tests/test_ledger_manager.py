"""Tests for LedgerManager - balances, history, listeners and sync."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import pytest

from custom_components.wondernest import const
from custom_components.wondernest.engines.ledger_engine import LedgerEngine
from custom_components.wondernest.exceptions import (
    InsufficientFundsError,
    PersistenceError,
    ValidationError,
)
from custom_components.wondernest.models import CurrencyTransaction
from tests.helpers import FakeRemoteSink, SetupResult, failing_writes

SetupNest = Callable[..., Awaitable[SetupResult]]


class TestApply:
    """Signed deltas."""

    async def test_earn_and_spend(self, setup_nest: SetupNest) -> None:
        result = await setup_nest()
        ledger = result.coordinator.ledger_manager

        assert await ledger.async_apply("child_1", 50, "Reward") == 50
        assert await ledger.async_spend("child_1", 20, "Sticker") == 30
        assert await ledger.async_add("child_1", 5, "Bonus") == 35

        history = await ledger.async_get_history("child_1")
        assert [t.amount for t in history] == [50, -20, 5]
        assert [t.balance_after for t in history] == [50, 30, 35]
        assert LedgerEngine.is_consistent(await ledger.async_get_balance("child_1"), history)

    async def test_insufficient_funds_leaves_state(self, setup_nest: SetupNest) -> None:
        """A rejected spend changes neither balance nor history."""
        result = await setup_nest()
        ledger = result.coordinator.ledger_manager
        await ledger.async_apply("child_1", 30, "Reward")

        with pytest.raises(InsufficientFundsError) as exc_info:
            await ledger.async_spend("child_1", 50, "Toy")

        assert exc_info.value.shortfall == 20
        assert await ledger.async_get_balance("child_1") == 30
        assert len(await ledger.async_get_history("child_1")) == 1

    @pytest.mark.parametrize("delta", [0, 2.5])
    async def test_invalid_delta(self, setup_nest: SetupNest, delta: object) -> None:
        result = await setup_nest()
        with pytest.raises(ValidationError):
            await result.coordinator.ledger_manager.async_apply("child_1", delta, "x")  # type: ignore[arg-type]

    async def test_spend_requires_positive_amount(self, setup_nest: SetupNest) -> None:
        result = await setup_nest()
        with pytest.raises(ValidationError):
            await result.coordinator.ledger_manager.async_spend("child_1", -5, "x")

    async def test_persistence_failure(self, setup_nest: SetupNest) -> None:
        """A failed save raises and leaves nothing behind."""
        result = await setup_nest()
        ledger = result.coordinator.ledger_manager
        with (
            failing_writes(),
            pytest.raises(PersistenceError),
        ):
            await ledger.async_apply("child_1", 10, "Reward")
        assert await ledger.async_get_balance("child_1") == 0
        assert await ledger.async_get_history("child_1") == []


class TestConcurrency:
    """Per-child serialization."""

    async def test_concurrent_spends_never_overdraw(self, setup_nest: SetupNest) -> None:
        """Of two spends that each fit alone, only one succeeds."""
        result = await setup_nest()
        ledger = result.coordinator.ledger_manager
        await ledger.async_apply("child_1", 30, "Reward")

        outcomes = await asyncio.gather(
            ledger.async_spend("child_1", 20, "A"),
            ledger.async_spend("child_1", 20, "B"),
            return_exceptions=True,
        )

        assert sorted(type(o).__name__ for o in outcomes) == [
            "InsufficientFundsError",
            "int",
        ]
        assert await ledger.async_get_balance("child_1") == 10

    async def test_concurrent_earnings_all_applied(self, setup_nest: SetupNest) -> None:
        result = await setup_nest()
        ledger = result.coordinator.ledger_manager
        await asyncio.gather(*(ledger.async_apply("child_1", 1, "tick") for _ in range(20)))
        assert await ledger.async_get_balance("child_1") == 20
        assert len(await ledger.async_get_history("child_1")) == 20


class TestNotifications:
    """Listeners and sync."""

    async def test_listener_sees_new_balance(self, setup_nest: SetupNest) -> None:
        result = await setup_nest()
        seen: list[tuple[str, int, CurrencyTransaction]] = []
        result.coordinator.listeners.add_currency_listener(
            lambda child_id, balance, txn: seen.append((child_id, balance, txn))
        )

        await result.coordinator.ledger_manager.async_apply("child_1", 7, "Reward")

        assert len(seen) == 1
        child_id, balance, txn = seen[0]
        assert (child_id, balance, txn.amount) == ("child_1", 7, 7)

    async def test_transaction_queued_for_sync(
        self, hass, setup_nest: SetupNest, remote_sink: FakeRemoteSink
    ) -> None:
        result = await setup_nest(remote_sink=remote_sink)
        await result.coordinator.ledger_manager.async_apply("child_1", 7, "Reward")
        await hass.async_block_till_done()

        assert remote_sink.delivered_kinds() == [const.SYNC_KIND_TRANSACTION]
        payload = remote_sink.delivered[0].payload
        assert payload["child_id"] == "child_1"
        assert payload[const.DATA_TRANSACTION_BALANCE_AFTER] == 7
        assert remote_sink.delivered[0].idempotency_key == (
            payload[const.DATA_TRANSACTION_ID]
        )

    async def test_stats(self, setup_nest: SetupNest) -> None:
        result = await setup_nest()
        ledger = result.coordinator.ledger_manager
        await ledger.async_apply("child_1", 10, "a")
        await ledger.async_apply("child_1", 20, "b")
        await ledger.async_spend("child_1", 5, "c")
        stats = await ledger.async_get_stats("child_1")
        assert stats.current_balance == 25
        assert stats.total_earned == 30
        assert stats.total_spent == 5
        assert stats.average_earning_per_transaction == 15
