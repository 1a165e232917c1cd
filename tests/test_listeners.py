"""Tests for listeners.py - registration, isolation and unsubscribe."""

from __future__ import annotations

from datetime import UTC, datetime

from custom_components.wondernest.listeners import ListenerRegistry
from custom_components.wondernest.models import (
    Achievement,
    CurrencyTransaction,
    ScoreThreshold,
    ScoreUpdate,
)

NOW = datetime(2026, 3, 1, 9, 0, tzinfo=UTC)
TXN = CurrencyTransaction(amount=5, reason="r", timestamp=NOW, balance_after=5)
ACHIEVEMENT = Achievement(
    achievement_id="score_100", name="Century", criterion=ScoreThreshold(100)
)
EVENT = ScoreUpdate(
    game_id="math_quest",
    child_id="child_1",
    session_id="s1",
    new_score=100,
    previous_score=90,
)


class RecordingReporter:
    """ErrorReporter that keeps what it was handed."""

    def __init__(self) -> None:
        self.reports: list[tuple[str, BaseException]] = []

    def report(self, source: str, err: BaseException) -> None:
        self.reports.append((source, err))


class TestNotify:
    """Sync and async listeners."""

    async def test_sync_and_async_listeners(self) -> None:
        registry = ListenerRegistry()
        calls: list[str] = []

        def on_currency(child_id: str, balance: int, txn: CurrencyTransaction) -> None:
            calls.append(f"sync:{child_id}:{balance}")

        async def on_currency_async(
            child_id: str, balance: int, txn: CurrencyTransaction
        ) -> None:
            calls.append(f"async:{child_id}:{balance}")

        registry.add_currency_listener(on_currency)
        registry.add_currency_listener(on_currency_async)
        await registry.async_notify_currency("child_1", 5, TXN)

        assert calls == ["sync:child_1:5", "async:child_1:5"]

    async def test_achievement_listener_args(self) -> None:
        registry = ListenerRegistry()
        seen: list[tuple] = []
        registry.add_achievement_listener(lambda *args: seen.append(args))

        await registry.async_notify_achievement("math_quest", "child_1", ACHIEVEMENT, EVENT)

        assert seen == [("math_quest", "child_1", ACHIEVEMENT, EVENT)]


class TestIsolation:
    """A failing listener never stops the others."""

    async def test_failure_reported_and_others_run(self) -> None:
        reporter = RecordingReporter()
        registry = ListenerRegistry(reporter)
        calls: list[int] = []

        def broken(*_args: object) -> None:
            raise RuntimeError("boom")

        async def broken_async(*_args: object) -> None:
            raise ValueError("async boom")

        registry.add_currency_listener(broken)
        registry.add_currency_listener(broken_async)
        registry.add_currency_listener(lambda *_args: calls.append(1))

        await registry.async_notify_currency("child_1", 5, TXN)

        assert calls == [1]
        assert [type(err) for _, err in reporter.reports] == [RuntimeError, ValueError]
        assert "broken" in reporter.reports[0][0]

    async def test_default_reporter_logs(self, caplog) -> None:
        registry = ListenerRegistry()

        def broken(*_args: object) -> None:
            raise RuntimeError("boom")

        registry.add_achievement_listener(broken)
        await registry.async_notify_achievement("math_quest", "child_1", ACHIEVEMENT, EVENT)

        assert "boom" in caplog.text


class TestUnsubscribe:
    """Unsubscribe callables."""

    async def test_unsubscribe(self) -> None:
        registry = ListenerRegistry()
        calls: list[int] = []
        unsubscribe = registry.add_currency_listener(lambda *_args: calls.append(1))

        unsubscribe()
        unsubscribe()
        await registry.async_notify_currency("child_1", 5, TXN)

        assert calls == []
