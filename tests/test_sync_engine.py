"""Tests for SyncEngine - queue bookkeeping and backoff."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from custom_components.wondernest import const
from custom_components.wondernest.engines.sync_engine import SyncEngine
from custom_components.wondernest.exceptions import ValidationError

NOW = datetime(2026, 3, 1, 9, 0, tzinfo=UTC)


class TestBackoff:
    """Exponential backoff capped at 60 seconds."""

    @pytest.mark.parametrize(
        ("attempts", "seconds"),
        [(0, 0), (1, 1), (2, 2), (3, 4), (6, 32), (7, 60), (50, 60), (10_000, 60)],
    )
    def test_delays(self, attempts: int, seconds: int) -> None:
        assert SyncEngine.backoff_delay(attempts) == timedelta(seconds=seconds)


class TestItems:
    """Item creation and retries."""

    def test_create_item_due_now(self) -> None:
        item = SyncEngine.create_item(const.SYNC_KIND_EVENT, "e1", {"a": 1}, NOW)
        assert item.next_attempt_at == NOW
        assert item.attempts == 0
        assert item.last_error is None

    def test_unknown_kind_rejected(self) -> None:
        with pytest.raises(ValidationError):
            SyncEngine.create_item("carrier_pigeon", "e1", {}, NOW)

    def test_empty_key_rejected(self) -> None:
        with pytest.raises(ValidationError):
            SyncEngine.create_item(const.SYNC_KIND_EVENT, "", {}, NOW)

    def test_schedule_retry(self) -> None:
        """Each failure doubles the wait and keeps the error."""
        item = SyncEngine.create_item(const.SYNC_KIND_EVENT, "e1", {}, NOW)
        first = SyncEngine.schedule_retry(item, NOW, "offline")
        second = SyncEngine.schedule_retry(first, NOW, "still offline")
        assert first.attempts == 1
        assert first.next_attempt_at == NOW + timedelta(seconds=1)
        assert second.attempts == 2
        assert second.next_attempt_at == NOW + timedelta(seconds=2)
        assert second.last_error == "still offline"
        assert second.item_id == item.item_id

    def test_unlock_key(self) -> None:
        assert SyncEngine.unlock_key("s1", "score_100") == "s1:score_100"


class TestQueue:
    """Due items, wake-up time and stats."""

    def test_due_items_oldest_first(self) -> None:
        newer = SyncEngine.create_item(
            const.SYNC_KIND_EVENT, "b", {}, NOW + timedelta(seconds=5)
        )
        older = SyncEngine.create_item(const.SYNC_KIND_EVENT, "a", {}, NOW)
        second = NOW + timedelta(seconds=1)
        waiting = SyncEngine.schedule_retry(
            SyncEngine.create_item(const.SYNC_KIND_UNLOCK, "c", {}, second), second, "x"
        )
        items = [newer, waiting, older]

        due = SyncEngine.due_items(items, NOW + timedelta(seconds=5))
        assert [item.idempotency_key for item in due] == ["a", "c", "b"]
        assert [i.idempotency_key for i in SyncEngine.due_items(items, NOW)] == ["a"]
        assert len(SyncEngine.due_items(items, NOW, force=True)) == 3

    def test_next_wakeup(self) -> None:
        assert SyncEngine.next_wakeup([]) is None
        item = SyncEngine.schedule_retry(
            SyncEngine.create_item(const.SYNC_KIND_EVENT, "a", {}, NOW), NOW, "x"
        )
        assert SyncEngine.next_wakeup([item]) == NOW + timedelta(seconds=1)

    def test_contains_key_and_stats(self) -> None:
        items = [
            SyncEngine.create_item(const.SYNC_KIND_EVENT, "a", {}, NOW),
            SyncEngine.schedule_retry(
                SyncEngine.create_item(const.SYNC_KIND_TRANSACTION, "t", {}, NOW),
                NOW,
                "x",
            ),
        ]
        assert SyncEngine.contains_key(items, "t")
        assert not SyncEngine.contains_key(items, "zzz")
        stats = SyncEngine.calculate_stats(items)
        assert stats[const.SYNC_KIND_EVENT] == 1
        assert stats[const.SYNC_KIND_TRANSACTION] == 1
        assert stats[const.SYNC_KIND_UNLOCK] == 0
        assert stats["total"] == 2
        assert stats["retrying"] == 1
