"""Tests for SyncManager - the durable outbound queue and its retry timer."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import timedelta
from typing import Any

from homeassistant.core import HomeAssistant
from homeassistant.util import dt as dt_util
from pytest_homeassistant_custom_component.common import async_fire_time_changed

from custom_components.wondernest import const
from custom_components.wondernest.engines.sync_engine import SyncEngine
from custom_components.wondernest.exceptions import PermanentSyncError
from tests.helpers import FakeRemoteSink, SetupResult

SetupNest = Callable[..., Awaitable[SetupResult]]


class TestEnqueue:
    """Queueing payloads."""

    async def test_delivered_in_background(
        self, hass: HomeAssistant, setup_nest: SetupNest, remote_sink: FakeRemoteSink
    ) -> None:
        result = await setup_nest(remote_sink=remote_sink)
        sync = result.coordinator.sync_manager

        item = await sync.async_enqueue(const.SYNC_KIND_EVENT, "e1", {"a": 1})
        assert item is not None
        # Persisted before any push is attempted
        assert len(result.store.data[const.DATA_SYNC_QUEUE]) == 1

        await hass.async_block_till_done()

        assert [i.idempotency_key for i in remote_sink.delivered] == ["e1"]
        assert sync.pending_items == []
        assert result.store.data[const.DATA_SYNC_QUEUE] == []

    async def test_duplicate_key_skipped(
        self, hass: HomeAssistant, setup_nest: SetupNest, remote_sink: FakeRemoteSink
    ) -> None:
        result = await setup_nest(remote_sink=remote_sink)
        sync = result.coordinator.sync_manager
        remote_sink.fail_next(1)

        await sync.async_enqueue(const.SYNC_KIND_EVENT, "e1", {"a": 1})
        await hass.async_block_till_done()
        assert await sync.async_enqueue(const.SYNC_KIND_EVENT, "e1", {"a": 1}) is None
        assert len(sync.pending_items) == 1

    async def test_local_only(self, setup_nest: SetupNest) -> None:
        """Without a remote nothing is queued."""
        result = await setup_nest()
        sync = result.coordinator.sync_manager

        assert not sync.enabled
        assert await sync.async_enqueue(const.SYNC_KIND_EVENT, "e1", {}) is None
        assert await sync.async_flush(force=True) == {
            "delivered": 0,
            "retried": 0,
            "dropped": 0,
        }
        assert sync.get_stats()["total"] == 0


class TestRetry:
    """Transient and permanent failures."""

    async def test_transient_failure_backs_off(
        self, hass: HomeAssistant, setup_nest: SetupNest, remote_sink: FakeRemoteSink
    ) -> None:
        result = await setup_nest(remote_sink=remote_sink)
        sync = result.coordinator.sync_manager
        remote_sink.fail_next(2)

        await sync.async_enqueue(const.SYNC_KIND_EVENT, "e1", {"a": 1})
        await hass.async_block_till_done()

        (item,) = sync.pending_items
        assert item.attempts == 1
        assert item.last_error == "offline"
        assert sync.get_stats()["retrying"] == 1

        later = item.next_attempt_at + timedelta(seconds=1)
        assert await sync.async_flush(now=later) == {
            "delivered": 0,
            "retried": 1,
            "dropped": 0,
        }
        (item,) = sync.pending_items
        assert item.attempts == 2
        assert item.next_attempt_at == later + SyncEngine.backoff_delay(2)

        # Not due yet: nothing is pushed
        pushes = len(remote_sink.pushed)
        assert (await sync.async_flush(now=later))["delivered"] == 0
        assert len(remote_sink.pushed) == pushes

        assert (await sync.async_flush(now=item.next_attempt_at))["delivered"] == 1
        assert sync.pending_items == []

    async def test_retry_timer_delivers(
        self,
        hass: HomeAssistant,
        freezer: Any,
        setup_nest: SetupNest,
        remote_sink: FakeRemoteSink,
    ) -> None:
        result = await setup_nest(remote_sink=remote_sink)
        sync = result.coordinator.sync_manager
        remote_sink.fail_next(1)

        await sync.async_enqueue(const.SYNC_KIND_TRANSACTION, "t1", {"amount": 5})
        await hass.async_block_till_done()
        assert remote_sink.delivered == []

        freezer.tick(timedelta(seconds=2))
        async_fire_time_changed(hass)
        await hass.async_block_till_done()

        assert remote_sink.delivered_kinds() == [const.SYNC_KIND_TRANSACTION]
        assert sync.pending_items == []

    async def test_permanent_failure_dropped(
        self, hass: HomeAssistant, setup_nest: SetupNest, remote_sink: FakeRemoteSink
    ) -> None:
        result = await setup_nest(remote_sink=remote_sink)
        sync = result.coordinator.sync_manager
        remote_sink.fail_next(1, PermanentSyncError("422 bad payload"))

        await sync.async_enqueue(const.SYNC_KIND_EVENT, "e1", {"a": 1})
        await hass.async_block_till_done()

        assert sync.pending_items == []
        assert remote_sink.delivered == []

    async def test_force_flush_ignores_backoff(
        self, hass: HomeAssistant, setup_nest: SetupNest, remote_sink: FakeRemoteSink
    ) -> None:
        result = await setup_nest(remote_sink=remote_sink)
        sync = result.coordinator.sync_manager
        remote_sink.fail_next(1)
        await sync.async_enqueue(const.SYNC_KIND_EVENT, "e1", {"a": 1})
        await hass.async_block_till_done()

        outcome = await sync.async_flush(force=True)

        assert outcome["delivered"] == 1
        assert sync.pending_items == []

    async def test_items_pushed_oldest_first(
        self, hass: HomeAssistant, setup_nest: SetupNest, remote_sink: FakeRemoteSink
    ) -> None:
        result = await setup_nest(remote_sink=remote_sink)
        sync = result.coordinator.sync_manager
        remote_sink.fail_next(5)
        now = dt_util.utcnow()
        await sync.async_enqueue(const.SYNC_KIND_EVENT, "second", {}, now=now)
        await sync.async_enqueue(
            const.SYNC_KIND_EVENT, "first", {}, now=now - timedelta(seconds=1)
        )
        await hass.async_block_till_done()
        assert remote_sink.delivered == []

        remote_sink.failures.clear()
        await sync.async_flush(force=True)

        assert [i.idempotency_key for i in remote_sink.delivered] == ["first", "second"]


class TestRestore:
    """The queue survives restarts."""

    async def test_queue_restored_on_setup(
        self,
        hass: HomeAssistant,
        hass_storage: dict[str, Any],
        setup_nest: SetupNest,
        remote_sink: FakeRemoteSink,
    ) -> None:
        item = SyncEngine.create_item(
            const.SYNC_KIND_UNLOCK, "s1:score_100", {"x": 1}, dt_util.utcnow()
        )
        hass_storage[const.STORAGE_KEY] = {
            "version": const.STORAGE_VERSION,
            "minor_version": 1,
            "key": const.STORAGE_KEY,
            "data": {const.DATA_SYNC_QUEUE: [item.as_dict()]},
        }

        result = await setup_nest(remote_sink=remote_sink)
        await result.coordinator.sync_manager.async_flush()
        await hass.async_block_till_done()

        assert [i.idempotency_key for i in remote_sink.delivered] == ["s1:score_100"]
        assert result.coordinator.sync_manager.pending_items == []
