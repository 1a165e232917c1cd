"""Sync Manager - Durable outbound queue towards the remote store.

This manager handles:
- Enqueueing payloads (persisted before any push is attempted)
- Best-effort flushing in a tracked background task
- Exponential backoff retries driven by a single Home Assistant timer
- Queue statistics

Delivery is at-least-once: an item leaves the queue only when the remote
acknowledges it (or rejects it permanently). Remote failures never touch the
rest of local state. Without a remote sink the manager runs local-only and
nothing is queued.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import TYPE_CHECKING, Any

from homeassistant.core import callback
from homeassistant.helpers.event import async_call_later
from homeassistant.util import dt as dt_util

from .. import const
from ..engines.sync_engine import SyncEngine
from ..exceptions import PermanentSyncError, PersistenceError, TransientSyncError
from .base_manager import BaseManager

if TYPE_CHECKING:
    from collections.abc import Callable

    from homeassistant.core import HomeAssistant

    from ..coordinator import WonderNestCoordinator
    from ..models import SyncItem
    from ..type_defs import RemoteSink


class SyncManager(BaseManager):
    """Manager for the persisted sync queue."""

    def __init__(self, hass: HomeAssistant, coordinator: WonderNestCoordinator) -> None:
        super().__init__(hass, coordinator)
        self._items: list[SyncItem] = []
        self._flush_lock = asyncio.Lock()
        self._unsub_retry: Callable[[], None] | None = None

    @property
    def remote_sink(self) -> RemoteSink | None:
        return self.coordinator.remote_sink

    @property
    def enabled(self) -> bool:
        return self.remote_sink is not None

    @property
    def pending_items(self) -> list[SyncItem]:
        return list(self._items)

    async def async_setup(self) -> None:
        """Restore the persisted queue and schedule delivery of what is left."""
        self._items = await self.store.async_load_sync_queue()
        if not self.enabled:
            if self._items:
                const.LOGGER.info(
                    "SyncManager: No remote configured, keeping %s queued items",
                    len(self._items),
                )
            return
        if self._items:
            const.LOGGER.debug(
                "SyncManager: Restored %s queued items", len(self._items)
            )
            self._schedule_retry_timer()

    async def async_shutdown(self) -> None:
        self._cancel_retry_timer()

    # =========================================================================
    # ENQUEUE
    # =========================================================================

    async def async_enqueue(
        self,
        kind: str,
        idempotency_key: str,
        payload: dict[str, Any],
        now: datetime | None = None,
    ) -> SyncItem | None:
        """Queue a payload for delivery and start a background flush.

        Returns:
            The queued item; None in local-only mode or when the key is already
            queued.
        """
        if not self.enabled:
            return None
        if SyncEngine.contains_key(self._items, idempotency_key):
            const.LOGGER.debug(
                "SyncManager: '%s' already queued, skipping", idempotency_key
            )
            return None

        item = SyncEngine.create_item(
            kind, idempotency_key, payload, now or dt_util.utcnow()
        )
        self._items.append(item)
        await self._async_persist()
        self.hass.async_create_task(
            self.async_flush(), f"{const.DOMAIN}_sync_flush"
        )
        return item

    # =========================================================================
    # FLUSH
    # =========================================================================

    async def async_flush(
        self, force: bool = False, now: datetime | None = None
    ) -> dict[str, int]:
        """Push every due item once.

        Args:
            force: Push all items regardless of their next_attempt_at
            now: Optional time override for deterministic tests

        Returns:
            Counts of delivered, retried and dropped items
        """
        result = {"delivered": 0, "retried": 0, "dropped": 0}
        remote = self.remote_sink
        if remote is None:
            return result

        async with self._flush_lock:
            current = now or dt_util.utcnow()
            for item in SyncEngine.due_items(self._items, current, force=force):
                try:
                    await remote.async_push(item)
                except TransientSyncError as err:
                    retried = SyncEngine.schedule_retry(item, current, str(err))
                    self._replace(item, retried)
                    result["retried"] += 1
                    const.LOGGER.debug(
                        "SyncManager: %s '%s' failed (attempt %s), retry at %s: %s",
                        item.kind,
                        item.idempotency_key,
                        retried.attempts,
                        retried.next_attempt_at,
                        err,
                    )
                except PermanentSyncError as err:
                    self._remove(item)
                    result["dropped"] += 1
                    const.LOGGER.error(
                        "SyncManager: Remote rejected %s '%s', dropping it: %s",
                        item.kind,
                        item.idempotency_key,
                        err,
                    )
                else:
                    self._remove(item)
                    result["delivered"] += 1

            if any(result.values()):
                await self._async_persist()
            self._schedule_retry_timer(current)

        return result

    def _replace(self, old: SyncItem, new: SyncItem) -> None:
        for index, item in enumerate(self._items):
            if item.item_id == old.item_id:
                self._items[index] = new
                return

    def _remove(self, old: SyncItem) -> None:
        self._items = [item for item in self._items if item.item_id != old.item_id]

    async def _async_persist(self) -> None:
        try:
            await self.store.async_save_sync_queue(self._items)
        except PersistenceError as err:
            # The in-memory queue stays authoritative until the next save
            const.LOGGER.error("SyncManager: %s", err)

    # =========================================================================
    # RETRY TIMER
    # =========================================================================

    def _cancel_retry_timer(self) -> None:
        if self._unsub_retry is not None:
            self._unsub_retry()
            self._unsub_retry = None

    def _schedule_retry_timer(self, now: datetime | None = None) -> None:
        self._cancel_retry_timer()
        wakeup = SyncEngine.next_wakeup(self._items)
        if wakeup is None:
            return
        delay = max(0.0, (wakeup - (now or dt_util.utcnow())).total_seconds())
        self._unsub_retry = async_call_later(self.hass, delay, self._handle_retry_timer)

    @callback
    def _handle_retry_timer(self, _now: datetime) -> None:
        self._unsub_retry = None
        self.hass.async_create_task(self.async_flush(), f"{const.DOMAIN}_sync_retry")

    # =========================================================================
    # QUERIES
    # =========================================================================

    def get_stats(self) -> dict[str, int]:
        """Pending counts per kind, total and items currently retrying."""
        return SyncEngine.calculate_stats(self._items)
