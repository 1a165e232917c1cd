# File: store.py
"""Handles persistent data storage for the WonderNest integration.

Uses Home Assistant's Storage helper to keep game data, achievement unlocks,
currency accounts, approvals, daily play time and the outbound sync queue across
restarts. WonderNestStore is the PersistenceGateway every manager talks to.

Writes are committed immediately. When a commit fails the in-memory change is
rolled back and PersistenceError is raised, so callers never observe state that
is not on disk.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
import copy
from datetime import date
from typing import TYPE_CHECKING, Any

from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.storage import Store
from homeassistant.util.file import WriteError
from homeassistant.util.json import SerializationError

from . import const
from .exceptions import PersistenceError
from .models import ApprovalRecord, CurrencyTransaction, SyncItem, local_date_key
from .utils.dt_utils import dt_parse_date

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant


def pair_key(game_id: str, child_id: str) -> str:
    """Composite bucket key for a (game, child) pair."""
    return f"{game_id}:{child_id}"


class _CheckedStore(Store):
    """Store that remembers the last write failure.

    Home Assistant logs failed writes and returns normally, so the error is
    captured here for WonderNestStore.async_save to inspect.
    """

    write_error: HomeAssistantError | None = None

    async def _async_write_data(self, path: str, data: dict) -> None:
        try:
            await super()._async_write_data(path, data)
        except (SerializationError, WriteError) as err:
            self.write_error = err
            raise


class WonderNestStore:
    """Handles persistent storage operations for WonderNest data.

    Thin wrapper around Home Assistant's Store API. All public methods are
    coroutines so the managers can treat it as an async gateway.
    """

    def __init__(
        self, hass: HomeAssistant, storage_key: str = const.STORAGE_KEY
    ) -> None:
        """Initialize the store.

        Args:
            hass: Home Assistant core object.
            storage_key: Key to identify storage location (default: const.STORAGE_KEY).
        """
        self.hass = hass
        self._storage_key = storage_key
        self._store = _CheckedStore(hass, const.STORAGE_VERSION, storage_key)
        self._save_lock = asyncio.Lock()
        self._data: dict[str, Any] = {}

    @staticmethod
    def get_default_structure() -> dict[str, Any]:
        """Return canonical empty data structure for fresh installations."""
        return {
            const.DATA_META: {const.DATA_META_SCHEMA_VERSION: const.SCHEMA_VERSION},
            const.DATA_GAME_DATA: {},
            const.DATA_UNLOCKS: {},
            const.DATA_ACCOUNTS: {},
            const.DATA_APPROVALS: {},
            const.DATA_PLAY_TIME: {},
            const.DATA_SYNC_QUEUE: [],
        }

    async def async_initialize(self) -> None:
        """Load data from storage during startup.

        If no data exists, initializes with an empty structure. Buckets missing
        from older files are added.
        """
        const.LOGGER.debug("DEBUG: WonderNestStore: Loading data from storage")
        existing_data = await self._store.async_load()

        if existing_data is None:
            const.LOGGER.info("INFO: No existing storage found. Initializing new data")
            self._data = WonderNestStore.get_default_structure()
            return

        self._data = existing_data
        for key, default in WonderNestStore.get_default_structure().items():
            self._data.setdefault(key, default)
        const.LOGGER.debug(
            "DEBUG: Loaded existing data from storage: %s",
            {
                "game_data": len(self._data[const.DATA_GAME_DATA]),
                "accounts": len(self._data[const.DATA_ACCOUNTS]),
                "approvals": len(self._data[const.DATA_APPROVALS]),
                "sync_queue": len(self._data[const.DATA_SYNC_QUEUE]),
            },
        )

    @property
    def data(self) -> dict[str, Any]:
        """Retrieve the in-memory data cache."""
        return self._data

    async def async_save(self) -> bool:
        """Save the current data structure to storage.

        Saves are serialized so a write failure is attributed to the save that
        caused it.

        Returns:
            True when saved. Errors are logged, not raised.
        """
        async with self._save_lock:
            self._store.write_error = None
            await self._store.async_save(self._data)
            err = self._store.write_error
        if isinstance(err, SerializationError):
            const.LOGGER.error(
                "ERROR: Failed to save storage due to non-serializable data: %s. "
                "Data contains types that cannot be converted to JSON",
                err,
            )
        elif err is not None:
            const.LOGGER.error(
                "ERROR: Failed to save storage due to file system error: %s. "
                "Check disk space and file permissions for %s",
                err,
                self._store.path,
            )
        else:
            const.LOGGER.debug("DEBUG: Data saved successfully to storage")
            return True
        return False

    async def _async_commit(self, rollback: Callable[[], None], what: str) -> None:
        """Save, or undo the in-memory change and raise PersistenceError."""
        if await self.async_save():
            return
        rollback()
        raise PersistenceError(f"Failed to persist {what}")

    async def async_delete_storage(self) -> None:
        """Forget in-memory state and remove the storage file."""
        self._data = WonderNestStore.get_default_structure()
        try:
            await self._store.async_remove()
        except OSError as err:
            const.LOGGER.error(
                "ERROR: Failed to remove storage file %s: %s", self._store.path, err
            )
        else:
            const.LOGGER.info("INFO: Storage file removed: %s", self._store.path)

    def _restore_entry(
        self, bucket: str, key: str, previous: Any, existed: bool
    ) -> Callable[[], None]:
        def _rollback() -> None:
            if existed:
                self._data[bucket][key] = previous
            else:
                self._data[bucket].pop(key, None)

        return _rollback

    async def _async_set_entry(self, bucket: str, key: str, value: Any, what: str) -> None:
        existed = key in self._data[bucket]
        previous = self._data[bucket].get(key)
        self._data[bucket][key] = value
        await self._async_commit(self._restore_entry(bucket, key, previous, existed), what)

    # ------------------------------------------------------------------
    # Game data
    # ------------------------------------------------------------------

    async def async_load_game_data(self, game_id: str, child_id: str) -> dict[str, Any]:
        stored = self._data[const.DATA_GAME_DATA].get(pair_key(game_id, child_id))
        return copy.deepcopy(stored) if stored else {}

    async def async_save_game_data(
        self, game_id: str, child_id: str, data: dict[str, Any]
    ) -> None:
        await self._async_set_entry(
            const.DATA_GAME_DATA,
            pair_key(game_id, child_id),
            copy.deepcopy(data),
            f"game data for {game_id}/{child_id}",
        )

    # ------------------------------------------------------------------
    # Achievement unlocks
    # ------------------------------------------------------------------

    async def async_get_unlocks(self, game_id: str, child_id: str) -> dict[str, str]:
        return dict(self._data[const.DATA_UNLOCKS].get(pair_key(game_id, child_id), {}))

    async def async_insert_unlock_if_absent(
        self, game_id: str, child_id: str, achievement_id: str, unlocked_at: str
    ) -> bool:
        """Record an unlock. Returns False when it already existed.

        Raises:
            PersistenceError: The unlock could not be saved (nothing recorded)
        """
        key = pair_key(game_id, child_id)
        unlocks = self._data[const.DATA_UNLOCKS].setdefault(key, {})
        if achievement_id in unlocks:
            return False
        unlocks[achievement_id] = unlocked_at
        await self._async_commit(
            lambda: unlocks.pop(achievement_id, None),
            f"unlock {achievement_id} for {game_id}/{child_id}",
        )
        return True

    # ------------------------------------------------------------------
    # Currency accounts
    # ------------------------------------------------------------------

    def _account(self, child_id: str) -> dict[str, Any]:
        return self._data[const.DATA_ACCOUNTS].setdefault(
            child_id,
            {
                const.DATA_ACCOUNT_BALANCE: 0,
                const.DATA_ACCOUNT_TRANSACTIONS: [],
                const.DATA_ACCOUNT_LAST_PLAY_DATE: None,
            },
        )

    async def async_get_balance(self, child_id: str) -> int:
        account = self._data[const.DATA_ACCOUNTS].get(child_id)
        return int(account[const.DATA_ACCOUNT_BALANCE]) if account else 0

    async def async_get_transactions(self, child_id: str) -> list[CurrencyTransaction]:
        account = self._data[const.DATA_ACCOUNTS].get(child_id)
        if not account:
            return []
        return [
            CurrencyTransaction.from_dict(item)
            for item in account[const.DATA_ACCOUNT_TRANSACTIONS]
        ]

    async def async_append_transaction(
        self, child_id: str, transaction: CurrencyTransaction
    ) -> None:
        """Append a transaction and move the balance to its balance_after.

        Raises:
            PersistenceError: Nothing was recorded
        """
        account = self._account(child_id)
        previous_balance = account[const.DATA_ACCOUNT_BALANCE]
        account[const.DATA_ACCOUNT_TRANSACTIONS].append(transaction.as_dict())
        account[const.DATA_ACCOUNT_BALANCE] = transaction.balance_after

        def _rollback() -> None:
            account[const.DATA_ACCOUNT_TRANSACTIONS].pop()
            account[const.DATA_ACCOUNT_BALANCE] = previous_balance

        await self._async_commit(_rollback, f"transaction for {child_id}")

    async def async_get_last_play_date(self, child_id: str) -> date | None:
        account = self._data[const.DATA_ACCOUNTS].get(child_id)
        if not account:
            return None
        return dt_parse_date(account.get(const.DATA_ACCOUNT_LAST_PLAY_DATE))

    async def async_set_last_play_date(self, child_id: str, day: date) -> None:
        account = self._account(child_id)
        previous = account.get(const.DATA_ACCOUNT_LAST_PLAY_DATE)
        account[const.DATA_ACCOUNT_LAST_PLAY_DATE] = local_date_key(day)
        await self._async_commit(
            lambda: account.__setitem__(const.DATA_ACCOUNT_LAST_PLAY_DATE, previous),
            f"last play date for {child_id}",
        )

    # ------------------------------------------------------------------
    # Approvals
    # ------------------------------------------------------------------

    async def async_get_approval(
        self, game_id: str, child_id: str
    ) -> ApprovalRecord | None:
        stored = self._data[const.DATA_APPROVALS].get(pair_key(game_id, child_id))
        return ApprovalRecord.from_dict(stored) if stored else None

    async def async_get_approval_by_request(self, request_id: str) -> ApprovalRecord | None:
        for stored in self._data[const.DATA_APPROVALS].values():
            if stored.get(const.DATA_APPROVAL_REQUEST_ID) == request_id:
                return ApprovalRecord.from_dict(stored)
        return None

    async def async_list_approvals(self) -> list[ApprovalRecord]:
        return [
            ApprovalRecord.from_dict(stored)
            for stored in self._data[const.DATA_APPROVALS].values()
        ]

    async def async_upsert_approval(self, record: ApprovalRecord) -> None:
        await self._async_set_entry(
            const.DATA_APPROVALS,
            pair_key(record.game_id, record.child_id),
            record.as_dict(),
            f"approval {record.request_id}",
        )

    # ------------------------------------------------------------------
    # Daily play time
    # ------------------------------------------------------------------

    async def async_get_play_minutes(self, game_id: str, child_id: str, day: date) -> int:
        per_day = self._data[const.DATA_PLAY_TIME].get(pair_key(game_id, child_id), {})
        return int(per_day.get(local_date_key(day), 0))

    async def async_add_play_minutes(
        self, game_id: str, child_id: str, day: date, minutes: int
    ) -> None:
        per_day = self._data[const.DATA_PLAY_TIME].setdefault(
            pair_key(game_id, child_id), {}
        )
        day_key = local_date_key(day)
        previous = per_day.get(day_key)
        per_day[day_key] = int(previous or 0) + minutes

        def _rollback() -> None:
            if previous is None:
                per_day.pop(day_key, None)
            else:
                per_day[day_key] = previous

        await self._async_commit(_rollback, f"play time for {game_id}/{child_id}")

    # ------------------------------------------------------------------
    # Sync queue
    # ------------------------------------------------------------------

    async def async_load_sync_queue(self) -> list[SyncItem]:
        items: list[SyncItem] = []
        for stored in self._data[const.DATA_SYNC_QUEUE]:
            try:
                items.append(SyncItem.from_dict(stored))
            except (KeyError, TypeError, ValueError) as err:
                const.LOGGER.warning(
                    "WARNING: Dropping unreadable sync queue entry: %s", err
                )
        return items

    async def async_save_sync_queue(self, items: list[SyncItem]) -> None:
        previous = self._data[const.DATA_SYNC_QUEUE]
        self._data[const.DATA_SYNC_QUEUE] = [item.as_dict() for item in items]
        await self._async_commit(
            lambda: self._data.__setitem__(const.DATA_SYNC_QUEUE, previous),
            "sync queue",
        )
