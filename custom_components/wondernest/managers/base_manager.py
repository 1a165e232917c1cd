"""Base manager class for WonderNest managers."""

from __future__ import annotations

from abc import ABC, abstractmethod
import asyncio
from datetime import datetime
from typing import TYPE_CHECKING

from homeassistant.util import dt as dt_util

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant

    from ..coordinator import WonderNestCoordinator
    from ..listeners import ListenerRegistry
    from ..type_defs import PersistenceGateway


class BaseManager(ABC):
    """Base class for all WonderNest managers.

    Provides:
    - Access to the shared store, listener registry and sibling managers
      through the coordinator
    - Keyed asyncio locks (one lock per child, per (game, child) pair, ...)
    - Local "now" resolution so callers may pass an explicit time in tests

    Subclasses must implement:
    - async_setup(): Load state, schedule timers
    """

    def __init__(self, hass: HomeAssistant, coordinator: WonderNestCoordinator) -> None:
        """Initialize manager.

        Args:
            hass: Home Assistant instance
            coordinator: Parent coordinator managing this integration instance
        """
        self.hass = hass
        self.coordinator = coordinator
        self.entry_id = coordinator.config_entry.entry_id
        self._locks: dict[str, asyncio.Lock] = {}

    @property
    def store(self) -> PersistenceGateway:
        return self.coordinator.store

    @property
    def listeners(self) -> ListenerRegistry:
        return self.coordinator.listeners

    def _get_lock(self, *parts: str) -> asyncio.Lock:
        """Get or create the lock for a composite key.

        Returns:
            asyncio.Lock for this key
        """
        lock_key = ":".join(parts)
        if lock_key not in self._locks:
            self._locks[lock_key] = asyncio.Lock()
        return self._locks[lock_key]

    def _discard_lock(self, *parts: str) -> None:
        """Forget the lock for a key that will not be used again."""
        self._locks.pop(":".join(parts), None)

    @staticmethod
    def _resolve_now(now: datetime | None) -> datetime:
        """Return ``now`` in the local time zone, defaulting to the current time."""
        return dt_util.as_local(now) if now is not None else dt_util.now()

    @abstractmethod
    async def async_setup(self) -> None:
        """Set up the manager.

        Called once during coordinator initialization.
        """
