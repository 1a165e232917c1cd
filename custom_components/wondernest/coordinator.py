# File: coordinator.py
"""Coordinator for the WonderNest integration.

Builds and wires the engine for one config entry: the store, game registry,
listener registry, remote sink and every manager. There is exactly one
coordinator per entry, stored on ``entry.runtime_data``; nothing is global.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from . import const
from .content import GameRegistry, load_games_file
from .listeners import ListenerRegistry
from .managers import (
    AchievementManager,
    ApprovalManager,
    LedgerManager,
    RewardManager,
    SessionManager,
    SyncManager,
)

if TYPE_CHECKING:
    from homeassistant.config_entries import ConfigEntry
    from homeassistant.core import HomeAssistant

    from .store import WonderNestStore
    from .type_defs import Authorizer, ErrorReporter, RemoteSink


class WonderNestCoordinator:
    """Owns the managers and shared collaborators of one WonderNest instance."""

    def __init__(
        self,
        hass: HomeAssistant,
        config_entry: ConfigEntry,
        store: WonderNestStore,
        remote_sink: RemoteSink | None = None,
        authorizer: Authorizer | None = None,
        error_reporter: ErrorReporter | None = None,
        registry: GameRegistry | None = None,
    ) -> None:
        """Initialize the coordinator.

        Args:
            hass: Home Assistant instance
            config_entry: Entry this coordinator belongs to
            store: Persistence gateway
            remote_sink: Where the sync queue delivers; None for local-only mode
            authorizer: Decides whether a user may decide approvals
            error_reporter: Receives isolated listener failures
            registry: Pre-populated game registry (a fresh one by default)
        """
        self.hass = hass
        self.config_entry = config_entry
        self.store = store
        self.remote_sink = remote_sink
        self.authorizer = authorizer
        self.registry = registry or GameRegistry()
        self.listeners = ListenerRegistry(error_reporter)

        # Sync first: every other manager queues through it
        self.sync_manager = SyncManager(hass, self)
        self.ledger_manager = LedgerManager(hass, self)
        self.achievement_manager = AchievementManager(hass, self)
        self.reward_manager = RewardManager(hass, self)
        self.approval_manager = ApprovalManager(hass, self)
        self.session_manager = SessionManager(hass, self)

    @property
    def managers(self) -> tuple:
        return (
            self.sync_manager,
            self.ledger_manager,
            self.achievement_manager,
            self.reward_manager,
            self.approval_manager,
            self.session_manager,
        )

    async def async_setup(self) -> None:
        """Load the game catalog and set up every manager."""
        games_file = self.config_entry.data.get(const.CONF_GAMES_FILE)
        if games_file:
            raw_games = await self.hass.async_add_executor_job(
                load_games_file, self.hass.config.path(games_file)
            )
            count = self.registry.register_many(raw_games)
            const.LOGGER.info("INFO: Loaded %s games from %s", count, games_file)

        for manager in self.managers:
            await manager.async_setup()

    async def async_shutdown(self) -> None:
        """Cancel timers; queued items stay persisted for the next start."""
        await self.sync_manager.async_shutdown()
