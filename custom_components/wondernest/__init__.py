# File: __init__.py
"""Initialization file for the WonderNest integration.

Handles setting up the integration: loading the config entry, initializing
storage, building the coordinator and exposing services.

Key Features:
- Config entry setup, unload and removal.
- Coordinator stored on ``entry.runtime_data``.
- Achievement and currency notifications re-fired on the Home Assistant bus.
"""

from __future__ import annotations

from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.exceptions import ConfigEntryError
from homeassistant.helpers.aiohttp_client import async_get_clientsession

from . import const
from .coordinator import WonderNestCoordinator
from .exceptions import ValidationError
from .helpers.auth_helpers import make_guardian_authorizer
from .models import Achievement, CurrencyTransaction, GameEvent
from .remote_sink import HttpRemoteSink
from .services import async_setup_services, async_unload_services
from .store import WonderNestStore


def _register_bus_listeners(
    hass: HomeAssistant, entry: ConfigEntry, coordinator: WonderNestCoordinator
) -> None:
    """Re-fire unlocks and balance changes as Home Assistant events."""

    def _on_achievement(
        game_id: str, child_id: str, achievement: Achievement, event: GameEvent
    ) -> None:
        hass.bus.async_fire(
            const.EVENT_ACHIEVEMENT_UNLOCKED,
            {
                const.FIELD_GAME_ID: game_id,
                const.FIELD_CHILD_ID: child_id,
                const.FIELD_SESSION_ID: event.session_id,
                "achievement_id": achievement.achievement_id,
                "achievement_name": achievement.name,
                "currency_reward": achievement.currency_reward,
            },
        )

    def _on_currency(
        child_id: str, new_balance: int, transaction: CurrencyTransaction
    ) -> None:
        hass.bus.async_fire(
            const.EVENT_CURRENCY_UPDATED,
            {
                const.FIELD_CHILD_ID: child_id,
                "balance": new_balance,
                const.FIELD_AMOUNT: transaction.amount,
                const.FIELD_REASON: transaction.reason,
                "transaction_id": transaction.transaction_id,
            },
        )

    entry.async_on_unload(coordinator.listeners.add_achievement_listener(_on_achievement))
    entry.async_on_unload(coordinator.listeners.add_currency_listener(_on_currency))


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Set up the integration from a config entry."""
    const.LOGGER.info("INFO: Starting setup for WonderNest entry: %s", entry.entry_id)

    store = WonderNestStore(hass, const.STORAGE_KEY)
    await store.async_initialize()

    remote_sink = None
    remote_url = entry.data.get(const.CONF_REMOTE_URL)
    if remote_url:
        remote_sink = HttpRemoteSink(
            async_get_clientsession(hass),
            remote_url,
            entry.data.get(const.CONF_API_TOKEN) or None,
        )
    else:
        const.LOGGER.info("INFO: No remote URL configured; running local-only")

    coordinator = WonderNestCoordinator(
        hass,
        entry,
        store,
        remote_sink=remote_sink,
        authorizer=make_guardian_authorizer(
            hass, entry.data.get(const.CONF_GUARDIAN_USER_IDS, [])
        ),
    )

    try:
        await coordinator.async_setup()
    except ValidationError as err:
        const.LOGGER.error("ERROR: Failed to load WonderNest content: %s", err)
        await coordinator.async_shutdown()
        raise ConfigEntryError(str(err)) from err

    entry.runtime_data = coordinator
    _register_bus_listeners(hass, entry, coordinator)

    # Set up services required by the integration.
    async_setup_services(hass)

    const.LOGGER.info("INFO: WonderNest setup complete for entry: %s", entry.entry_id)
    return True


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Unload a config entry."""
    const.LOGGER.info("INFO: Unloading WonderNest entry: %s", entry.entry_id)

    coordinator: WonderNestCoordinator = entry.runtime_data
    await coordinator.async_shutdown()
    async_unload_services(hass)
    return True


async def async_remove_entry(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Handle removal of a config entry."""
    const.LOGGER.info("INFO: Removing WonderNest entry: %s", entry.entry_id)
    await WonderNestStore(hass, const.STORAGE_KEY).async_delete_storage()
    const.LOGGER.info("INFO: WonderNest entry data cleared: %s", entry.entry_id)
