# File: services.py
"""Defines custom services for the WonderNest integration.

These services expose the reward and access control engine to scripts,
automations and companion apps. Engine errors are translated at this boundary:
ValidationError -> ServiceValidationError, every other WonderNestError ->
HomeAssistantError.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
import functools
from typing import TYPE_CHECKING, Any

import voluptuous as vol
from homeassistant.config_entries import ConfigEntryState
from homeassistant.core import HomeAssistant, ServiceCall, ServiceResponse, SupportsResponse
from homeassistant.exceptions import HomeAssistantError, ServiceValidationError
from homeassistant.helpers import config_validation as cv

from . import const
from .exceptions import ValidationError, WonderNestError
from .models import LevelProgress, ScoreUpdate, TimeRestriction

if TYPE_CHECKING:
    from .coordinator import WonderNestCoordinator

# --- Service Schemas ---

REGISTER_GAME_SCHEMA = vol.Schema({vol.Required(const.FIELD_GAME): dict})

REQUEST_APPROVAL_SCHEMA = vol.Schema(
    {
        vol.Required(const.FIELD_GAME_ID): cv.string,
        vol.Required(const.FIELD_CHILD_ID): cv.string,
    }
)

DECIDE_APPROVAL_SCHEMA = vol.Schema(
    {
        vol.Required(const.FIELD_REQUEST_ID): cv.string,
        vol.Required(const.FIELD_APPROVED): cv.boolean,
        vol.Optional(const.FIELD_NOTE): cv.string,
        vol.Optional(const.DATA_RESTRICTION_MAX_DAILY_MINUTES): cv.positive_int,
        vol.Optional(const.DATA_RESTRICTION_ALLOWED_START): cv.string,
        vol.Optional(const.DATA_RESTRICTION_ALLOWED_END): cv.string,
        vol.Optional(const.DATA_RESTRICTION_BLOCKED_WEEKDAYS): vol.All(
            cv.ensure_list, [vol.All(vol.Coerce(int), vol.Range(min=1, max=7))]
        ),
        vol.Optional(const.DATA_RESTRICTION_BLOCKED_FEATURES): vol.All(
            cv.ensure_list, [cv.string]
        ),
    }
)

START_SESSION_SCHEMA = REQUEST_APPROVAL_SCHEMA

RECORD_EVENT_SCHEMA = vol.Schema(
    {
        vol.Required(const.FIELD_SESSION_ID): cv.string,
        vol.Required(const.FIELD_EVENT_TYPE): vol.In(
            [const.EVENT_TYPE_SCORE_UPDATE, const.EVENT_TYPE_LEVEL_PROGRESS]
        ),
        vol.Optional(const.FIELD_NEW_SCORE): cv.positive_int,
        vol.Optional(const.FIELD_PREVIOUS_SCORE): cv.positive_int,
        vol.Optional(const.FIELD_NEW_LEVEL): cv.positive_int,
        vol.Optional(const.FIELD_PREVIOUS_LEVEL): cv.positive_int,
        vol.Optional(const.FIELD_FLAGS, default=dict): dict,
    }
)

END_SESSION_SCHEMA = vol.Schema(
    {
        vol.Required(const.FIELD_SESSION_ID): cv.string,
        vol.Optional(const.FIELD_PERSIST, default=True): cv.boolean,
    }
)

SPEND_CURRENCY_SCHEMA = vol.Schema(
    {
        vol.Required(const.FIELD_CHILD_ID): cv.string,
        vol.Required(const.FIELD_AMOUNT): vol.All(vol.Coerce(int), vol.Range(min=1)),
        vol.Required(const.FIELD_REASON): cv.string,
    }
)

SYNC_NOW_SCHEMA = vol.Schema({})

ServiceHandler = Callable[[ServiceCall], Awaitable[ServiceResponse]]


def _get_coordinator(hass: HomeAssistant) -> WonderNestCoordinator:
    """Coordinator of the loaded WonderNest entry."""
    for entry in hass.config_entries.async_entries(const.DOMAIN):
        if entry.state is ConfigEntryState.LOADED:
            return entry.runtime_data
    raise HomeAssistantError("WonderNest is not loaded")


def _translate_errors(handler: ServiceHandler) -> ServiceHandler:
    @functools.wraps(handler)
    async def _wrapper(call: ServiceCall) -> ServiceResponse:
        try:
            return await handler(call)
        except ValidationError as err:
            const.LOGGER.warning("WARNING: %s: %s", call.service, err)
            raise ServiceValidationError(str(err)) from err
        except WonderNestError as err:
            const.LOGGER.warning("WARNING: %s: %s", call.service, err)
            raise HomeAssistantError(str(err)) from err

    return _wrapper


def _restriction_from_call(data: dict[str, Any]) -> TimeRestriction | None:
    keys = (
        const.DATA_RESTRICTION_MAX_DAILY_MINUTES,
        const.DATA_RESTRICTION_ALLOWED_START,
        const.DATA_RESTRICTION_ALLOWED_END,
        const.DATA_RESTRICTION_BLOCKED_WEEKDAYS,
        const.DATA_RESTRICTION_BLOCKED_FEATURES,
    )
    if not any(key in data for key in keys):
        return None
    return TimeRestriction.from_dict({key: data.get(key) for key in keys})


def async_setup_services(hass: HomeAssistant) -> None:
    """Register WonderNest services."""

    @_translate_errors
    async def handle_register_game(call: ServiceCall) -> ServiceResponse:
        coordinator = _get_coordinator(hass)
        game = coordinator.registry.register_raw(call.data[const.FIELD_GAME])
        return {
            const.FIELD_GAME_ID: game.game_id,
            "achievements": [a.achievement_id for a in game.achievements],
        }

    @_translate_errors
    async def handle_request_approval(call: ServiceCall) -> ServiceResponse:
        coordinator = _get_coordinator(hass)
        record = await coordinator.approval_manager.async_request_approval(
            call.data[const.FIELD_GAME_ID], call.data[const.FIELD_CHILD_ID]
        )
        return record.as_dict()

    @_translate_errors
    async def handle_decide_approval(call: ServiceCall) -> ServiceResponse:
        coordinator = _get_coordinator(hass)
        record = await coordinator.approval_manager.async_decide(
            call.data[const.FIELD_REQUEST_ID],
            call.data[const.FIELD_APPROVED],
            restriction=_restriction_from_call(dict(call.data)),
            note=call.data.get(const.FIELD_NOTE),
            guardian_id=call.context.user_id,
        )
        return record.as_dict()

    @_translate_errors
    async def handle_start_session(call: ServiceCall) -> ServiceResponse:
        coordinator = _get_coordinator(hass)
        session = await coordinator.session_manager.async_start(
            call.data[const.FIELD_GAME_ID], call.data[const.FIELD_CHILD_ID]
        )
        return {
            const.FIELD_SESSION_ID: session.session_id,
            "game_data": dict(session.game_data),
        }

    @_translate_errors
    async def handle_record_event(call: ServiceCall) -> ServiceResponse:
        coordinator = _get_coordinator(hass)
        session_id = call.data[const.FIELD_SESSION_ID]
        session = coordinator.session_manager.get_session(session_id)
        if session is None:
            raise ServiceValidationError(f"No active session '{session_id}'")

        common: dict[str, Any] = {
            "game_id": session.game_id,
            "child_id": session.child_id,
            "session_id": session_id,
            "flags": call.data[const.FIELD_FLAGS],
        }
        if call.data[const.FIELD_EVENT_TYPE] == const.EVENT_TYPE_SCORE_UPDATE:
            if const.FIELD_NEW_SCORE not in call.data:
                raise ServiceValidationError(
                    f"'{const.FIELD_NEW_SCORE}' is required for {const.EVENT_TYPE_SCORE_UPDATE}"
                )
            event = ScoreUpdate(
                new_score=call.data[const.FIELD_NEW_SCORE],
                previous_score=call.data.get(
                    const.FIELD_PREVIOUS_SCORE,
                    session.game_data.get(const.GAME_DATA_SCORE, const.DEFAULT_SCORE),
                ),
                **common,
            )
        else:
            if const.FIELD_NEW_LEVEL not in call.data:
                raise ServiceValidationError(
                    f"'{const.FIELD_NEW_LEVEL}' is required for {const.EVENT_TYPE_LEVEL_PROGRESS}"
                )
            event = LevelProgress(
                new_level=call.data[const.FIELD_NEW_LEVEL],
                previous_level=call.data.get(
                    const.FIELD_PREVIOUS_LEVEL,
                    session.game_data.get(const.GAME_DATA_LEVEL, const.DEFAULT_LEVEL),
                ),
                **common,
            )

        outcome = await coordinator.session_manager.async_record_event(session_id, event)
        return {
            "event_id": event.event_id,
            "unlocked": [a.achievement_id for a in outcome.unlocked],
            "currency_awarded": outcome.currency_awarded,
        }

    @_translate_errors
    async def handle_end_session(call: ServiceCall) -> ServiceResponse:
        coordinator = _get_coordinator(hass)
        completion = await coordinator.session_manager.async_end(
            call.data[const.FIELD_SESSION_ID], persist=call.data[const.FIELD_PERSIST]
        )
        return completion.as_dict()

    @_translate_errors
    async def handle_spend_currency(call: ServiceCall) -> ServiceResponse:
        coordinator = _get_coordinator(hass)
        balance = await coordinator.ledger_manager.async_spend(
            call.data[const.FIELD_CHILD_ID],
            call.data[const.FIELD_AMOUNT],
            call.data[const.FIELD_REASON],
        )
        return {"balance": balance}

    @_translate_errors
    async def handle_sync_now(call: ServiceCall) -> ServiceResponse:
        coordinator = _get_coordinator(hass)
        result = await coordinator.sync_manager.async_flush(force=True)
        return {**result, "pending": coordinator.sync_manager.get_stats()["total"]}

    services: list[tuple[str, ServiceHandler, vol.Schema]] = [
        (const.SERVICE_REGISTER_GAME, handle_register_game, REGISTER_GAME_SCHEMA),
        (const.SERVICE_REQUEST_APPROVAL, handle_request_approval, REQUEST_APPROVAL_SCHEMA),
        (const.SERVICE_DECIDE_APPROVAL, handle_decide_approval, DECIDE_APPROVAL_SCHEMA),
        (const.SERVICE_START_SESSION, handle_start_session, START_SESSION_SCHEMA),
        (const.SERVICE_RECORD_EVENT, handle_record_event, RECORD_EVENT_SCHEMA),
        (const.SERVICE_END_SESSION, handle_end_session, END_SESSION_SCHEMA),
        (const.SERVICE_SPEND_CURRENCY, handle_spend_currency, SPEND_CURRENCY_SCHEMA),
        (const.SERVICE_SYNC_NOW, handle_sync_now, SYNC_NOW_SCHEMA),
    ]
    for service, handler, schema in services:
        hass.services.async_register(
            const.DOMAIN,
            service,
            handler,
            schema=schema,
            supports_response=SupportsResponse.OPTIONAL,
        )


def async_unload_services(hass: HomeAssistant) -> None:
    """Unregister WonderNest services when unloading the integration."""
    for service in (
        const.SERVICE_REGISTER_GAME,
        const.SERVICE_REQUEST_APPROVAL,
        const.SERVICE_DECIDE_APPROVAL,
        const.SERVICE_START_SESSION,
        const.SERVICE_RECORD_EVENT,
        const.SERVICE_END_SESSION,
        const.SERVICE_SPEND_CURRENCY,
        const.SERVICE_SYNC_NOW,
    ):
        if hass.services.has_service(const.DOMAIN, service):
            hass.services.async_remove(const.DOMAIN, service)
