"""Tests for entry setup, services and Home Assistant bus events."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
from homeassistant.config_entries import ConfigEntryState
from homeassistant.core import Context, HomeAssistant
from homeassistant.exceptions import HomeAssistantError, ServiceValidationError
from pytest_homeassistant_custom_component.common import (
    MockConfigEntry,
    MockUser,
    async_capture_events,
)
from pytest_homeassistant_custom_component.test_util.aiohttp import (
    AiohttpClientMocker,
)

from custom_components.wondernest import const
from custom_components.wondernest.coordinator import WonderNestCoordinator
from tests.helpers import make_achievement, make_game, make_rule

GAME = make_game(
    "math_quest",
    achievements=[
        make_achievement(
            "score_100", {"type": const.CRITERION_SCORE_THRESHOLD, "value": 100}, 25
        ),
    ],
    reward_rules=[make_rule(const.REWARD_ACTION_SCORE_INCREASE, 1, {"min_increase": 10})],
)


async def _setup_entry(
    hass: HomeAssistant, data: dict[str, Any] | None = None
) -> MockConfigEntry:
    entry = MockConfigEntry(
        domain=const.DOMAIN, title=const.WONDERNEST_TITLE, data=data or {}
    )
    entry.add_to_hass(hass)
    await hass.config_entries.async_setup(entry.entry_id)
    await hass.async_block_till_done()
    return entry


async def _call(
    hass: HomeAssistant,
    service: str,
    data: dict[str, Any] | None = None,
    context: Context | None = None,
) -> Any:
    return await hass.services.async_call(
        const.DOMAIN,
        service,
        data or {},
        blocking=True,
        return_response=True,
        context=context,
    )


@pytest.fixture
async def loaded_entry(hass: HomeAssistant) -> MockConfigEntry:
    """Loaded local-only entry with one registered game."""
    entry = await _setup_entry(hass)
    await _call(hass, const.SERVICE_REGISTER_GAME, {const.FIELD_GAME: GAME})
    return entry


class TestSetup:
    """Entry lifecycle."""

    async def test_setup_and_unload(self, hass: HomeAssistant) -> None:
        entry = await _setup_entry(hass)

        assert entry.state is ConfigEntryState.LOADED
        assert isinstance(entry.runtime_data, WonderNestCoordinator)
        assert entry.runtime_data.remote_sink is None
        assert hass.services.has_service(const.DOMAIN, const.SERVICE_START_SESSION)

        assert await hass.config_entries.async_unload(entry.entry_id)
        await hass.async_block_till_done()

        assert entry.state is ConfigEntryState.NOT_LOADED
        assert not hass.services.has_service(const.DOMAIN, const.SERVICE_START_SESSION)

    async def test_games_file_loaded(self, hass: HomeAssistant, tmp_path: Path) -> None:
        catalog = tmp_path / "games.yaml"
        catalog.write_text(
            "games:\n  - id: math_quest\n    name: Math Quest\n", encoding="utf-8"
        )

        entry = await _setup_entry(hass, {const.CONF_GAMES_FILE: str(catalog)})

        assert "math_quest" in entry.runtime_data.registry

    async def test_bad_games_file_fails_setup(
        self, hass: HomeAssistant, tmp_path: Path
    ) -> None:
        entry = await _setup_entry(
            hass, {const.CONF_GAMES_FILE: str(tmp_path / "missing.yaml")}
        )
        assert entry.state is ConfigEntryState.SETUP_ERROR

    async def test_remote_sync_wired(
        self, hass: HomeAssistant, aioclient_mock: AiohttpClientMocker
    ) -> None:
        """Transactions are pushed to the configured endpoint."""
        aioclient_mock.post("https://nest.example.com/sync/transaction", status=200)
        entry = await _setup_entry(
            hass,
            {
                const.CONF_REMOTE_URL: "https://nest.example.com",
                const.CONF_API_TOKEN: "token",
            },
        )

        await entry.runtime_data.ledger_manager.async_add("child_1", 5, "Bonus")
        await hass.async_block_till_done()

        assert aioclient_mock.call_count == 1
        assert entry.runtime_data.sync_manager.pending_items == []


class TestPlayServices:
    """Registering games and playing through services."""

    async def test_full_session(
        self, hass: HomeAssistant, loaded_entry: MockConfigEntry
    ) -> None:
        unlocks = async_capture_events(hass, const.EVENT_ACHIEVEMENT_UNLOCKED)
        balances = async_capture_events(hass, const.EVENT_CURRENCY_UPDATED)

        started = await _call(
            hass,
            const.SERVICE_START_SESSION,
            {const.FIELD_GAME_ID: "math_quest", const.FIELD_CHILD_ID: "child_1"},
        )
        session_id = started[const.FIELD_SESSION_ID]
        assert started["game_data"] == {"score": 0, "level": 1}

        recorded = await _call(
            hass,
            const.SERVICE_RECORD_EVENT,
            {
                const.FIELD_SESSION_ID: session_id,
                const.FIELD_EVENT_TYPE: const.EVENT_TYPE_SCORE_UPDATE,
                const.FIELD_NEW_SCORE: 120,
            },
        )
        assert recorded["unlocked"] == ["score_100"]
        assert recorded["currency_awarded"] == 26

        ended = await _call(
            hass, const.SERVICE_END_SESSION, {const.FIELD_SESSION_ID: session_id}
        )
        assert ended["data"]["final_score"] == 120
        await hass.async_block_till_done()

        assert [e.data["achievement_id"] for e in unlocks] == ["score_100"]
        assert [e.data["balance"] for e in balances] == [25, 26]

        spent = await _call(
            hass,
            const.SERVICE_SPEND_CURRENCY,
            {const.FIELD_CHILD_ID: "child_1", const.FIELD_AMOUNT: 6, const.FIELD_REASON: "Sticker"},
        )
        assert spent == {"balance": 20}

    async def test_register_invalid_game(
        self, hass: HomeAssistant, loaded_entry: MockConfigEntry
    ) -> None:
        with pytest.raises(ServiceValidationError):
            await _call(
                hass,
                const.SERVICE_REGISTER_GAME,
                {const.FIELD_GAME: make_game("bad", min_age=9, max_age=2)},
            )

    async def test_unknown_session(
        self, hass: HomeAssistant, loaded_entry: MockConfigEntry
    ) -> None:
        with pytest.raises(ServiceValidationError):
            await _call(
                hass,
                const.SERVICE_RECORD_EVENT,
                {
                    const.FIELD_SESSION_ID: "nope",
                    const.FIELD_EVENT_TYPE: const.EVENT_TYPE_LEVEL_PROGRESS,
                    const.FIELD_NEW_LEVEL: 2,
                },
            )

    @pytest.mark.parametrize(
        ("event_type", "extra"),
        [
            (const.EVENT_TYPE_SCORE_UPDATE, {const.FIELD_PREVIOUS_SCORE: 0}),
            (const.EVENT_TYPE_LEVEL_PROGRESS, {const.FIELD_PREVIOUS_LEVEL: 1}),
            (
                const.EVENT_TYPE_SCORE_UPDATE,
                {const.FIELD_NEW_SCORE: 5, const.FIELD_FLAGS: {"level": "bonus"}},
            ),
        ],
    )
    async def test_bad_event_leaves_session_untouched(
        self,
        hass: HomeAssistant,
        loaded_entry: MockConfigEntry,
        event_type: str,
        extra: dict[str, Any],
    ) -> None:
        """Missing new values and reserved flags are rejected before recording."""
        started = await _call(
            hass,
            const.SERVICE_START_SESSION,
            {const.FIELD_GAME_ID: "math_quest", const.FIELD_CHILD_ID: "child_1"},
        )
        session_id = started[const.FIELD_SESSION_ID]

        with pytest.raises(ServiceValidationError):
            await _call(
                hass,
                const.SERVICE_RECORD_EVENT,
                {
                    const.FIELD_SESSION_ID: session_id,
                    const.FIELD_EVENT_TYPE: event_type,
                    **extra,
                },
            )

        session = loaded_entry.runtime_data.session_manager.get_session(session_id)
        assert session.events == []
        assert session.game_data == {"score": 0, "level": 1}
        ended = await _call(
            hass, const.SERVICE_END_SESSION, {const.FIELD_SESSION_ID: session_id}
        )
        assert ended["data"]["final_score"] == 0

    async def test_insufficient_funds(
        self, hass: HomeAssistant, loaded_entry: MockConfigEntry
    ) -> None:
        with pytest.raises(HomeAssistantError) as exc_info:
            await _call(
                hass,
                const.SERVICE_SPEND_CURRENCY,
                {const.FIELD_CHILD_ID: "child_1", const.FIELD_AMOUNT: 5, const.FIELD_REASON: "Toy"},
            )
        assert not isinstance(exc_info.value, ServiceValidationError)

    async def test_sync_now_local_only(
        self, hass: HomeAssistant, loaded_entry: MockConfigEntry
    ) -> None:
        result = await _call(hass, const.SERVICE_SYNC_NOW)
        assert result == {"delivered": 0, "retried": 0, "dropped": 0, "pending": 0}


class TestApprovalServices:
    """Guardian approvals through services."""

    async def _request(self, hass: HomeAssistant) -> str:
        await _call(
            hass,
            const.SERVICE_REGISTER_GAME,
            {const.FIELD_GAME: make_game("paint_party", requires_parent_approval=True)},
        )
        record = await _call(
            hass,
            const.SERVICE_REQUEST_APPROVAL,
            {const.FIELD_GAME_ID: "paint_party", const.FIELD_CHILD_ID: "child_1"},
        )
        assert record["status"] == "pending"
        return record["request_id"]

    async def test_admin_approves_with_restriction(
        self,
        hass: HomeAssistant,
        loaded_entry: MockConfigEntry,
        hass_admin_user: MockUser,
    ) -> None:
        request_id = await self._request(hass)

        decided = await _call(
            hass,
            const.SERVICE_DECIDE_APPROVAL,
            {
                const.FIELD_REQUEST_ID: request_id,
                const.FIELD_APPROVED: True,
                const.FIELD_NOTE: "Weekends off",
                const.DATA_RESTRICTION_MAX_DAILY_MINUTES: 45,
                const.DATA_RESTRICTION_BLOCKED_WEEKDAYS: [6, 7],
            },
            context=Context(user_id=hass_admin_user.id),
        )

        assert decided["status"] == "approved"
        assert decided["restriction"][const.DATA_RESTRICTION_MAX_DAILY_MINUTES] == 45
        assert decided["restriction"][const.DATA_RESTRICTION_BLOCKED_WEEKDAYS] == [6, 7]

    async def test_non_guardian_refused(
        self,
        hass: HomeAssistant,
        loaded_entry: MockConfigEntry,
        hass_read_only_user: MockUser,
    ) -> None:
        request_id = await self._request(hass)

        with pytest.raises(HomeAssistantError):
            await _call(
                hass,
                const.SERVICE_DECIDE_APPROVAL,
                {const.FIELD_REQUEST_ID: request_id, const.FIELD_APPROVED: True},
                context=Context(user_id=hass_read_only_user.id),
            )

        coordinator: WonderNestCoordinator = loaded_entry.runtime_data
        pending = await coordinator.approval_manager.async_get_pending_requests()
        assert [r.request_id for r in pending] == [request_id]

    async def test_start_blocked_until_approved(
        self, hass: HomeAssistant, loaded_entry: MockConfigEntry
    ) -> None:
        await self._request(hass)
        with pytest.raises(HomeAssistantError, match="pending"):
            await _call(
                hass,
                const.SERVICE_START_SESSION,
                {const.FIELD_GAME_ID: "paint_party", const.FIELD_CHILD_ID: "child_1"},
            )
