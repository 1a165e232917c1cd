"""Tests for the WonderNest config flow."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

from homeassistant import config_entries
from homeassistant.core import HomeAssistant
from homeassistant.data_entry_flow import FlowResultType
from pytest_homeassistant_custom_component.common import MockConfigEntry

from custom_components.wondernest import const


async def _start_flow(hass: HomeAssistant):
    return await hass.config_entries.flow.async_init(
        const.DOMAIN, context={"source": config_entries.SOURCE_USER}
    )


async def test_create_entry(hass: HomeAssistant, tmp_path: Path) -> None:
    """Valid input creates the entry with split guardian ids."""
    catalog = tmp_path / "games.yaml"
    catalog.write_text("games:\n  - id: math_quest\n    name: Math Quest\n", encoding="utf-8")

    result = await _start_flow(hass)
    assert result["type"] == FlowResultType.FORM
    assert result["step_id"] == "user"

    with patch("custom_components.wondernest.async_setup_entry", return_value=True):
        result = await hass.config_entries.flow.async_configure(
            result["flow_id"],
            {
                const.CONF_REMOTE_URL: "https://nest.example.com",
                const.CONF_API_TOKEN: "token",
                const.CONF_GAMES_FILE: str(catalog),
                const.CONF_GUARDIAN_USER_IDS: "parent_a, parent_b,",
            },
        )
        await hass.async_block_till_done()

    assert result["type"] == FlowResultType.CREATE_ENTRY
    assert result["title"] == const.WONDERNEST_TITLE
    assert result["data"] == {
        const.CONF_REMOTE_URL: "https://nest.example.com",
        const.CONF_API_TOKEN: "token",
        const.CONF_GAMES_FILE: str(catalog),
        const.CONF_GUARDIAN_USER_IDS: ["parent_a", "parent_b"],
    }


async def test_invalid_input(hass: HomeAssistant, tmp_path: Path) -> None:
    """A bad URL and a missing catalog are reported on their fields."""
    result = await _start_flow(hass)
    result = await hass.config_entries.flow.async_configure(
        result["flow_id"],
        {
            const.CONF_REMOTE_URL: "not a url",
            const.CONF_GAMES_FILE: str(tmp_path / "missing.yaml"),
        },
    )

    assert result["type"] == FlowResultType.FORM
    assert result["errors"] == {
        const.CONF_REMOTE_URL: const.TRANS_KEY_ERROR_INVALID_URL,
        const.CONF_GAMES_FILE: const.TRANS_KEY_ERROR_INVALID_GAMES_FILE,
    }


async def test_single_instance(hass: HomeAssistant) -> None:
    MockConfigEntry(domain=const.DOMAIN, data={}).add_to_hass(hass)

    result = await _start_flow(hass)

    assert result["type"] == FlowResultType.ABORT
    assert result["reason"] == const.TRANS_KEY_ERROR_SINGLE_INSTANCE
