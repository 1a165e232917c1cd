# File: config_flow.py
"""Config flow for the WonderNest integration.

A single entry holds the remote sync endpoint, the optional game catalog file
and the Home Assistant users allowed to decide approvals.
"""

from typing import Any, Optional

import voluptuous as vol
from homeassistant import config_entries
from homeassistant.helpers import config_validation as cv

from . import const
from .content import load_games_file
from .exceptions import ValidationError

# pylint: disable=abstract-method


def _split_user_ids(raw: str) -> list[str]:
    return [user_id.strip() for user_id in raw.split(",") if user_id.strip()]


class WonderNestConfigFlow(config_entries.ConfigFlow, domain=const.DOMAIN):
    """Config Flow for WonderNest."""

    VERSION = 1

    async def async_step_user(self, user_input: Optional[dict[str, Any]] = None):
        """Collect the remote endpoint, catalog file and guardians."""
        if any(self._async_current_entries()):
            return self.async_abort(reason=const.TRANS_KEY_ERROR_SINGLE_INSTANCE)

        errors: dict[str, str] = {}
        if user_input is not None:
            remote_url = user_input.get(const.CONF_REMOTE_URL, "").strip()
            games_file = user_input.get(const.CONF_GAMES_FILE, "").strip()

            if remote_url:
                try:
                    cv.url(remote_url)
                except vol.Invalid:
                    errors[const.CONF_REMOTE_URL] = const.TRANS_KEY_ERROR_INVALID_URL

            if games_file:
                try:
                    await self.hass.async_add_executor_job(
                        load_games_file, self.hass.config.path(games_file)
                    )
                except ValidationError as err:
                    const.LOGGER.warning("WARNING: Config flow: %s", err)
                    errors[const.CONF_GAMES_FILE] = (
                        const.TRANS_KEY_ERROR_INVALID_GAMES_FILE
                    )

            if not errors:
                return self.async_create_entry(
                    title=const.WONDERNEST_TITLE,
                    data={
                        const.CONF_REMOTE_URL: remote_url,
                        const.CONF_API_TOKEN: user_input.get(const.CONF_API_TOKEN, ""),
                        const.CONF_GAMES_FILE: games_file,
                        const.CONF_GUARDIAN_USER_IDS: _split_user_ids(
                            user_input.get(const.CONF_GUARDIAN_USER_IDS, "")
                        ),
                    },
                )

        schema = vol.Schema(
            {
                vol.Optional(
                    const.CONF_REMOTE_URL, default=const.DEFAULT_REMOTE_URL
                ): str,
                vol.Optional(const.CONF_API_TOKEN, default=""): str,
                vol.Optional(
                    const.CONF_GAMES_FILE, default=const.DEFAULT_GAMES_FILE
                ): str,
                vol.Optional(const.CONF_GUARDIAN_USER_IDS, default=""): str,
            }
        )
        return self.async_show_form(step_id="user", data_schema=schema, errors=errors)
