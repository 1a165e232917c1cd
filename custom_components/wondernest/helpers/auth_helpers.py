# File: helpers/auth_helpers.py
"""Authorization helper functions for WonderNest.

Functions that check user permissions for guardian-only operations.
All functions here require a `hass` object for auth system access.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable
from typing import TYPE_CHECKING

from .. import const

if TYPE_CHECKING:
    from homeassistant.auth.models import User
    from homeassistant.core import HomeAssistant


async def is_user_authorized_guardian(
    hass: HomeAssistant,
    user_id: str | None,
    guardian_user_ids: Iterable[str],
) -> bool:
    """Check if a user may decide approvals.

    Authorization rules:
      - Admin users => authorized
      - Users listed as guardians in the config entry => authorized
      - Everyone else => not authorized

    Args:
        hass: HomeAssistant instance
        user_id: User ID to check
        guardian_user_ids: Home Assistant user ids configured as guardians

    Returns:
        True if authorized, False otherwise
    """
    if not user_id:
        return False

    user: User | None = await hass.auth.async_get_user(user_id)
    if not user:
        const.LOGGER.warning("WARNING: Decide approval: Invalid user ID '%s'", user_id)
        return False

    if user.is_admin:
        return True

    if user.id in set(guardian_user_ids):
        return True

    const.LOGGER.warning(
        "WARNING: Decide approval: Non-admin user '%s' is not a guardian", user.name
    )
    return False


def make_guardian_authorizer(
    hass: HomeAssistant, guardian_user_ids: Iterable[str]
) -> Callable[[str | None], Awaitable[bool]]:
    """Bind the guardian check into the authorizer the ApprovalManager expects."""
    guardians = tuple(guardian_user_ids)

    async def _authorize(user_id: str | None) -> bool:
        return await is_user_authorized_guardian(hass, user_id, guardians)

    return _authorize
