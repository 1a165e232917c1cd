"""Shared fixtures for WonderNest tests."""

from collections.abc import AsyncGenerator, Awaitable, Callable
from typing import Any

import pytest
from homeassistant.core import HomeAssistant

from tests.helpers import FakeRemoteSink, SetupResult, setup_wondernest

# pylint: disable=invalid-name
pytest_plugins = "pytest_homeassistant_custom_component"
# pylint: enable=invalid-name


@pytest.fixture(autouse=True)
def auto_enable_custom_integrations(enable_custom_integrations: Any) -> Any:
    """Enable custom integrations in tests."""
    # pylint: disable=unused-argument
    yield


@pytest.fixture
async def setup_nest(
    hass: HomeAssistant,
) -> AsyncGenerator[Callable[..., Awaitable[SetupResult]], None]:
    """Factory building coordinators; every one is shut down after the test."""
    results: list[SetupResult] = []

    async def _setup(**kwargs: Any) -> SetupResult:
        result = await setup_wondernest(hass, **kwargs)
        results.append(result)
        return result

    yield _setup

    await hass.async_block_till_done()
    for result in results:
        await result.coordinator.async_shutdown()


@pytest.fixture
def remote_sink() -> FakeRemoteSink:
    """Remote sink double that acknowledges everything unless told otherwise."""
    return FakeRemoteSink()
