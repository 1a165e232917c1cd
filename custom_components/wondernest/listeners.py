# File: listeners.py
"""Achievement and currency listener registration.

Listeners may be plain callables or coroutine functions. Each one runs in
isolation: a failing listener is handed to the ErrorReporter and never stops
the remaining listeners or the caller's workflow.
"""

from __future__ import annotations

from collections.abc import Callable
import inspect
from typing import TYPE_CHECKING, Any

from . import const

if TYPE_CHECKING:
    from .models import Achievement, CurrencyTransaction, GameEvent
    from .type_defs import AchievementListener, CurrencyListener, ErrorReporter


class LoggingErrorReporter:
    """Default ErrorReporter: logs the failure with its traceback."""

    def report(self, source: str, err: BaseException) -> None:
        const.LOGGER.error(
            "ERROR: Listener %s failed: %s", source, err, exc_info=err
        )


def _listener_name(listener: Callable[..., Any]) -> str:
    return getattr(listener, "__qualname__", None) or repr(listener)


class ListenerRegistry:
    """Holds achievement and currency listeners for one engine instance."""

    def __init__(self, error_reporter: ErrorReporter | None = None) -> None:
        self._error_reporter: ErrorReporter = error_reporter or LoggingErrorReporter()
        self._achievement_listeners: list[AchievementListener] = []
        self._currency_listeners: list[CurrencyListener] = []

    def add_achievement_listener(
        self, listener: AchievementListener
    ) -> Callable[[], None]:
        """Register a listener; returns a callable that unsubscribes it."""
        self._achievement_listeners.append(listener)
        return self._make_unsubscribe(self._achievement_listeners, listener)

    def add_currency_listener(self, listener: CurrencyListener) -> Callable[[], None]:
        """Register a listener; returns a callable that unsubscribes it."""
        self._currency_listeners.append(listener)
        return self._make_unsubscribe(self._currency_listeners, listener)

    @staticmethod
    def _make_unsubscribe(
        listeners: list[Any], listener: Callable[..., Any]
    ) -> Callable[[], None]:
        def _unsubscribe() -> None:
            if listener in listeners:
                listeners.remove(listener)

        return _unsubscribe

    async def async_notify_achievement(
        self,
        game_id: str,
        child_id: str,
        achievement: Achievement,
        event: GameEvent,
    ) -> None:
        for listener in list(self._achievement_listeners):
            await self._async_call(listener, game_id, child_id, achievement, event)

    async def async_notify_currency(
        self,
        child_id: str,
        new_balance: int,
        transaction: CurrencyTransaction,
    ) -> None:
        for listener in list(self._currency_listeners):
            await self._async_call(listener, child_id, new_balance, transaction)

    async def _async_call(self, listener: Callable[..., Any], *args: Any) -> None:
        try:
            result = listener(*args)
            if inspect.isawaitable(result):
                await result
        except Exception as err:  # pylint: disable=broad-except
            self._error_reporter.report(_listener_name(listener), err)
