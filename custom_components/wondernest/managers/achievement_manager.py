"""Achievement Manager - Durable achievement unlocks.

This manager handles:
- Evaluating candidate achievements against an event (via CriteriaEngine)
- Recording unlocks exactly once per (game, child, achievement)
- Handing each new unlock to the unlock handlers (reward dispatch) and to the
  achievement listeners
- Queueing unlocks for sync
- Unlock queries and statistics

The unlock is persisted before any handler runs. Only an insert that reports
"newly inserted" counts as an unlock, so a duplicate event or a concurrent
evaluation never grants twice.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime
from typing import TYPE_CHECKING

from .. import const
from ..engines.criteria_engine import CriteriaEngine
from ..engines.sync_engine import SyncEngine
from ..exceptions import PersistenceError, UnknownGameError
from ..models import Achievement, AchievementStats, AchievementUnlocked
from ..utils.dt_utils import dt_parse, dt_to_iso
from .base_manager import BaseManager

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant

    from ..coordinator import WonderNestCoordinator
    from ..models import AggregateState, GameDefinition, GameEvent

# Receives (game_id, child_id, achievement, unlock_event)
UnlockHandler = Callable[[str, str, Achievement, AchievementUnlocked], Awaitable[object]]


class AchievementManager(BaseManager):
    """Manager for achievement evaluation and unlock bookkeeping.

    Mutations for one (game, child) pair are serialized by a lock; different
    pairs never block each other.
    """

    def __init__(self, hass: HomeAssistant, coordinator: WonderNestCoordinator) -> None:
        super().__init__(hass, coordinator)
        self._unlock_handlers: list[UnlockHandler] = []

    async def async_setup(self) -> None:
        """Nothing to restore; unlocks are read from the store on demand."""

    def add_unlock_handler(self, handler: UnlockHandler) -> None:
        self._unlock_handlers.append(handler)

    def _get_game(self, game_id: str) -> GameDefinition:
        game = self.coordinator.registry.get(game_id)
        if game is None:
            raise UnknownGameError(game_id)
        return game

    # =========================================================================
    # EVALUATION
    # =========================================================================

    async def async_process_event(
        self,
        game_id: str,
        child_id: str,
        event: GameEvent,
        state: AggregateState,
        candidates: Sequence[Achievement] | None = None,
        now: datetime | None = None,
    ) -> list[Achievement]:
        """Evaluate candidates and record the ones that unlock.

        Args:
            game_id: Game the event belongs to
            child_id: Child the event belongs to
            event: Triggering event
            state: Aggregate snapshot after the event was applied
            candidates: Achievements to consider (defaults to the game's own)
            now: Optional unlock time override

        Returns:
            Newly unlocked achievements in candidate order
        """
        if candidates is None:
            candidates = self._get_game(game_id).achievements
        unlocked_at = dt_to_iso(self._resolve_now(now))
        newly_unlocked: list[Achievement] = []

        async with self._get_lock(game_id, child_id):
            already = await self.store.async_get_unlocks(game_id, child_id)
            for achievement in candidates:
                if achievement.achievement_id in already:
                    continue
                if not CriteriaEngine.evaluate(achievement.criterion, event, state):
                    continue
                try:
                    inserted = await self.store.async_insert_unlock_if_absent(
                        game_id, child_id, achievement.achievement_id, unlocked_at
                    )
                except PersistenceError as err:
                    const.LOGGER.error(
                        "AchievementManager: Not unlocking '%s' for %s: %s",
                        achievement.achievement_id,
                        child_id,
                        err,
                    )
                    continue
                if inserted:
                    newly_unlocked.append(achievement)

        for achievement in newly_unlocked:
            await self._async_announce(game_id, child_id, achievement, event)
        return newly_unlocked

    async def _async_announce(
        self,
        game_id: str,
        child_id: str,
        achievement: Achievement,
        trigger: GameEvent,
    ) -> None:
        const.LOGGER.info(
            "AchievementManager: %s unlocked '%s' in %s",
            child_id,
            achievement.name,
            game_id,
        )
        unlock_event = AchievementUnlocked(
            game_id=game_id,
            child_id=child_id,
            session_id=trigger.session_id,
            achievement_id=achievement.achievement_id,
            achievement_name=achievement.name,
        )
        for handler in self._unlock_handlers:
            try:
                await handler(game_id, child_id, achievement, unlock_event)
            except Exception as err:  # pylint: disable=broad-except
                # The unlock itself is durable; a failed handler is only logged
                const.LOGGER.error(
                    "AchievementManager: Unlock handler failed for '%s': %s",
                    achievement.achievement_id,
                    err,
                )
        await self.listeners.async_notify_achievement(
            game_id, child_id, achievement, unlock_event
        )
        await self.coordinator.sync_manager.async_enqueue(
            const.SYNC_KIND_UNLOCK,
            SyncEngine.unlock_key(trigger.session_id, achievement.achievement_id),
            unlock_event.as_dict(),
        )

    # =========================================================================
    # QUERIES
    # =========================================================================

    async def async_get_unlocked(self, game_id: str, child_id: str) -> list[Achievement]:
        """Unlocked achievements of the game, in definition order."""
        game = self._get_game(game_id)
        unlocks = await self.store.async_get_unlocks(game_id, child_id)
        return [a for a in game.achievements if a.achievement_id in unlocks]

    async def async_is_unlocked(
        self, game_id: str, child_id: str, achievement_id: str
    ) -> bool:
        unlocks = await self.store.async_get_unlocks(game_id, child_id)
        return achievement_id in unlocks

    async def async_get_unlock_date(
        self, game_id: str, child_id: str, achievement_id: str
    ) -> datetime | None:
        unlocks = await self.store.async_get_unlocks(game_id, child_id)
        return dt_parse(unlocks.get(achievement_id))

    async def async_visible_achievements(
        self, game_id: str, child_id: str
    ) -> list[Achievement]:
        """Achievements to show the child: secret ones stay hidden until unlocked."""
        game = self._get_game(game_id)
        unlocks = await self.store.async_get_unlocks(game_id, child_id)
        return [
            a
            for a in game.achievements
            if not a.is_secret or a.achievement_id in unlocks
        ]

    async def async_get_stats(self, game_id: str, child_id: str) -> AchievementStats:
        game = self._get_game(game_id)
        unlocks = await self.store.async_get_unlocks(game_id, child_id)
        unlocked = [a for a in game.achievements if a.achievement_id in unlocks]
        total = len(game.achievements)
        recent = sorted(
            unlocked,
            key=lambda a: unlocks[a.achievement_id],
            reverse=True,
        )[: const.RECENT_UNLOCKS_LIMIT]
        return AchievementStats(
            total_achievements=total,
            unlocked_count=len(unlocked),
            total_points_earned=sum(a.currency_reward for a in unlocked),
            completion_percentage=(len(unlocked) * 100 // total) if total else 0,
            recent_unlocks=tuple(recent),
        )
