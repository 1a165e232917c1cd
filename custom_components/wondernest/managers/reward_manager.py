"""Reward Manager - Turns game events into currency grants.

This manager handles:
- Matching a game's reward rules against each event (via RewardEngine)
- Daily play detection against the child's last recorded play date
- Granting achievement rewards (the achievement's own currency plus any
  achievement_unlock rules) in a single ledger call

All rules matched by one event are summed into ONE ledger call. If that call
fails, the rules are retried one at a time and the failing ones are dropped.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import TYPE_CHECKING

from .. import const
from ..engines.reward_engine import RewardEngine
from ..exceptions import InsufficientFundsError, PersistenceError
from .base_manager import BaseManager

if TYPE_CHECKING:
    from ..models import (
        Achievement,
        AchievementUnlocked,
        GameEvent,
        RewardRule,
    )


class RewardManager(BaseManager):
    """Manager for reward rule dispatch."""

    async def async_setup(self) -> None:
        """Route achievement unlocks through the reward rules."""
        self.coordinator.achievement_manager.add_unlock_handler(
            self.async_on_achievement_unlocked
        )

    def _rules_for_game(self, game_id: str) -> Sequence[RewardRule]:
        game = self.coordinator.registry.get(game_id)
        return game.reward_rules if game else ()

    async def _async_check_first_play_today(
        self, child_id: str, now: datetime
    ) -> bool:
        """Return True if this is the child's first event today; records the date."""
        today = now.date()
        async with self._get_lock(child_id):
            last_play_date = await self.store.async_get_last_play_date(child_id)
            first_play = RewardEngine.is_first_play_today(last_play_date, today)
            if first_play:
                try:
                    await self.store.async_set_last_play_date(child_id, today)
                except PersistenceError as err:
                    const.LOGGER.error("RewardManager: %s", err)
        return first_play

    async def async_process_event(
        self,
        event: GameEvent,
        rules: Sequence[RewardRule] | None = None,
        now: datetime | None = None,
    ) -> int:
        """Grant the rewards ``event`` triggers.

        Args:
            event: The game event
            rules: Rules to match (defaults to the game's own)
            now: Optional local time override for daily play detection

        Returns:
            Total currency granted
        """
        if rules is None:
            rules = self._rules_for_game(event.game_id)
        local_now = self._resolve_now(now)
        first_play = await self._async_check_first_play_today(event.child_id, local_now)
        matched = RewardEngine.match_rules(event, rules, first_play)
        if not matched:
            return 0
        return await self._async_grant(
            event.child_id,
            matched,
            extra=0,
            reason=RewardEngine.describe(event.game_id, matched),
        )

    async def async_on_achievement_unlocked(
        self,
        game_id: str,
        child_id: str,
        achievement: Achievement,
        event: AchievementUnlocked,
    ) -> int:
        """Grant the achievement reward and achievement_unlock rules together."""
        matched = RewardEngine.match_rules(event, self._rules_for_game(game_id))
        if not matched and achievement.currency_reward <= 0:
            return 0
        return await self._async_grant(
            child_id,
            matched,
            extra=achievement.currency_reward,
            reason=RewardEngine.describe_achievement(game_id, achievement.name),
        )

    def expected_unlock_reward(self, game_id: str, achievement: Achievement) -> int:
        """Currency an unlock of ``achievement`` is worth under the game's rules."""
        unlock_rules = [
            rule
            for rule in self._rules_for_game(game_id)
            if rule.action_id == const.REWARD_ACTION_ACHIEVEMENT_UNLOCK and rule.amount > 0
        ]
        return RewardEngine.total_amount(unlock_rules, achievement.currency_reward)

    async def _async_grant(
        self,
        child_id: str,
        rules: Sequence[RewardRule],
        extra: int,
        reason: str,
    ) -> int:
        total = RewardEngine.total_amount(rules, extra)
        if total <= 0:
            return 0
        try:
            await self.coordinator.ledger_manager.async_apply(child_id, total, reason)
        except (InsufficientFundsError, PersistenceError) as err:
            const.LOGGER.warning(
                "RewardManager: Batch grant of %s to %s failed (%s), applying rules "
                "one at a time",
                total,
                child_id,
                err,
            )
        else:
            return total

        granted = 0
        parts: list[tuple[str, int]] = [(reason, extra)] if extra > 0 else []
        parts.extend((rule.action_name, rule.amount) for rule in rules)
        for label, amount in parts:
            try:
                await self.coordinator.ledger_manager.async_apply(child_id, amount, label)
            except (InsufficientFundsError, PersistenceError) as err:
                const.LOGGER.error(
                    "RewardManager: Dropping reward '%s' (%s) for %s: %s",
                    label,
                    amount,
                    child_id,
                    err,
                )
                continue
            granted += amount
        return granted
