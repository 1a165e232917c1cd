"""Reward Engine - Pure logic for matching reward rules to game events.

This engine provides stateless, pure Python functions for:
- Deciding which reward rules an event triggers
- Daily play detection against the child's last recorded play date
- Summing matched rules and describing them for the ledger

ARCHITECTURE: This is a pure logic engine with NO Home Assistant dependencies.
The RewardManager owns the ledger calls and the last-play-date bookkeeping.

Rule kinds (closed set, keyed by action_id):
- score_increase: ScoreUpdate with a positive delta >= min_increase
- level_complete: LevelProgress where the level went up
- achievement_unlock: AchievementUnlocked
- game_complete: SessionCompletion with completed=True
- daily_play: any event that is the first of the local calendar day
- perfect_score: ScoreUpdate crossing max_score (previous below, new at or above)
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import date

from .. import const
from ..models import (
    AchievementUnlocked,
    GameEvent,
    LevelProgress,
    RewardRule,
    ScoreUpdate,
    SessionCompletion,
)


class RewardEngine:
    """Pure logic engine for reward rule matching.

    All methods are static - no instance state.
    """

    @staticmethod
    def is_first_play_today(last_play_date: date | None, today: date) -> bool:
        """Return True when no play has been recorded yet on ``today``."""
        return last_play_date is None or last_play_date < today

    @staticmethod
    def rule_matches(rule: RewardRule, event: GameEvent, first_play_today: bool) -> bool:
        """Return True when ``rule`` fires for ``event``."""
        match rule.action_id:
            case const.REWARD_ACTION_SCORE_INCREASE:
                return (
                    isinstance(event, ScoreUpdate)
                    and event.score_delta > 0
                    and event.score_delta >= rule.min_increase
                )
            case const.REWARD_ACTION_LEVEL_COMPLETE:
                return isinstance(event, LevelProgress) and event.level_delta > 0
            case const.REWARD_ACTION_ACHIEVEMENT_UNLOCK:
                return isinstance(event, AchievementUnlocked)
            case const.REWARD_ACTION_GAME_COMPLETE:
                return isinstance(event, SessionCompletion) and event.completed
            case const.REWARD_ACTION_DAILY_PLAY:
                return first_play_today
            case const.REWARD_ACTION_PERFECT_SCORE:
                return (
                    isinstance(event, ScoreUpdate)
                    and event.previous_score < rule.max_score <= event.new_score
                )
        return False

    @classmethod
    def match_rules(
        cls,
        event: GameEvent,
        rules: Iterable[RewardRule],
        first_play_today: bool = False,
    ) -> list[RewardRule]:
        """Return every rule that fires for ``event``, preserving rule order."""
        return [
            rule
            for rule in rules
            if rule.amount > 0 and cls.rule_matches(rule, event, first_play_today)
        ]

    @staticmethod
    def total_amount(rules: Sequence[RewardRule], extra: int = 0) -> int:
        """Sum the amounts of the matched rules plus ``extra``."""
        return sum(rule.amount for rule in rules) + extra

    @staticmethod
    def describe(game_id: str, rules: Sequence[RewardRule]) -> str:
        """Ledger reason for a batch of rule rewards."""
        return const.REASON_GAME_REWARDS.format(
            game_id=game_id,
            actions=", ".join(rule.action_name for rule in rules),
        )

    @staticmethod
    def describe_achievement(game_id: str, achievement_name: str) -> str:
        """Ledger reason for an achievement's own currency reward."""
        return const.REASON_ACHIEVEMENT_REWARD.format(
            name=achievement_name, game_id=game_id
        )
