# File: content.py
"""Game content definitions and the in-memory game registry.

Game definitions arrive as plain mappings (from the YAML catalog or the
register_game service) and are validated with voluptuous, then decoded once
into GameDefinition. Definitions that omit ``achievements`` or ``reward_rules``
receive the default templates below.

No Home Assistant imports: the coordinator loads the catalog file in an
executor and hands the parsed mappings here.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

import voluptuous as vol
import yaml

from . import const
from .engines.criteria_engine import CriteriaEngine
from .exceptions import ValidationError
from .models import Achievement, GameCategory, GameDefinition, RewardRule

# ==============================================================================
# Default templates
# ==============================================================================

DEFAULT_ACHIEVEMENTS: list[dict[str, Any]] = [
    {
        "id": "first_play",
        "name": "Getting Started",
        "description": "Play your first game!",
        "icon": "mdi:play",
        "currency_reward": 10,
        "criteria": {"type": const.CRITERION_SESSIONS_PLAYED, "value": 1},
    },
    {
        "id": "score_100",
        "name": "Century Club",
        "description": "Reach a score of 100 points",
        "icon": "mdi:trophy",
        "currency_reward": 25,
        "criteria": {"type": const.CRITERION_SCORE_THRESHOLD, "value": 100},
    },
    {
        "id": "level_5",
        "name": "Level Master",
        "description": "Reach level 5",
        "icon": "mdi:trending-up",
        "currency_reward": 50,
        "criteria": {"type": const.CRITERION_LEVEL_REACHED, "value": 5},
    },
    {
        "id": "play_30_minutes",
        "name": "Dedicated Player",
        "description": "Play for 30 minutes total",
        "icon": "mdi:clock-outline",
        "currency_reward": 30,
        "criteria": {"type": const.CRITERION_TOTAL_PLAY_TIME, "value": 30},
    },
    {
        "id": "daily_streak_7",
        "name": "Week Warrior",
        "description": "Play for 7 days in a row",
        "icon": "mdi:calendar-today",
        "currency_reward": 100,
        "criteria": {"type": const.CRITERION_DAILY_PLAY_STREAK, "value": 7},
    },
    {
        "id": "complete_game",
        "name": "Finisher",
        "description": "Complete a full game",
        "icon": "mdi:check-circle",
        "currency_reward": 75,
        "criteria": {"type": const.CRITERION_GAME_COMPLETION},
    },
]

DEFAULT_REWARD_RULES: list[dict[str, Any]] = [
    {
        "action_id": const.REWARD_ACTION_SCORE_INCREASE,
        "action_name": "Score Increase",
        "amount": 1,
        "conditions": {const.REWARD_CONDITION_MIN_INCREASE: 10},
    },
    {
        "action_id": const.REWARD_ACTION_LEVEL_COMPLETE,
        "action_name": "Level Completed",
        "amount": 5,
    },
    {
        "action_id": const.REWARD_ACTION_ACHIEVEMENT_UNLOCK,
        "action_name": "Achievement Unlocked",
        "amount": 10,
    },
    {
        "action_id": const.REWARD_ACTION_GAME_COMPLETE,
        "action_name": "Game Completed",
        "amount": 20,
    },
    {
        "action_id": const.REWARD_ACTION_DAILY_PLAY,
        "action_name": "Daily Play Bonus",
        "amount": 15,
    },
    {
        "action_id": const.REWARD_ACTION_PERFECT_SCORE,
        "action_name": "Perfect Score Bonus",
        "amount": 50,
        "conditions": {const.REWARD_CONDITION_MAX_SCORE: const.DEFAULT_PERFECT_SCORE},
    },
]

REWARD_ACTIONS = (
    const.REWARD_ACTION_SCORE_INCREASE,
    const.REWARD_ACTION_LEVEL_COMPLETE,
    const.REWARD_ACTION_ACHIEVEMENT_UNLOCK,
    const.REWARD_ACTION_GAME_COMPLETE,
    const.REWARD_ACTION_DAILY_PLAY,
    const.REWARD_ACTION_PERFECT_SCORE,
)

# ==============================================================================
# Schemas
# ==============================================================================

_NON_NEGATIVE_INT = vol.All(vol.Coerce(int), vol.Range(min=0))
_NON_EMPTY_STR = vol.All(str, vol.Length(min=1))

CRITERIA_SCHEMA = vol.Schema(
    {vol.Required(const.CONTENT_CRITERIA_TYPE): _NON_EMPTY_STR},
    extra=vol.ALLOW_EXTRA,
)

ACHIEVEMENT_SCHEMA = vol.Schema(
    {
        vol.Required(const.CONTENT_ACHIEVEMENT_ID): _NON_EMPTY_STR,
        vol.Required(const.CONTENT_NAME): _NON_EMPTY_STR,
        vol.Optional(const.CONTENT_DESCRIPTION, default=""): str,
        vol.Optional(const.CONTENT_ICON, default=const.DEFAULT_ACHIEVEMENT_ICON): str,
        vol.Optional(const.CONTENT_CURRENCY_REWARD, default=0): _NON_NEGATIVE_INT,
        vol.Optional(const.CONTENT_IS_SECRET, default=False): bool,
        vol.Required(const.CONTENT_CRITERIA): CRITERIA_SCHEMA,
    }
)

REWARD_RULE_SCHEMA = vol.Schema(
    {
        vol.Required(const.CONTENT_ACTION_ID): vol.In(REWARD_ACTIONS),
        vol.Required(const.CONTENT_ACTION_NAME): _NON_EMPTY_STR,
        vol.Required(const.CONTENT_AMOUNT): _NON_NEGATIVE_INT,
        vol.Optional(const.CONTENT_CONDITIONS, default=dict): vol.Schema(
            {
                vol.Optional(const.REWARD_CONDITION_MIN_INCREASE): _NON_NEGATIVE_INT,
                vol.Optional(const.REWARD_CONDITION_MAX_SCORE): _NON_NEGATIVE_INT,
            }
        ),
    }
)


def _validate_age_range(value: dict[str, Any]) -> dict[str, Any]:
    if value[const.CONTENT_MIN_AGE] > value[const.CONTENT_MAX_AGE]:
        raise vol.Invalid("min_age must not be greater than max_age")
    return value


def _unique_achievement_ids(value: list[dict[str, Any]]) -> list[dict[str, Any]]:
    ids = [item[const.CONTENT_ACHIEVEMENT_ID] for item in value]
    if len(ids) != len(set(ids)):
        raise vol.Invalid("achievement ids must be unique within a game")
    return value


GAME_SCHEMA = vol.All(
    vol.Schema(
        {
            vol.Required(const.CONTENT_GAME_ID): _NON_EMPTY_STR,
            vol.Required(const.CONTENT_NAME): _NON_EMPTY_STR,
            vol.Optional(const.CONTENT_DESCRIPTION, default=""): str,
            vol.Optional(
                const.CONTENT_CATEGORY, default=str(GameCategory.EDUCATIONAL)
            ): vol.In([str(category) for category in GameCategory]),
            vol.Optional(const.CONTENT_MIN_AGE, default=const.DEFAULT_MIN_AGE): (
                _NON_NEGATIVE_INT
            ),
            vol.Optional(const.CONTENT_MAX_AGE, default=const.DEFAULT_MAX_AGE): (
                _NON_NEGATIVE_INT
            ),
            vol.Optional(const.CONTENT_EDUCATIONAL_TOPICS, default=list): [str],
            vol.Optional(
                const.CONTENT_ESTIMATED_PLAY_MINUTES,
                default=const.DEFAULT_ESTIMATED_PLAY_MINUTES,
            ): _NON_NEGATIVE_INT,
            vol.Optional(const.CONTENT_REQUIRES_PARENT_APPROVAL, default=True): bool,
            vol.Optional(const.CONTENT_SUPPORTS_OFFLINE_PLAY, default=True): bool,
            vol.Optional(const.CONTENT_ACHIEVEMENTS): vol.All(
                [ACHIEVEMENT_SCHEMA], _unique_achievement_ids
            ),
            vol.Optional(const.CONTENT_REWARD_RULES): [REWARD_RULE_SCHEMA],
        }
    ),
    _validate_age_range,
)

CATALOG_SCHEMA = vol.Schema(
    {vol.Optional(const.CONTENT_GAMES, default=list): [dict]}, extra=vol.ALLOW_EXTRA
)

# ==============================================================================
# Decoding
# ==============================================================================


def _decode_achievement(raw: Mapping[str, Any]) -> Achievement:
    return Achievement(
        achievement_id=raw[const.CONTENT_ACHIEVEMENT_ID],
        name=raw[const.CONTENT_NAME],
        description=raw[const.CONTENT_DESCRIPTION],
        icon=raw[const.CONTENT_ICON],
        currency_reward=raw[const.CONTENT_CURRENCY_REWARD],
        is_secret=raw[const.CONTENT_IS_SECRET],
        criterion=CriteriaEngine.decode(raw[const.CONTENT_CRITERIA]),
    )


def _decode_reward_rule(raw: Mapping[str, Any]) -> RewardRule:
    conditions = raw[const.CONTENT_CONDITIONS]
    return RewardRule(
        action_id=raw[const.CONTENT_ACTION_ID],
        action_name=raw[const.CONTENT_ACTION_NAME],
        amount=raw[const.CONTENT_AMOUNT],
        min_increase=conditions.get(const.REWARD_CONDITION_MIN_INCREASE, 0),
        max_score=conditions.get(
            const.REWARD_CONDITION_MAX_SCORE, const.DEFAULT_PERFECT_SCORE
        ),
    )


def decode_game(raw: Mapping[str, Any]) -> GameDefinition:
    """Validate and decode one game definition.

    Raises:
        ValidationError: The definition is malformed
    """
    data = dict(raw)
    data.setdefault(const.CONTENT_ACHIEVEMENTS, DEFAULT_ACHIEVEMENTS)
    data.setdefault(const.CONTENT_REWARD_RULES, DEFAULT_REWARD_RULES)
    try:
        validated = GAME_SCHEMA(data)
    except vol.Invalid as err:
        raise ValidationError(
            f"Invalid game definition '{raw.get(const.CONTENT_GAME_ID)}': {err}"
        ) from err

    return GameDefinition(
        game_id=validated[const.CONTENT_GAME_ID],
        name=validated[const.CONTENT_NAME],
        description=validated[const.CONTENT_DESCRIPTION],
        category=GameCategory(validated[const.CONTENT_CATEGORY]),
        min_age=validated[const.CONTENT_MIN_AGE],
        max_age=validated[const.CONTENT_MAX_AGE],
        educational_topics=tuple(validated[const.CONTENT_EDUCATIONAL_TOPICS]),
        estimated_play_minutes=validated[const.CONTENT_ESTIMATED_PLAY_MINUTES],
        requires_parent_approval=validated[const.CONTENT_REQUIRES_PARENT_APPROVAL],
        supports_offline_play=validated[const.CONTENT_SUPPORTS_OFFLINE_PLAY],
        achievements=tuple(
            _decode_achievement(item) for item in validated[const.CONTENT_ACHIEVEMENTS]
        ),
        reward_rules=tuple(
            _decode_reward_rule(item) for item in validated[const.CONTENT_REWARD_RULES]
        ),
    )


def load_games_file(path: str | Path) -> list[dict[str, Any]]:
    """Read a YAML catalog of game definitions (blocking; run in an executor).

    The file holds a top-level ``games:`` list.

    Raises:
        ValidationError: The file cannot be read or is not a catalog
    """
    try:
        with open(path, encoding="utf-8") as catalog_file:
            raw = yaml.safe_load(catalog_file) or {}
    except (OSError, yaml.YAMLError) as err:
        raise ValidationError(f"Cannot read games file {path}: {err}") from err
    try:
        return CATALOG_SCHEMA(raw)[const.CONTENT_GAMES]
    except vol.Invalid as err:
        raise ValidationError(f"Invalid games file {path}: {err}") from err


# ==============================================================================
# Registry
# ==============================================================================


class GameRegistry:
    """In-memory catalog of registered games."""

    def __init__(self) -> None:
        self._games: dict[str, GameDefinition] = {}

    def __contains__(self, game_id: object) -> bool:
        return game_id in self._games

    def __len__(self) -> int:
        return len(self._games)

    def register(self, game: GameDefinition) -> bool:
        """Register a game. Returns False when the id is already registered."""
        if game.game_id in self._games:
            const.LOGGER.info(
                "GameRegistry: Game '%s' is already registered, skipping", game.game_id
            )
            return False
        self._games[game.game_id] = game
        const.LOGGER.debug("GameRegistry: Registered game '%s'", game.game_id)
        return True

    def register_raw(self, raw: Mapping[str, Any]) -> GameDefinition:
        """Decode and register a raw definition; returns the decoded game."""
        game = decode_game(raw)
        self.register(game)
        return self._games[game.game_id]

    def register_many(self, raw_games: Iterable[Mapping[str, Any]]) -> int:
        """Register a catalog, logging and skipping invalid entries."""
        registered = 0
        for raw in raw_games:
            try:
                game = decode_game(raw)
            except ValidationError as err:
                const.LOGGER.error("GameRegistry: %s", err)
                continue
            if self.register(game):
                registered += 1
        return registered

    def unregister(self, game_id: str) -> bool:
        if self._games.pop(game_id, None) is None:
            return False
        const.LOGGER.debug("GameRegistry: Unregistered game '%s'", game_id)
        return True

    def get(self, game_id: str) -> GameDefinition | None:
        return self._games.get(game_id)

    def all_games(self) -> list[GameDefinition]:
        return list(self._games.values())

    def by_category(self, category: GameCategory | str) -> list[GameDefinition]:
        return [g for g in self._games.values() if g.category == category]

    def by_topic(self, topic: str) -> list[GameDefinition]:
        return [g for g in self._games.values() if topic in g.educational_topics]

    def for_age_range(self, min_age: int, max_age: int) -> list[GameDefinition]:
        """Games whose age range overlaps [min_age, max_age]."""
        return [
            g for g in self._games.values() if g.min_age <= max_age and g.max_age >= min_age
        ]

    def search(self, query: str) -> list[GameDefinition]:
        """Case-insensitive match on name, description or topics."""
        needle = query.lower()
        return [
            g
            for g in self._games.values()
            if needle in g.name.lower()
            or needle in g.description.lower()
            or any(needle in topic.lower() for topic in g.educational_topics)
        ]

    def requiring_approval(self) -> list[GameDefinition]:
        return [g for g in self._games.values() if g.requires_parent_approval]

    def offline_games(self) -> list[GameDefinition]:
        return [g for g in self._games.values() if g.supports_offline_play]
