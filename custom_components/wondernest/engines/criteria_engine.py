"""Criteria Engine - Pure logic for achievement criterion decoding and evaluation.

This engine provides stateless, pure Python functions for:
- Decoding raw criterion definitions into the closed Criterion union
- Evaluating a criterion against one event and an aggregate state snapshot

ARCHITECTURE: This is a pure logic engine with NO Home Assistant dependencies.
All functions are static methods that operate on passed-in data.
The AchievementManager builds the AggregateState and owns all side effects.

All thresholds compare inclusively (value >= threshold). A criterion whose type
is not understood decodes to UnknownCriterion and never evaluates to True.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from .. import const
from ..exceptions import ValidationError
from ..models import (
    AggregateState,
    Criterion,
    DailyPlayStreak,
    GameCompletion,
    GameEvent,
    LevelInTime,
    LevelProgress,
    LevelReached,
    MultiGameCount,
    PerfectScore,
    ScoreInSingleSession,
    ScoreThreshold,
    ScoreUpdate,
    SessionsPlayed,
    TotalPlayTime,
    UnknownCriterion,
    WinStreak,
)

# Handler function signature: (criterion, event, state) -> bool
CriterionHandler = Callable[[Any, GameEvent, AggregateState], bool]


def _as_int(raw: Mapping[str, Any], key: str, criterion_type: str) -> int:
    value = raw.get(key)
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise ValidationError(
            f"Criterion '{criterion_type}' requires a numeric '{key}', got {value!r}"
        )
    if value < 0:
        raise ValidationError(f"Criterion '{criterion_type}': '{key}' must be >= 0")
    return int(value)


class CriteriaEngine:
    """Pure logic engine for achievement criteria.

    All methods are static - no instance state.
    """

    # =========================================================================
    # DECODING
    # =========================================================================

    @staticmethod
    def decode(raw: Mapping[str, Any]) -> Criterion:
        """Decode a raw criterion mapping into the tagged union.

        Args:
            raw: Mapping with a "type" key and type-specific fields

        Returns:
            The decoded criterion; UnknownCriterion for unrecognised types

        Raises:
            ValidationError: A known type is missing or has invalid fields
        """
        criterion_type = raw.get(const.CONTENT_CRITERIA_TYPE)
        if not isinstance(criterion_type, str) or not criterion_type:
            raise ValidationError("Criterion is missing its 'type'")

        value_key = const.CONTENT_CRITERIA_VALUE
        match criterion_type:
            case const.CRITERION_SCORE_THRESHOLD:
                return ScoreThreshold(_as_int(raw, value_key, criterion_type))
            case const.CRITERION_LEVEL_REACHED:
                return LevelReached(_as_int(raw, value_key, criterion_type))
            case const.CRITERION_TOTAL_PLAY_TIME:
                return TotalPlayTime(_as_int(raw, value_key, criterion_type))
            case const.CRITERION_SESSIONS_PLAYED:
                return SessionsPlayed(_as_int(raw, value_key, criterion_type))
            case const.CRITERION_PERFECT_SCORE:
                max_score = raw.get(const.CONTENT_CRITERIA_MAX_SCORE)
                if max_score is None:
                    max_score = raw.get(value_key, const.DEFAULT_PERFECT_SCORE)
                return PerfectScore(
                    _as_int({value_key: max_score}, value_key, criterion_type)
                )
            case const.CRITERION_WIN_STREAK:
                return WinStreak(_as_int(raw, value_key, criterion_type))
            case const.CRITERION_DAILY_PLAY_STREAK:
                return DailyPlayStreak(_as_int(raw, value_key, criterion_type))
            case const.CRITERION_GAME_COMPLETION:
                return GameCompletion()
            case const.CRITERION_SCORE_IN_SINGLE_SESSION:
                return ScoreInSingleSession(_as_int(raw, value_key, criterion_type))
            case const.CRITERION_LEVEL_IN_TIME:
                return LevelInTime(
                    _as_int(raw, const.CONTENT_CRITERIA_MAX_TIME_MINUTES, criterion_type)
                )
            case const.CRITERION_MULTI_GAME_COUNT:
                return MultiGameCount(_as_int(raw, value_key, criterion_type))

        const.LOGGER.warning(
            "CriteriaEngine: Unknown criterion type '%s' will never be satisfied",
            criterion_type,
        )
        return UnknownCriterion(criterion_type, dict(raw))

    @staticmethod
    def encode(criterion: Criterion) -> dict[str, Any]:
        """Encode a criterion back into its raw mapping form."""
        value_key = const.CONTENT_CRITERIA_VALUE
        match criterion:
            case ScoreThreshold(value):
                return {"type": const.CRITERION_SCORE_THRESHOLD, value_key: value}
            case LevelReached(value):
                return {"type": const.CRITERION_LEVEL_REACHED, value_key: value}
            case TotalPlayTime(minutes):
                return {"type": const.CRITERION_TOTAL_PLAY_TIME, value_key: minutes}
            case SessionsPlayed(count):
                return {"type": const.CRITERION_SESSIONS_PLAYED, value_key: count}
            case PerfectScore(max_score):
                return {
                    "type": const.CRITERION_PERFECT_SCORE,
                    const.CONTENT_CRITERIA_MAX_SCORE: max_score,
                }
            case WinStreak(value):
                return {"type": const.CRITERION_WIN_STREAK, value_key: value}
            case DailyPlayStreak(days):
                return {"type": const.CRITERION_DAILY_PLAY_STREAK, value_key: days}
            case GameCompletion():
                return {"type": const.CRITERION_GAME_COMPLETION}
            case ScoreInSingleSession(value):
                return {"type": const.CRITERION_SCORE_IN_SINGLE_SESSION, value_key: value}
            case LevelInTime(max_minutes):
                return {
                    "type": const.CRITERION_LEVEL_IN_TIME,
                    const.CONTENT_CRITERIA_MAX_TIME_MINUTES: max_minutes,
                }
            case MultiGameCount(games):
                return {"type": const.CRITERION_MULTI_GAME_COUNT, value_key: games}
            case UnknownCriterion(type_name, raw):
                return {**raw, "type": type_name}
        raise ValidationError(f"Cannot encode criterion {criterion!r}")

    # =========================================================================
    # EVALUATION
    # =========================================================================

    @classmethod
    def evaluate(
        cls, criterion: Criterion, event: GameEvent, state: AggregateState
    ) -> bool:
        """Return True when the criterion is satisfied.

        Never raises: unknown criteria and unexpected payloads evaluate False.
        """
        handler = _CRITERION_HANDLERS.get(type(criterion))
        if handler is None:
            return False
        return handler(criterion, event, state)

    @staticmethod
    def _evaluate_score_threshold(
        criterion: ScoreThreshold, event: GameEvent, state: AggregateState
    ) -> bool:
        return state.score >= criterion.value

    @staticmethod
    def _evaluate_level_reached(
        criterion: LevelReached, event: GameEvent, state: AggregateState
    ) -> bool:
        return state.level >= criterion.value

    @staticmethod
    def _evaluate_total_play_time(
        criterion: TotalPlayTime, event: GameEvent, state: AggregateState
    ) -> bool:
        return state.total_play_time_minutes >= criterion.minutes

    @staticmethod
    def _evaluate_sessions_played(
        criterion: SessionsPlayed, event: GameEvent, state: AggregateState
    ) -> bool:
        return state.sessions_played >= criterion.count

    @staticmethod
    def _evaluate_perfect_score(
        criterion: PerfectScore, event: GameEvent, state: AggregateState
    ) -> bool:
        return state.score >= criterion.max_score

    @staticmethod
    def _evaluate_win_streak(
        criterion: WinStreak, event: GameEvent, state: AggregateState
    ) -> bool:
        return state.win_streak >= criterion.value

    @staticmethod
    def _evaluate_daily_play_streak(
        criterion: DailyPlayStreak, event: GameEvent, state: AggregateState
    ) -> bool:
        return state.daily_play_streak >= criterion.days

    @staticmethod
    def _evaluate_game_completion(
        criterion: GameCompletion, event: GameEvent, state: AggregateState
    ) -> bool:
        return state.completed

    @staticmethod
    def _evaluate_score_in_single_session(
        criterion: ScoreInSingleSession, event: GameEvent, state: AggregateState
    ) -> bool:
        return isinstance(event, ScoreUpdate) and event.new_score >= criterion.value

    @staticmethod
    def _evaluate_level_in_time(
        criterion: LevelInTime, event: GameEvent, state: AggregateState
    ) -> bool:
        if not isinstance(event, LevelProgress):
            return False
        return (
            event.new_level > event.previous_level
            and state.session_duration_minutes <= criterion.max_minutes
        )

    @staticmethod
    def _evaluate_multi_game_count(
        criterion: MultiGameCount, event: GameEvent, state: AggregateState
    ) -> bool:
        # Cross-game counts are not tracked yet; None keeps this unsatisfied
        if state.games_played is None:
            return False
        return state.games_played >= criterion.games


_CRITERION_HANDLERS: dict[type, CriterionHandler] = {
    ScoreThreshold: CriteriaEngine._evaluate_score_threshold,
    LevelReached: CriteriaEngine._evaluate_level_reached,
    TotalPlayTime: CriteriaEngine._evaluate_total_play_time,
    SessionsPlayed: CriteriaEngine._evaluate_sessions_played,
    PerfectScore: CriteriaEngine._evaluate_perfect_score,
    WinStreak: CriteriaEngine._evaluate_win_streak,
    DailyPlayStreak: CriteriaEngine._evaluate_daily_play_streak,
    GameCompletion: CriteriaEngine._evaluate_game_completion,
    ScoreInSingleSession: CriteriaEngine._evaluate_score_in_single_session,
    LevelInTime: CriteriaEngine._evaluate_level_in_time,
    MultiGameCount: CriteriaEngine._evaluate_multi_game_count,
}
