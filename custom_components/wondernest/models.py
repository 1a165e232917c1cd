# File: models.py
"""Value types for the WonderNest reward and access control engine.

Everything in this module is plain Python (dataclasses and enums) so engines and
tests can use it without Home Assistant. Immutable types are frozen dataclasses;
the only mutable runtime entity is ``GameSession``, which the SessionManager owns.

Persisted types expose ``as_dict()`` / ``from_dict()`` using the storage keys in
``const`` so the store never has to know the dataclass layout.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timedelta
from enum import StrEnum
from typing import Any, ClassVar
import uuid

from . import const
from .exceptions import ValidationError
from .utils.dt_utils import (
    dt_now_utc,
    dt_parse,
    dt_to_iso,
    format_time_of_day,
    parse_time_of_day,
)


def _new_id() -> str:
    return uuid.uuid4().hex


# =============================================================================
# EVENT MODEL
# =============================================================================


@dataclass(frozen=True, kw_only=True)
class GameEvent:
    """Something that happened during play.

    Never mutated after creation. ``flags`` carries extra game-data fields (for
    example ``win_streak`` or ``completed``) that the session copies into its
    game data bag.
    """

    event_type: ClassVar[str] = ""

    game_id: str
    child_id: str
    session_id: str
    created_at: datetime = field(default_factory=dt_now_utc)
    event_id: str = field(default_factory=_new_id)
    flags: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for name in ("game_id", "child_id", "session_id"):
            value = getattr(self, name)
            if not isinstance(value, str) or not value:
                raise ValidationError(f"{self.event_type}: '{name}' must be a non-empty string")
        self._validate_flags()

    def _validate_flags(self) -> None:
        """Flags are plain scalars and never overwrite session-owned fields."""
        if not isinstance(self.flags, dict):
            raise ValidationError(f"{self.event_type}: 'flags' must be a mapping")
        for key, value in self.flags.items():
            if not isinstance(key, str) or not key:
                raise ValidationError(f"{self.event_type}: flag names must be non-empty strings")
            if key in const.GAME_DATA_RESERVED_KEYS:
                raise ValidationError(f"{self.event_type}: flag '{key}' is reserved")
            if key == const.GAME_DATA_COMPLETED:
                valid = isinstance(value, bool)
            elif key == const.GAME_DATA_WIN_STREAK:
                valid = isinstance(value, int) and not isinstance(value, bool) and value >= 0
            else:
                valid = value is None or isinstance(value, (str, int, float, bool))
            if not valid:
                raise ValidationError(
                    f"{self.event_type}: invalid value {value!r} for flag '{key}'"
                )

    def payload(self) -> dict[str, Any]:
        """Variant-specific payload."""
        return {}

    def as_dict(self) -> dict[str, Any]:
        """Serialize for the sync queue."""
        return {
            "event_id": self.event_id,
            "event_type": self.event_type,
            "game_id": self.game_id,
            "child_id": self.child_id,
            "session_id": self.session_id,
            "created_at": dt_to_iso(self.created_at),
            "flags": dict(self.flags),
            "data": self.payload(),
        }


def _require_non_negative(event: GameEvent, **values: int) -> None:
    for name, value in values.items():
        if not isinstance(value, int) or isinstance(value, bool) or value < 0:
            raise ValidationError(
                f"{event.event_type}: '{name}' must be a non-negative integer, got {value!r}"
            )


@dataclass(frozen=True, kw_only=True)
class ScoreUpdate(GameEvent):
    """The score changed from ``previous_score`` to ``new_score``."""

    event_type: ClassVar[str] = const.EVENT_TYPE_SCORE_UPDATE

    new_score: int
    previous_score: int

    def __post_init__(self) -> None:
        super().__post_init__()
        _require_non_negative(
            self, new_score=self.new_score, previous_score=self.previous_score
        )

    @property
    def score_delta(self) -> int:
        return self.new_score - self.previous_score

    def payload(self) -> dict[str, Any]:
        return {
            "new_score": self.new_score,
            "previous_score": self.previous_score,
            "score_delta": self.score_delta,
        }


@dataclass(frozen=True, kw_only=True)
class LevelProgress(GameEvent):
    """The level changed from ``previous_level`` to ``new_level``."""

    event_type: ClassVar[str] = const.EVENT_TYPE_LEVEL_PROGRESS

    new_level: int
    previous_level: int

    def __post_init__(self) -> None:
        super().__post_init__()
        _require_non_negative(
            self, new_level=self.new_level, previous_level=self.previous_level
        )

    @property
    def level_delta(self) -> int:
        return self.new_level - self.previous_level

    def payload(self) -> dict[str, Any]:
        return {
            "new_level": self.new_level,
            "previous_level": self.previous_level,
            "level_delta": self.level_delta,
        }


@dataclass(frozen=True, kw_only=True)
class AchievementUnlocked(GameEvent):
    """An achievement was unlocked for the child."""

    event_type: ClassVar[str] = const.EVENT_TYPE_ACHIEVEMENT_UNLOCKED

    achievement_id: str
    achievement_name: str

    def payload(self) -> dict[str, Any]:
        return {
            "achievement_id": self.achievement_id,
            "achievement_name": self.achievement_name,
        }


@dataclass(frozen=True, kw_only=True)
class SessionCompletion(GameEvent):
    """A play session ended."""

    event_type: ClassVar[str] = const.EVENT_TYPE_SESSION_COMPLETION

    final_score: int
    final_level: int
    play_time: timedelta
    completed: bool

    def __post_init__(self) -> None:
        super().__post_init__()
        _require_non_negative(
            self, final_score=self.final_score, final_level=self.final_level
        )
        if self.play_time < timedelta(0):
            raise ValidationError(f"{self.event_type}: 'play_time' must not be negative")

    @property
    def play_time_minutes(self) -> int:
        return int(self.play_time.total_seconds() // 60)

    def payload(self) -> dict[str, Any]:
        return {
            "final_score": self.final_score,
            "final_level": self.final_level,
            "play_time_minutes": self.play_time_minutes,
            "completed": self.completed,
        }


@dataclass(frozen=True, kw_only=True)
class ApprovalRequested(GameEvent):
    """A child (or the system) asked a guardian to approve a game."""

    event_type: ClassVar[str] = const.EVENT_TYPE_APPROVAL_REQUESTED

    request_id: str
    request_data: dict[str, Any] = field(default_factory=dict)

    def payload(self) -> dict[str, Any]:
        return {"request_id": self.request_id, **self.request_data}


@dataclass(frozen=True, kw_only=True)
class ApprovalResponded(GameEvent):
    """A guardian approved or rejected a request."""

    event_type: ClassVar[str] = const.EVENT_TYPE_APPROVAL_RESPONDED

    request_id: str
    approved: bool
    approval_data: dict[str, Any] = field(default_factory=dict)

    def payload(self) -> dict[str, Any]:
        return {
            "request_id": self.request_id,
            "approved": self.approved,
            **self.approval_data,
        }


# =============================================================================
# CRITERIA (closed tagged union)
# =============================================================================


@dataclass(frozen=True)
class ScoreThreshold:
    value: int


@dataclass(frozen=True)
class LevelReached:
    value: int


@dataclass(frozen=True)
class TotalPlayTime:
    minutes: int


@dataclass(frozen=True)
class SessionsPlayed:
    count: int


@dataclass(frozen=True)
class PerfectScore:
    max_score: int


@dataclass(frozen=True)
class WinStreak:
    value: int


@dataclass(frozen=True)
class DailyPlayStreak:
    days: int


@dataclass(frozen=True)
class GameCompletion:
    pass


@dataclass(frozen=True)
class ScoreInSingleSession:
    value: int


@dataclass(frozen=True)
class LevelInTime:
    max_minutes: int


@dataclass(frozen=True)
class MultiGameCount:
    games: int


@dataclass(frozen=True)
class UnknownCriterion:
    """A criterion type this version does not understand; never satisfied."""

    type_name: str
    raw: dict[str, Any] = field(default_factory=dict, compare=False)


Criterion = (
    ScoreThreshold
    | LevelReached
    | TotalPlayTime
    | SessionsPlayed
    | PerfectScore
    | WinStreak
    | DailyPlayStreak
    | GameCompletion
    | ScoreInSingleSession
    | LevelInTime
    | MultiGameCount
    | UnknownCriterion
)


@dataclass(frozen=True)
class AggregateState:
    """Read-only snapshot handed to the criteria evaluator.

    ``games_played`` is the cross-game count; None means it is not available.
    """

    score: int = 0
    level: int = const.DEFAULT_LEVEL
    total_play_time_minutes: int = 0
    sessions_played: int = 0
    win_streak: int = 0
    daily_play_streak: int = 0
    completed: bool = False
    session_duration_minutes: int = 0
    games_played: int | None = None


# =============================================================================
# GAME CONTENT
# =============================================================================


class GameCategory(StrEnum):
    """Categories of games."""

    PUZZLE = "puzzle"
    CREATIVE = "creative"
    EDUCATIONAL = "educational"
    ADVENTURE = "adventure"
    STRATEGY = "strategy"
    MEMORY = "memory"
    LANGUAGE = "language"
    MATH = "math"
    SCIENCE = "science"
    ART = "art"


@dataclass(frozen=True)
class Achievement:
    achievement_id: str
    name: str
    criterion: Criterion
    description: str = ""
    icon: str = const.DEFAULT_ACHIEVEMENT_ICON
    currency_reward: int = 0
    is_secret: bool = False


@dataclass(frozen=True)
class RewardRule:
    """Currency granted when ``action_id`` matches an event.

    ``min_increase`` only applies to score_increase rules and ``max_score`` only
    to perfect_score rules.
    """

    action_id: str
    action_name: str
    amount: int
    min_increase: int = 0
    max_score: int = const.DEFAULT_PERFECT_SCORE


@dataclass(frozen=True)
class GameDefinition:
    game_id: str
    name: str
    description: str = ""
    category: GameCategory = GameCategory.EDUCATIONAL
    min_age: int = const.DEFAULT_MIN_AGE
    max_age: int = const.DEFAULT_MAX_AGE
    educational_topics: tuple[str, ...] = ()
    estimated_play_minutes: int = const.DEFAULT_ESTIMATED_PLAY_MINUTES
    requires_parent_approval: bool = True
    supports_offline_play: bool = True
    achievements: tuple[Achievement, ...] = ()
    reward_rules: tuple[RewardRule, ...] = ()

    def get_achievement(self, achievement_id: str) -> Achievement | None:
        for achievement in self.achievements:
            if achievement.achievement_id == achievement_id:
                return achievement
        return None

    def rules_for(self, action_id: str) -> list[RewardRule]:
        return [rule for rule in self.reward_rules if rule.action_id == action_id]

    def meta(self) -> dict[str, Any]:
        """Metadata shown to a guardian when approval is requested."""
        return {
            "game_name": self.name,
            "game_description": self.description,
            "category": str(self.category),
            "min_age": self.min_age,
            "max_age": self.max_age,
            "educational_topics": list(self.educational_topics),
        }


# =============================================================================
# CURRENCY
# =============================================================================


@dataclass(frozen=True)
class CurrencyTransaction:
    amount: int
    reason: str
    timestamp: datetime
    balance_after: int
    transaction_id: str = field(default_factory=_new_id)

    @property
    def is_earning(self) -> bool:
        return self.amount > 0

    @property
    def is_spending(self) -> bool:
        return self.amount < 0

    def as_dict(self) -> dict[str, Any]:
        return {
            const.DATA_TRANSACTION_ID: self.transaction_id,
            const.DATA_TRANSACTION_AMOUNT: self.amount,
            const.DATA_TRANSACTION_REASON: self.reason,
            const.DATA_TRANSACTION_TIMESTAMP: dt_to_iso(self.timestamp),
            const.DATA_TRANSACTION_BALANCE_AFTER: self.balance_after,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CurrencyTransaction:
        return cls(
            transaction_id=data[const.DATA_TRANSACTION_ID],
            amount=int(data[const.DATA_TRANSACTION_AMOUNT]),
            reason=data.get(const.DATA_TRANSACTION_REASON, ""),
            timestamp=dt_parse(data.get(const.DATA_TRANSACTION_TIMESTAMP))
            or dt_now_utc(),
            balance_after=int(data[const.DATA_TRANSACTION_BALANCE_AFTER]),
        )


@dataclass(frozen=True)
class CurrencyStats:
    current_balance: int
    total_earned: int
    total_spent: int
    transaction_count: int
    average_earning_per_transaction: int

    @property
    def net_earned(self) -> int:
        return self.total_earned - self.total_spent


@dataclass(frozen=True)
class AchievementStats:
    total_achievements: int
    unlocked_count: int
    total_points_earned: int
    completion_percentage: int
    recent_unlocks: tuple[Achievement, ...] = ()

    @property
    def is_completed(self) -> bool:
        return self.unlocked_count >= self.total_achievements

    @property
    def remaining_achievements(self) -> int:
        return max(0, self.total_achievements - self.unlocked_count)


# =============================================================================
# APPROVALS
# =============================================================================


class ApprovalStatus(StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass(frozen=True)
class TimeRestriction:
    """Guardian-configured limits applied after approval.

    ``blocked_weekdays`` uses ISO numbering (1 = Monday ... 7 = Sunday).
    """

    max_daily_minutes: int | None = None
    allowed_start_time: time | None = None
    allowed_end_time: time | None = None
    blocked_weekdays: frozenset[int] = frozenset()
    blocked_features: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        if self.max_daily_minutes is not None and self.max_daily_minutes < 0:
            raise ValidationError("max_daily_minutes must not be negative")
        invalid_days = [day for day in self.blocked_weekdays if not 1 <= day <= 7]
        if invalid_days:
            raise ValidationError(f"Invalid blocked weekdays: {sorted(invalid_days)}")

    @property
    def has_time_window(self) -> bool:
        return self.allowed_start_time is not None and self.allowed_end_time is not None

    def as_dict(self) -> dict[str, Any]:
        return {
            const.DATA_RESTRICTION_MAX_DAILY_MINUTES: self.max_daily_minutes,
            const.DATA_RESTRICTION_ALLOWED_START: format_time_of_day(
                self.allowed_start_time
            ),
            const.DATA_RESTRICTION_ALLOWED_END: format_time_of_day(
                self.allowed_end_time
            ),
            const.DATA_RESTRICTION_BLOCKED_WEEKDAYS: sorted(self.blocked_weekdays),
            const.DATA_RESTRICTION_BLOCKED_FEATURES: sorted(self.blocked_features),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TimeRestriction:
        try:
            return cls(
                max_daily_minutes=data.get(const.DATA_RESTRICTION_MAX_DAILY_MINUTES),
                allowed_start_time=parse_time_of_day(
                    data.get(const.DATA_RESTRICTION_ALLOWED_START)
                ),
                allowed_end_time=parse_time_of_day(
                    data.get(const.DATA_RESTRICTION_ALLOWED_END)
                ),
                blocked_weekdays=frozenset(
                    int(day)
                    for day in data.get(const.DATA_RESTRICTION_BLOCKED_WEEKDAYS) or ()
                ),
                blocked_features=frozenset(
                    data.get(const.DATA_RESTRICTION_BLOCKED_FEATURES) or ()
                ),
            )
        except (TypeError, ValueError) as err:
            raise ValidationError(f"Invalid time restriction: {err}") from err


@dataclass(frozen=True)
class ApprovalRecord:
    request_id: str
    game_id: str
    child_id: str
    status: ApprovalStatus
    requested_at: datetime
    decided_at: datetime | None = None
    guardian_note: str | None = None
    restriction: TimeRestriction | None = None
    game_meta: dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def is_approved(self) -> bool:
        return self.status is ApprovalStatus.APPROVED

    def with_changes(self, **changes: Any) -> ApprovalRecord:
        return replace(self, **changes)

    def as_dict(self) -> dict[str, Any]:
        return {
            const.DATA_APPROVAL_REQUEST_ID: self.request_id,
            const.DATA_APPROVAL_GAME_ID: self.game_id,
            const.DATA_APPROVAL_CHILD_ID: self.child_id,
            const.DATA_APPROVAL_STATUS: str(self.status),
            const.DATA_APPROVAL_REQUESTED_AT: dt_to_iso(self.requested_at),
            const.DATA_APPROVAL_DECIDED_AT: dt_to_iso(self.decided_at),
            const.DATA_APPROVAL_GUARDIAN_NOTE: self.guardian_note,
            const.DATA_APPROVAL_RESTRICTION: (
                self.restriction.as_dict() if self.restriction else None
            ),
            const.DATA_APPROVAL_GAME_META: dict(self.game_meta),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ApprovalRecord:
        restriction = data.get(const.DATA_APPROVAL_RESTRICTION)
        return cls(
            request_id=data[const.DATA_APPROVAL_REQUEST_ID],
            game_id=data[const.DATA_APPROVAL_GAME_ID],
            child_id=data[const.DATA_APPROVAL_CHILD_ID],
            status=ApprovalStatus(data[const.DATA_APPROVAL_STATUS]),
            requested_at=dt_parse(data.get(const.DATA_APPROVAL_REQUESTED_AT))
            or dt_now_utc(),
            decided_at=dt_parse(data.get(const.DATA_APPROVAL_DECIDED_AT)),
            guardian_note=data.get(const.DATA_APPROVAL_GUARDIAN_NOTE),
            restriction=TimeRestriction.from_dict(restriction) if restriction else None,
            game_meta=dict(data.get(const.DATA_APPROVAL_GAME_META) or {}),
        )


@dataclass(frozen=True)
class AccessDecision:
    """Answer to "can this child play this game now", with the reason."""

    allowed: bool
    reason: str

    @property
    def is_time_restricted(self) -> bool:
        return self.reason in const.ACCESS_TIME_RESTRICTED_REASONS


# =============================================================================
# SYNC
# =============================================================================


@dataclass(frozen=True)
class SyncItem:
    """One payload awaiting remote acknowledgement."""

    kind: str
    idempotency_key: str
    payload: dict[str, Any]
    created_at: datetime
    next_attempt_at: datetime
    attempts: int = 0
    last_error: str | None = None
    item_id: str = field(default_factory=_new_id)

    def as_dict(self) -> dict[str, Any]:
        return {
            const.DATA_SYNC_ITEM_ID: self.item_id,
            const.DATA_SYNC_KIND: self.kind,
            const.DATA_SYNC_IDEMPOTENCY_KEY: self.idempotency_key,
            const.DATA_SYNC_PAYLOAD: self.payload,
            const.DATA_SYNC_ATTEMPTS: self.attempts,
            const.DATA_SYNC_NEXT_ATTEMPT_AT: dt_to_iso(self.next_attempt_at),
            const.DATA_SYNC_CREATED_AT: dt_to_iso(self.created_at),
            const.DATA_SYNC_LAST_ERROR: self.last_error,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SyncItem:
        created_at = dt_parse(data.get(const.DATA_SYNC_CREATED_AT)) or dt_now_utc()
        return cls(
            item_id=data[const.DATA_SYNC_ITEM_ID],
            kind=data[const.DATA_SYNC_KIND],
            idempotency_key=data[const.DATA_SYNC_IDEMPOTENCY_KEY],
            payload=dict(data.get(const.DATA_SYNC_PAYLOAD) or {}),
            attempts=int(data.get(const.DATA_SYNC_ATTEMPTS, 0)),
            created_at=created_at,
            next_attempt_at=dt_parse(data.get(const.DATA_SYNC_NEXT_ATTEMPT_AT))
            or created_at,
            last_error=data.get(const.DATA_SYNC_LAST_ERROR),
        )


@dataclass(frozen=True)
class SyncAck:
    """Remote acknowledgement of a delivered item."""

    idempotency_key: str
    duplicate: bool = False


# =============================================================================
# SESSIONS
# =============================================================================


class SessionState(StrEnum):
    ACTIVE = "active"
    ENDED = "ended"


@dataclass
class GameSession:
    """A single play attempt, owned by the SessionManager while active."""

    game_id: str
    child_id: str
    started_at: datetime
    game_data: dict[str, Any] = field(default_factory=dict)
    events: list[GameEvent] = field(default_factory=list)
    unlocked: list[Achievement] = field(default_factory=list)
    currency_earned: int = 0
    state: SessionState = SessionState.ACTIVE
    session_id: str = field(default_factory=_new_id)

    @property
    def is_active(self) -> bool:
        return self.state is SessionState.ACTIVE

    def duration(self, now: datetime) -> timedelta:
        return max(timedelta(0), now - self.started_at)


@dataclass(frozen=True)
class EventOutcome:
    """What recording one event produced."""

    event: GameEvent
    unlocked: tuple[Achievement, ...] = ()
    currency_awarded: int = 0


def local_date_key(value: date) -> str:
    """Storage key for a calendar day."""
    return value.isoformat()
