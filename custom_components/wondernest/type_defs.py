"""Type definitions for WonderNest data structures.

TypedDicts describe the STATIC shapes written to storage (fixed keys known at
design time). Buckets keyed at runtime ("game_id:child_id" composite keys, dates)
stay ``dict[str, Any]``.

The Protocols describe the collaborators the managers depend on:
- PersistenceGateway: durable local state (implemented by WonderNestStore)
- RemoteSink: remote delivery of sync items (implemented by HttpRemoteSink)
- ErrorReporter: where isolated listener failures go

IMPORTANT: This file must NOT import from coordinator.py or any manager to avoid
circular dependencies.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import date
from typing import TYPE_CHECKING, Any, NotRequired, Protocol, TypedDict

if TYPE_CHECKING:
    from .models import (
        Achievement,
        ApprovalRecord,
        CurrencyTransaction,
        GameEvent,
        SyncAck,
        SyncItem,
    )

# =============================================================================
# Type Aliases (for readability)
# =============================================================================

GameId = str
ChildId = str
AchievementId = str
SessionId = str
RequestId = str
ISODatetime = str  # "2026-01-18T12:30:00+00:00"
ISODate = str  # "2026-01-18"


# =============================================================================
# Storage shapes
# =============================================================================


class TransactionData(TypedDict):
    transaction_id: str
    amount: int
    reason: str
    timestamp: ISODatetime
    balance_after: int


class AccountData(TypedDict):
    balance: int
    transactions: list[TransactionData]
    last_play_date: NotRequired[ISODate | None]


class RestrictionData(TypedDict):
    max_daily_minutes: int | None
    allowed_start_time: str | None
    allowed_end_time: str | None
    blocked_weekdays: list[int]
    blocked_features: NotRequired[list[str]]


class ApprovalData(TypedDict):
    request_id: RequestId
    game_id: GameId
    child_id: ChildId
    status: str
    requested_at: ISODatetime
    decided_at: ISODatetime | None
    guardian_note: str | None
    restriction: RestrictionData | None
    game_meta: dict[str, Any]


class SyncItemData(TypedDict):
    item_id: str
    kind: str
    idempotency_key: str
    payload: dict[str, Any]
    attempts: int
    next_attempt_at: ISODatetime
    created_at: ISODatetime
    last_error: str | None


class MetaData(TypedDict):
    schema_version: int


class WonderNestData(TypedDict):
    """Top-level storage document."""

    meta: MetaData
    game_data: dict[str, dict[str, Any]]  # "game:child" -> game data bag
    unlocks: dict[str, dict[AchievementId, ISODatetime]]  # "game:child" -> unlocks
    accounts: dict[ChildId, AccountData]
    approvals: dict[str, ApprovalData]  # "game:child" -> approval
    play_time: dict[str, dict[ISODate, int]]  # "game:child" -> date -> minutes
    sync_queue: list[SyncItemData]


# =============================================================================
# Collaborator protocols
# =============================================================================


class PersistenceGateway(Protocol):
    """Durable local state used by every manager."""

    async def async_load_game_data(
        self, game_id: GameId, child_id: ChildId
    ) -> dict[str, Any]: ...

    async def async_save_game_data(
        self, game_id: GameId, child_id: ChildId, data: dict[str, Any]
    ) -> None: ...

    async def async_get_unlocks(
        self, game_id: GameId, child_id: ChildId
    ) -> dict[AchievementId, ISODatetime]: ...

    async def async_insert_unlock_if_absent(
        self,
        game_id: GameId,
        child_id: ChildId,
        achievement_id: AchievementId,
        unlocked_at: ISODatetime,
    ) -> bool: ...

    async def async_get_balance(self, child_id: ChildId) -> int: ...

    async def async_get_transactions(
        self, child_id: ChildId
    ) -> list[CurrencyTransaction]: ...

    async def async_append_transaction(
        self, child_id: ChildId, transaction: CurrencyTransaction
    ) -> None: ...

    async def async_get_approval(
        self, game_id: GameId, child_id: ChildId
    ) -> ApprovalRecord | None: ...

    async def async_get_approval_by_request(
        self, request_id: RequestId
    ) -> ApprovalRecord | None: ...

    async def async_list_approvals(self) -> list[ApprovalRecord]: ...

    async def async_upsert_approval(self, record: ApprovalRecord) -> None: ...

    async def async_get_play_minutes(
        self, game_id: GameId, child_id: ChildId, day: date
    ) -> int: ...

    async def async_add_play_minutes(
        self, game_id: GameId, child_id: ChildId, day: date, minutes: int
    ) -> None: ...

    async def async_get_last_play_date(self, child_id: ChildId) -> date | None: ...

    async def async_set_last_play_date(self, child_id: ChildId, day: date) -> None: ...

    async def async_load_sync_queue(self) -> list[SyncItem]: ...

    async def async_save_sync_queue(self, items: list[SyncItem]) -> None: ...


class RemoteSink(Protocol):
    """Remote store that acknowledges or rejects sync items."""

    async def async_push(self, item: SyncItem) -> SyncAck: ...


class ErrorReporter(Protocol):
    """Receives failures raised by isolated listeners."""

    def report(self, source: str, err: BaseException) -> None: ...


# Listener callbacks may be plain functions or coroutines
AchievementListener = Callable[
    [GameId, ChildId, "Achievement", "GameEvent"], Awaitable[None] | None
]
CurrencyListener = Callable[[ChildId, int, "CurrencyTransaction"], Awaitable[None] | None]
Authorizer = Callable[[str | None], Awaitable[bool] | bool]
