"""Sync Engine - Pure logic for the outbound sync queue.

This engine provides stateless, pure Python functions for:
- Building sync items with stable idempotency keys
- Exponential backoff (1s, 2s, 4s ... capped at 60s, attempts unbounded)
- Picking due items and computing the next wake-up time
- Queue statistics

ARCHITECTURE: This is a pure logic engine with NO Home Assistant dependencies.
Timers, persistence and remote calls belong in SyncManager.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any

from .. import const
from ..exceptions import ValidationError
from ..models import SyncItem


class SyncEngine:
    """Pure logic engine for queue bookkeeping.

    All methods are static - no instance state.
    """

    @staticmethod
    def unlock_key(session_id: str, achievement_id: str) -> str:
        return f"{session_id}:{achievement_id}"

    @staticmethod
    def backoff_delay(
        attempts: int,
        base: int = const.SYNC_BACKOFF_BASE_SECONDS,
        cap: int = const.SYNC_BACKOFF_CAP_SECONDS,
    ) -> timedelta:
        """Delay before the next attempt after ``attempts`` failures.

        attempts=1 -> base, attempts=2 -> 2*base, ... never more than cap.
        """
        if attempts <= 0:
            return timedelta(0)
        # Clamp the exponent so huge attempt counts cannot overflow
        exponent = min(attempts - 1, 32)
        return timedelta(seconds=min(base * (2**exponent), cap))

    @staticmethod
    def create_item(
        kind: str,
        idempotency_key: str,
        payload: dict[str, Any],
        now: datetime,
    ) -> SyncItem:
        """Build a new item that is due immediately.

        Raises:
            ValidationError: Unknown kind or empty idempotency key
        """
        if kind not in const.SYNC_KINDS:
            raise ValidationError(f"Unknown sync kind '{kind}'")
        if not idempotency_key:
            raise ValidationError("Sync items need an idempotency key")
        return SyncItem(
            kind=kind,
            idempotency_key=idempotency_key,
            payload=payload,
            created_at=now,
            next_attempt_at=now,
        )

    @classmethod
    def schedule_retry(cls, item: SyncItem, now: datetime, error: str) -> SyncItem:
        """Return the item with one more attempt recorded and its next attempt time."""
        attempts = item.attempts + 1
        return replace(
            item,
            attempts=attempts,
            next_attempt_at=now + cls.backoff_delay(attempts),
            last_error=error,
        )

    @staticmethod
    def due_items(
        items: Sequence[SyncItem], now: datetime, force: bool = False
    ) -> list[SyncItem]:
        """Items ready to push, oldest first."""
        due = [item for item in items if force or item.next_attempt_at <= now]
        return sorted(due, key=lambda item: item.created_at)

    @staticmethod
    def next_wakeup(items: Sequence[SyncItem]) -> datetime | None:
        """Earliest next_attempt_at in the queue, or None when empty."""
        if not items:
            return None
        return min(item.next_attempt_at for item in items)

    @staticmethod
    def contains_key(items: Sequence[SyncItem], idempotency_key: str) -> bool:
        return any(item.idempotency_key == idempotency_key for item in items)

    @staticmethod
    def calculate_stats(items: Sequence[SyncItem]) -> dict[str, int]:
        """Pending counts per kind plus a total."""
        counts = Counter(item.kind for item in items)
        stats = {kind: counts.get(kind, 0) for kind in const.SYNC_KINDS}
        stats["total"] = len(items)
        stats["retrying"] = sum(1 for item in items if item.attempts > 0)
        return stats
