"""Approval Manager - Guardian approval gate for games.

This manager handles:
- Approval requests (idempotent while pending or approved, re-opens rejections)
- Guardian decisions, guarded by an injected authorization callable
- Access checks combining the approval status and time restrictions
- Mirroring requests and decisions to the sync queue

State machine (ApprovalEngine): pending -> approved | rejected, rejected -> pending.
Approved is terminal here; revoking access is done outside the engine.
"""

from __future__ import annotations

from datetime import datetime
import inspect
from typing import TYPE_CHECKING, Any

from .. import const
from ..engines.approval_engine import ApprovalEngine
from ..exceptions import GuardianAuthorizationError, ValidationError
from ..models import (
    AccessDecision,
    ApprovalRecord,
    ApprovalRequested,
    ApprovalResponded,
    ApprovalStatus,
)
from .base_manager import BaseManager

if TYPE_CHECKING:
    from ..models import TimeRestriction


class ApprovalManager(BaseManager):
    """Manager for approval records and access decisions."""

    async def async_setup(self) -> None:
        """Nothing to restore; approvals are read from the store on demand."""

    async def _async_authorize(self, guardian_id: str | None) -> None:
        authorizer = self.coordinator.authorizer
        if authorizer is None:
            return
        allowed = authorizer(guardian_id)
        if inspect.isawaitable(allowed):
            allowed = await allowed
        if not allowed:
            const.LOGGER.warning(
                "ApprovalManager: User '%s' is not allowed to decide approvals",
                guardian_id,
            )
            raise GuardianAuthorizationError(
                f"User '{guardian_id}' is not allowed to decide approvals"
            )

    # =========================================================================
    # REQUEST / DECIDE
    # =========================================================================

    async def async_request_approval(
        self,
        game_id: str,
        child_id: str,
        game_meta: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> ApprovalRecord:
        """Ask a guardian to approve ``game_id`` for ``child_id``.

        Returns the existing record unchanged when it is pending or approved.
        """
        if game_meta is None:
            game = self.coordinator.registry.get(game_id)
            game_meta = game.meta() if game else {}
        local_now = self._resolve_now(now)

        async with self._get_lock(game_id, child_id):
            existing = await self.store.async_get_approval(game_id, child_id)
            record, changed = ApprovalEngine.apply_request(
                existing, game_id, child_id, game_meta, local_now
            )
            if not changed:
                return record
            await self.store.async_upsert_approval(record)

        const.LOGGER.info(
            "ApprovalManager: %s requested approval for %s (request %s)",
            child_id,
            game_id,
            record.request_id,
        )
        event = ApprovalRequested(
            game_id=game_id,
            child_id=child_id,
            session_id=record.request_id,
            request_id=record.request_id,
            request_data=dict(record.game_meta),
        )
        await self.coordinator.sync_manager.async_enqueue(
            const.SYNC_KIND_APPROVAL, event.event_id, event.as_dict()
        )
        return record

    async def async_decide(
        self,
        request_id: str,
        approved: bool,
        restriction: TimeRestriction | None = None,
        note: str | None = None,
        guardian_id: str | None = None,
        now: datetime | None = None,
    ) -> ApprovalRecord:
        """Approve or reject a pending request.

        Raises:
            GuardianAuthorizationError: The caller may not decide approvals
            ValidationError: Unknown request id
            InvalidTransitionError: The request is no longer pending
        """
        await self._async_authorize(guardian_id)

        found = await self.store.async_get_approval_by_request(request_id)
        if found is None:
            raise ValidationError(f"Unknown approval request '{request_id}'")

        async with self._get_lock(found.game_id, found.child_id):
            current = await self.store.async_get_approval(found.game_id, found.child_id)
            if current is None or current.request_id != request_id:
                raise ValidationError(f"Unknown approval request '{request_id}'")
            decided = ApprovalEngine.apply_decision(
                current, approved, self._resolve_now(now), restriction, note
            )
            await self.store.async_upsert_approval(decided)

        const.LOGGER.info(
            "ApprovalManager: Request %s for %s/%s %s by '%s'",
            request_id,
            decided.game_id,
            decided.child_id,
            decided.status,
            guardian_id,
        )
        event = ApprovalResponded(
            game_id=decided.game_id,
            child_id=decided.child_id,
            session_id=request_id,
            request_id=request_id,
            approved=approved,
            approval_data={
                "guardian_note": note,
                "restriction": restriction.as_dict() if restriction else None,
            },
        )
        await self.coordinator.sync_manager.async_enqueue(
            const.SYNC_KIND_APPROVAL, event.event_id, event.as_dict()
        )
        return decided

    # =========================================================================
    # ACCESS
    # =========================================================================

    async def async_check_access(
        self, game_id: str, child_id: str, now: datetime | None = None
    ) -> AccessDecision:
        """Decide whether the child may play the game now, with the reason."""
        local_now = self._resolve_now(now)
        record = await self.store.async_get_approval(game_id, child_id)
        if record is None:
            game = self.coordinator.registry.get(game_id)
            if game is not None and not game.requires_parent_approval:
                return AccessDecision(True, const.ACCESS_ALLOWED)
        minutes_today = await self.store.async_get_play_minutes(
            game_id, child_id, local_now.date()
        )
        return ApprovalEngine.check_access(record, local_now, minutes_today)

    async def async_can_play_now(
        self, game_id: str, child_id: str, now: datetime | None = None
    ) -> bool:
        decision = await self.async_check_access(game_id, child_id, now)
        return decision.allowed

    async def async_can_access_feature(
        self, game_id: str, child_id: str, feature: str
    ) -> bool:
        record = await self.store.async_get_approval(game_id, child_id)
        return ApprovalEngine.is_feature_allowed(record, feature)

    async def async_get_approval(
        self, game_id: str, child_id: str
    ) -> ApprovalRecord | None:
        return await self.store.async_get_approval(game_id, child_id)

    async def async_get_restriction(
        self, game_id: str, child_id: str
    ) -> TimeRestriction | None:
        record = await self.store.async_get_approval(game_id, child_id)
        return record.restriction if record and record.is_approved else None

    async def async_get_pending_requests(
        self, child_id: str | None = None
    ) -> list[ApprovalRecord]:
        """Pending requests, oldest first, optionally for one child."""
        records = [
            record
            for record in await self.store.async_list_approvals()
            if record.status is ApprovalStatus.PENDING
            and (child_id is None or record.child_id == child_id)
        ]
        return sorted(records, key=lambda record: record.requested_at)
