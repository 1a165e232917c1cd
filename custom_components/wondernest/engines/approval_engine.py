"""Approval Engine - Pure logic for the guardian approval state machine.

This engine provides stateless, pure Python functions for:
- Approval state transitions (request, approve, reject, re-request)
- Access decisions combining approval status and time restrictions
- Feature-level restriction checks

ARCHITECTURE: This is a pure logic engine with NO Home Assistant dependencies.
All functions are static methods that operate on passed-in data.
State management, persistence and authorization belong in ApprovalManager.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
import uuid

from .. import const
from ..exceptions import InvalidTransitionError
from ..models import AccessDecision, ApprovalRecord, ApprovalStatus, TimeRestriction
from ..utils.dt_utils import is_time_in_window

# =============================================================================
# APPROVAL ACTION CONSTANTS
# =============================================================================

APPROVAL_ACTION_APPROVE = "approve"
APPROVAL_ACTION_REJECT = "reject"


class ApprovalEngine:
    """Pure logic engine for approval transitions and access checks.

    All methods are static - no instance state.
    """

    # Valid state transitions matrix (approved is terminal; revoke is external)
    VALID_TRANSITIONS: dict[ApprovalStatus, list[ApprovalStatus]] = {
        ApprovalStatus.PENDING: [ApprovalStatus.APPROVED, ApprovalStatus.REJECTED],
        ApprovalStatus.REJECTED: [ApprovalStatus.PENDING],
        ApprovalStatus.APPROVED: [],
    }

    _STATUS_REASONS: dict[ApprovalStatus, str] = {
        ApprovalStatus.PENDING: const.ACCESS_PENDING,
        ApprovalStatus.REJECTED: const.ACCESS_REJECTED,
    }

    # =========================================================================
    # STATE TRANSITION LOGIC
    # =========================================================================

    @classmethod
    def can_transition(cls, current: ApprovalStatus, target: ApprovalStatus) -> bool:
        return target in cls.VALID_TRANSITIONS.get(current, [])

    @staticmethod
    def new_request(
        game_id: str,
        child_id: str,
        game_meta: dict[str, Any],
        now: datetime,
    ) -> ApprovalRecord:
        """Create a fresh pending record."""
        return ApprovalRecord(
            request_id=uuid.uuid4().hex,
            game_id=game_id,
            child_id=child_id,
            status=ApprovalStatus.PENDING,
            requested_at=now,
            game_meta=dict(game_meta),
        )

    @classmethod
    def apply_request(
        cls,
        existing: ApprovalRecord | None,
        game_id: str,
        child_id: str,
        game_meta: dict[str, Any],
        now: datetime,
    ) -> tuple[ApprovalRecord, bool]:
        """Compute the record after a (re-)request.

        Returns:
            (record, changed): changed is False when an existing pending or
            approved record is returned unchanged.
        """
        if existing is None:
            return cls.new_request(game_id, child_id, game_meta, now), True
        if existing.status is not ApprovalStatus.REJECTED:
            return existing, False
        # Re-opening a rejected record gets a fresh request id
        reopened = cls.new_request(game_id, child_id, game_meta or existing.game_meta, now)
        return reopened, True

    @classmethod
    def apply_decision(
        cls,
        record: ApprovalRecord,
        approved: bool,
        now: datetime,
        restriction: TimeRestriction | None = None,
        note: str | None = None,
    ) -> ApprovalRecord:
        """Compute the record after a guardian decision.

        Raises:
            InvalidTransitionError: The record is not pending
        """
        target = ApprovalStatus.APPROVED if approved else ApprovalStatus.REJECTED
        if not cls.can_transition(record.status, target):
            action = APPROVAL_ACTION_APPROVE if approved else APPROVAL_ACTION_REJECT
            raise InvalidTransitionError(str(record.status), action)
        return record.with_changes(
            status=target,
            decided_at=now,
            guardian_note=note,
            restriction=restriction if approved else None,
        )

    # =========================================================================
    # ACCESS CHECKS
    # =========================================================================

    @classmethod
    def check_access(
        cls,
        record: ApprovalRecord | None,
        now: datetime,
        minutes_played_today: int = 0,
    ) -> AccessDecision:
        """Decide whether play is allowed right now.

        Checks run in order and the first failure wins: approval status, daily
        minutes, allowed time window, blocked weekdays.

        Args:
            record: Current approval record (None if never requested)
            now: Current LOCAL time
            minutes_played_today: Minutes already played today for this game
        """
        if record is None:
            return AccessDecision(False, const.ACCESS_NOT_REQUESTED)
        if record.status is not ApprovalStatus.APPROVED:
            return AccessDecision(False, cls._STATUS_REASONS[record.status])

        restriction = record.restriction
        if restriction is None:
            return AccessDecision(True, const.ACCESS_ALLOWED)

        if (
            restriction.max_daily_minutes is not None
            and minutes_played_today >= restriction.max_daily_minutes
        ):
            return AccessDecision(False, const.ACCESS_DAILY_LIMIT_REACHED)

        if restriction.has_time_window and not is_time_in_window(
            now.time(),
            restriction.allowed_start_time,  # type: ignore[arg-type]
            restriction.allowed_end_time,  # type: ignore[arg-type]
        ):
            return AccessDecision(False, const.ACCESS_OUTSIDE_ALLOWED_TIME)

        if now.isoweekday() in restriction.blocked_weekdays:
            return AccessDecision(False, const.ACCESS_BLOCKED_WEEKDAY)

        return AccessDecision(True, const.ACCESS_ALLOWED)

    @staticmethod
    def is_feature_allowed(record: ApprovalRecord | None, feature: str) -> bool:
        """Return True unless the feature is blocked on an approved record."""
        if record is None or not record.is_approved:
            return False
        if record.restriction is None:
            return True
        return feature not in record.restriction.blocked_features
