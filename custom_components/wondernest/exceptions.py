# File: exceptions.py
"""Error taxonomy for the WonderNest engine.

Pure Python exceptions with no Home Assistant dependencies. The service layer
translates them into Home Assistant errors at the boundary.
"""

from __future__ import annotations

from . import const


class WonderNestError(Exception):
    """Base class for all engine errors."""


class ValidationError(WonderNestError):
    """Malformed event, criterion, content definition or request."""


class UnknownGameError(ValidationError):
    """A game id was used that is not registered."""

    def __init__(self, game_id: str) -> None:
        self.game_id = game_id
        super().__init__(f"Unknown game '{game_id}'")


class InvalidTransitionError(ValidationError):
    """An approval record was asked to move along an edge that does not exist."""

    def __init__(self, current_status: str, action: str) -> None:
        self.current_status = current_status
        self.action = action
        super().__init__(f"Cannot {action} an approval that is {current_status}")


class InsufficientFundsError(WonderNestError):
    """Raised when a withdrawal would result in negative balance.

    Attributes:
        child_id: The child attempting the withdrawal
        current_balance: Current currency balance
        requested_amount: Amount attempted to withdraw
        shortfall: How much more is needed (requested - current)
    """

    def __init__(
        self,
        child_id: str,
        current_balance: int,
        requested_amount: int,
    ) -> None:
        """Initialize InsufficientFundsError.

        Args:
            child_id: The child attempting the withdrawal
            current_balance: Current currency balance
            requested_amount: Amount attempted to withdraw (positive)
        """
        self.child_id = child_id
        self.current_balance = current_balance
        self.requested_amount = requested_amount
        self.shortfall = requested_amount - current_balance
        super().__init__(
            f"Insufficient balance for child {child_id}: "
            f"balance={current_balance}, requested={requested_amount}, "
            f"shortfall={self.shortfall}"
        )


class SessionError(WonderNestError):
    """Misuse of the play session lifecycle."""


class AlreadyActiveError(SessionError):
    """A session is already active for the (game, child) pair."""

    def __init__(self, game_id: str, child_id: str, session_id: str) -> None:
        self.game_id = game_id
        self.child_id = child_id
        self.session_id = session_id
        super().__init__(
            f"Session {session_id} is already active for game {game_id}, "
            f"child {child_id}"
        )


class NotApprovedError(SessionError):
    """The approval gate refused play.

    ``reason`` is one of the ``const.ACCESS_*`` values so callers can tell an
    unapproved game apart from a time restriction.
    """

    def __init__(self, game_id: str, child_id: str, reason: str) -> None:
        self.game_id = game_id
        self.child_id = child_id
        self.reason = reason
        super().__init__(f"Game {game_id} not playable for child {child_id}: {reason}")

    @property
    def is_time_restricted(self) -> bool:
        """Return True when the game is approved but outside its allowed time."""
        return self.reason in const.ACCESS_TIME_RESTRICTED_REASONS


class NoSuchSessionError(SessionError):
    """The session id is unknown or the session has already ended."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"No active session '{session_id}'")


class GuardianAuthorizationError(WonderNestError):
    """The caller is not allowed to decide approvals."""


class PersistenceError(WonderNestError):
    """The persistence gateway failed to read or write."""


class SyncError(WonderNestError):
    """Base class for remote delivery failures."""


class TransientSyncError(SyncError):
    """Network or remote failure worth retrying."""


class PermanentSyncError(SyncError):
    """The remote rejected the payload; retrying will not help."""
