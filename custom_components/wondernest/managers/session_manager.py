"""Session Manager - Play session lifecycle.

This manager handles:
- Starting a session after the approval gate allows it
- Recording events in arrival order (one lock per session)
- Keeping the game data bag up to date (score, level, flags; last writer wins)
- Running achievements, then rewards, for every event
- Ending a session: aggregates, SessionCompletion, daily play minutes and
  persistence of the game data

Locks taken while recording an event are never nested: the session lock is
held for the whole event, the (game, child) unlock lock and the per-child
ledger lock are taken and released one after the other inside it.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from .. import const
from ..exceptions import (
    AlreadyActiveError,
    NoSuchSessionError,
    NotApprovedError,
    PersistenceError,
    UnknownGameError,
    ValidationError,
)
from ..models import (
    AggregateState,
    EventOutcome,
    GameSession,
    LevelProgress,
    ScoreUpdate,
    SessionCompletion,
    SessionState,
)
from ..utils.dt_utils import dt_parse_date, elapsed_minutes
from .base_manager import BaseManager

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant

    from ..coordinator import WonderNestCoordinator
    from ..models import GameDefinition, GameEvent


def _pair(game_id: str, child_id: str) -> str:
    return f"{game_id}:{child_id}"


class SessionManager(BaseManager):
    """Manager for active play sessions (kept in memory only)."""

    def __init__(self, hass: HomeAssistant, coordinator: WonderNestCoordinator) -> None:
        super().__init__(hass, coordinator)
        self._sessions: dict[str, GameSession] = {}
        self._active_by_pair: dict[str, str] = {}

    async def async_setup(self) -> None:
        """Sessions do not survive a restart; nothing to restore."""

    def _get_game(self, game_id: str) -> GameDefinition:
        game = self.coordinator.registry.get(game_id)
        if game is None:
            raise UnknownGameError(game_id)
        return game

    def get_session(self, session_id: str) -> GameSession | None:
        return self._sessions.get(session_id)

    def active_sessions(self, child_id: str | None = None) -> list[GameSession]:
        return [
            session
            for session in self._sessions.values()
            if child_id is None or session.child_id == child_id
        ]

    def _require_active(self, session_id: str) -> GameSession:
        session = self._sessions.get(session_id)
        if session is None or not session.is_active:
            raise NoSuchSessionError(session_id)
        return session

    # =========================================================================
    # START
    # =========================================================================

    async def async_start(
        self, game_id: str, child_id: str, now: datetime | None = None
    ) -> GameSession:
        """Start a session if the approval gate allows it.

        Raises:
            UnknownGameError: The game is not registered
            AlreadyActiveError: A session is already active for (game, child)
            NotApprovedError: The gate denied play; ``reason`` says why
        """
        self._get_game(game_id)
        local_now = self._resolve_now(now)

        async with self._get_lock("start", game_id, child_id):
            active_id = self._active_by_pair.get(_pair(game_id, child_id))
            if active_id is not None:
                raise AlreadyActiveError(game_id, child_id, active_id)

            decision = await self.coordinator.approval_manager.async_check_access(
                game_id, child_id, local_now
            )
            if not decision.allowed:
                const.LOGGER.info(
                    "SessionManager: %s may not play %s: %s",
                    child_id,
                    game_id,
                    decision.reason,
                )
                raise NotApprovedError(game_id, child_id, decision.reason)

            game_data = await self.store.async_load_game_data(game_id, child_id)
            game_data.setdefault(const.GAME_DATA_SCORE, const.DEFAULT_SCORE)
            game_data.setdefault(const.GAME_DATA_LEVEL, const.DEFAULT_LEVEL)

            session = GameSession(
                game_id=game_id,
                child_id=child_id,
                started_at=local_now,
                game_data=game_data,
            )
            self._sessions[session.session_id] = session
            self._active_by_pair[_pair(game_id, child_id)] = session.session_id

        const.LOGGER.debug(
            "SessionManager: Started session %s (%s/%s)",
            session.session_id,
            game_id,
            child_id,
        )
        return session

    # =========================================================================
    # EVENTS
    # =========================================================================

    async def async_record_event(
        self, session_id: str, event: GameEvent, now: datetime | None = None
    ) -> EventOutcome:
        """Record one event and run it through achievements and rewards.

        Raises:
            NoSuchSessionError: Unknown or ended session
            ValidationError: The event belongs to another session, game or child
        """
        session = self._require_active(session_id)
        if (
            event.session_id != session.session_id
            or event.game_id != session.game_id
            or event.child_id != session.child_id
        ):
            raise ValidationError(
                f"Event {event.event_id} does not belong to session {session_id}"
            )

        async with self._get_lock(session_id):
            # The session may have ended while this event waited for the lock
            self._require_active(session_id)
            local_now = self._resolve_now(now)
            session.events.append(event)
            self._apply_event(session.game_data, event)
            state = self._aggregate(session, local_now, include_current=True)
            outcome = await self._async_dispatch(session, event, state, local_now)

        await self.coordinator.sync_manager.async_enqueue(
            const.SYNC_KIND_EVENT, event.event_id, event.as_dict()
        )
        return outcome

    @staticmethod
    def _apply_event(game_data: dict[str, Any], event: GameEvent) -> None:
        """Fold the event payload into the game data bag (last writer wins)."""
        if isinstance(event, ScoreUpdate):
            game_data[const.GAME_DATA_SCORE] = event.new_score
        elif isinstance(event, LevelProgress):
            game_data[const.GAME_DATA_LEVEL] = event.new_level
        elif isinstance(event, SessionCompletion) and event.completed:
            game_data[const.GAME_DATA_COMPLETED] = True
        game_data.update(event.flags)

    @staticmethod
    def _aggregate(
        session: GameSession, now: datetime, include_current: bool
    ) -> AggregateState:
        """Snapshot for criteria evaluation.

        ``include_current`` counts the running session's minutes on top of the
        stored total (before the end-of-session update has folded them in).
        """
        data = session.game_data
        duration = elapsed_minutes(session.started_at, now)
        total_minutes = int(data.get(const.GAME_DATA_TOTAL_PLAY_TIME_MINUTES, 0))
        if include_current:
            total_minutes += duration
        return AggregateState(
            score=int(data.get(const.GAME_DATA_SCORE, const.DEFAULT_SCORE)),
            level=int(data.get(const.GAME_DATA_LEVEL, const.DEFAULT_LEVEL)),
            total_play_time_minutes=total_minutes,
            sessions_played=int(data.get(const.GAME_DATA_SESSIONS_PLAYED, 0)),
            win_streak=int(data.get(const.GAME_DATA_WIN_STREAK, 0)),
            daily_play_streak=int(data.get(const.GAME_DATA_DAILY_PLAY_STREAK, 0)),
            completed=bool(data.get(const.GAME_DATA_COMPLETED, False)),
            session_duration_minutes=duration,
            # TODO: fill from the remote once it reports games played per child
            games_played=None,
        )

    async def _async_dispatch(
        self,
        session: GameSession,
        event: GameEvent,
        state: AggregateState,
        now: datetime,
    ) -> EventOutcome:
        """Achievements first (unlock persisted and rewarded), then rule rewards."""
        unlocked = await self.coordinator.achievement_manager.async_process_event(
            session.game_id, session.child_id, event, state, now=now
        )
        reward_manager = self.coordinator.reward_manager
        awarded = sum(
            reward_manager.expected_unlock_reward(session.game_id, achievement)
            for achievement in unlocked
        )
        awarded += await reward_manager.async_process_event(event, now=now)

        session.unlocked.extend(unlocked)
        session.currency_earned += awarded
        return EventOutcome(event=event, unlocked=tuple(unlocked), currency_awarded=awarded)

    # =========================================================================
    # END
    # =========================================================================

    async def async_end(
        self, session_id: str, persist: bool = True, now: datetime | None = None
    ) -> SessionCompletion:
        """End a session and return its SessionCompletion event.

        Local persistence failures are logged, never raised; the game data is
        still handed to the sync queue.

        Raises:
            NoSuchSessionError: Unknown or already ended session
        """
        session = self._require_active(session_id)

        async with self._get_lock(session_id):
            self._require_active(session_id)
            local_now = self._resolve_now(now)
            try:
                play_time = session.duration(local_now)
                minutes = elapsed_minutes(session.started_at, local_now)
                self._update_aggregates(session.game_data, minutes, local_now)

                completion = SessionCompletion(
                    game_id=session.game_id,
                    child_id=session.child_id,
                    session_id=session.session_id,
                    created_at=local_now,
                    final_score=int(session.game_data[const.GAME_DATA_SCORE]),
                    final_level=int(session.game_data[const.GAME_DATA_LEVEL]),
                    play_time=play_time,
                    completed=bool(session.game_data.get(const.GAME_DATA_COMPLETED, False)),
                )
                session.events.append(completion)
                state = self._aggregate(session, local_now, include_current=False)
                await self._async_dispatch(session, completion, state, local_now)

                await self._async_record_play_minutes(session, local_now, minutes)
                if persist:
                    await self._async_persist_game_data(session)
            finally:
                # Whatever happened above, the (game, child) pair is free again
                session.state = SessionState.ENDED
                self._sessions.pop(session_id, None)
                self._active_by_pair.pop(_pair(session.game_id, session.child_id), None)
                self._discard_lock(session_id)

        await self.coordinator.sync_manager.async_enqueue(
            const.SYNC_KIND_EVENT, completion.event_id, completion.as_dict()
        )
        const.LOGGER.debug(
            "SessionManager: Ended session %s after %s minutes, score %s, earned %s",
            session_id,
            minutes,
            completion.final_score,
            session.currency_earned,
        )
        return completion

    @staticmethod
    def _update_aggregates(
        game_data: dict[str, Any], minutes: int, now: datetime
    ) -> None:
        today = now.date()
        game_data[const.GAME_DATA_SESSIONS_PLAYED] = (
            int(game_data.get(const.GAME_DATA_SESSIONS_PLAYED, 0)) + 1
        )
        game_data[const.GAME_DATA_TOTAL_PLAY_TIME_MINUTES] = (
            int(game_data.get(const.GAME_DATA_TOTAL_PLAY_TIME_MINUTES, 0)) + minutes
        )

        last_played = dt_parse_date(game_data.get(const.GAME_DATA_LAST_PLAYED_DATE))
        streak = int(game_data.get(const.GAME_DATA_DAILY_PLAY_STREAK, 0))
        if last_played == today:
            streak = max(streak, 1)
        elif last_played == today - timedelta(days=1):
            streak += 1
        else:
            streak = 1
        game_data[const.GAME_DATA_DAILY_PLAY_STREAK] = streak
        game_data[const.GAME_DATA_LAST_PLAYED_DATE] = today.isoformat()

    async def _async_record_play_minutes(
        self, session: GameSession, now: datetime, minutes: int
    ) -> None:
        if minutes <= 0:
            return
        try:
            await self.store.async_add_play_minutes(
                session.game_id, session.child_id, now.date(), minutes
            )
        except PersistenceError as err:
            const.LOGGER.error("SessionManager: %s", err)

    async def _async_persist_game_data(self, session: GameSession) -> None:
        try:
            await self.store.async_save_game_data(
                session.game_id, session.child_id, session.game_data
            )
        except PersistenceError as err:
            const.LOGGER.error(
                "SessionManager: Keeping game data of session %s for sync only: %s",
                session.session_id,
                err,
            )
        await self.coordinator.sync_manager.async_enqueue(
            const.SYNC_KIND_GAME_DATA,
            f"{session.session_id}:{const.SYNC_KIND_GAME_DATA}",
            {
                "game_id": session.game_id,
                "child_id": session.child_id,
                "session_id": session.session_id,
                "game_data": dict(session.game_data),
            },
        )


