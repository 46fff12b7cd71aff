"""
Session Service
Start/pause/resume/stop lifecycle for tracking sessions
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Union, assert_never

from models.tracking import (
    EventType,
    OpenSessionSnapshot,
    Session,
    SessionStatus,
    utc_now,
)
from services.duration_calculator import compute_duration, first_start_time
from services.errors import (
    AlreadyPausedError,
    ConflictError,
    NoOpenSessionError,
    NotPausedError,
)
from services.session_store import SessionStore

logger = logging.getLogger("onoff-tracker")


class TrackingAction(str, Enum):
    """Actions a user can take on their session"""
    START = "start"
    PAUSE = "pause"
    RESUME = "resume"
    STOP = "stop"


@dataclass
class StartResult:
    session: Session
    is_new: bool
    current_duration_ms: int


@dataclass
class StopResult:
    session: Session
    duration_ms: int


@dataclass
class PauseResult:
    session: Session
    duration_ms: int


@dataclass
class ResumeResult:
    session: Session
    total_duration_so_far_ms: int


LifecycleResult = Union[StartResult, StopResult, PauseResult, ResumeResult]


class SessionService:
    """
    Entry points for the session lifecycle.

    Each operation validates the current state through the store, appends a
    single event and reports the duration computed from the event log. Typed
    errors are raised for precondition violations and never retried here.
    """

    def __init__(self, store: SessionStore):
        """
        Initialize the session service.

        Args:
            store: Session store holding sessions and their event logs
        """
        self.store = store

    async def _require_open_session(self, user_id: str, guild_id: str) -> Session:
        session = await self.store.find_open_session(user_id, guild_id)
        if session is None:
            logger.warning(f"No open session for user {user_id} in guild {guild_id}")
            raise NoOpenSessionError(user_id, guild_id)
        return session

    async def _current_duration(self, session: Session, now: datetime) -> int:
        events = await self.store.list_events(session.id)
        return compute_duration(events, now)

    async def start(self, user_id: str, guild_id: str, now: Optional[datetime] = None) -> StartResult:
        """
        Start a session, or report the one already running.

        Starting while a session is open is not an error: the open session is
        returned with `is_new=False` and its live duration.
        """
        now = now or utc_now()

        existing = await self.store.find_open_session(user_id, guild_id)
        if existing is None:
            try:
                session = await self.store.create_session(user_id, guild_id, now)
                logger.info(f"User {user_id} started tracking in guild {guild_id}")
                return StartResult(session=session, is_new=True, current_duration_ms=0)
            except ConflictError:
                # A concurrent start won the race; report its session instead
                existing = await self.store.find_open_session(user_id, guild_id)
                if existing is None:
                    raise

        duration = await self._current_duration(existing, now)
        logger.info(f"User {user_id} already tracking in guild {guild_id} (session {existing.id})")
        return StartResult(session=existing, is_new=False, current_duration_ms=duration)

    async def stop(self, user_id: str, guild_id: str, now: Optional[datetime] = None) -> StopResult:
        """
        Close the open session and return its final duration.

        The duration is read back from the closed event log, so a pause that
        lands between the lookup and the STOP is reflected in the result.
        """
        now = now or utc_now()
        session = await self._require_open_session(user_id, guild_id)

        session = await self.store.append_event(session.id, EventType.STOP, now)
        duration = await self._current_duration(session, now)

        logger.info(f"User {user_id} stopped tracking in guild {guild_id} after {duration}ms")
        return StopResult(session=session, duration_ms=duration)

    async def pause(self, user_id: str, guild_id: str, now: Optional[datetime] = None) -> PauseResult:
        """Pause the open session and return the time tracked so far"""
        now = now or utc_now()
        session = await self._require_open_session(user_id, guild_id)
        if session.status is SessionStatus.PAUSED:
            raise AlreadyPausedError(f"Session {session.id} is already paused")

        session = await self.store.append_event(session.id, EventType.PAUSE, now)
        duration = await self._current_duration(session, now)

        logger.info(f"User {user_id} paused tracking in guild {guild_id} at {duration}ms")
        return PauseResult(session=session, duration_ms=duration)

    async def resume(self, user_id: str, guild_id: str, now: Optional[datetime] = None) -> ResumeResult:
        """Resume a paused session; the paused gap does not count"""
        now = now or utc_now()
        session = await self._require_open_session(user_id, guild_id)
        if session.status is SessionStatus.ACTIVE:
            raise NotPausedError(f"Session {session.id} is not paused")

        session = await self.store.append_event(session.id, EventType.RESUME, now)
        duration = await self._current_duration(session, now)

        logger.info(f"User {user_id} resumed tracking in guild {guild_id} at {duration}ms")
        return ResumeResult(session=session, total_duration_so_far_ms=duration)

    async def dispatch(self, action: TrackingAction, user_id: str, guild_id: str,
                       now: Optional[datetime] = None) -> LifecycleResult:
        """Run the lifecycle operation matching `action`"""
        match TrackingAction(action):
            case TrackingAction.START:
                return await self.start(user_id, guild_id, now)
            case TrackingAction.PAUSE:
                return await self.pause(user_id, guild_id, now)
            case TrackingAction.RESUME:
                return await self.resume(user_id, guild_id, now)
            case TrackingAction.STOP:
                return await self.stop(user_id, guild_id, now)
            case _ as unreachable:
                assert_never(unreachable)

    async def get_open_session(self, user_id: str, guild_id: str,
                               now: Optional[datetime] = None) -> Optional[OpenSessionSnapshot]:
        """The user's open session with its live duration, if any"""
        session = await self.store.find_open_session(user_id, guild_id)
        if session is None:
            return None
        events = await self.store.list_events(session.id)
        return OpenSessionSnapshot(
            session=session,
            current_duration_ms=compute_duration(events, now or utc_now()),
            started_at=first_start_time(events),
        )
