"""
Session Store
Storage contract for sessions and their event logs, plus an in-memory backend
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from models.tracking import (
    EventType,
    Session,
    SessionEvent,
    SessionStatus,
    utc_now,
)
from services.concurrency_manager import KeyedLock
from services.duration_calculator import sort_events
from services.errors import ConflictError, InvalidStateError, NotFoundError

logger = logging.getLogger("onoff-tracker")

# status -> {event -> next status}
TRANSITIONS: Dict[SessionStatus, Dict[EventType, SessionStatus]] = {
    SessionStatus.ACTIVE: {
        EventType.PAUSE: SessionStatus.PAUSED,
        EventType.STOP: SessionStatus.COMPLETED,
    },
    SessionStatus.PAUSED: {
        EventType.RESUME: SessionStatus.ACTIVE,
        EventType.STOP: SessionStatus.COMPLETED,
    },
    SessionStatus.COMPLETED: {},
}


def resolve_transition(session: Session, event_type: EventType) -> SessionStatus:
    """
    Return the status a session moves to when `event_type` is appended.

    Raises:
        InvalidStateError: If the event is not allowed from the current status
    """
    next_status = TRANSITIONS[SessionStatus(session.status)].get(EventType(event_type))
    if next_status is None:
        raise InvalidStateError(
            f"Cannot apply {EventType(event_type).value} to session {session.id} "
            f"in status {SessionStatus(session.status).value}"
        )
    return next_status


class SessionStore(ABC):
    """
    Durable storage of sessions and their append-only event logs.

    The store is the sole enforcer of the one-open-session-per-(user, guild)
    invariant and of the session state machine. Writes for the same pair are
    serialized through a KeyedLock.
    """

    def __init__(self):
        self._key_locks = KeyedLock()

    @staticmethod
    def _pair_key(user_id: str, guild_id: str) -> Tuple[str, str]:
        return (str(user_id), str(guild_id))

    @abstractmethod
    async def find_open_session(self, user_id: str, guild_id: str) -> Optional[Session]:
        """Return the Active/Paused session for the pair, if any"""

    @abstractmethod
    async def create_session(self, user_id: str, guild_id: str, start_timestamp: datetime) -> Session:
        """
        Create an Active session together with its Start event.

        Raises:
            ConflictError: If the pair already has an open session
        """

    @abstractmethod
    async def append_event(self, session_id: str, event_type: EventType, timestamp: datetime) -> Session:
        """
        Append an event and move the session to its next status atomically.

        Raises:
            NotFoundError: If the session does not exist
            InvalidStateError: If the event is not a legal transition
        """

    @abstractmethod
    async def get_session(self, session_id: str) -> Optional[Session]:
        """Fetch a session by id"""

    @abstractmethod
    async def list_events(self, session_id: str) -> List[SessionEvent]:
        """Events of a session, ascending by timestamp"""

    @abstractmethod
    async def list_open_sessions(self, guild_id: str) -> List[Session]:
        """Open sessions of a guild, oldest first"""

    @abstractmethod
    async def list_sessions_for_user(self, user_id: str, guild_id: str) -> List[Session]:
        """Every session of the pair regardless of status"""

    @abstractmethod
    async def list_guild_user_ids(self, guild_id: str) -> List[str]:
        """Distinct users with at least one session in the guild, in order of first session"""

    async def close(self):
        """Release storage resources"""


class InMemorySessionStore(SessionStore):
    """Dict-backed store for tests and database-less runs"""

    def __init__(self):
        super().__init__()
        self._sessions: Dict[str, Session] = {}
        self._events: Dict[str, List[SessionEvent]] = {}

    async def find_open_session(self, user_id: str, guild_id: str) -> Optional[Session]:
        for session in self._sessions.values():
            if session.user_id == str(user_id) and session.guild_id == str(guild_id) and session.is_open:
                return replace(session)
        return None

    async def create_session(self, user_id: str, guild_id: str, start_timestamp: datetime) -> Session:
        async with self._key_locks.hold(self._pair_key(user_id, guild_id)):
            existing = await self.find_open_session(user_id, guild_id)
            if existing:
                raise ConflictError(user_id, guild_id, existing.id)

            now = utc_now()
            session = Session(user_id=str(user_id), guild_id=str(guild_id), created_at=now, updated_at=now)
            event = SessionEvent(session_id=session.id, event_type=EventType.START, timestamp=start_timestamp)
            self._sessions[session.id] = session
            self._events[session.id] = [event]

        logger.info(f"Session created: {session.id} for user {user_id} in guild {guild_id}")
        return replace(session)

    async def append_event(self, session_id: str, event_type: EventType, timestamp: datetime) -> Session:
        session = self._sessions.get(session_id)
        if session is None:
            raise NotFoundError(session_id)

        async with self._key_locks.hold(self._pair_key(session.user_id, session.guild_id)):
            next_status = resolve_transition(session, event_type)
            self._events[session_id].append(
                SessionEvent(session_id=session_id, event_type=EventType(event_type), timestamp=timestamp)
            )
            session.status = next_status
            session.updated_at = utc_now()

        logger.info(f"Session {session_id}: {EventType(event_type).value} -> {next_status.value}")
        return replace(session)

    async def get_session(self, session_id: str) -> Optional[Session]:
        session = self._sessions.get(session_id)
        return replace(session) if session else None

    async def list_events(self, session_id: str) -> List[SessionEvent]:
        return sort_events(self._events.get(session_id, []))

    async def list_open_sessions(self, guild_id: str) -> List[Session]:
        sessions = [
            replace(s) for s in self._sessions.values()
            if s.guild_id == str(guild_id) and s.is_open
        ]
        return sorted(sessions, key=lambda s: s.created_at)

    async def list_sessions_for_user(self, user_id: str, guild_id: str) -> List[Session]:
        sessions = [
            replace(s) for s in self._sessions.values()
            if s.user_id == str(user_id) and s.guild_id == str(guild_id)
        ]
        return sorted(sessions, key=lambda s: s.created_at)

    async def list_guild_user_ids(self, guild_id: str) -> List[str]:
        user_ids: List[str] = []
        # dicts keep insertion order, so this is first-session order
        for session in self._sessions.values():
            if session.guild_id == str(guild_id) and session.user_id not in user_ids:
                user_ids.append(session.user_id)
        return user_ids

    async def close(self):
        self._sessions.clear()
        self._events.clear()
