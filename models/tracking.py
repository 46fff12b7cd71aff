"""
Tracking Models
Sessions, session events and the derived statistics built from them
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime"""
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class SessionStatus(str, Enum):
    """Lifecycle status of a tracking session"""
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    COMPLETED = "COMPLETED"

    @property
    def is_open(self) -> bool:
        return self is not SessionStatus.COMPLETED


class EventType(str, Enum):
    """Kinds of events recorded in a session's log"""
    START = "START"
    PAUSE = "PAUSE"
    RESUME = "RESUME"
    STOP = "STOP"


OPEN_STATUSES = (SessionStatus.ACTIVE, SessionStatus.PAUSED)


@dataclass
class Session:
    """One tracked period of activity for a user in a guild"""
    user_id: str
    guild_id: str
    status: SessionStatus = SessionStatus.ACTIVE
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    id: str = field(default_factory=new_id)

    @property
    def is_open(self) -> bool:
        return self.status.is_open

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "guild_id": self.guild_id,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass
class SessionEvent:
    """
    A single lifecycle event of a session.

    `timestamp` is when the action happened in the real world and is supplied
    by the caller; `created_at` is when the event was persisted.
    """
    session_id: str
    event_type: EventType
    timestamp: datetime
    created_at: datetime = field(default_factory=utc_now)
    id: str = field(default_factory=new_id)


@dataclass
class UserStats:
    """Aggregate activity of one user in one guild"""
    user_id: str
    guild_id: str
    total_active_time_ms: int = 0
    sessions_count: int = 0
    last_activity_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "guild_id": self.guild_id,
            "total_active_time_ms": self.total_active_time_ms,
            "sessions_count": self.sessions_count,
            "last_activity_at": self.last_activity_at.isoformat() if self.last_activity_at else None,
        }


@dataclass
class LeaderboardEntry:
    user_id: str
    total_active_time_ms: int
    sessions_count: int

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "total_active_time_ms": self.total_active_time_ms,
            "sessions_count": self.sessions_count,
        }


@dataclass
class OpenSessionSnapshot:
    """An open session together with its live duration"""
    session: Session
    current_duration_ms: int
    started_at: Optional[datetime] = None

    @property
    def is_paused(self) -> bool:
        return self.session.status is SessionStatus.PAUSED

    def to_dict(self) -> dict:
        return {
            "session": self.session.to_dict(),
            "current_duration_ms": self.current_duration_ms,
            "started_at": self.started_at.isoformat() if self.started_at else None,
        }
