from datetime import datetime, timedelta, timezone

from models.tracking import EventType, SessionEvent

T0 = datetime(2024, 1, 9, 12, 0, 0, tzinfo=timezone.utc)


def at(ms: int) -> datetime:
    """T0 shifted by `ms` milliseconds"""
    return T0 + timedelta(milliseconds=ms)


def event(event_type: EventType, ms: int, session_id: str = "s1") -> SessionEvent:
    return SessionEvent(session_id=session_id, event_type=event_type, timestamp=at(ms))
