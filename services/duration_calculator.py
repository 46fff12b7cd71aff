"""
Duration Calculator
Derives active time from a session's event log
"""

from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from models.tracking import EventType, SessionEvent, utc_now

_OPENING_EVENTS = (EventType.START, EventType.RESUME)
_CLOSING_EVENTS = (EventType.PAUSE, EventType.STOP)
_ONE_MS = timedelta(milliseconds=1)


def _to_ms(delta: timedelta) -> int:
    # Clock skew between writers can produce negative spans
    if delta <= timedelta(0):
        return 0
    return delta // _ONE_MS


def sort_events(events: Iterable[SessionEvent]) -> List[SessionEvent]:
    """Order events by timestamp, keeping insertion order for equal timestamps"""
    return sorted(events, key=lambda event: event.timestamp)


def compute_duration(events: Iterable[SessionEvent], reference_time: Optional[datetime] = None) -> int:
    """
    Compute the active duration of a session in milliseconds.

    Start/Resume open an active interval, Pause/Stop close it. An interval
    still open after the last event is closed at `reference_time`, which
    defaults to now. Malformed sequences never raise: a closing event with no
    open interval contributes nothing and a repeated opening event restarts
    the interval.

    Args:
        events: Session events in any order
        reference_time: End of a still-running interval

    Returns:
        Non-negative duration in milliseconds
    """
    active_since: Optional[datetime] = None
    total = 0

    for event in sort_events(events):
        if event.event_type in _OPENING_EVENTS:
            active_since = event.timestamp
        elif event.event_type in _CLOSING_EVENTS:
            if active_since is not None:
                total += _to_ms(event.timestamp - active_since)
                active_since = None

    if active_since is not None:
        if reference_time is None:
            reference_time = utc_now()
        total += _to_ms(reference_time - active_since)

    return total


def last_event_time(events: Iterable[SessionEvent]) -> Optional[datetime]:
    """Latest event timestamp, or None for an empty log"""
    timestamps = [event.timestamp for event in events]
    return max(timestamps) if timestamps else None


def first_start_time(events: Iterable[SessionEvent]) -> Optional[datetime]:
    starts = [event.timestamp for event in events if event.event_type is EventType.START]
    return min(starts) if starts else None
