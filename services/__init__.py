"""
Services package for On-Off Tracker
"""

from services.session_service import SessionService, TrackingAction
from services.session_store import SessionStore, InMemorySessionStore
from services.stats_service import StatsService
from services.concurrency_manager import (
    KeyedLock,
    RateLimiter,
    RateLimitConfig,
    UserRateLimiter
)

__all__ = [
    "SessionService",
    "TrackingAction",
    "SessionStore",
    "InMemorySessionStore",
    "StatsService",
    "KeyedLock",
    "RateLimiter",
    "RateLimitConfig",
    "UserRateLimiter"
]
