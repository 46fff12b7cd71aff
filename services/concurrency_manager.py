"""
Concurrency Manager
Per-key write serialization for session stores and per-user command throttling
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Dict, Hashable

logger = logging.getLogger("onoff-tracker")


class KeyedLock:
    """
    Registry of asyncio locks, one per key.

    Stores use it to serialize writes for a (user_id, guild_id) pair so two
    concurrent starts cannot both create an open session. Entries are dropped
    once nobody holds or waits on them.
    """

    def __init__(self):
        self._locks: Dict[Hashable, asyncio.Lock] = {}
        self._waiters: Dict[Hashable, int] = {}

    @asynccontextmanager
    async def hold(self, key: Hashable):
        """Hold the lock for `key` for the duration of the block"""
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


@dataclass
class RateLimitConfig:
    """Configuration for rate limiting"""
    max_requests_per_second: float = 2
    burst_limit: int = 5


class RateLimiter:
    """Token bucket rate limiter"""

    def __init__(self, config: RateLimitConfig = None):
        self.config = config or RateLimitConfig()
        self.tokens = self.config.burst_limit
        self.last_update = time.monotonic()
        self._lock = asyncio.Lock()

    def _refill(self):
        now = time.monotonic()
        time_passed = now - self.last_update

        tokens_to_add = time_passed * self.config.max_requests_per_second
        self.tokens = min(self.tokens + tokens_to_add, self.config.burst_limit)
        self.last_update = now

    async def acquire(self) -> bool:
        """Acquire a token from the rate limiter"""
        async with self._lock:
            self._refill()

            if self.tokens >= 1:
                self.tokens -= 1
                return True
            return False

    def is_idle(self) -> bool:
        """A full bucket behaves exactly like a fresh one"""
        self._refill()
        return self.tokens >= self.config.burst_limit


class UserRateLimiter:
    """Per-user rate limiter with configurable limits"""

    def __init__(self, default_config: RateLimitConfig = None, cleanup_interval_seconds: float = 300):
        self.default_config = default_config or RateLimitConfig()
        self.cleanup_interval_seconds = cleanup_interval_seconds
        self._user_limits: Dict[str, RateLimitConfig] = {}
        self._limiters: Dict[str, RateLimiter] = {}
        self._last_cleanup = time.monotonic()
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._limiters)

    def get_config_for_user(self, user_id: str) -> RateLimitConfig:
        """Get rate limit config for a user"""
        return self._user_limits.get(user_id, self.default_config)

    async def acquire(self, user_id: str) -> bool:
        """Acquire token for user"""
        async with self._lock:
            if time.monotonic() - self._last_cleanup >= self.cleanup_interval_seconds:
                self._evict_idle()
            limiter = self._limiters.get(user_id)
            if limiter is None:
                limiter = RateLimiter(self.get_config_for_user(user_id))
                self._limiters[user_id] = limiter

        allowed = await limiter.acquire()
        if not allowed:
            logger.warning(f"Rate limit exceeded for user {user_id}")
        return allowed

    def _evict_idle(self) -> int:
        idle = [user_id for user_id, limiter in self._limiters.items() if limiter.is_idle()]
        for user_id in idle:
            del self._limiters[user_id]
        self._last_cleanup = time.monotonic()
        if idle:
            logger.debug(f"Evicted {len(idle)} idle rate limiters")
        return len(idle)

    async def cleanup_idle(self) -> int:
        """Drop buckets that have refilled completely; returns how many were dropped"""
        async with self._lock:
            return self._evict_idle()

    async def set_custom_limit(self, user_id: str, config: RateLimitConfig):
        """Set custom rate limit for a user"""
        async with self._lock:
            self._user_limits[user_id] = config
            self._limiters.pop(user_id, None)
