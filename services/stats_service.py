"""
Stats Service
User totals, guild leaderboards and live views derived from session event logs
"""

import logging
from datetime import datetime
from typing import List, Optional

from models.tracking import (
    LeaderboardEntry,
    OpenSessionSnapshot,
    UserStats,
    utc_now,
)
from services.duration_calculator import (
    compute_duration,
    first_start_time,
    last_event_time,
)
from services.session_store import SessionStore

logger = logging.getLogger("onoff-tracker")


class StatsService:
    """
    Read-only aggregation over the session store.

    Totals are re-derived from the event logs on every call. Reads take no
    locks, so a leaderboard may miss a write that lands while it is built.
    """

    def __init__(self, store: SessionStore):
        self.store = store

    async def get_user_stats(self, user_id: str, guild_id: str, now: Optional[datetime] = None) -> UserStats:
        """
        Aggregate every session of a user in a guild.

        Completed sessions are measured up to their last event, open ones up
        to `now`. Sessions count even when they tracked no time.
        """
        now = now or utc_now()
        stats = UserStats(user_id=str(user_id), guild_id=str(guild_id))

        for session in await self.store.list_sessions_for_user(user_id, guild_id):
            events = await self.store.list_events(session.id)
            last_seen = last_event_time(events)
            reference = now if session.is_open else (last_seen or now)

            stats.total_active_time_ms += compute_duration(events, reference)
            stats.sessions_count += 1
            if last_seen and (stats.last_activity_at is None or last_seen > stats.last_activity_at):
                stats.last_activity_at = last_seen

        return stats

    async def get_leaderboard(self, guild_id: str, limit: int = 10,
                              now: Optional[datetime] = None) -> List[LeaderboardEntry]:
        """
        Rank users of a guild by total active time.

        Users with no tracked time are left out. Equal totals are ordered by
        user id so the ranking is deterministic.
        """
        if limit <= 0:
            return []
        now = now or utc_now()

        entries = []
        for user_id in await self.store.list_guild_user_ids(guild_id):
            stats = await self.get_user_stats(user_id, guild_id, now)
            if stats.total_active_time_ms > 0:
                entries.append(LeaderboardEntry(
                    user_id=user_id,
                    total_active_time_ms=stats.total_active_time_ms,
                    sessions_count=stats.sessions_count,
                ))

        entries.sort(key=lambda e: (-e.total_active_time_ms, e.user_id))
        logger.debug(f"Leaderboard for guild {guild_id}: {len(entries)} ranked users")
        return entries[:limit]

    async def get_open_sessions(self, guild_id: str, now: Optional[datetime] = None) -> List[OpenSessionSnapshot]:
        """Every open session of a guild with its live duration, oldest first"""
        now = now or utc_now()
        snapshots = []
        for session in await self.store.list_open_sessions(guild_id):
            events = await self.store.list_events(session.id)
            snapshots.append(OpenSessionSnapshot(
                session=session,
                current_duration_ms=compute_duration(events, now),
                started_at=first_start_time(events),
            ))
        return snapshots
