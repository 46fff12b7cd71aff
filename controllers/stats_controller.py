"""
Stats Controller
Read-only HTTP API over tracking stats, plus health endpoints
"""

import logging
from typing import Callable, Optional

from fastapi import APIRouter, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

from services.errors import StorageError
from services.stats_service import StatsService

logger = logging.getLogger("onoff-tracker")


def create_stats_router(stats_service: StatsService) -> APIRouter:
    """Build the /api/guilds router around a stats service"""
    stats_router = APIRouter(
        prefix="/api/guilds",
        tags=["Stats"]
    )

    @stats_router.get("/{guild_id}/leaderboard")
    async def get_leaderboard(guild_id: str, limit: int = Query(10, ge=1, le=100)):
        """Users ranked by total tracked time"""
        try:
            entries = await stats_service.get_leaderboard(guild_id, limit)
        except StorageError as e:
            logger.error(f"Leaderboard request failed for guild {guild_id}: {e}")
            raise HTTPException(status_code=503, detail=e.user_message)
        return {
            "guild_id": guild_id,
            "entries": [entry.to_dict() for entry in entries]
        }

    @stats_router.get("/{guild_id}/users/{user_id}/stats")
    async def get_user_stats(guild_id: str, user_id: str):
        """Totals for one user"""
        try:
            stats = await stats_service.get_user_stats(user_id, guild_id)
        except StorageError as e:
            logger.error(f"Stats request failed for user {user_id} in guild {guild_id}: {e}")
            raise HTTPException(status_code=503, detail=e.user_message)
        return stats.to_dict()

    @stats_router.get("/{guild_id}/sessions/open")
    async def get_open_sessions(guild_id: str):
        """Sessions currently running or paused"""
        try:
            snapshots = await stats_service.get_open_sessions(guild_id)
        except StorageError as e:
            logger.error(f"Open sessions request failed for guild {guild_id}: {e}")
            raise HTTPException(status_code=503, detail=e.user_message)
        return {
            "guild_id": guild_id,
            "sessions": [snapshot.to_dict() for snapshot in snapshots]
        }

    return stats_router


def create_app(stats_service: StatsService, bot_status: Optional[Callable[[], dict]] = None) -> FastAPI:
    """
    Create the HTTP application.

    Args:
        stats_service: Source of stats for the API routes
        bot_status: Callable reporting the Discord bot state for health checks
    """
    app = FastAPI(
        title="On-Off Tracker",
        description="Health checks and read-only tracking stats"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(create_stats_router(stats_service))

    def current_bot_status() -> dict:
        return bot_status() if bot_status else {"bot_ready": False, "bot_enabled": False}

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "onoff-tracker",
            **current_bot_status()
        }

    @app.get("/ready")
    async def readiness_check():
        """Readiness check endpoint - HTTP server is always ready"""
        return {
            "status": "ready",
            **current_bot_status()
        }

    return app
