"""
Live Status Service
Keeps a per-guild message listing everyone currently tracking time
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import List

import discord

from models.tracking import OpenSessionSnapshot
from services.errors import StorageError
from services.guild_settings_service import GuildSettingsService
from services.stats_service import StatsService
from utils.message_utils import MAX_MESSAGE_LENGTH, format_duration

logger = logging.getLogger("onoff-tracker")


@dataclass
class LiveStatusConfig:
    """Configuration for the live status message"""
    refresh_interval_seconds: int = 60


def render_live_status(snapshots: List[OpenSessionSnapshot], prefix: str = "!") -> str:
    """Build the live status message body"""
    if not snapshots:
        return f"**Live tracking**\nNobody is tracking time right now. Use `{prefix}start` to begin!"

    count = len(snapshots)
    lines = [f"**Live tracking** - {count} user{'s' if count != 1 else ''} tracking time", ""]
    for snapshot in snapshots:
        state = "Paused" if snapshot.is_paused else "Active"
        marker = "⏸️" if snapshot.is_paused else "🟢"
        lines.append(
            f"{marker} <@{snapshot.session.user_id}> - {state} - {format_duration(snapshot.current_duration_ms)}"
        )

    text = "\n".join(lines)
    if len(text) > MAX_MESSAGE_LENGTH:
        text = text[:MAX_MESSAGE_LENGTH - 4].rsplit("\n", 1)[0] + "\n..."
    return text


class LiveStatusService:
    """Edits (or recreates) the live status message of each configured guild"""

    def __init__(self,
                 bot,
                 stats_service: StatsService,
                 settings_service: GuildSettingsService,
                 config: LiveStatusConfig = None,
                 command_prefix: str = "!"):
        self.bot = bot
        self.stats_service = stats_service
        self.settings_service = settings_service
        self.config = config or LiveStatusConfig()
        self.command_prefix = command_prefix
        self._refresh_task = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def start(self):
        """Start the periodic refresh task"""
        self._running = True
        self._refresh_task = asyncio.create_task(self._refresh_loop())
        logger.info("Live status service started")

    async def stop(self):
        """Stop the periodic refresh task"""
        self._running = False
        if self._refresh_task:
            self._refresh_task.cancel()
            try:
                await self._refresh_task
            except asyncio.CancelledError:
                pass
        logger.info("Live status service stopped")

    async def _refresh_loop(self):
        while self._running:
            try:
                await asyncio.sleep(self.config.refresh_interval_seconds)
                await self.refresh_all()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in live status loop: {e}")

    async def refresh_all(self):
        for guild in self.bot.guilds:
            await self.refresh(str(guild.id))

    async def _resolve_channel(self, channel_id: str):
        channel = self.bot.get_channel(int(channel_id))
        if channel is None:
            channel = await self.bot.fetch_channel(int(channel_id))
        return channel

    async def refresh(self, guild_id: str):
        """Update the live message of a guild; failures are logged, never raised"""
        try:
            settings = await self.settings_service.get_settings(guild_id)
            if not settings.live_channel_id:
                return

            channel = await self._resolve_channel(settings.live_channel_id)
            snapshots = await self.stats_service.get_open_sessions(guild_id)
            content = render_live_status(snapshots, self.command_prefix)

            if settings.live_message_id:
                try:
                    message = await channel.fetch_message(int(settings.live_message_id))
                    await message.edit(content=content)
                    return
                except discord.NotFound:
                    logger.warning(f"Live message {settings.live_message_id} in guild {guild_id} is gone, recreating")

            message = await channel.send(content)
            await self.settings_service.update_settings(guild_id, live_message_id=message.id)
        except (discord.HTTPException, StorageError) as e:
            logger.error(f"Could not update live status for guild {guild_id}: {e}")

    async def remove(self, guild_id: str):
        """Delete the live message of a guild and forget its id"""
        settings = await self.settings_service.get_settings(guild_id)
        if settings.live_channel_id and settings.live_message_id:
            try:
                channel = await self._resolve_channel(settings.live_channel_id)
                message = await channel.fetch_message(int(settings.live_message_id))
                await message.delete()
            except discord.HTTPException as e:
                logger.warning(f"Could not delete live message in guild {guild_id}: {e}")
        await self.settings_service.update_settings(guild_id, live_message_id=None)
