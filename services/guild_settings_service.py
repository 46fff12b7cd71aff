"""
Guild Settings Service
Per-guild tracking channel restriction, live channel and notification toggles
"""

import logging
from dataclasses import dataclass, fields
from typing import Optional

from tortoise.exceptions import BaseORMException

from models.orm import GuildSettingsRecord
from services.errors import StorageError

logger = logging.getLogger("onoff-tracker")


@dataclass
class GuildSettings:
    """Settings of one guild; defaults apply to guilds that never configured anything"""
    guild_id: str
    tracking_channel_id: Optional[str] = None
    live_channel_id: Optional[str] = None
    live_message_id: Optional[str] = None
    show_online_messages: bool = True
    show_offline_messages: bool = True

    def is_tracking_allowed(self, channel_id) -> bool:
        """Tracking commands are allowed everywhere unless a tracking channel is set"""
        if not self.tracking_channel_id:
            return True
        return str(channel_id) == self.tracking_channel_id


_UPDATABLE = {f.name for f in fields(GuildSettings)} - {"guild_id"}


class GuildSettingsService:
    """Reads and writes guild settings through Tortoise ORM"""

    async def get_settings(self, guild_id: str) -> GuildSettings:
        try:
            record = await GuildSettingsRecord.get_or_none(guild_id=str(guild_id))
        except BaseORMException as e:
            logger.error(f"Failed to load settings for guild {guild_id}: {e}")
            raise StorageError(f"get_settings failed: {e}") from e

        if record is None:
            return GuildSettings(guild_id=str(guild_id))
        return GuildSettings(
            guild_id=record.guild_id,
            tracking_channel_id=record.tracking_channel_id,
            live_channel_id=record.live_channel_id,
            live_message_id=record.live_message_id,
            show_online_messages=record.show_online_messages,
            show_offline_messages=record.show_offline_messages,
        )

    async def update_settings(self, guild_id: str, **changes) -> GuildSettings:
        """
        Create or update the settings of a guild.

        Channel and message ids are stored as strings; pass None to clear one.

        Raises:
            ValueError: If an unknown setting is given
            StorageError: If the database write fails
        """
        unknown = set(changes) - _UPDATABLE
        if unknown:
            raise ValueError(f"Unknown guild settings: {', '.join(sorted(unknown))}")

        values = {
            key: (str(value) if key.endswith("_id") and value is not None else value)
            for key, value in changes.items()
        }
        try:
            record, created = await GuildSettingsRecord.get_or_create(
                guild_id=str(guild_id), defaults=values
            )
            if not created and values:
                record.update_from_dict(values)
                await record.save()
        except BaseORMException as e:
            logger.error(f"Failed to update settings for guild {guild_id}: {e}")
            raise StorageError(f"update_settings failed: {e}") from e

        logger.info(f"Updated settings for guild {guild_id}: {values}")
        return await self.get_settings(guild_id)

    async def is_tracking_allowed(self, guild_id: str, channel_id) -> bool:
        settings = await self.get_settings(guild_id)
        return settings.is_tracking_allowed(channel_id)
