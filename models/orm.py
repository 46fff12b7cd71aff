"""
ORM Models
Tortoise tables backing the persistent session store and guild settings
"""

from tortoise import fields
from tortoise.models import Model

from models.tracking import EventType, SessionStatus


class SessionRecord(Model):
    id = fields.CharField(max_length=36, primary_key=True)
    user_id = fields.CharField(max_length=32)
    guild_id = fields.CharField(max_length=32)
    status = fields.CharEnumField(SessionStatus, max_length=16, default=SessionStatus.ACTIVE)
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "sessions"
        indexes = (("user_id", "guild_id", "status"), ("guild_id", "status"))


class SessionEventRecord(Model):
    id = fields.CharField(max_length=36, primary_key=True)
    session = fields.ForeignKeyField(
        'models.SessionRecord', related_name='events'
    )
    event_type = fields.CharEnumField(EventType, max_length=16)
    timestamp = fields.DatetimeField()
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "session_events"
        indexes = (("session_id", "timestamp"),)


class GuildSettingsRecord(Model):
    id = fields.IntField(primary_key=True)
    guild_id = fields.CharField(max_length=32, unique=True)
    tracking_channel_id = fields.CharField(max_length=32, null=True)
    live_channel_id = fields.CharField(max_length=32, null=True)
    live_message_id = fields.CharField(max_length=32, null=True)
    show_online_messages = fields.BooleanField(default=True)
    show_offline_messages = fields.BooleanField(default=True)
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "guild_settings"
