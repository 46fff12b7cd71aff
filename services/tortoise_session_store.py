"""
Tortoise Session Store
Persistent session store backed by Tortoise ORM
"""

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import List, Optional

from tortoise.exceptions import BaseORMException
from tortoise.transactions import in_transaction

from models.orm import SessionEventRecord, SessionRecord
from models.tracking import (
    OPEN_STATUSES,
    EventType,
    Session,
    SessionEvent,
    SessionStatus,
    new_id,
)
from services.errors import ConflictError, NotFoundError, StorageError
from services.session_store import SessionStore, resolve_transition

logger = logging.getLogger("onoff-tracker")


@contextmanager
def _storage_guard(operation: str):
    """Translate ORM and driver failures into StorageError"""
    try:
        yield
    except BaseORMException as e:
        logger.error(f"Storage failure during {operation}: {e}")
        raise StorageError(f"{operation} failed: {e}") from e


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_session(record: SessionRecord) -> Session:
    return Session(
        id=record.id,
        user_id=record.user_id,
        guild_id=record.guild_id,
        status=SessionStatus(record.status),
        created_at=_aware(record.created_at),
        updated_at=_aware(record.updated_at),
    )


def _to_event(record: SessionEventRecord) -> SessionEvent:
    return SessionEvent(
        id=record.id,
        session_id=record.session_id,
        event_type=EventType(record.event_type),
        timestamp=_aware(record.timestamp),
        created_at=_aware(record.created_at),
    )


class TortoiseSessionStore(SessionStore):
    """
    Session store persisting to the `sessions` and `session_events` tables.

    Tortoise must already be initialised by the caller. Every multi-row write
    runs in a single transaction so an event is never recorded without its
    status change.
    """

    async def _find_open_record(self, user_id: str, guild_id: str) -> Optional[SessionRecord]:
        return await SessionRecord.filter(
            user_id=str(user_id),
            guild_id=str(guild_id),
            status__in=list(OPEN_STATUSES),
        ).order_by("-created_at").first()

    async def find_open_session(self, user_id: str, guild_id: str) -> Optional[Session]:
        with _storage_guard("find_open_session"):
            record = await self._find_open_record(user_id, guild_id)
        return _to_session(record) if record else None

    async def create_session(self, user_id: str, guild_id: str, start_timestamp: datetime) -> Session:
        async with self._key_locks.hold(self._pair_key(user_id, guild_id)):
            with _storage_guard("create_session"):
                existing = await self._find_open_record(user_id, guild_id)
                if existing:
                    raise ConflictError(user_id, guild_id, existing.id)

                async with in_transaction() as conn:
                    record = await SessionRecord.create(
                        id=new_id(),
                        user_id=str(user_id),
                        guild_id=str(guild_id),
                        status=SessionStatus.ACTIVE,
                        using_db=conn,
                    )
                    await SessionEventRecord.create(
                        id=new_id(),
                        session_id=record.id,
                        event_type=EventType.START,
                        timestamp=start_timestamp,
                        using_db=conn,
                    )

        logger.info(f"Session created: {record.id} for user {user_id} in guild {guild_id}")
        return _to_session(record)

    async def append_event(self, session_id: str, event_type: EventType, timestamp: datetime) -> Session:
        with _storage_guard("append_event"):
            record = await SessionRecord.get_or_none(id=session_id)
        if record is None:
            raise NotFoundError(session_id)

        async with self._key_locks.hold(self._pair_key(record.user_id, record.guild_id)):
            with _storage_guard("append_event"):
                # Another writer may have moved the session while we waited
                await record.refresh_from_db(fields=["status", "updated_at"])
                next_status = resolve_transition(_to_session(record), event_type)

                async with in_transaction() as conn:
                    await SessionEventRecord.create(
                        id=new_id(),
                        session_id=session_id,
                        event_type=EventType(event_type),
                        timestamp=timestamp,
                        using_db=conn,
                    )
                    record.status = next_status
                    await record.save(using_db=conn, update_fields=["status", "updated_at"])

        logger.info(f"Session {session_id}: {EventType(event_type).value} -> {next_status.value}")
        return _to_session(record)

    async def get_session(self, session_id: str) -> Optional[Session]:
        with _storage_guard("get_session"):
            record = await SessionRecord.get_or_none(id=session_id)
        return _to_session(record) if record else None

    async def list_events(self, session_id: str) -> List[SessionEvent]:
        with _storage_guard("list_events"):
            records = await SessionEventRecord.filter(session_id=session_id).order_by("timestamp", "created_at")
        return sorted((_to_event(r) for r in records), key=lambda e: e.timestamp)

    async def list_open_sessions(self, guild_id: str) -> List[Session]:
        with _storage_guard("list_open_sessions"):
            records = await SessionRecord.filter(
                guild_id=str(guild_id), status__in=list(OPEN_STATUSES)
            ).order_by("created_at")
        return [_to_session(r) for r in records]

    async def list_sessions_for_user(self, user_id: str, guild_id: str) -> List[Session]:
        with _storage_guard("list_sessions_for_user"):
            records = await SessionRecord.filter(
                user_id=str(user_id), guild_id=str(guild_id)
            ).order_by("created_at")
        return [_to_session(r) for r in records]

    async def list_guild_user_ids(self, guild_id: str) -> List[str]:
        with _storage_guard("list_guild_user_ids"):
            user_ids = await SessionRecord.filter(guild_id=str(guild_id)).order_by(
                "created_at"
            ).values_list("user_id", flat=True)
        return list(dict.fromkeys(user_ids))
