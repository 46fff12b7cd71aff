import asyncio

import pytest

from models.tracking import EventType, SessionStatus
from services.errors import ConflictError, InvalidStateError, NotFoundError

from factories import at


@pytest.mark.asyncio
async def test_create_session_records_start_event(store):
    session = await store.create_session("u1", "g1", at(0))

    assert session.status is SessionStatus.ACTIVE
    events = await store.list_events(session.id)
    assert [e.event_type for e in events] == [EventType.START]
    assert events[0].timestamp == at(0)
    assert (await store.find_open_session("u1", "g1")).id == session.id


@pytest.mark.asyncio
async def test_second_open_session_conflicts(store):
    await store.create_session("u1", "g1", at(0))

    with pytest.raises(ConflictError):
        await store.create_session("u1", "g1", at(10))

    # Other guilds and users are independent
    await store.create_session("u1", "g2", at(10))
    await store.create_session("u2", "g1", at(10))


@pytest.mark.asyncio
async def test_concurrent_creates_yield_one_open_session(store):
    results = await asyncio.gather(
        *(store.create_session("u1", "g1", at(i)) for i in range(5)),
        return_exceptions=True
    )

    created = [r for r in results if not isinstance(r, Exception)]
    assert len(created) == 1
    assert all(isinstance(r, ConflictError) for r in results if isinstance(r, Exception))
    assert len(await store.list_open_sessions("g1")) == 1


@pytest.mark.asyncio
async def test_append_event_follows_state_machine(store):
    session = await store.create_session("u1", "g1", at(0))

    paused = await store.append_event(session.id, EventType.PAUSE, at(1000))
    assert paused.status is SessionStatus.PAUSED

    with pytest.raises(InvalidStateError):
        await store.append_event(session.id, EventType.PAUSE, at(1500))

    resumed = await store.append_event(session.id, EventType.RESUME, at(2000))
    assert resumed.status is SessionStatus.ACTIVE

    with pytest.raises(InvalidStateError):
        await store.append_event(session.id, EventType.RESUME, at(2500))

    stopped = await store.append_event(session.id, EventType.STOP, at(3000))
    assert stopped.status is SessionStatus.COMPLETED
    assert await store.find_open_session("u1", "g1") is None


@pytest.mark.asyncio
async def test_completed_session_rejects_everything(store):
    session = await store.create_session("u1", "g1", at(0))
    await store.append_event(session.id, EventType.STOP, at(1000))

    for event_type in EventType:
        with pytest.raises(InvalidStateError):
            await store.append_event(session.id, event_type, at(2000))

    assert len(await store.list_events(session.id)) == 2


@pytest.mark.asyncio
async def test_start_is_never_appended(store):
    session = await store.create_session("u1", "g1", at(0))
    with pytest.raises(InvalidStateError):
        await store.append_event(session.id, EventType.START, at(10))


@pytest.mark.asyncio
async def test_append_to_unknown_session(store):
    with pytest.raises(NotFoundError):
        await store.append_event("missing", EventType.STOP, at(0))


@pytest.mark.asyncio
async def test_listing_queries(store):
    first = await store.create_session("u2", "g1", at(0))
    second = await store.create_session("u1", "g1", at(0))
    await store.create_session("u3", "g2", at(0))
    await store.append_event(first.id, EventType.STOP, at(100))
    again = await store.create_session("u2", "g1", at(200))

    open_ids = [s.id for s in await store.list_open_sessions("g1")]
    assert open_ids == [second.id, again.id]

    history = await store.list_sessions_for_user("u2", "g1")
    assert [s.id for s in history] == [first.id, again.id]

    assert await store.list_guild_user_ids("g1") == ["u2", "u1"]
    assert await store.get_session("missing") is None


@pytest.mark.asyncio
async def test_returned_sessions_are_copies(store):
    session = await store.create_session("u1", "g1", at(0))
    session.status = SessionStatus.COMPLETED

    assert (await store.get_session(session.id)).status is SessionStatus.ACTIVE
