import pytest

from models.tracking import EventType

from factories import at


async def track(store, user_id, guild_id, start_ms, stop_ms=None):
    session = await store.create_session(user_id, guild_id, at(start_ms))
    if stop_ms is not None:
        await store.append_event(session.id, EventType.STOP, at(stop_ms))
    return session


@pytest.mark.asyncio
async def test_user_stats_sum_completed_and_open_sessions(store, stats_service):
    first = await store.create_session("u1", "g1", at(0))
    await store.append_event(first.id, EventType.PAUSE, at(1000))
    await store.append_event(first.id, EventType.RESUME, at(3000))
    await store.append_event(first.id, EventType.STOP, at(4000))
    await track(store, "u1", "g1", 10000)

    stats = await stats_service.get_user_stats("u1", "g1", now=at(12500))

    assert stats.total_active_time_ms == 2000 + 2500
    assert stats.sessions_count == 2
    assert stats.last_activity_at == at(10000)


@pytest.mark.asyncio
async def test_completed_sessions_do_not_grow(store, stats_service):
    await track(store, "u1", "g1", 0, 1000)

    early = await stats_service.get_user_stats("u1", "g1", now=at(2000))
    late = await stats_service.get_user_stats("u1", "g1", now=at(999999))

    assert early.total_active_time_ms == late.total_active_time_ms == 1000


@pytest.mark.asyncio
async def test_zero_length_sessions_still_count(store, stats_service):
    await track(store, "u1", "g1", 0, 0)

    stats = await stats_service.get_user_stats("u1", "g1", now=at(5000))
    assert stats.sessions_count == 1
    assert stats.total_active_time_ms == 0


@pytest.mark.asyncio
async def test_user_without_sessions(stats_service):
    stats = await stats_service.get_user_stats("nobody", "g1")
    assert stats.sessions_count == 0
    assert stats.total_active_time_ms == 0
    assert stats.last_activity_at is None


@pytest.mark.asyncio
async def test_leaderboard_filters_and_orders(store, stats_service):
    await track(store, "A", "g1", 0, 0)
    await track(store, "B", "g1", 0, 5000)
    await track(store, "C", "g1", 0, 2000)

    board = await stats_service.get_leaderboard("g1", limit=10, now=at(6000))

    assert [e.user_id for e in board] == ["B", "C"]
    assert [e.total_active_time_ms for e in board] == [5000, 2000]
    assert all(e.sessions_count == 1 for e in board)


@pytest.mark.asyncio
async def test_leaderboard_ties_break_by_user_id(store, stats_service):
    await track(store, "zed", "g1", 0, 1000)
    await track(store, "amy", "g1", 0, 1000)
    await track(store, "max", "g1", 0, 3000)

    board = await stats_service.get_leaderboard("g1", now=at(5000))
    assert [e.user_id for e in board] == ["max", "amy", "zed"]


@pytest.mark.asyncio
async def test_leaderboard_limit_and_guild_scope(store, stats_service):
    for i, user in enumerate(["u1", "u2", "u3"]):
        await track(store, user, "g1", 0, (i + 1) * 1000)
    await track(store, "other", "g2", 0, 90000)

    board = await stats_service.get_leaderboard("g1", limit=2, now=at(5000))
    assert [e.user_id for e in board] == ["u3", "u2"]
    assert await stats_service.get_leaderboard("g1", limit=0) == []


@pytest.mark.asyncio
async def test_open_sessions_snapshot(store, stats_service):
    await track(store, "u1", "g1", 0)
    paused = await track(store, "u2", "g1", 1000)
    await store.append_event(paused.id, EventType.PAUSE, at(2000))
    await track(store, "u3", "g1", 0, 10)

    snapshots = await stats_service.get_open_sessions("g1", now=at(4000))

    assert [(s.session.user_id, s.current_duration_ms, s.is_paused) for s in snapshots] == [
        ("u1", 4000, False),
        ("u2", 1000, True),
    ]
