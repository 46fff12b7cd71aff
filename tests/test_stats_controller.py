from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from controllers.stats_controller import create_app
from models.tracking import LeaderboardEntry, OpenSessionSnapshot, Session, UserStats
from services.errors import StorageError
from services.stats_service import StatsService

from factories import at


@pytest.fixture
def stats_service():
    service = MagicMock(spec=StatsService)
    service.get_leaderboard = AsyncMock(return_value=[])
    service.get_user_stats = AsyncMock()
    service.get_open_sessions = AsyncMock(return_value=[])
    return service


@pytest.fixture
def client(stats_service):
    app = create_app(stats_service, bot_status=lambda: {"bot_ready": True, "bot_enabled": True})
    return TestClient(app)


def test_health_reports_bot_state(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {
        "status": "healthy",
        "service": "onoff-tracker",
        "bot_ready": True,
        "bot_enabled": True,
    }


def test_ready_without_bot(stats_service):
    client = TestClient(create_app(stats_service))

    response = client.get("/ready")
    assert response.json() == {"status": "ready", "bot_ready": False, "bot_enabled": False}


def test_leaderboard(client, stats_service):
    stats_service.get_leaderboard.return_value = [
        LeaderboardEntry(user_id="1", total_active_time_ms=5000, sessions_count=2)
    ]

    response = client.get("/api/guilds/g1/leaderboard", params={"limit": 5})

    assert response.status_code == 200
    stats_service.get_leaderboard.assert_called_once_with("g1", 5)
    assert response.json() == {
        "guild_id": "g1",
        "entries": [{"user_id": "1", "total_active_time_ms": 5000, "sessions_count": 2}],
    }


def test_leaderboard_rejects_bad_limit(client, stats_service):
    response = client.get("/api/guilds/g1/leaderboard", params={"limit": 0})

    assert response.status_code == 422
    stats_service.get_leaderboard.assert_not_called()


def test_user_stats(client, stats_service):
    stats_service.get_user_stats.return_value = UserStats(
        user_id="u1", guild_id="g1", total_active_time_ms=1500,
        sessions_count=1, last_activity_at=at(0)
    )

    response = client.get("/api/guilds/g1/users/u1/stats")

    stats_service.get_user_stats.assert_called_once_with("u1", "g1")
    body = response.json()
    assert body["total_active_time_ms"] == 1500
    assert body["last_activity_at"] == at(0).isoformat()


def test_open_sessions(client, stats_service):
    session = Session(user_id="u1", guild_id="g1", created_at=at(0), updated_at=at(0), id="s1")
    stats_service.get_open_sessions.return_value = [
        OpenSessionSnapshot(session=session, current_duration_ms=4000, started_at=at(0))
    ]

    response = client.get("/api/guilds/g1/sessions/open")

    sessions = response.json()["sessions"]
    assert len(sessions) == 1
    assert sessions[0]["session"]["id"] == "s1"
    assert sessions[0]["session"]["status"] == "ACTIVE"
    assert sessions[0]["current_duration_ms"] == 4000


def test_storage_failure_is_503(client, stats_service):
    stats_service.get_open_sessions.side_effect = StorageError("database is locked")

    response = client.get("/api/guilds/g1/sessions/open")

    assert response.status_code == 503
    assert response.json()["detail"] == StorageError.user_message
