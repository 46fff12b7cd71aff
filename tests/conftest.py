import pytest
import pytest_asyncio
from tortoise import Tortoise

from services.session_service import SessionService
from services.session_store import InMemorySessionStore
from services.stats_service import StatsService


@pytest.fixture
def store():
    return InMemorySessionStore()


@pytest.fixture
def session_service(store):
    return SessionService(store)


@pytest.fixture
def stats_service(store):
    return StatsService(store)


@pytest_asyncio.fixture
async def db():
    await Tortoise.init(
        db_url="sqlite://:memory:",
        modules={"models": ["models.orm"]},
        use_tz=True,
        timezone="UTC"
    )
    await Tortoise.generate_schemas()
    yield
    await Tortoise.close_connections()
