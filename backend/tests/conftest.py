"""Shared test fixtures: in-memory SQLite DB, async session, controller, test client."""

import random
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from penny.dependencies import get_controller, get_db, get_scheduler
from penny.main import app
from penny.models.base import Base
import penny.models  # noqa: F401
from penny.services.intervention_controller import ControllerConfig, InterventionController
from penny.services.notifications import InMemoryNotificationBackend
from penny.services.phrasing import MessageComposer

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

test_engine = create_async_engine(TEST_DATABASE_URL, echo=False)

# Monday
FIXED_NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


# Enable foreign key enforcement in SQLite (off by default).
@event.listens_for(test_engine.sync_engine, "connect")
def _set_sqlite_pragma(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


test_session_factory = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


class FakeClock:
    """Settable clock for controller tests."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    """Yield a test DB session."""
    async with test_session_factory() as session:
        yield session


@pytest.fixture
def session_factory() -> async_sessionmaker[AsyncSession]:
    return test_session_factory


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def notifier() -> InMemoryNotificationBackend:
    return InMemoryNotificationBackend()


@pytest.fixture
def controller(clock: FakeClock, notifier: InMemoryNotificationBackend) -> InterventionController:
    """Controller on the test DB with exploration off and a seeded RNG."""
    return InterventionController(
        test_session_factory,
        notifier=notifier,
        composer=MessageComposer(),
        config=ControllerConfig(exploration_rate=0.0),
        clock=clock,
        rng=random.Random(7),
    )


@pytest_asyncio.fixture
async def client(db_session: AsyncSession, controller: InterventionController) -> AsyncClient:
    """Yield an httpx AsyncClient wired to the test DB and test controller."""

    async def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_controller] = lambda: controller
    app.dependency_overrides[get_scheduler] = lambda: None
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
