import os
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Force SQLite for tests
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"

from notifier.config import settings
from notifier.database import make_session_factory
from notifier.models import Base, Repository, User
from notifier.services.storage import Storage
from tests.helpers import TEST_ADMIN_TOKEN, create_mock_get_db


@pytest.fixture(scope="session", autouse=True)
def override_settings():
    """Override settings for testing."""
    with patch.object(settings, "database_url", "sqlite+aiosqlite:///:memory:"):
        with patch.object(settings, "admin_token", TEST_ADMIN_TOKEN):
            yield


@pytest.fixture
def mock_db_session():
    """Create a mock database session."""
    mock_session = AsyncMock(spec=AsyncSession)
    mock_session.commit = AsyncMock()
    mock_session.flush = AsyncMock()
    return mock_session


@pytest.fixture
def mock_get_db(mock_db_session):
    return create_mock_get_db(mock_db_session)


@pytest.fixture
def mock_storage():
    return AsyncMock(spec=Storage)


@pytest_asyncio.fixture
async def db_engine():
    """In-memory SQLite engine shared by every session of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return make_session_factory(
        async_sessionmaker(
            bind=db_engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
    )


@pytest_asyncio.fixture
async def user(session_factory) -> User:
    async with session_factory() as db:
        db_user = User(username="octocat@example.com", password="old-hash")
        db.add(db_user)
        await db.flush()
    return db_user


@pytest_asyncio.fixture
async def repository(session_factory, user) -> Repository:
    async with session_factory() as db:
        db_repository = Repository(
            user_id=user.id,
            name="hello-world",
            full_name="octocat/hello-world",
            url="https://github.com/octocat/hello-world",
            stars=0,
            is_private=False,
            webhook_secret="test_webhook_secret",
            webhook_enabled=True,
        )
        db.add(db_repository)
        await db.flush()
    return db_repository
