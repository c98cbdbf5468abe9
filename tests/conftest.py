"""
Test infrastructure for the Guestbook API.

Strategy
--------
- SQLite in-memory via aiosqlite; StaticPool keeps every session on the
  one connection that owns the in-memory database.
- The app's get_db dependency is overridden so requests use the test
  session factory, committing through guestbook.database.commit so
  after-commit callbacks still run.
- Tables are created before and dropped after each test.
- Redis is disabled by setting cache._redis = None; the CacheManager
  treats that as "always miss, never store".
- SECRET_KEY must be in the environment before guestbook.config is
  imported, because the session issuer refuses to run without one.
"""
import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-that-is-long-enough-for-hs256")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from guestbook.cache import cache
from guestbook.config import settings
from guestbook.database import Base, commit, get_db, rollback
from guestbook.main import app
from guestbook.services import visitor_service

# ---------------------------------------------------------------------------
# Test database engine — SQLite in-memory with aiosqlite
# ---------------------------------------------------------------------------

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine_test = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

async_session_test = async_sessionmaker(
    engine_test,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def override_get_db():
    async with async_session_test() as session:
        try:
            yield session
            await commit(session)
        except Exception:
            await rollback(session)
            raise


app.dependency_overrides[get_db] = override_get_db


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after to guarantee isolation."""
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def moderation_policy(monkeypatch):
    """Default every test to moderated comments; tests flip it explicitly."""
    monkeypatch.setattr(settings, "AUTO_APPROVE_COMMENTS", False)


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    """A live AsyncSession for seeding data or asserting ORM state directly."""
    async with async_session_test() as session:
        yield session


@pytest_asyncio.fixture
async def async_client() -> AsyncClient:
    """httpx.AsyncClient wired to the app via ASGITransport, Redis disabled."""
    cache._redis = None
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def promote():
    """
    Return a coroutine function that sets a visitor's role by email and
    commits, the same way the promote_admin script does.
    """
    async def _promote(email: str, role: str = "admin") -> dict:
        async with async_session_test() as session:
            visitor = await visitor_service.set_role(session, email, role)
            await session.commit()
        return visitor

    return _promote


@pytest.fixture
def session_factory():
    """The test async_sessionmaker, for code that opens its own sessions."""
    return async_session_test
