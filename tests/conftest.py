"""
Shared pytest configuration for the CoolCare test suite.

Environment variables must be set before anything under ``app`` is imported:
settings are read once at import time.
"""
import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-that-is-at-least-32-characters")
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402

from app.infrastructure.database.base import engine_options, get_db, init_models  # noqa: E402
from app.main import create_app  # noqa: E402
from app.services.security.audit import SecurityEventLogger  # noqa: E402
from app.services.security.rate_limiter import RateLimiter  # noqa: E402

pytest_plugins = [
    "tests.fixtures.clock",
    "tests.fixtures.users",
]


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """Fresh SQLite database per test."""
    url = f"sqlite+aiosqlite:///{tmp_path / 'coolcare-test.db'}"
    engine = create_async_engine(url, **engine_options(url))
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def event_logger(session_factory, clock) -> SecurityEventLogger:
    return SecurityEventLogger(session_factory, clock)


@pytest.fixture
def rate_limiter(clock) -> RateLimiter:
    return RateLimiter(clock=clock)


@pytest.fixture
def app(session_factory, clock, rate_limiter):
    """Application wired to the test database and manual clock."""
    application = create_app(
        clock=clock,
        session_factory=session_factory,
        rate_limiter=rate_limiter,
    )

    async def override_get_db():
        async with session_factory() as session:
            yield session

    application.dependency_overrides[get_db] = override_get_db
    return application


@pytest_asyncio.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
