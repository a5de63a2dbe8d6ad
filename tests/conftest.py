"""Test fixtures and configuration."""

import asyncio
import logging
import os
import sys

import pytest
import pytest_asyncio
import structlog
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

# Settings are read at import time, so the environment must be ready first
os.environ["ENVIRONMENT"] = "testing"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key-with-enough-length-for-hs256"
# Cheapest bcrypt cost keeps the suite fast; cost 10 is asserted explicitly
os.environ["BCRYPT_ROUNDS"] = "4"

from users_api.logger import get_logger  # noqa: E402

logger = get_logger(__name__)


# --- Structlog Configuration for Tests ---
@pytest.fixture(autouse=True, scope="session")
def configure_structlog_for_tests():
    """Configure structlog for proper capsys capture in tests."""
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.format_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ]

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=structlog.dev.ConsoleRenderer(),
        foreign_pre_chain=processors[:-1],
    )

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.DEBUG)

    yield

    structlog.reset_defaults()


@pytest_asyncio.fixture(scope="function")
async def db_engine(tmp_path):
    """Create a throwaway SQLite database with the full schema.

    Function-scoped: each test gets its own database file, so tests can
    commit freely without cleanup.
    """
    from users_api.database import Base
    from users_api.models import User  # noqa: F401

    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        echo=False,
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    try:
        await asyncio.wait_for(engine.dispose(), timeout=10.0)
    except asyncio.TimeoutError:
        logger.error("Engine disposal timed out - connections may be leaked")


@pytest_asyncio.fixture(scope="function")
async def session_maker(db_engine):
    """Route the application's ``get_db`` dependency to the test database."""
    from users_api import database

    maker = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    previous = database.set_test_session_maker(maker)
    yield maker
    database.set_test_session_maker(previous)


@pytest_asyncio.fixture(scope="function")
async def db(session_maker):
    """Session for arranging and inspecting test data."""
    async with session_maker() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def test_user(db):
    """A committed user whose password is ``tests.factories.DEFAULT_PASSWORD``."""
    from tests.factories import UserFactory

    return await UserFactory.create_async(
        db,
        email="owner@example.com",
        first_name="Olive",
        last_name="Owner",
    )


@pytest.fixture
def auth_headers():
    """Build an Authorization header for a user."""
    from users_api.security import create_access_token

    def _headers(user) -> dict[str, str]:
        token = create_access_token(data={"id": user.id, "email": user.email})
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest_asyncio.fixture(scope="function")
async def public_client(session_maker):
    """Create async test client without auth headers."""
    from users_api.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture(scope="function")
async def client(session_maker, test_user, auth_headers):
    """Create async test client authenticated as ``test_user``."""
    from users_api.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        headers=auth_headers(test_user),
    ) as client:
        yield client
