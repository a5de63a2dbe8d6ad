"""Async engine, session factory and the ``get_db`` request dependency."""

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy import MetaData
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from users_api.config import settings

# Matches the index and constraint names emitted by the Alembic revisions
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=NAMING_CONVENTION)


def engine_options(database_url: str) -> dict[str, Any]:
    """Connection pool settings for ``database_url``.

    SQLite (aiosqlite) picks its own pool class and rejects the sizing
    arguments, so it gets none.
    """
    if make_url(database_url).get_backend_name() == "sqlite":
        return {}
    return {
        "pool_pre_ping": True,
        "pool_size": 10,
        "max_overflow": 20,
        "pool_recycle": 3600,  # seconds
    }


def alembic_safe_url(database_url: str) -> str:
    """Escape ``%`` so Alembic's configparser-backed options keep the URL intact."""
    return database_url.replace("%", "%%")


engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    **engine_options(settings.database_url),
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

# Set by the test suite to point every request at a throwaway database
_test_session_maker: async_sessionmaker[AsyncSession] | None = None


def set_test_session_maker(
    maker: async_sessionmaker[AsyncSession] | None,
) -> async_sessionmaker[AsyncSession] | None:
    """Swap the session factory used by ``get_db``.

    Returns the factory that was installed before, so callers can restore it.
    """
    global _test_session_maker
    previous = _test_session_maker
    _test_session_maker = maker
    return previous


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield one session per request.

    Work left uncommitted when the handler raises is rolled back before the
    session is returned to the pool.
    """
    maker = _test_session_maker or async_session_maker
    async with maker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Prepare the schema at startup.

    Production schemas come from ``alembic upgrade head``; only
    ``DATABASE_AUTO_CREATE`` deployments (local SQLite) build tables here.
    """
    from users_api.logger import get_logger

    logger = get_logger(__name__)

    if not settings.database_auto_create:
        logger.info("Schema managed by Alembic migrations", auto_create=False)
        return

    import users_api.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Schema created from model metadata", auto_create=True, tables=sorted(Base.metadata.tables))
