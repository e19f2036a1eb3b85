"""
School Admin Backend — Database Engine & Session Management
=============================================================

What:  Async SQLAlchemy engine, session factory and transactional scope for
       the block store.
How:   create_app() builds one engine per application (no import-time
       engine). The store opens a short session per operation through
       session_scope(), which commits on success and rolls back on error.

Connection Pooling Strategy (PostgreSQL):
    pool_size=20, max_overflow=10, pool_pre_ping, pool_recycle=3600.
    SQLite URLs skip the pool options; in-memory SQLite uses one shared
    connection (StaticPool) so every session sees the same database.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from school_admin.config import Settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all ORM models; its metadata drives Alembic."""
    pass


def build_engine(settings: Settings) -> AsyncEngine:
    url = settings.database_url
    echo = settings.log_level == "DEBUG"

    if url.startswith("sqlite"):
        in_memory = ":memory:" in url or url.rstrip("/").endswith("sqlite+aiosqlite:")
        if in_memory:
            return create_async_engine(
                url,
                echo=echo,
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
            )
        return create_async_engine(url, echo=echo)

    return create_async_engine(
        url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=settings.db_pool_pre_ping,
        pool_recycle=3600,
        echo=echo,
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    # expire_on_commit=False: rows stay readable after the scope commits
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@asynccontextmanager
async def session_scope(session_factory: async_sessionmaker) -> AsyncIterator[AsyncSession]:
    """
    One unit of work: commit on success, roll back and re-raise on error,
    always close.
    """
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_models(engine: AsyncEngine) -> None:
    """Creates missing tables. Used when DB_AUTO_CREATE is set and in tests."""
    # registers the models on Base.metadata
    from school_admin.models import block  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def ping(engine: AsyncEngine) -> bool:
    """SELECT 1 against the engine; raises when the database is unreachable."""
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    return True


async def wait_for_database(engine: AsyncEngine, settings: Settings) -> None:
    """
    Pings until the database answers, for containers that start before it.

    Retries connection-level failures with exponential backoff plus jitter;
    the last error is re-raised once ``db_connect_attempts`` is exhausted.
    """
    retrying = AsyncRetrying(
        retry=retry_if_exception_type((OSError, SQLAlchemyError)),
        stop=stop_after_attempt(settings.db_connect_attempts),
        wait=wait_exponential_jitter(
            initial=settings.db_connect_min_wait,
            max=settings.db_connect_max_wait,
            jitter=settings.db_connect_min_wait,
        ),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async for attempt in retrying:
        with attempt:
            await ping(engine)


async def dispose_engine(engine: AsyncEngine) -> None:
    """Closes every pooled connection; called on application shutdown."""
    await engine.dispose()
