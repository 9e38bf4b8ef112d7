"""Database engine and session management."""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy import MetaData, event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from tycoon.config import LOGGER, SETTINGS


def create_engine(url: str) -> AsyncEngine:
    """Create an async engine; SQLite connections get foreign keys enforced."""

    engine = create_async_engine(url, echo=False, future=True)
    if engine.dialect.name == "sqlite":

        @event.listens_for(engine.sync_engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):  # pragma: no cover - driver hook
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


engine: AsyncEngine = create_engine(SETTINGS.DATABASE_URL)
async_session_maker = create_session_maker(engine)


async def init_models(metadata: MetaData, bind: Optional[AsyncEngine] = None) -> None:
    """Create database tables if they do not exist."""

    async with (bind or engine).begin() as conn:
        await conn.run_sync(metadata.create_all)


@asynccontextmanager
async def session_scope(
    session_maker: Optional[async_sessionmaker[AsyncSession]] = None,
) -> AsyncIterator[AsyncSession]:
    """Provide a transactional scope for database work with automatic commit/rollback."""

    async with (session_maker or async_session_maker)() as session:
        try:
            async with session.begin():
                yield session
        except Exception:
            LOGGER.debug("Session rollback due to error.")
            raise
