#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Database plumbing
=================
One async engine per database URL, created on first use.  PostgreSQL runs
through asyncpg; SQLite (development, tests) through aiosqlite with foreign
keys switched on so page deletion cascades to attachment rows.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
from functools import lru_cache
from typing import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from .config import get_settings


logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------

class Base(DeclarativeBase):
    pass


# -----------------------------------------------------------------------------

def _enable_sqlite_foreign_keys(dbapi_connection, _record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


# -----------------------------------------------------------------------------

@lru_cache
def engine_for(url: str) -> AsyncEngine:
    settings = get_settings()
    options: dict = {"echo": settings.db_echo}
    is_sqlite = make_url(url).get_backend_name() == "sqlite"
    if not is_sqlite:
        options.update(
            pool_pre_ping=True,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
        )
    engine = create_async_engine(url, **options)
    if is_sqlite:
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    logger.debug("Created engine for %s", make_url(url).render_as_string(hide_password=True))
    return engine


@lru_cache
def session_factory(url: str) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine_for(url), expire_on_commit=False, autoflush=False)


# -----------------------------------------------------------------------------

async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session: committed when the handler returns, rolled back if it raises."""
    async with session_factory(get_settings().database_url)() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# -----------------------------------------------------------------------------

async def init_db() -> None:
    """create_all for development databases; deployed ones are migrated with Alembic."""
    import wikiattach.models  # noqa: F401

    async with engine_for(get_settings().database_url).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engines() -> None:
    if engine_for.cache_info().currsize:
        await engine_for(get_settings().database_url).dispose()


# -----------------------------------------------------------------------------
