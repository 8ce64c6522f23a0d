#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Alembic environment
===================
Migrations run against settings.database_url (DATABASE_URL / .env), never a
URL kept in alembic.ini.

    alembic upgrade head
    alembic downgrade -1
    alembic revision --autogenerate -m "description"

SQLite databases migrate in batch mode, since SQLite cannot ALTER most
column properties in place.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import asyncio
import logging
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection, make_url
from sqlalchemy.ext.asyncio import create_async_engine

# Registers every table on Base.metadata
import wikiattach.models  # noqa: F401
from wikiattach.core.config import get_settings
from wikiattach.core.database import Base


# -----------------------------------------------------------------------------

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

logger = logging.getLogger("alembic.env")

DATABASE_URL = get_settings().database_url
IS_SQLITE = make_url(DATABASE_URL).get_backend_name() == "sqlite"


# -----------------------------------------------------------------------------

def _configure(**kwargs) -> None:
    context.configure(
        target_metadata=Base.metadata,
        render_as_batch=IS_SQLITE,
        compare_type=True,
        **kwargs,
    )


# -----------------------------------------------------------------------------

def run_migrations_offline() -> None:
    """Emit the migration SQL to stdout instead of executing it."""
    _configure(
        url=DATABASE_URL,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


# -----------------------------------------------------------------------------

def _run_sync(connection: Connection) -> None:
    _configure(connection=connection)
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    engine = create_async_engine(DATABASE_URL, poolclass=pool.NullPool)
    logger.info("Migrating %s", make_url(DATABASE_URL).render_as_string(hide_password=True))
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_run_sync)
    finally:
        await engine.dispose()


# -----------------------------------------------------------------------------

if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())


# -----------------------------------------------------------------------------
