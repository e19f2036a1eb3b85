"""
Alembic Migration Environment
===============================

Migrates the ``blocks`` table. The database URL is DATABASE_URL from
school_admin settings unless overridden on the command line:

    cd backend && alembic upgrade head
    cd backend && alembic -x url=sqlite+aiosqlite:///./local.db upgrade head

SQLite URLs migrate in batch mode (SQLite cannot ALTER most constraints).
"""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine

from school_admin.config import settings
from school_admin.database import Base
from school_admin.models import block  # noqa: F401

alembic_config = context.config
if alembic_config.config_file_name is not None:
    fileConfig(alembic_config.config_file_name)

DATABASE_URL = context.get_x_argument(as_dictionary=True).get("url") or settings.database_url


def _options(**extra) -> dict:
    return {
        "target_metadata": Base.metadata,
        "compare_type": True,
        "render_as_batch": DATABASE_URL.startswith("sqlite"),
        **extra,
    }


def migrate_offline() -> None:
    """``alembic upgrade head --sql``: print the DDL instead of running it."""
    context.configure(
        **_options(url=DATABASE_URL, literal_binds=True, dialect_opts={"paramstyle": "named"})
    )
    with context.begin_transaction():
        context.run_migrations()


def _migrate(connection: Connection) -> None:
    context.configure(**_options(connection=connection))
    with context.begin_transaction():
        context.run_migrations()


async def migrate_online() -> None:
    engine = create_async_engine(DATABASE_URL, poolclass=pool.NullPool)
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_migrate)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    migrate_offline()
else:
    asyncio.run(migrate_online())
