"""Alembic environment for the discovery schema (commerces, offers, follows).

The target database comes from `Settings.async_database_url`, so migrations
use the same DATABASE_URL and asyncpg connect args as the API process.
`alembic.ini` puts `services/api` on sys.path via `prepend_sys_path`.
"""

import asyncio
from logging.config import fileConfig

from alembic import context
from dotenv import load_dotenv
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine

load_dotenv()

from nearby_offers.models import Commerce, CommerceFollow, Offer  # noqa: E402,F401
from nearby_offers.settings import get_settings  # noqa: E402
from nearby_offers.stores.postgres import Base  # noqa: E402

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Every discovery table registers itself on Base.metadata via the model imports
target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Emit the discovery DDL as SQL script output, without connecting."""
    context.configure(
        url=get_settings().async_database_url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    context.configure(connection=connection, target_metadata=target_metadata)

    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    """Apply migrations through a throwaway asyncpg engine."""
    settings = get_settings()
    connectable = create_async_engine(
        settings.async_database_url,
        poolclass=pool.NullPool,
        connect_args=settings.asyncpg_connect_args,
    )

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_async_migrations())
