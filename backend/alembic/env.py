"""Alembic environment: async migrations for the rooms/players/rounds schema.

DATABASE_URL goes through the same Settings validator as the app, so a
plain postgresql:// URL from the host gets the asyncpg driver. Without it,
alembic.ini's sqlalchemy.url is used.
"""

import asyncio
import os
from logging.config import fileConfig

from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from alembic import context

from mindmeld.config import Settings
from mindmeld.db.base import Base
import mindmeld.models  # noqa: F401  registers every table on Base.metadata

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)


def _database_url() -> str:
    if os.environ.get("DATABASE_URL"):
        return Settings().database_url
    return config.get_main_option("sqlalchemy.url")


def _configure(**kwargs) -> None:
    context.configure(
        target_metadata=Base.metadata, compare_type=True, **kwargs,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_offline() -> None:
    _configure(
        url=_database_url(),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )


async def run_online() -> None:
    section = config.get_section(config.config_ini_section, {})
    section["sqlalchemy.url"] = _database_url()
    engine = async_engine_from_config(
        section, prefix="sqlalchemy.", poolclass=pool.NullPool,
    )

    def migrate(connection: Connection) -> None:
        _configure(connection=connection)

    async with engine.connect() as connection:
        await connection.run_sync(migrate)
    await engine.dispose()


if context.is_offline_mode():
    run_offline()
else:
    asyncio.run(run_online())
