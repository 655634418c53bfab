from logging.config import fileConfig
import os
import sys
import asyncio

from sqlalchemy import engine_from_config
from sqlalchemy import pool
from sqlalchemy.ext.asyncio import AsyncEngine

from alembic import context

# Add the parent directory to Python path
sys.path.append(os.path.dirname(os.path.dirname(__file__)))

# Importing the models package registers every table on Base.metadata
from writeedge.core.config import settings as app_settings
from writeedge.db.deps import Base
import writeedge.models  # noqa: F401

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Settings already normalised the URL to an async driver
config.set_main_option("sqlalchemy.url", app_settings.DATABASE_URL)

target_metadata = Base.metadata


def _configure_options() -> dict:
    url = config.get_main_option("sqlalchemy.url") or ""
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        "compare_server_default": True,
        # SQLite cannot ALTER most constraints in place
        "render_as_batch": url.startswith("sqlite"),
    }


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_options(),
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection):
    context.configure(connection=connection, **_configure_options())

    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations():
    """Run migrations in an async context."""
    connectable = AsyncEngine(
        engine_from_config(
            config.get_section(config.config_ini_section, {}),
            prefix="sqlalchemy.",
            poolclass=pool.NullPool,
            future=True,
        )
    )

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode."""
    asyncio.run(run_async_migrations())


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
