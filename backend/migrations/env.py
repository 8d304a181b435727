"""Alembic configuration.

Loads metadata from the shared Base, takes the database URL from
ALEMBIC_DATABASE_URL or the application settings, and runs migrations in
offline/online modes.
"""
import os
from logging.config import fileConfig

from sqlalchemy import engine_from_config
from sqlalchemy import pool
from alembic import context

from vendorhub.lib.db import Base
import vendorhub.models  # noqa: F401 - ensure models are imported for metadata population
from vendorhub.lib.settings import settings

config = context.config
config.set_main_option(
    "sqlalchemy.url",
    os.getenv("ALEMBIC_DATABASE_URL") or settings.database_url,
)

if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Emit SQL for the migrations without connecting."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations against a live connection."""
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
