"""Alembic environment: uses CRONKEEPER_DATABASE_URL and cronkeeper.db.Base."""

import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection

# Import models so their tables are attached to Base.metadata for Alembic
from cronkeeper.db import Base
from cronkeeper.store.models import CronORM, ExecutionORM, LockORM  # noqa: F401

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _get_sync_url() -> str:
    """Get sync PostgreSQL URL for Alembic (psycopg2)."""
    url = os.environ.get("CRONKEEPER_DATABASE_URL") or config.get_main_option("sqlalchemy.url")
    if not url or not url.strip():
        raise RuntimeError("Set CRONKEEPER_DATABASE_URL or sqlalchemy.url in alembic.ini for migrations.")
    url = url.strip()
    if url.startswith("postgresql+asyncpg://"):
        return "postgresql+psycopg2://" + url[len("postgresql+asyncpg://") :]
    if url.startswith("postgresql://"):
        return "postgresql+psycopg2://" + url[len("postgresql://") :]
    if url.startswith("postgresql+psycopg2://"):
        return url
    raise RuntimeError("CRONKEEPER_DATABASE_URL must be PostgreSQL.")


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode (SQL only, no DB connection)."""
    context.configure(
        url=_get_sync_url(),
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


def run_migrations_online() -> None:
    """Run migrations in 'online' mode (connect to DB)."""
    connectable = context.config.attributes.get("connection", None)
    if connectable is None:
        from sqlalchemy import create_engine

        connectable = create_engine(_get_sync_url(), poolclass=pool.NullPool)
    with connectable.connect() as connection:
        do_run_migrations(connection)


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
