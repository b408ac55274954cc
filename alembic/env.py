"""
alembic.env

Alembic migration environment configuration.

Responsibilities:
- Provide metadata discovery for autogeneration.
- Configure offline/online migration execution against the identity database.

Notes:
- This module is executed by Alembic, not imported by the FastAPI runtime.
- Set CREDGATE_MIGRATE_AUDIT=1 to migrate the separate audit database instead.
"""

from __future__ import annotations

import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from credgate.db import models  # noqa: F401  # ensure models are registered on Base.metadata
from credgate.db.base import Base
from credgate.settings import Settings

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _sync_url(url: str) -> str:
    # Migrations run on a blocking connection; drop the async driver suffix.
    return url.replace("+aiosqlite", "").replace("+asyncpg", "+psycopg")


def _get_database_url() -> str:
    # Prefer explicit env vars for migrations
    if os.environ.get("CREDGATE_MIGRATE_AUDIT"):
        if "CREDGATE_AUDIT_DATABASE_URL" in os.environ:
            return _sync_url(os.environ["CREDGATE_AUDIT_DATABASE_URL"])
        return _sync_url(Settings().effective_audit_database_url)
    if "CREDGATE_DATABASE_URL" in os.environ:
        return _sync_url(os.environ["CREDGATE_DATABASE_URL"])
    return _sync_url(Settings().database_url)


def run_migrations_offline() -> None:
    # Offline: emit SQL scripts without a DB connection.
    context.configure(
        url=_get_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    # Online: run migrations against a live DB connection.
    configuration = config.get_section(config.config_ini_section) or {}
    configuration["sqlalchemy.url"] = _get_database_url()
    connectable = engine_from_config(configuration, prefix="sqlalchemy.", poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()


# --- Module Notes -----------------------------------------------------------
# Keep this file aligned with SQLAlchemy metadata definitions in `credgate.db.models`.
