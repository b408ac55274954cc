"""
credgate.db.session

Async SQLAlchemy engine + session factory helpers.

Responsibilities:
- Create the async engines (identity store and audit store) from settings.
- Create the async sessionmaker with safe defaults.
- Provide a session scope helper for non-FastAPI contexts.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from credgate.settings import Settings


def create_engine(settings: Settings, *, audit: bool = False) -> AsyncEngine:
    url = settings.effective_audit_database_url if audit else settings.database_url
    # pool_pre_ping helps detect stale connections in long-lived processes.
    return create_async_engine(url, pool_pre_ping=True)


def create_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # expire_on_commit=False keeps identities readable after a store operation commits.
    return async_sessionmaker(
        bind=engine,
        expire_on_commit=False,
        autoflush=False,
        autocommit=False,
    )


@asynccontextmanager
async def session_scope(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    """
    Explicit session scope for code outside the request cycle (bootstrap, audit writes).
    In the API layer this is managed via FastAPI dependencies.
    """

    async with session_factory() as session:
        yield session


# --- Module Notes -----------------------------------------------------------
# The API layer uses FastAPI dependencies for request session scoping (`api.deps.db_session`).
