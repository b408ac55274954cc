"""
credgate.audit.writer

Audit record persistence.

Responsibilities:
- Define the immutable `AuditRecord` handed to writers.
- Define the `AuditWriter` contract ("durably persist one record").
- Provide the SQL writer, which commits each record in its own session.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from credgate.db.models import AuditEvent
from credgate.db.repositories.audit import AuditRepo
from credgate.db.session import session_scope


@dataclass(frozen=True, slots=True)
class AuditRecord:
    timestamp_utc: datetime
    event_code: int
    level: int
    source_name: str
    message: str
    exception_text: str | None
    actor_username: str | None
    target_username: str | None
    path: str | None


class AuditWriter(Protocol):
    async def write(self, record: AuditRecord) -> None: ...


class SqlAuditWriter:
    """
    Each write opens a fresh session from the audit session factory and commits it.
    The caller's session/transaction is never touched, so a rolled-back business
    operation keeps its audit trail and a failing write cannot roll business state back.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def write(self, record: AuditRecord) -> None:
        async with session_scope(self._session_factory) as session:
            await AuditRepo(session).add(
                AuditEvent(
                    timestamp_utc=record.timestamp_utc,
                    event_code=record.event_code,
                    level=record.level,
                    source_name=record.source_name,
                    message=record.message,
                    exception_text=record.exception_text,
                    actor_username=record.actor_username,
                    target_username=record.target_username,
                    path=record.path,
                )
            )
            await session.commit()


# --- Module Notes -----------------------------------------------------------
# Any append-capable store can implement `AuditWriter`; tests use an in-memory list.
