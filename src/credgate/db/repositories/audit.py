"""
credgate.db.repositories.audit

Repository for `AuditEvent` entities.

Responsibilities:
- Append audit events.
- Query the audit trail newest-first for the log viewer.
"""

from __future__ import annotations

from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from credgate.db.models import AuditEvent


class AuditRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, event: AuditEvent) -> AuditEvent:
        # Audit events are append-only (no update/delete) in normal operation.
        self._session.add(event)
        await self._session.flush()
        return event

    async def list_recent(
        self, *, limit: int = 200, target_username: str | None = None
    ) -> list[AuditEvent]:
        # Order newest-first; concurrent writers give no other ordering guarantee.
        stmt = select(AuditEvent)
        if target_username is not None:
            stmt = stmt.where(AuditEvent.target_username == target_username)
        stmt = stmt.order_by(desc(AuditEvent.timestamp_utc), desc(AuditEvent.id)).limit(limit)
        return list((await self._session.execute(stmt)).scalars().all())

    async def count(self) -> int:
        stmt = select(func.count()).select_from(AuditEvent)
        return int((await self._session.execute(stmt)).scalar_one())


# --- Module Notes -----------------------------------------------------------
# Writes go through `credgate.audit.writer.SqlAuditWriter`, which owns its session.
