"""
credgate.api.routers.audit

Audit log viewer (administrators only).

Responsibilities:
- List persisted audit events, most recent first.
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict
from sqlalchemy.ext.asyncio import AsyncSession

from credgate.api.deps import audit_session
from credgate.auth.deps import require_policy
from credgate.db.repositories.audit import AuditRepo

router = APIRouter(prefix="/v1/audit", tags=["audit"])


class AuditEventOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    timestamp_utc: datetime
    event_code: int
    level: int
    source_name: str
    message: str
    exception_text: str | None = None
    actor_username: str | None = None
    target_username: str | None = None
    path: str | None = None


@router.get(
    "/events",
    response_model=list[AuditEventOut],
    dependencies=[Depends(require_policy("admin_policy"))],
)
async def list_events(
    limit: int = Query(default=200, ge=1, le=1000),
    target: str | None = Query(default=None, max_length=50),
    session: AsyncSession = Depends(audit_session),
) -> list[AuditEventOut]:
    events = await AuditRepo(session).list_recent(limit=limit, target_username=target)
    return [AuditEventOut.model_validate(ev) for ev in events]
