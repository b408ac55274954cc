"""
credgate.api.routers.health

Health and readiness endpoints.

Responsibilities:
- Provide liveness probe (`/healthz`).
- Provide readiness probe (`/readyz`) checking the identity and audit databases.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from credgate.api.deps import audit_session, db_session

router = APIRouter()


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz")
async def readyz(
    session: AsyncSession = Depends(db_session),
    audit: AsyncSession = Depends(audit_session),
) -> dict[str, str]:
    # Readiness: both stores must answer; a login without its audit trail is not "ready".
    await session.execute(text("SELECT 1"))
    await audit.execute(text("SELECT 1"))
    return {"status": "ready"}
