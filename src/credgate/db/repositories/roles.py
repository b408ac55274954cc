"""
credgate.db.repositories.roles

Repository for `Role` and `IdentityRole` entities.

Responsibilities:
- Find/create roles by name.
- Grant roles and list an identity's role names.
"""

from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from credgate.db.models import IdentityRole, Role


class RoleRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_name(self, name: str) -> Role | None:
        stmt = select(Role).where(Role.name == name)
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def create(self, name: str) -> Role:
        role = Role(name=name)
        self._session.add(role)
        await self._session.flush()
        return role

    async def grant(self, *, identity_id: uuid.UUID, role_id: uuid.UUID) -> None:
        existing = await self._session.get(IdentityRole, (identity_id, role_id))
        if existing is not None:
            return
        self._session.add(IdentityRole(identity_id=identity_id, role_id=role_id))
        await self._session.flush()

    async def names_for_identity(self, identity_id: uuid.UUID) -> set[str]:
        stmt = (
            select(Role.name)
            .join(IdentityRole, IdentityRole.role_id == Role.id)
            .where(IdentityRole.identity_id == identity_id)
        )
        return set((await self._session.execute(stmt)).scalars().all())


# --- Module Notes -----------------------------------------------------------
# Memberships are queried explicitly (no ORM relationship) to avoid lazy loads
# under the async session.
