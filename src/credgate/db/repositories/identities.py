"""
credgate.db.repositories.identities

Repository for `Identity` entities.

Responsibilities:
- Create identities and look them up by username.
- Apply field updates from the credential store.
- Increment the failure counter atomically in the database.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from credgate.db.models import Identity, RotationStatus


class IdentityRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(
        self,
        *,
        username: str,
        password_hash: str,
        email_confirmed: bool,
        lockout_enabled: bool,
    ) -> Identity:
        # New identities have no validity claim until their first password change.
        ident = Identity(
            username=username,
            password_hash=password_hash,
            email_confirmed=email_confirmed,
            lockout_enabled=lockout_enabled,
            failure_count=0,
            lockout_until=None,
            last_login=None,
            last_password_change=None,
            rotation_status=RotationStatus.expired,
        )
        self._session.add(ident)
        await self._session.flush()
        return ident

    async def get_by_username(self, username: str) -> Identity | None:
        # Refresh an already-loaded identity so counters reflect other sessions.
        stmt = (
            select(Identity)
            .where(Identity.username == username)
            .execution_options(populate_existing=True)
        )
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def list_by_username(self) -> list[Identity]:
        stmt = select(Identity).order_by(Identity.username)
        return list((await self._session.execute(stmt)).scalars().all())

    async def increment_failures(self, identity: Identity) -> int:
        # Increment in SQL so concurrent rejections for one identity are all counted.
        stmt = (
            update(Identity)
            .where(Identity.id == identity.id)
            .values(failure_count=Identity.failure_count + 1)
            .returning(Identity.failure_count)
            .execution_options(synchronize_session=False)
        )
        failures = int((await self._session.execute(stmt)).scalar_one())
        # Reflect the stored value without marking the attribute dirty.
        set_committed_value(identity, "failure_count", failures)
        return failures

    async def set_fields(
        self,
        identity: Identity,
        *,
        password_hash: str | None = None,
        failure_count: int | None = None,
        lockout_until: datetime | None = None,
        clear_lockout: bool = False,
        last_login: datetime | None = None,
        last_password_change: datetime | None = None,
        rotation_status: RotationStatus | None = None,
    ) -> None:
        if password_hash is not None:
            identity.password_hash = password_hash
        if failure_count is not None:
            identity.failure_count = failure_count
        if clear_lockout:
            identity.lockout_until = None
        elif lockout_until is not None:
            identity.lockout_until = lockout_until
        if last_login is not None:
            identity.last_login = last_login
        if last_password_change is not None:
            identity.last_password_change = last_password_change
        if rotation_status is not None:
            identity.rotation_status = rotation_status
        await self._session.flush()


# --- Module Notes -----------------------------------------------------------
# `set_fields` only writes the columns it changes; the failure counter is the one
# value that concurrent requests race on, so it has its own SQL increment.
