"""
credgate.identity.sql_store

SQLAlchemy-backed credential store.

Responsibilities:
- Hash and verify passwords (argon2id).
- Enforce password composition and lockout timing with the policies supplied by the core.
- Commit each mutating operation as its own unit of work.
- Translate database errors into `StoreFailure`.
"""

from __future__ import annotations

from datetime import datetime

from argon2 import PasswordHasher, Type
from argon2.exceptions import InvalidHash, VerificationError, VerifyMismatchError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from credgate.auth.policy import LockoutPolicy, PasswordPolicy
from credgate.db.models import Identity, RotationStatus, Role, utcnow
from credgate.db.repositories.identities import IdentityRepo
from credgate.db.repositories.roles import RoleRepo
from credgate.errors import StoreFailure
from credgate.identity.store import (
    DUPLICATE_USERNAME,
    PASSWORD_MISMATCH,
    POLICY_VIOLATION,
    StoreError,
    StoreResult,
    VerifyResult,
)
from credgate.observability.logging import get_logger

log = get_logger(__name__)

_hasher = PasswordHasher(type=Type.ID)


def hash_password(password: str) -> str:
    return _hasher.hash(password)


def password_matches(password_hash: str, password: str) -> bool:
    try:
        return _hasher.verify(password_hash, password)
    except (InvalidHash, VerifyMismatchError, VerificationError):
        return False


class SqlCredentialStore:
    def __init__(
        self,
        session: AsyncSession,
        *,
        password_policy: PasswordPolicy,
        lockout_policy: LockoutPolicy,
    ) -> None:
        self._session = session
        self._password_policy = password_policy
        self._lockout_policy = lockout_policy
        self._identities = IdentityRepo(session)
        self._roles = RoleRepo(session)

    async def _commit(self) -> None:
        try:
            await self._session.commit()
        except SQLAlchemyError as e:
            await self._session.rollback()
            raise StoreFailure(str(e)) from e

    async def find_by_name(self, username: str) -> Identity | None:
        try:
            return await self._identities.get_by_username(username)
        except SQLAlchemyError as e:
            raise StoreFailure(str(e)) from e

    async def list_identities(self) -> list[Identity]:
        try:
            return await self._identities.list_by_username()
        except SQLAlchemyError as e:
            raise StoreFailure(str(e)) from e

    async def verify_password(
        self, identity: Identity, password: str, *, lockout_enabled: bool
    ) -> VerifyResult:
        now = utcnow()
        enforce = lockout_enabled and identity.lockout_enabled
        try:
            if enforce and identity.lockout_until is not None:
                if identity.lockout_until > now:
                    return VerifyResult.locked_out
                # Lockout window elapsed: start counting again.
                await self._identities.set_fields(identity, failure_count=0, clear_lockout=True)
                await self._commit()

            if enforce and identity.failure_count >= self._lockout_policy.max_failures:
                await self._identities.set_fields(
                    identity, lockout_until=now + self._lockout_policy.duration
                )
                await self._commit()
                return VerifyResult.locked_out

            if not password_matches(identity.password_hash, password):
                return VerifyResult.rejected

            # Any verified credential resets the counter, regardless of rotation outcome.
            if identity.failure_count:
                await self._identities.set_fields(identity, failure_count=0)
                await self._commit()
            if _hasher.check_needs_rehash(identity.password_hash):
                await self._identities.set_fields(identity, password_hash=hash_password(password))
                await self._commit()
            return VerifyResult.verified
        except SQLAlchemyError as e:
            raise StoreFailure(str(e)) from e

    async def record_failure(self, identity: Identity, *, lockout_enabled: bool) -> bool:
        locked_until: datetime | None = None
        try:
            failures = await self._identities.increment_failures(identity)
            if (
                lockout_enabled
                and identity.lockout_enabled
                and failures >= self._lockout_policy.max_failures
            ):
                locked_until = utcnow() + self._lockout_policy.duration
                await self._identities.set_fields(identity, lockout_until=locked_until)
        except SQLAlchemyError as e:
            await self._session.rollback()
            raise StoreFailure(str(e)) from e
        await self._commit()
        if locked_until is not None:
            log.warning("identity_locked_out", username=identity.username, until=str(locked_until))
        return locked_until is not None

    async def change_password(
        self, identity: Identity, old_password: str, new_password: str
    ) -> StoreResult:
        if not password_matches(identity.password_hash, old_password):
            return StoreResult.failed(StoreError(PASSWORD_MISMATCH, "Incorrect password."))
        violations = self._password_policy.violations(new_password)
        if violations:
            return StoreResult.failed(*(StoreError(POLICY_VIOLATION, v) for v in violations))
        try:
            await self._identities.set_fields(identity, password_hash=hash_password(new_password))
        except SQLAlchemyError as e:
            raise StoreFailure(str(e)) from e
        await self._commit()
        return StoreResult.ok()

    async def update(
        self,
        identity: Identity,
        *,
        last_login: datetime | None = None,
        last_password_change: datetime | None = None,
        rotation_status: RotationStatus | None = None,
    ) -> None:
        try:
            await self._identities.set_fields(
                identity,
                last_login=last_login,
                last_password_change=last_password_change,
                rotation_status=rotation_status,
            )
        except SQLAlchemyError as e:
            raise StoreFailure(str(e)) from e
        await self._commit()

    async def get_roles(self, identity: Identity) -> set[str]:
        try:
            return await self._roles.names_for_identity(identity.id)
        except SQLAlchemyError as e:
            raise StoreFailure(str(e)) from e

    async def add_to_role(self, identity: Identity, role_name: str) -> StoreResult:
        try:
            role = await self._roles.get_by_name(role_name)
            if role is None:
                return StoreResult.failed(
                    StoreError("RoleNotFound", f"Role '{role_name}' does not exist.")
                )
            await self._roles.grant(identity_id=identity.id, role_id=role.id)
        except SQLAlchemyError as e:
            raise StoreFailure(str(e)) from e
        await self._commit()
        return StoreResult.ok()

    async def create_identity(
        self,
        username: str,
        password: str,
        *,
        email_confirmed: bool = False,
        lockout_enabled: bool = True,
    ) -> StoreResult:
        violations = self._password_policy.violations(password)
        if violations:
            return StoreResult.failed(*(StoreError(POLICY_VIOLATION, v) for v in violations))
        try:
            if await self._identities.get_by_username(username) is not None:
                return StoreResult.failed(
                    StoreError(DUPLICATE_USERNAME, f"User name '{username}' is already taken.")
                )
            await self._identities.create(
                username=username,
                password_hash=hash_password(password),
                email_confirmed=email_confirmed,
                lockout_enabled=lockout_enabled,
            )
        except SQLAlchemyError as e:
            raise StoreFailure(str(e)) from e
        await self._commit()
        return StoreResult.ok()

    async def create_role(self, name: str) -> StoreResult:
        try:
            if await self._roles.get_by_name(name) is not None:
                return StoreResult.failed(
                    StoreError("DuplicateRoleName", f"Role name '{name}' is already taken.")
                )
            await self._roles.create(name)
        except SQLAlchemyError as e:
            raise StoreFailure(str(e)) from e
        await self._commit()
        return StoreResult.ok()

    async def find_role(self, name: str) -> Role | None:
        try:
            return await self._roles.get_by_name(name)
        except SQLAlchemyError as e:
            raise StoreFailure(str(e)) from e


# --- Module Notes -----------------------------------------------------------
# Hashing follows the argon2id setup used elsewhere in our auth services; the
# digest format is self-describing, so parameter upgrades rehash on next login.
