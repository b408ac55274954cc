"""
tests.fakes

In-memory stand-ins for the credential store and the audit writer.

Responsibilities:
- Record every store call so tests can assert "zero store calls".
- Mirror the SQL store's lockout and password-policy semantics without a database.
- Collect audit records, or fail on demand.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta

from credgate.audit.writer import AuditRecord
from credgate.auth.policy import LockoutPolicy, PasswordPolicy
from credgate.db.models import Identity, Role, RotationStatus, utcnow
from credgate.identity.store import (
    DUPLICATE_USERNAME,
    PASSWORD_MISMATCH,
    POLICY_VIOLATION,
    StoreError,
    StoreResult,
    VerifyResult,
)


def make_identity(
    username: str,
    password: str,
    *,
    rotation_status: RotationStatus = RotationStatus.valid,
    last_password_change: datetime | None = None,
    last_login: datetime | None = None,
    failure_count: int = 0,
    lockout_until: datetime | None = None,
    lockout_enabled: bool = True,
) -> Identity:
    return Identity(
        id=uuid.uuid4(),
        username=username,
        password_hash=f"plain:{password}",
        email_confirmed=True,
        lockout_enabled=lockout_enabled,
        failure_count=failure_count,
        lockout_until=lockout_until,
        last_login=last_login,
        last_password_change=(
            last_password_change if last_password_change is not None else utcnow()
        ),
        rotation_status=rotation_status,
        created_at=utcnow(),
    )


class InMemoryCredentialStore:
    def __init__(
        self,
        *,
        password_policy: PasswordPolicy,
        lockout_policy: LockoutPolicy,
    ) -> None:
        self.password_policy = password_policy
        self.lockout_policy = lockout_policy
        self.identities: dict[str, Identity] = {}
        self.roles: dict[str, Role] = {}
        self.memberships: dict[uuid.UUID, set[str]] = {}
        self.calls: list[str] = []
        self.fail_with: Exception | None = None

    def add(self, identity: Identity, *roles: str) -> Identity:
        self.identities[identity.username] = identity
        self.memberships[identity.id] = set(roles)
        return identity

    def _call(self, name: str) -> None:
        self.calls.append(name)
        if self.fail_with is not None:
            raise self.fail_with

    async def find_by_name(self, username: str) -> Identity | None:
        self._call("find_by_name")
        return self.identities.get(username)

    async def list_identities(self) -> list[Identity]:
        self._call("list_identities")
        return [self.identities[name] for name in sorted(self.identities)]

    async def verify_password(
        self, identity: Identity, password: str, *, lockout_enabled: bool
    ) -> VerifyResult:
        self._call("verify_password")
        now = utcnow()
        enforce = lockout_enabled and identity.lockout_enabled
        if enforce and identity.lockout_until is not None:
            if identity.lockout_until > now:
                return VerifyResult.locked_out
            identity.failure_count = 0
            identity.lockout_until = None
        if enforce and identity.failure_count >= self.lockout_policy.max_failures:
            identity.lockout_until = now + self.lockout_policy.duration
            return VerifyResult.locked_out
        if identity.password_hash != f"plain:{password}":
            return VerifyResult.rejected
        identity.failure_count = 0
        return VerifyResult.verified

    async def record_failure(self, identity: Identity, *, lockout_enabled: bool) -> bool:
        self._call("record_failure")
        identity.failure_count += 1
        if (
            lockout_enabled
            and identity.lockout_enabled
            and identity.failure_count >= self.lockout_policy.max_failures
        ):
            identity.lockout_until = utcnow() + self.lockout_policy.duration
            return True
        return False

    async def change_password(
        self, identity: Identity, old_password: str, new_password: str
    ) -> StoreResult:
        self._call("change_password")
        if identity.password_hash != f"plain:{old_password}":
            return StoreResult.failed(StoreError(PASSWORD_MISMATCH, "Incorrect password."))
        violations = self.password_policy.violations(new_password)
        if violations:
            return StoreResult.failed(*(StoreError(POLICY_VIOLATION, v) for v in violations))
        identity.password_hash = f"plain:{new_password}"
        return StoreResult.ok()

    async def update(
        self,
        identity: Identity,
        *,
        last_login: datetime | None = None,
        last_password_change: datetime | None = None,
        rotation_status: RotationStatus | None = None,
    ) -> None:
        self._call("update")
        if last_login is not None:
            identity.last_login = last_login
        if last_password_change is not None:
            identity.last_password_change = last_password_change
        if rotation_status is not None:
            identity.rotation_status = rotation_status

    async def get_roles(self, identity: Identity) -> set[str]:
        self._call("get_roles")
        return set(self.memberships.get(identity.id, set()))

    async def add_to_role(self, identity: Identity, role_name: str) -> StoreResult:
        self._call("add_to_role")
        if role_name not in self.roles:
            return StoreResult.failed(StoreError("RoleNotFound", role_name))
        self.memberships.setdefault(identity.id, set()).add(role_name)
        return StoreResult.ok()

    async def create_identity(
        self,
        username: str,
        password: str,
        *,
        email_confirmed: bool = False,
        lockout_enabled: bool = True,
    ) -> StoreResult:
        self._call("create_identity")
        if username in self.identities:
            return StoreResult.failed(StoreError(DUPLICATE_USERNAME, username))
        violations = self.password_policy.violations(password)
        if violations:
            return StoreResult.failed(*(StoreError(POLICY_VIOLATION, v) for v in violations))
        identity = make_identity(
            username,
            password,
            rotation_status=RotationStatus.expired,
            lockout_enabled=lockout_enabled,
        )
        identity.last_password_change = None
        identity.email_confirmed = email_confirmed
        self.add(identity)
        return StoreResult.ok()

    async def create_role(self, name: str) -> StoreResult:
        self._call("create_role")
        if name in self.roles:
            return StoreResult.failed(StoreError("DuplicateRoleName", name))
        self.roles[name] = Role(id=uuid.uuid4(), name=name)
        return StoreResult.ok()

    async def find_role(self, name: str) -> Role | None:
        self._call("find_role")
        return self.roles.get(name)


class InMemoryAuditWriter:
    def __init__(self) -> None:
        self.records: list[AuditRecord] = []

    async def write(self, record: AuditRecord) -> None:
        self.records.append(record)

    def codes(self) -> list[int]:
        return [r.event_code for r in self.records]


class FailingAuditWriter:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error or RuntimeError("audit database unavailable")
        self.attempts = 0

    async def write(self, record: AuditRecord) -> None:
        self.attempts += 1
        raise self.error


def days_ago(days: int) -> datetime:
    return utcnow() - timedelta(days=days)
