"""
credgate.identity.store

Credential store contract.

Responsibilities:
- Describe the operations the core needs from an identity backend.
- Define the small result types those operations return.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from credgate.db.models import Identity, RotationStatus, Role


class VerifyResult(enum.StrEnum):
    verified = "VERIFIED"
    rejected = "REJECTED"
    locked_out = "LOCKED_OUT"


@dataclass(frozen=True, slots=True)
class StoreError:
    # `code` is stable and machine-readable; `description` is shown to the user.
    code: str
    description: str


@dataclass(frozen=True, slots=True)
class StoreResult:
    errors: tuple[StoreError, ...] = field(default=())

    @property
    def succeeded(self) -> bool:
        return not self.errors

    @classmethod
    def ok(cls) -> StoreResult:
        return cls()

    @classmethod
    def failed(cls, *errors: StoreError) -> StoreResult:
        return cls(errors=tuple(errors))


PASSWORD_MISMATCH = "PasswordMismatch"
POLICY_VIOLATION = "PasswordPolicy"
DUPLICATE_USERNAME = "DuplicateUserName"


class CredentialStore(Protocol):
    async def find_by_name(self, username: str) -> Identity | None: ...

    async def list_identities(self) -> list[Identity]: ...

    async def verify_password(
        self, identity: Identity, password: str, *, lockout_enabled: bool
    ) -> VerifyResult: ...

    async def record_failure(self, identity: Identity, *, lockout_enabled: bool) -> bool:
        """Count a rejected attempt; return True when the identity is now locked out."""
        ...

    async def change_password(
        self, identity: Identity, old_password: str, new_password: str
    ) -> StoreResult: ...

    async def update(
        self,
        identity: Identity,
        *,
        last_login: datetime | None = None,
        last_password_change: datetime | None = None,
        rotation_status: RotationStatus | None = None,
    ) -> None: ...

    async def get_roles(self, identity: Identity) -> set[str]: ...

    async def add_to_role(self, identity: Identity, role_name: str) -> StoreResult: ...

    async def create_identity(
        self,
        username: str,
        password: str,
        *,
        email_confirmed: bool = False,
        lockout_enabled: bool = True,
    ) -> StoreResult: ...

    async def create_role(self, name: str) -> StoreResult: ...

    async def find_role(self, name: str) -> Role | None: ...


# --- Module Notes -----------------------------------------------------------
# The validity claim is the identity's `rotation_status`; adding/removing it is
# `update(identity, rotation_status=...)`.
