"""
credgate.services.rotation

Password rotation state machine.

Responsibilities:
- Decide when a verified credential is stale (validity claim missing or age exceeded).
- Drive the change-password round trip: VALID -> EXPIRED -> PENDING -> VALID,
  falling back to EXPIRED when a change fails.
- Re-issue the session with the validity claim as soon as a change succeeds.
"""

from __future__ import annotations

import enum
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from credgate.audit.events import AuditLevel, EventCode
from credgate.audit.sink import AuditContext, AuditSinkRegistry
from credgate.auth.jwt import issue_session_token
from credgate.auth.policy import PasswordPolicy
from credgate.db.models import Identity, RotationStatus, utcnow
from credgate.errors import ErrorKind, StoreFailure
from credgate.identity.store import PASSWORD_MISMATCH, CredentialStore
from credgate.observability.logging import get_logger
from credgate.services.redirects import local_redirect
from credgate.settings import Settings

log = get_logger(__name__)

FORM_ERROR = ""
OLD_PASSWORD = "old_password"
NEW_PASSWORD = "new_password"
CONFIRM_PASSWORD = "confirm_password"


class RotationResult(enum.StrEnum):
    succeeded = "SUCCEEDED"
    failed = "FAILED"


@dataclass(frozen=True, slots=True)
class RotationForm:
    return_path: str | None
    forced: bool
    fields: tuple[str, ...] = (OLD_PASSWORD, NEW_PASSWORD, CONFIRM_PASSWORD)
    requirements: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class RotationOutcome:
    result: RotationResult
    forced: bool
    redirect: str | None = None
    errors: dict[str, list[str]] = field(default_factory=dict)
    error_kind: ErrorKind | None = None
    access_token: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.result == RotationResult.succeeded


class PasswordRotation:
    def __init__(
        self,
        *,
        store: CredentialStore,
        settings: Settings,
        audit: AuditSinkRegistry,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._settings = settings
        self._policy = PasswordPolicy.from_settings(settings)
        self._audit = audit.get(__name__)
        self._clock = clock

    def is_stale(self, identity: Identity, now: datetime) -> bool:
        # A missing validity claim forces rotation whatever the timestamp says.
        if not identity.has_validity_claim:
            return True
        max_lifetime = self._policy.max_lifetime
        if max_lifetime is None:
            return False
        if identity.last_password_change is None:
            return True
        return now - identity.last_password_change > max_lifetime

    async def expire(self, identity: Identity) -> None:
        # Revoke the claim if present; no store call when it is already absent.
        if identity.has_validity_claim:
            await self._store.update(identity, rotation_status=RotationStatus.expired)

    async def start(
        self, username: str, *, return_path: str | None = None, forced: bool = False
    ) -> RotationForm:
        try:
            identity = await self._store.find_by_name(username)
            if identity is not None and identity.rotation_status == RotationStatus.expired:
                await self._store.update(identity, rotation_status=RotationStatus.pending)
        except StoreFailure as e:
            # The form does not depend on the state transition; show it anyway.
            log.warning("rotation_start_store_failure", username=username, error=str(e))
        return RotationForm(
            return_path=return_path,
            forced=forced,
            requirements=tuple(self._policy.requirements()),
        )

    async def complete(
        self,
        username: str,
        old_password: str,
        new_password: str,
        *,
        return_path: str | None = None,
        forced: bool = False,
        context: AuditContext | None = None,
    ) -> RotationOutcome:
        if new_password == old_password:
            return RotationOutcome(
                result=RotationResult.failed,
                forced=forced,
                errors={NEW_PASSWORD: ["New password must be different from old"]},
                error_kind=ErrorKind.same_password_rejected,
            )

        ctx = context or AuditContext(actor=username)
        params = {"U": username}
        try:
            identity = await self._store.find_by_name(username)
            if identity is None:
                await self._audit.record(
                    AuditLevel.warning,
                    EventCode.password_change_fail,
                    "Failed to change password for user {U} (no such user)",
                    params,
                    context=ctx,
                )
                return RotationOutcome(
                    result=RotationResult.failed,
                    forced=forced,
                    errors={FORM_ERROR: ["No such user"]},
                    error_kind=ErrorKind.unknown_user,
                )

            result = await self._store.change_password(identity, old_password, new_password)
            if not result.succeeded:
                if identity.rotation_status == RotationStatus.pending:
                    await self._store.update(identity, rotation_status=RotationStatus.expired)
                errors: dict[str, list[str]] = {}
                for err in result.errors:
                    key = OLD_PASSWORD if err.code == PASSWORD_MISMATCH else NEW_PASSWORD
                    errors.setdefault(key, []).append(err.description)
                mismatch = any(err.code == PASSWORD_MISMATCH for err in result.errors)
                await self._audit.record(
                    AuditLevel.warning,
                    EventCode.password_change_fail,
                    "Failed to change password for user {U} ({m})",
                    {**params, "m": result.errors[0].description},
                    context=ctx,
                )
                return RotationOutcome(
                    result=RotationResult.failed,
                    forced=forced,
                    errors=errors,
                    error_kind=(
                        ErrorKind.bad_credentials if mismatch else ErrorKind.policy_violation
                    ),
                )

            await self._store.update(
                identity,
                last_password_change=self._clock(),
                rotation_status=RotationStatus.valid,
            )
            roles = await self._store.get_roles(identity)
            token = issue_session_token(
                self._settings, subject=identity.username, roles=roles, password_valid=True
            )
            await self._audit.record(
                AuditLevel.information,
                EventCode.password_change_ok,
                "Changed password for user {U}",
                params,
                context=ctx,
            )
            return RotationOutcome(
                result=RotationResult.succeeded,
                forced=forced,
                redirect=local_redirect(self._settings, return_path),
                access_token=token,
            )
        except Exception as e:
            await self._audit.record(
                AuditLevel.error,
                EventCode.password_change_fail,
                "Exception changing password for user {U}",
                params,
                exception=e,
                context=ctx,
            )
            return RotationOutcome(
                result=RotationResult.failed,
                forced=forced,
                errors={FORM_ERROR: [str(e)]},
                error_kind=ErrorKind.store_failure,
            )


# --- Module Notes -----------------------------------------------------------
# PENDING exists so the change form can be told apart from a bare expiry; both
# count as "validity claim absent" for authorization.
