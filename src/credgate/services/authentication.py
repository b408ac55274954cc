"""
credgate.services.authentication

Authentication gate.

Responsibilities:
- Resolve the username, delegate verification and lockout bookkeeping to the store.
- Divert stale-but-valid credentials into forced rotation.
- Emit exactly one audit record per attempt and never leak store exceptions.
"""

from __future__ import annotations

import enum
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from credgate.audit.events import AuditLevel, EventCode
from credgate.audit.sink import AuditContext, AuditSinkRegistry
from credgate.auth.jwt import issue_session_token
from credgate.auth.models import Principal
from credgate.auth.policy import LockoutPolicy
from credgate.db.models import utcnow
from credgate.errors import ErrorKind
from credgate.identity.store import CredentialStore, VerifyResult
from credgate.services.redirects import change_password_redirect, local_redirect
from credgate.services.rotation import FORM_ERROR, PasswordRotation
from credgate.settings import Settings

USERNAME_FIELD = "username"


class AuthStatus(enum.StrEnum):
    success = "SUCCESS"
    needs_password_change = "NEEDS_PASSWORD_CHANGE"
    invalid_credentials = "INVALID_CREDENTIALS"
    locked_out = "LOCKED_OUT"


@dataclass(frozen=True, slots=True)
class LoginOutcome:
    status: AuthStatus
    redirect: str | None = None
    forced: bool = False
    errors: dict[str, list[str]] = field(default_factory=dict)
    error_kind: ErrorKind | None = None
    access_token: str | None = None


class AuthenticationGate:
    def __init__(
        self,
        *,
        store: CredentialStore,
        settings: Settings,
        audit: AuditSinkRegistry,
        rotation: PasswordRotation | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._settings = settings
        self._lockout = LockoutPolicy.from_settings(settings)
        self._audit = audit.get(__name__)
        self._rotation = rotation or PasswordRotation(
            store=store, settings=settings, audit=audit, clock=clock
        )
        self._clock = clock

    async def authenticate(
        self,
        username: str,
        password: str,
        return_path: str | None = None,
        *,
        context: AuditContext | None = None,
    ) -> LoginOutcome:
        # Nobody is signed in yet; the attempted username is the audit target.
        ctx = context or AuditContext()
        params = {"U": username}
        try:
            identity = await self._store.find_by_name(username)
            if identity is None:
                await self._audit.record(
                    AuditLevel.warning,
                    EventCode.login_fail,
                    "Invalid user name {U}",
                    params,
                    context=ctx,
                )
                return LoginOutcome(
                    status=AuthStatus.invalid_credentials,
                    errors={USERNAME_FIELD: ["No such user"]},
                    error_kind=ErrorKind.unknown_user,
                )

            result = await self._store.verify_password(
                identity, password, lockout_enabled=self._lockout.enabled
            )

            if result == VerifyResult.locked_out:
                return await self._locked_out(params, ctx)

            if result == VerifyResult.rejected:
                locked = await self._store.record_failure(
                    identity, lockout_enabled=self._lockout.enabled
                )
                if locked:
                    return await self._locked_out(params, ctx)
                await self._audit.record(
                    AuditLevel.warning,
                    EventCode.login_fail,
                    "Invalid password for user {U}",
                    params,
                    context=ctx,
                )
                return LoginOutcome(
                    status=AuthStatus.invalid_credentials,
                    errors={FORM_ERROR: ["Invalid login attempt"]},
                    error_kind=ErrorKind.bad_credentials,
                )

            now = self._clock()
            roles = await self._store.get_roles(identity)
            if self._rotation.is_stale(identity, now):
                # Authenticated, but diverted: last_login is left untouched.
                await self._rotation.expire(identity)
                await self._audit.record(
                    AuditLevel.information,
                    EventCode.login_rotation_forced,
                    "Logged in user {U}, password change required",
                    params,
                    context=ctx,
                )
                return LoginOutcome(
                    status=AuthStatus.needs_password_change,
                    redirect=change_password_redirect(self._settings, return_path, forced=True),
                    forced=True,
                    access_token=issue_session_token(
                        self._settings, subject=identity.username, roles=roles, password_valid=False
                    ),
                )

            await self._store.update(identity, last_login=now)
            await self._audit.record(
                AuditLevel.information,
                EventCode.login_ok,
                "Logged in user {U}",
                params,
                context=ctx,
            )
            return LoginOutcome(
                status=AuthStatus.success,
                redirect=local_redirect(self._settings, return_path),
                access_token=issue_session_token(
                    self._settings, subject=identity.username, roles=roles, password_valid=True
                ),
            )
        except Exception as e:
            await self._audit.record(
                AuditLevel.error,
                EventCode.login_fail,
                "Exception during login for user {U}",
                params,
                exception=e,
                context=ctx,
            )
            return LoginOutcome(
                status=AuthStatus.invalid_credentials,
                errors={FORM_ERROR: [str(e)]},
                error_kind=ErrorKind.store_failure,
            )

    async def _locked_out(self, params: dict[str, str], ctx: AuditContext) -> LoginOutcome:
        await self._audit.record(
            AuditLevel.error,
            EventCode.login_locked,
            "Account locked out for user {U}",
            params,
            context=ctx,
        )
        return LoginOutcome(
            status=AuthStatus.locked_out,
            errors={USERNAME_FIELD: ["Account Locked Out"]},
            error_kind=ErrorKind.account_locked,
        )

    async def logout(self, principal: Principal, *, context: AuditContext | None = None) -> str:
        await self._audit.record(
            AuditLevel.information,
            EventCode.logout,
            "Logged out user {U}",
            {"U": principal.subject},
            context=context or AuditContext(actor=principal.subject),
        )
        return self._settings.home_page


# --- Module Notes -----------------------------------------------------------
# Tokens are stateless, so logout only records the event; clients drop the token.
