"""
credgate.services.access

Access-denial disambiguator.

Responsibilities:
- Tell a true authorization denial apart from a session that merely lacks the
  password validity claim.
- Send the latter into forced rotation, keeping the requested path as the return target.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from credgate.audit.events import AuditLevel, EventCode
from credgate.audit.sink import AuditContext, AuditSinkRegistry
from credgate.auth.models import Principal
from credgate.services.redirects import change_password_redirect
from credgate.settings import Settings

UNKNOWN_ACTOR = "unknown"


class DenialKind(enum.StrEnum):
    true_denial = "TRUE_DENIAL"
    rotation_required = "ROTATION_REQUIRED"


@dataclass(frozen=True, slots=True)
class AccessDecision:
    kind: DenialKind
    redirect: str | None
    path: str | None


class AccessDenialDisambiguator:
    def __init__(self, *, settings: Settings, audit: AuditSinkRegistry) -> None:
        self._settings = settings
        self._audit = audit.get(__name__)

    async def check(
        self,
        path: str | None,
        principal: Principal | None,
        *,
        context: AuditContext | None = None,
    ) -> AccessDecision:
        request_path = context.path if context else None

        if principal is None:
            await self._audit.record(
                AuditLevel.error,
                EventCode.forbidden,
                "Attempt to access forbidden page {p} by unknown user",
                {"p": path},
                context=AuditContext(actor=UNKNOWN_ACTOR, path=request_path),
            )
            return AccessDecision(
                kind=DenialKind.true_denial,
                redirect=self._settings.access_denied_page,
                path=path,
            )

        ctx = AuditContext(actor=principal.subject, path=request_path)
        if not principal.password_valid:
            # Not a denial: the password is due, so the user is sent to change it.
            await self._audit.record(
                AuditLevel.warning,
                EventCode.password_change_demand,
                "Password change required for user {U}",
                {"U": principal.subject},
                context=ctx,
            )
            return AccessDecision(
                kind=DenialKind.rotation_required,
                redirect=change_password_redirect(self._settings, path, forced=True),
                path=path,
            )

        await self._audit.record(
            AuditLevel.error,
            EventCode.forbidden,
            "Attempt to access forbidden page {p} by user {U}",
            {"p": path, "U": principal.subject},
            context=ctx,
        )
        return AccessDecision(
            kind=DenialKind.true_denial,
            redirect=self._settings.access_denied_page,
            path=path,
        )
