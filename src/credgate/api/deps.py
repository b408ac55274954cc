"""
credgate.api.deps

FastAPI dependency wiring for the API layer.

Responsibilities:
- Provide dependency functions for settings, DB sessions and the audit registry.
- Build request-scoped credential stores and services.
- Encapsulate app.state access patterns (engines/sessionmakers).
"""

from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from credgate.audit.sink import AuditContext, AuditSinkRegistry
from credgate.auth.models import Principal
from credgate.auth.policy import LockoutPolicy, PasswordPolicy
from credgate.identity.sql_store import SqlCredentialStore
from credgate.services.access import AccessDenialDisambiguator
from credgate.services.authentication import AuthenticationGate
from credgate.services.rotation import PasswordRotation
from credgate.settings import Settings, get_settings


def sessionmaker_from_app(request: Request) -> async_sessionmaker[AsyncSession]:
    # The sessionmakers are created on app startup in `credgate.api.app.create_app`.
    return request.app.state.sessionmaker  # type: ignore[attr-defined]


def audit_sessionmaker_from_app(request: Request) -> async_sessionmaker[AsyncSession]:
    return request.app.state.audit_sessionmaker  # type: ignore[attr-defined]


def audit_registry(request: Request) -> AuditSinkRegistry:
    return request.app.state.audit  # type: ignore[attr-defined]


async def db_session(
    session_factory: async_sessionmaker[AsyncSession] = Depends(sessionmaker_from_app),
) -> AsyncIterator[AsyncSession]:
    # Request-scoped DB session. The credential store commits per operation.
    async with session_factory() as session:
        yield session


async def audit_session(
    session_factory: async_sessionmaker[AsyncSession] = Depends(audit_sessionmaker_from_app),
) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session


def credential_store(
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(get_settings),
) -> SqlCredentialStore:
    return SqlCredentialStore(
        session,
        password_policy=PasswordPolicy.from_settings(settings),
        lockout_policy=LockoutPolicy.from_settings(settings),
    )


def rotation_service(
    store: SqlCredentialStore = Depends(credential_store),
    settings: Settings = Depends(get_settings),
    audit: AuditSinkRegistry = Depends(audit_registry),
) -> PasswordRotation:
    return PasswordRotation(store=store, settings=settings, audit=audit)


def authentication_gate(
    store: SqlCredentialStore = Depends(credential_store),
    settings: Settings = Depends(get_settings),
    audit: AuditSinkRegistry = Depends(audit_registry),
    rotation: PasswordRotation = Depends(rotation_service),
) -> AuthenticationGate:
    return AuthenticationGate(store=store, settings=settings, audit=audit, rotation=rotation)


def access_disambiguator(
    settings: Settings = Depends(get_settings),
    audit: AuditSinkRegistry = Depends(audit_registry),
) -> AccessDenialDisambiguator:
    return AccessDenialDisambiguator(settings=settings, audit=audit)


def request_context(request: Request, principal: Principal | None = None) -> AuditContext:
    # Explicit audit context: the sink never reads request state on its own.
    return AuditContext(
        actor=principal.subject if principal is not None else None,
        path=request.url.path,
    )


# --- Module Notes -----------------------------------------------------------
# Services are constructed per request; only the audit registry and the
# sessionmakers are shared across requests.
