"""
credgate.services.bootstrap

One-time startup seeding of roles and the initial administrator.

Responsibilities:
- Idempotently create the configured roles and the initial admin identity.
- Provide the blocking "run to completion" bridge used once, before traffic,
  over the asynchronous credential store.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from concurrent.futures import ThreadPoolExecutor
from typing import TypeVar

from credgate.audit.events import AuditLevel, EventCode
from credgate.audit.sink import AuditContext, AuditSinkRegistry
from credgate.audit.writer import SqlAuditWriter
from credgate.auth.policy import LockoutPolicy, PasswordPolicy
from credgate.db.init_db import init_db
from credgate.db.session import create_engine, create_sessionmaker, session_scope
from credgate.identity.sql_store import SqlCredentialStore
from credgate.identity.store import CredentialStore
from credgate.observability.logging import get_logger
from credgate.settings import Settings

log = get_logger(__name__)

T = TypeVar("T")

SYSTEM_ACTOR = "system"


def run_to_completion(factory: Callable[[], Awaitable[T]]) -> T:
    """
    Run an async sequence on a dedicated thread with its own event loop and block
    until it finishes. Works whether or not the caller already runs an event loop.
    Startup only: it blocks the calling thread for the whole sequence.
    """

    async def _main() -> T:
        return await factory()

    with ThreadPoolExecutor(max_workers=1, thread_name_prefix="credgate-bootstrap") as pool:
        return pool.submit(asyncio.run, _main()).result()


class Seeder:
    def __init__(
        self,
        *,
        store: CredentialStore,
        audit: AuditSinkRegistry,
        lockout_enabled: bool,
    ) -> None:
        self._store = store
        self._audit = audit.get(__name__)
        self._lockout_enabled = lockout_enabled

    async def seed(
        self,
        admin_role: str,
        additional_roles: list[str],
        initial_username: str,
        initial_password: str,
    ) -> bool:
        ctx = AuditContext(actor=SYSTEM_ACTOR)
        # The caller's list is left as-is; admin_role is always included.
        roles = list(dict.fromkeys([*additional_roles, admin_role]))
        for name in roles:
            if await self._store.find_role(name) is None:
                await self._store.create_role(name)
                await self._audit.record(
                    AuditLevel.information,
                    EventCode.role_add_ok,
                    "Created role {r}",
                    {"r": name},
                    context=ctx,
                )

        if await self._store.find_by_name(initial_username) is not None:
            return True

        created = await self._store.create_identity(
            initial_username,
            initial_password,
            email_confirmed=True,
            lockout_enabled=self._lockout_enabled,
        )
        if not created.succeeded:
            reason = created.errors[0].description
            await self._audit.record(
                AuditLevel.error,
                EventCode.user_add_fail,
                "Failed to create initial user {U} ({m})",
                {"U": initial_username, "m": reason},
                context=ctx,
            )
            log.error("seed_initial_user_failed", username=initial_username, reason=reason)
            return False

        identity = await self._store.find_by_name(initial_username)
        if identity is None:
            return False
        await self._store.add_to_role(identity, admin_role)
        await self._audit.record(
            AuditLevel.information,
            EventCode.user_add_ok,
            "Created initial user {U}",
            {"U": initial_username},
            context=ctx,
        )
        return True


def ensure_seeded(
    settings: Settings,
    admin_role: str,
    additional_roles: list[str],
    initial_username: str,
    initial_password: str,
) -> bool:
    """
    Blocking entrypoint used at startup. Builds its own engines inside the bootstrap
    loop; connections never cross event loops.
    """

    async def _seed() -> bool:
        engine = create_engine(settings)
        audit_engine = create_engine(settings, audit=True)
        try:
            if settings.env in ("dev", "test"):
                await init_db(engine, audit_engine)
            audit = AuditSinkRegistry(
                writer=SqlAuditWriter(create_sessionmaker(audit_engine)),
                namespace=settings.audit_namespace,
            )
            async with session_scope(create_sessionmaker(engine)) as session:
                store = SqlCredentialStore(
                    session,
                    password_policy=PasswordPolicy.from_settings(settings),
                    lockout_policy=LockoutPolicy.from_settings(settings),
                )
                seeder = Seeder(
                    store=store,
                    audit=audit,
                    lockout_enabled=settings.password_lockout_enabled,
                )
                return await seeder.seed(
                    admin_role, additional_roles, initial_username, initial_password
                )
        finally:
            await engine.dispose()
            await audit_engine.dispose()

    ok = run_to_completion(_seed)
    log.info("seeded", ok=ok, admin_role=admin_role, username=initial_username)
    return ok


# --- Module Notes -----------------------------------------------------------
# Seeding runs before the app accepts traffic (see `credgate.api.app`); it is never
# repeated per request.
