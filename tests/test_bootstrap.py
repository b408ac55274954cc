from __future__ import annotations

import pytest
from sqlalchemy import func, select

from credgate.audit.events import EventCode
from credgate.db.models import AuditEvent, Identity, IdentityRole, Role
from credgate.db.session import create_engine, create_sessionmaker
from credgate.services.bootstrap import Seeder, ensure_seeded, run_to_completion

ADMIN_PASSWORD = "Adm1n!pass"


@pytest.mark.asyncio
async def test_seed_is_idempotent(store, settings, audit, audit_writer):
    seeder = Seeder(store=store, audit=audit, lockout_enabled=True)
    extra = ["DatabaseEditor"]

    assert await seeder.seed("Administrator", extra, "admin", ADMIN_PASSWORD)
    assert await seeder.seed("Administrator", extra, "admin", ADMIN_PASSWORD)

    assert extra == ["DatabaseEditor"]
    assert sorted(store.roles) == ["Administrator", "DatabaseEditor"]
    assert list(store.identities) == ["admin"]
    admin = store.identities["admin"]
    assert admin.email_confirmed is True
    assert admin.lockout_enabled is True
    assert store.memberships[admin.id] == {"Administrator"}
    assert audit_writer.codes().count(EventCode.user_add_ok) == 1
    assert audit_writer.codes().count(EventCode.role_add_ok) == 2


@pytest.mark.asyncio
async def test_seed_reports_policy_failure(store, audit, audit_writer):
    seeder = Seeder(store=store, audit=audit, lockout_enabled=False)
    assert not await seeder.seed("Administrator", [], "admin", "weak")
    assert store.identities == {}
    assert EventCode.user_add_fail in audit_writer.codes()


def test_run_to_completion_returns_value():
    async def _answer() -> int:
        return 42

    assert run_to_completion(_answer) == 42


def test_run_to_completion_propagates_errors():
    async def _boom() -> None:
        raise RuntimeError("seed failed")

    with pytest.raises(RuntimeError, match="seed failed"):
        run_to_completion(_boom)


def _counts(settings) -> dict[str, int]:
    async def _count(engine, models) -> dict[str, int]:
        try:
            async with create_sessionmaker(engine)() as session:
                out = {}
                for name, model in models:
                    stmt = select(func.count()).select_from(model)
                    out[name] = int((await session.execute(stmt)).scalar_one())
                return out
        finally:
            await engine.dispose()

    async def _query() -> dict[str, int]:
        identity_models = (("identities", Identity), ("roles", Role), ("memberships", IdentityRole))
        out = await _count(create_engine(settings), identity_models)
        out.update(await _count(create_engine(settings, audit=True), (("audit", AuditEvent),)))
        return out

    return run_to_completion(_query)


def test_ensure_seeded_twice_creates_one_admin(settings):
    args = (settings, "Administrator", ["DatabaseEditor"], "admin", ADMIN_PASSWORD)
    assert ensure_seeded(*args)
    assert ensure_seeded(*args)

    counts = _counts(settings)
    assert counts["identities"] == 1
    assert counts["roles"] == 2
    assert counts["memberships"] == 1
    # Two roles + one user creation, all from the first run only.
    assert counts["audit"] == 3


@pytest.mark.asyncio
async def test_ensure_seeded_blocks_inside_a_running_loop(settings):
    assert ensure_seeded(settings, "Administrator", [], "admin", ADMIN_PASSWORD)
    assert _counts(settings)["identities"] == 1
