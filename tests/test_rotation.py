from __future__ import annotations

import pytest

from credgate.audit.events import EventCode
from credgate.audit.sink import AuditContext, AuditSinkRegistry
from credgate.auth.jwt import JwtConfig, decode_and_validate
from credgate.db.models import RotationStatus
from credgate.errors import ErrorKind
from credgate.services.rotation import PasswordRotation, RotationResult
from tests.fakes import FailingAuditWriter, days_ago, make_identity

OLD = "Old#Passw0rd"
NEW = "N3w#Passw0rd"


def _rotation(store, settings, audit) -> PasswordRotation:
    return PasswordRotation(store=store, settings=settings, audit=audit)


@pytest.mark.asyncio
async def test_same_password_rejected_without_store_calls(store, settings, audit, audit_writer):
    store.add(make_identity("alice", OLD))

    outcome = await _rotation(store, settings, audit).complete("alice", OLD, OLD, forced=True)

    assert outcome.result == RotationResult.failed
    assert outcome.error_kind == ErrorKind.same_password_rejected
    assert outcome.forced is True
    assert sum(len(v) for v in outcome.errors.values()) == 1
    assert store.calls == []
    assert audit_writer.records == []


@pytest.mark.asyncio
async def test_successful_change_restores_claim(store, settings, audit, audit_writer):
    before = days_ago(40)
    ident = store.add(
        make_identity(
            "alice", OLD, rotation_status=RotationStatus.pending, last_password_change=before
        ),
        "Administrator",
    )

    outcome = await _rotation(store, settings, audit).complete(
        "alice",
        OLD,
        NEW,
        return_path="/admin",
        forced=True,
        context=AuditContext(actor="alice", path="/v1/account/change-password"),
    )

    assert outcome.succeeded
    assert outcome.redirect == "/admin"
    assert outcome.forced is True
    assert ident.rotation_status == RotationStatus.valid
    assert ident.last_password_change > before
    assert audit_writer.codes() == [EventCode.password_change_ok]
    assert audit_writer.records[0].target_username == "alice"

    # The new session carries the claim straight away.
    payload = decode_and_validate(cfg=JwtConfig.from_settings(settings), token=outcome.access_token)
    assert payload[settings.password_validity_claim] == "Yes"
    assert payload["roles"] == ["Administrator"]


@pytest.mark.asyncio
async def test_policy_violations_become_field_errors(store, settings, audit, audit_writer):
    ident = store.add(make_identity("alice", OLD, rotation_status=RotationStatus.pending))

    outcome = await _rotation(store, settings, audit).complete("alice", OLD, "short")

    assert outcome.result == RotationResult.failed
    assert outcome.error_kind == ErrorKind.policy_violation
    assert len(outcome.errors["new_password"]) >= 2
    assert ident.rotation_status == RotationStatus.expired
    assert audit_writer.codes() == [EventCode.password_change_fail]


@pytest.mark.asyncio
async def test_wrong_current_password_is_reported_on_old_field(store, settings, audit):
    ident = store.add(make_identity("alice", OLD))

    outcome = await _rotation(store, settings, audit).complete("alice", "Wr0ng#pass", NEW)

    assert outcome.error_kind == ErrorKind.bad_credentials
    assert outcome.errors == {"old_password": ["Incorrect password."]}
    # A voluntary change from VALID stays VALID on failure.
    assert ident.rotation_status == RotationStatus.valid


@pytest.mark.asyncio
async def test_start_moves_expired_identity_to_pending(store, settings, audit):
    ident = store.add(make_identity("alice", OLD, rotation_status=RotationStatus.expired))

    form = await _rotation(store, settings, audit).start("alice", return_path="/x", forced=True)

    assert ident.rotation_status == RotationStatus.pending
    assert form.forced is True
    assert form.return_path == "/x"
    assert "new_password" in form.fields
    assert form.requirements[0] == f"At least {settings.password_min_length} characters"


@pytest.mark.asyncio
async def test_start_leaves_valid_identity_alone(store, settings, audit):
    ident = store.add(make_identity("alice", OLD))
    form = await _rotation(store, settings, audit).start("alice")
    assert ident.rotation_status == RotationStatus.valid
    assert form.forced is False


def test_is_stale_rules(store, settings, audit):
    rotation = _rotation(store, settings, audit)
    now = days_ago(0)
    assert not rotation.is_stale(make_identity("a", OLD, last_password_change=days_ago(29)), now)
    assert rotation.is_stale(make_identity("a", OLD, last_password_change=days_ago(31)), now)
    assert rotation.is_stale(
        make_identity("a", OLD, rotation_status=RotationStatus.pending), now
    )

    never_changed = make_identity("a", OLD)
    never_changed.last_password_change = None
    assert rotation.is_stale(never_changed, now)


def test_zero_lifetime_disables_age_rotation(store, settings, audit):
    rotation = _rotation(store, settings.model_copy(update={"password_max_lifetime_days": 0}), audit)
    assert not rotation.is_stale(
        make_identity("a", OLD, last_password_change=days_ago(3650)), days_ago(0)
    )


@pytest.mark.asyncio
async def test_change_commits_when_audit_write_fails(store, settings):
    ident = store.add(
        make_identity("alice", OLD, rotation_status=RotationStatus.pending), "Administrator"
    )
    failing = FailingAuditWriter()
    audit = AuditSinkRegistry(writer=failing, namespace=settings.audit_namespace)

    outcome = await _rotation(store, settings, audit).complete("alice", OLD, NEW)

    assert outcome.succeeded
    assert ident.rotation_status == RotationStatus.valid
    assert ident.password_hash == f"plain:{NEW}"
    claims = decode_and_validate(cfg=JwtConfig.from_settings(settings), token=outcome.access_token)
    assert claims[settings.password_validity_claim] == "Yes"
    assert failing.attempts == 1
