"""
tests.conftest

Shared fixtures: test settings, in-memory store/audit fakes and service wiring.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from credgate.audit.sink import AuditSinkRegistry
from credgate.auth.policy import LockoutPolicy, PasswordPolicy
from credgate.settings import Settings
from tests.fakes import InMemoryAuditWriter, InMemoryCredentialStore


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        env="test",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'credgate.db'}",
        audit_database_url=f"sqlite+aiosqlite:///{tmp_path / 'credgate-audit.db'}",
        password_max_failures=3,
        password_failure_lockout_mins=15,
        password_max_lifetime_days=30,
        jwt_secret="test-secret-with-enough-length-for-hs256",
    )


@pytest.fixture
def audit_writer() -> InMemoryAuditWriter:
    return InMemoryAuditWriter()


@pytest.fixture
def audit(settings: Settings, audit_writer: InMemoryAuditWriter) -> AuditSinkRegistry:
    return AuditSinkRegistry(writer=audit_writer, namespace=settings.audit_namespace)


@pytest.fixture
def store(settings: Settings) -> InMemoryCredentialStore:
    return InMemoryCredentialStore(
        password_policy=PasswordPolicy.from_settings(settings),
        lockout_policy=LockoutPolicy.from_settings(settings),
    )
