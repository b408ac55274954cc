"""
credgate.db.models

Persistence schema for identities, roles and the audit trail.

Responsibilities:
- Identity: credentials, lockout counters, login/rotation timestamps.
- Role + IdentityRole: idempotently created roles and memberships.
- AuditEvent: append-only security event log.
"""

from __future__ import annotations

import enum
import uuid
from datetime import UTC, datetime

from sqlalchemy import Enum, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy import Uuid as SAUuid
from sqlalchemy.orm import Mapped, mapped_column

from credgate.db.base import Base

MAX_SOURCE_LENGTH = 255
MAX_EXCEPTION_LENGTH = 2000
MAX_USERNAME_LENGTH = 50
MAX_PATH_LENGTH = 100


def utcnow() -> datetime:
    # Persist naive UTC timestamps; every comparison in the service uses the same clock.
    return datetime.now(UTC).replace(tzinfo=None)


class RotationStatus(enum.StrEnum):
    # VALID is the "validity claim present" state; the other two force rotation.
    valid = "VALID"
    expired = "EXPIRED"
    pending = "PENDING"


class Identity(Base):
    __tablename__ = "identities"

    id: Mapped[uuid.UUID] = mapped_column(
        SAUuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    username: Mapped[str] = mapped_column(
        String(MAX_USERNAME_LENGTH), nullable=False, unique=True, index=True
    )
    # argon2id digest; opaque outside the credential store.
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    email_confirmed: Mapped[bool] = mapped_column(nullable=False, default=False)
    lockout_enabled: Mapped[bool] = mapped_column(nullable=False, default=True)
    failure_count: Mapped[int] = mapped_column(nullable=False, default=0)
    lockout_until: Mapped[datetime | None] = mapped_column(nullable=True)

    last_login: Mapped[datetime | None] = mapped_column(nullable=True)
    last_password_change: Mapped[datetime | None] = mapped_column(nullable=True)
    rotation_status: Mapped[RotationStatus] = mapped_column(
        Enum(RotationStatus), nullable=False, default=RotationStatus.expired
    )

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)

    @property
    def has_validity_claim(self) -> bool:
        return self.rotation_status == RotationStatus.valid


class Role(Base):
    __tablename__ = "roles"

    id: Mapped[uuid.UUID] = mapped_column(
        SAUuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(256), nullable=False, unique=True, index=True)


class IdentityRole(Base):
    __tablename__ = "identity_roles"

    identity_id: Mapped[uuid.UUID] = mapped_column(
        SAUuid(as_uuid=True), ForeignKey("identities.id"), primary_key=True
    )
    role_id: Mapped[uuid.UUID] = mapped_column(
        SAUuid(as_uuid=True), ForeignKey("roles.id"), primary_key=True
    )

    __table_args__ = (UniqueConstraint("identity_id", "role_id", name="uq_identity_role"),)


class AuditEvent(Base):
    __tablename__ = "audit_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    timestamp_utc: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, index=True)
    event_code: Mapped[int] = mapped_column(nullable=False, index=True)
    level: Mapped[int] = mapped_column(nullable=False)
    source_name: Mapped[str] = mapped_column(String(MAX_SOURCE_LENGTH), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    exception_text: Mapped[str | None] = mapped_column(
        String(MAX_EXCEPTION_LENGTH), nullable=True
    )
    actor_username: Mapped[str | None] = mapped_column(String(MAX_USERNAME_LENGTH), nullable=True)
    target_username: Mapped[str | None] = mapped_column(
        String(MAX_USERNAME_LENGTH), nullable=True, index=True
    )
    path: Mapped[str | None] = mapped_column(String(MAX_PATH_LENGTH), nullable=True)

    __table_args__ = (Index("ix_audit_code_timestamp", "event_code", "timestamp_utc"),)


# --- Module Notes -----------------------------------------------------------
# Audit rows are never updated or deleted by the service. Identities are never
# hard-deleted either; only counters, timestamps and rotation status change.
