"""initial identity, role and audit tables

Revision ID: 0001
Revises:
"""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "identities",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("username", sa.String(50), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("email_confirmed", sa.Boolean(), nullable=False),
        sa.Column("lockout_enabled", sa.Boolean(), nullable=False),
        sa.Column("failure_count", sa.Integer(), nullable=False),
        sa.Column("lockout_until", sa.DateTime(), nullable=True),
        sa.Column("last_login", sa.DateTime(), nullable=True),
        sa.Column("last_password_change", sa.DateTime(), nullable=True),
        sa.Column(
            "rotation_status",
            sa.Enum("valid", "expired", "pending", name="rotationstatus"),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_identities_username", "identities", ["username"], unique=True)

    op.create_table(
        "roles",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(256), nullable=False),
    )
    op.create_index("ix_roles_name", "roles", ["name"], unique=True)

    op.create_table(
        "identity_roles",
        sa.Column("identity_id", sa.Uuid(), sa.ForeignKey("identities.id"), primary_key=True),
        sa.Column("role_id", sa.Uuid(), sa.ForeignKey("roles.id"), primary_key=True),
        sa.UniqueConstraint("identity_id", "role_id", name="uq_identity_role"),
    )

    op.create_table(
        "audit_events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("timestamp_utc", sa.DateTime(), nullable=False),
        sa.Column("event_code", sa.Integer(), nullable=False),
        sa.Column("level", sa.Integer(), nullable=False),
        sa.Column("source_name", sa.String(255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("exception_text", sa.String(2000), nullable=True),
        sa.Column("actor_username", sa.String(50), nullable=True),
        sa.Column("target_username", sa.String(50), nullable=True),
        sa.Column("path", sa.String(100), nullable=True),
    )
    op.create_index("ix_audit_events_timestamp_utc", "audit_events", ["timestamp_utc"])
    op.create_index("ix_audit_events_event_code", "audit_events", ["event_code"])
    op.create_index("ix_audit_events_target_username", "audit_events", ["target_username"])
    op.create_index("ix_audit_code_timestamp", "audit_events", ["event_code", "timestamp_utc"])


def downgrade() -> None:
    op.drop_table("audit_events")
    op.drop_table("identity_roles")
    op.drop_table("roles")
    op.drop_table("identities")
