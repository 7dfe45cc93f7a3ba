"""Emergencies, emergency responses, broadcasts, broadcast reads and the
per-group audit log.

Revision: 002_emergencies_broadcasts_audit
Revises:  001_initial_schema
Created:  2026-10-19

Append-only: never edit this file after it has been applied to a database.

ON DELETE policies:
  emergencies.group_id, group_audit_entries.group_id
                                   → RESTRICT  (removed explicitly by the
                                                group cascade)
  emergency_responses.emergency_id → CASCADE
  broadcast_reads.broadcast_id     → CASCADE
  broadcasts.group_id carries no FK (announcements outlive the group)
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# ── Alembic revision identifiers ──────────────────────────────────────────
revision: str = "002_emergencies_broadcasts_audit"
down_revision: str | None = "001_initial_schema"
branch_labels: tuple | None = None
depends_on: tuple | None = None


def upgrade() -> None:

    # ── emergencies ────────────────────────────────────────────────────────
    op.create_table(
        "emergencies",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "group_id",
            sa.String(160),
            sa.ForeignKey("groups.id", ondelete="RESTRICT", name="fk_emergencies_group"),
            nullable=False,
        ),
        sa.Column(
            "reporter_id",
            sa.String(128),
            sa.ForeignKey("users.id", ondelete="RESTRICT", name="fk_emergencies_reporter"),
            nullable=False,
        ),
        sa.Column("latitude", sa.Float(), nullable=False),
        sa.Column("longitude", sa.Float(), nullable=False),
        sa.Column("message", sa.String(500), nullable=True),
        sa.Column(
            "status",
            sa.String(20),
            nullable=False,
            server_default="active",
        ),
        sa.Column(
            "volunteer_completed",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("FALSE"),
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolved_by", sa.String(128), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_emergencies"),
        sa.CheckConstraint(
            "latitude >= -90 AND latitude <= 90",
            name="ck_emergencies_latitude_range",
        ),
        sa.CheckConstraint(
            "longitude >= -180 AND longitude <= 180",
            name="ck_emergencies_longitude_range",
        ),
    )
    op.create_index("ix_emergencies_group_id", "emergencies", ["group_id"])
    op.create_index("ix_emergencies_reporter_id", "emergencies", ["reporter_id"])

    # ── emergency_responses ────────────────────────────────────────────────
    op.create_table(
        "emergency_responses",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "emergency_id",
            sa.Integer(),
            sa.ForeignKey(
                "emergencies.id",
                ondelete="CASCADE",
                name="fk_emergency_responses_emergency",
            ),
            nullable=False,
        ),
        sa.Column(
            "volunteer_id",
            sa.String(128),
            sa.ForeignKey(
                "users.id",
                ondelete="RESTRICT",
                name="fk_emergency_responses_volunteer",
            ),
            nullable=False,
        ),
        sa.Column(
            "status",
            sa.String(20),
            nullable=False,
            server_default="responding",
        ),
        sa.Column("estimated_arrival_minutes", sa.Integer(), nullable=True),
        sa.Column(
            "responded_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_emergency_responses"),
        sa.UniqueConstraint(
            "emergency_id",
            "volunteer_id",
            name="uq_emergency_responses_emergency_volunteer",
        ),
        sa.CheckConstraint(
            "estimated_arrival_minutes IS NULL OR estimated_arrival_minutes >= 0",
            name="ck_emergency_responses_eta_nonnegative",
        ),
    )
    op.create_index(
        "ix_emergency_responses_emergency_id",
        "emergency_responses",
        ["emergency_id"],
    )

    # ── group_audit_entries ────────────────────────────────────────────────
    op.create_table(
        "group_audit_entries",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "group_id",
            sa.String(160),
            sa.ForeignKey("groups.id", ondelete="RESTRICT", name="fk_group_audit_entries_group"),
            nullable=False,
        ),
        sa.Column("action", sa.String(30), nullable=False),
        sa.Column("actor_id", sa.String(128), nullable=False),
        sa.Column("target_user_id", sa.String(128), nullable=False),
        sa.Column("details", sa.JSON(), nullable=False, server_default="{}"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_group_audit_entries"),
    )
    op.create_index("ix_group_audit_entries_group_id", "group_audit_entries", ["group_id"])

    # ── broadcasts ─────────────────────────────────────────────────────────
    op.create_table(
        "broadcasts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "sender_id",
            sa.String(128),
            sa.ForeignKey("users.id", ondelete="RESTRICT", name="fk_broadcasts_sender"),
            nullable=False,
        ),
        sa.Column("title", sa.String(120), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column(
            "audience",
            sa.String(20),
            nullable=False,
            server_default="all_users",
        ),
        sa.Column(
            "priority",
            sa.String(20),
            nullable=False,
            server_default="normal",
        ),
        sa.Column("group_id", sa.String(160), nullable=True),
        sa.Column(
            "is_active",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("TRUE"),
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_broadcasts"),
        sa.CheckConstraint(
            "LENGTH(TRIM(title)) > 0",
            name="ck_broadcasts_title_nonempty",
        ),
    )
    op.create_index("ix_broadcasts_group_id", "broadcasts", ["group_id"])

    # ── broadcast_reads ────────────────────────────────────────────────────
    op.create_table(
        "broadcast_reads",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "broadcast_id",
            sa.Integer(),
            sa.ForeignKey("broadcasts.id", ondelete="CASCADE", name="fk_broadcast_reads_broadcast"),
            nullable=False,
        ),
        sa.Column(
            "user_id",
            sa.String(128),
            sa.ForeignKey("users.id", ondelete="RESTRICT", name="fk_broadcast_reads_user"),
            nullable=False,
        ),
        sa.Column(
            "read_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_broadcast_reads"),
        sa.UniqueConstraint("broadcast_id", "user_id", name="uq_broadcast_reads_broadcast_user"),
    )
    op.create_index("ix_broadcast_reads_broadcast_id", "broadcast_reads", ["broadcast_id"])


def downgrade() -> None:
    """Drops everything created in upgrade(), children first. Local resets only."""
    op.drop_index("ix_broadcast_reads_broadcast_id",     table_name="broadcast_reads")
    op.drop_index("ix_broadcasts_group_id",              table_name="broadcasts")
    op.drop_index("ix_group_audit_entries_group_id",     table_name="group_audit_entries")
    op.drop_index("ix_emergency_responses_emergency_id", table_name="emergency_responses")
    op.drop_index("ix_emergencies_reporter_id",          table_name="emergencies")
    op.drop_index("ix_emergencies_group_id",             table_name="emergencies")

    op.drop_table("broadcast_reads")
    op.drop_table("broadcasts")
    op.drop_table("group_audit_entries")
    op.drop_table("emergency_responses")
    op.drop_table("emergencies")
