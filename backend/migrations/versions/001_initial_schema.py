"""Initial schema — users, groups, memberships, messages, locations, pois,
user_preferences.

Revision: 001_initial_schema
Created:  2026-10-19

Append-only: never edit this file after it has been applied to a database.
Schema changes go in a new migration.

Creation order: users → groups → memberships → messages, locations →
pois, user_preferences.

Enumerations (role, group type, marker type) are stored as VARCHAR values,
not PostgreSQL enum types, so new values need no type migration.

ON DELETE policies:
  memberships.*              → RESTRICT  (group rows go only after members)
  messages.*, locations.*    → RESTRICT  (removed explicitly by the group
                                          cascade, children first)
  user_preferences.user_id   → CASCADE   (owned by the user)
  users.group_id, pois.group_id carry no FK (legacy constant / not owned)
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# ── Alembic revision identifiers ──────────────────────────────────────────
revision: str = "001_initial_schema"
down_revision: str | None = None
branch_labels: tuple | None = None
depends_on: tuple | None = None


def upgrade() -> None:

    # ── users ──────────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.String(128), nullable=False),
        sa.Column("display_name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column(
            "role",
            sa.String(20),
            nullable=False,
            server_default="participant",
        ),
        sa.Column("group_id", sa.String(160), nullable=True),
        sa.Column("last_seen", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "is_online",
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
        sa.Column("legacy_migrated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("left_groups", sa.JSON(), nullable=False, server_default="[]"),
        sa.Column("kicked_from_groups", sa.JSON(), nullable=False, server_default="[]"),
        sa.Column("deleted_groups", sa.JSON(), nullable=False, server_default="[]"),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
    )

    # ── groups ─────────────────────────────────────────────────────────────
    op.create_table(
        "groups",
        sa.Column("id", sa.String(160), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("join_code", sa.String(12), nullable=True),
        sa.Column(
            "type",
            sa.String(20),
            nullable=False,
            server_default="shared",
        ),
        sa.Column(
            "is_protected",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("FALSE"),
        ),
        sa.Column("created_by", sa.String(128), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_groups"),
        sa.UniqueConstraint("join_code", name="uq_groups_join_code"),
    )

    # ── memberships ────────────────────────────────────────────────────────
    op.create_table(
        "memberships",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "user_id",
            sa.String(128),
            sa.ForeignKey("users.id", ondelete="RESTRICT", name="fk_memberships_user"),
            nullable=False,
        ),
        sa.Column(
            "group_id",
            sa.String(160),
            sa.ForeignKey("groups.id", ondelete="RESTRICT", name="fk_memberships_group"),
            nullable=False,
        ),
        sa.Column(
            "joined_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_memberships"),
        sa.UniqueConstraint("user_id", "group_id", name="uq_memberships_user_group"),
    )

    # ── messages ───────────────────────────────────────────────────────────
    op.create_table(
        "messages",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "group_id",
            sa.String(160),
            sa.ForeignKey("groups.id", ondelete="RESTRICT", name="fk_messages_group"),
            nullable=False,
        ),
        sa.Column(
            "sender_id",
            sa.String(128),
            sa.ForeignKey("users.id", ondelete="RESTRICT", name="fk_messages_sender"),
            nullable=False,
        ),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_messages"),
        sa.CheckConstraint(
            "LENGTH(TRIM(body)) > 0",
            name="ck_messages_body_nonempty",
        ),
    )

    # ── locations ──────────────────────────────────────────────────────────
    op.create_table(
        "locations",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "group_id",
            sa.String(160),
            sa.ForeignKey("groups.id", ondelete="RESTRICT", name="fk_locations_group"),
            nullable=False,
        ),
        sa.Column(
            "user_id",
            sa.String(128),
            sa.ForeignKey("users.id", ondelete="RESTRICT", name="fk_locations_user"),
            nullable=False,
        ),
        sa.Column("latitude", sa.Float(), nullable=False),
        sa.Column("longitude", sa.Float(), nullable=False),
        sa.Column(
            "is_emergency",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("FALSE"),
        ),
        sa.Column("emergency_message", sa.String(500), nullable=True),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_locations"),
        sa.UniqueConstraint("group_id", "user_id", name="uq_locations_group_user"),
        sa.CheckConstraint(
            "latitude >= -90 AND latitude <= 90",
            name="ck_locations_latitude_range",
        ),
        sa.CheckConstraint(
            "longitude >= -180 AND longitude <= 180",
            name="ck_locations_longitude_range",
        ),
    )

    # ── pois ───────────────────────────────────────────────────────────────
    op.create_table(
        "pois",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("group_id", sa.String(160), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("type", sa.String(30), nullable=False),
        sa.Column("latitude", sa.Float(), nullable=False),
        sa.Column("longitude", sa.Float(), nullable=False),
        sa.Column("description", sa.String(300), nullable=False, server_default=""),
        sa.Column("created_by", sa.String(128), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_pois"),
        sa.CheckConstraint(
            "LENGTH(TRIM(name)) > 0",
            name="ck_pois_name_nonempty",
        ),
    )

    # ── user_preferences ───────────────────────────────────────────────────
    op.create_table(
        "user_preferences",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "user_id",
            sa.String(128),
            sa.ForeignKey("users.id", ondelete="CASCADE", name="fk_user_preferences_user"),
            nullable=False,
        ),
        sa.Column("key", sa.String(64), nullable=False),
        sa.Column("value", sa.String(500), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_user_preferences"),
        sa.UniqueConstraint("user_id", "key", name="uq_user_preferences_user_key"),
    )

    # ── Indexes ────────────────────────────────────────────────────────────
    # Names follow SQLAlchemy's index=True convention so autogenerate agrees.
    op.create_index("ix_memberships_user_id", "memberships", ["user_id"])
    op.create_index("ix_memberships_group_id", "memberships", ["group_id"])
    op.create_index("ix_messages_group_id", "messages", ["group_id"])
    op.create_index("ix_locations_group_id", "locations", ["group_id"])
    op.create_index("ix_pois_group_id", "pois", ["group_id"])
    op.create_index("ix_user_preferences_user_id", "user_preferences", ["user_id"])


def downgrade() -> None:
    """Drops everything created in upgrade(), children first. Local resets only."""
    op.drop_index("ix_user_preferences_user_id", table_name="user_preferences")
    op.drop_index("ix_pois_group_id",            table_name="pois")
    op.drop_index("ix_locations_group_id",       table_name="locations")
    op.drop_index("ix_messages_group_id",        table_name="messages")
    op.drop_index("ix_memberships_group_id",     table_name="memberships")
    op.drop_index("ix_memberships_user_id",      table_name="memberships")

    op.drop_table("user_preferences")
    op.drop_table("pois")
    op.drop_table("locations")
    op.drop_table("messages")
    op.drop_table("memberships")
    op.drop_table("groups")
    op.drop_table("users")
