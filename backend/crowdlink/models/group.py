"""
models/group.py — Group table definition.

Group ids are strings so that derived ids are possible:
  personal groups   → "personal-<user id>"  (see personal_group_id)
  protected groups  → fixed ids such as "volunteers"
  shared groups     → random hex ids

Messages and locations are owned by exactly one group and are removed by
group_service.cascade_delete_group before the group row itself.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from crowdlink.extensions import db
from crowdlink.models.user import _enum_values


# Stored reference of users created before personal groups existed.
LEGACY_SHARED_GROUP_ID = "default_group"

PERSONAL_GROUP_PREFIX = "personal-"


def personal_group_id(user_id: str) -> str:
    """Deterministic, per-user personal group id. The prefix keeps it injective."""
    return f"{PERSONAL_GROUP_PREFIX}{user_id}"


class GroupType(str, enum.Enum):
    PERSONAL = "personal"
    SHARED   = "shared"


class Group(db.Model):
    __tablename__ = "groups"

    id: Mapped[str] = mapped_column(String(160), primary_key=True)

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    # NULL for personal and protected groups; unique among shared groups.
    join_code: Mapped[str | None] = mapped_column(
        String(12),
        nullable=True,
        unique=True,
    )

    type: Mapped[GroupType] = mapped_column(
        Enum(
            GroupType,
            name="group_type_enum",
            native_enum=False,
            length=20,
            values_callable=_enum_values,
        ),
        nullable=False,
        default=GroupType.SHARED,
    )

    # Protected groups survive emptiness (e.g. the permanent volunteers pool).
    is_protected: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # NULL for protected groups, which are seeded rather than created by a user.
    created_by: Mapped[str | None] = mapped_column(String(128), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # ── Relationships ──────────────────────────────────────────────────────

    memberships: Mapped[list["Membership"]] = relationship(  # noqa: F821
        "Membership",
        back_populates="group",
        order_by="[Membership.joined_at, Membership.id]",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Group id={self.id!r} type={self.type.value!r}>"
