"""
models/user.py — User table definition.

Users are created on first authenticated session and never hard-deleted.
`id` is the opaque uid issued by the identity provider.

`group_id` is the stored group reference. It is deliberately NOT a foreign
key: it may still hold the legacy shared constant ("default_group") until
the resolver migrates the user.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Enum, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from crowdlink.extensions import db


class UserRole(str, enum.Enum):
    ORGANIZER   = "organizer"
    VOLUNTEER   = "volunteer"
    PARTICIPANT = "participant"
    VIP         = "vip"

    @classmethod
    def from_value(cls, value) -> "UserRole | None":
        """
        Case-insensitive lookup. Returns None for anything unrecognised.

        Older clients stored "Attendee" for what is now participant.
        """
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        normalised = value.strip().lower()
        if normalised == "attendee":
            return cls.PARTICIPANT
        try:
            return cls(normalised)
        except ValueError:
            return None


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    """Store enum values ('organizer'), not names ('ORGANIZER')."""
    return [member.value for member in enum_cls]


class User(db.Model):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)

    display_name: Mapped[str] = mapped_column(String(100), nullable=False)

    email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    role: Mapped[UserRole] = mapped_column(
        Enum(
            UserRole,
            name="user_role_enum",
            native_enum=False,
            length=20,
            values_callable=_enum_values,
        ),
        nullable=False,
        default=UserRole.PARTICIPANT,
    )

    group_id: Mapped[str | None] = mapped_column(String(160), nullable=True)

    last_seen: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    is_online: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # Write-once: set the first time the user is moved off the legacy group.
    legacy_migrated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # ── Audit trails (append-only lists of group ids) ──────────────────────
    # Always reassign a new list; in-place mutation is not tracked by JSON.
    left_groups: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    kicked_from_groups: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    deleted_groups: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    # ── Relationships ──────────────────────────────────────────────────────

    memberships: Mapped[list["Membership"]] = relationship(  # noqa: F821
        "Membership",
        back_populates="user",
    )

    preferences: Mapped[list["UserPreference"]] = relationship(  # noqa: F821
        "UserPreference",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<User id={self.id!r} role={self.role.value!r}>"
