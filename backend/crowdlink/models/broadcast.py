"""
models/broadcast.py — Organizer announcements and per-user read receipts.

A broadcast targets an audience by role (or the sender's group for
my_group). Broadcasts are not owned by a group: deleting a group does not
remove announcements already sent to it, so group_id carries no foreign key.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from crowdlink.extensions import db
from crowdlink.models.user import _enum_values


class BroadcastAudience(str, enum.Enum):
    ALL_USERS    = "all_users"
    PARTICIPANTS = "participants"
    VOLUNTEERS   = "volunteers"
    VIPS         = "vips"
    MY_GROUP     = "my_group"


class BroadcastPriority(str, enum.Enum):
    LOW    = "low"
    NORMAL = "normal"
    HIGH   = "high"
    URGENT = "urgent"


class Broadcast(db.Model):
    __tablename__ = "broadcasts"

    __table_args__ = (
        CheckConstraint(
            "LENGTH(TRIM(title)) > 0",
            name="ck_broadcasts_title_nonempty",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    sender_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )

    title: Mapped[str] = mapped_column(String(120), nullable=False)

    body: Mapped[str] = mapped_column(Text, nullable=False)

    audience: Mapped[BroadcastAudience] = mapped_column(
        Enum(
            BroadcastAudience,
            name="broadcast_audience_enum",
            native_enum=False,
            length=20,
            values_callable=_enum_values,
        ),
        nullable=False,
        default=BroadcastAudience.ALL_USERS,
    )

    priority: Mapped[BroadcastPriority] = mapped_column(
        Enum(
            BroadcastPriority,
            name="broadcast_priority_enum",
            native_enum=False,
            length=20,
            values_callable=_enum_values,
        ),
        nullable=False,
        default=BroadcastPriority.NORMAL,
    )

    # Only set for my_group broadcasts.
    group_id: Mapped[str | None] = mapped_column(String(160), nullable=True, index=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Broadcast id={self.id} audience={self.audience.value!r}>"


class BroadcastRead(db.Model):
    __tablename__ = "broadcast_reads"

    __table_args__ = (
        UniqueConstraint("broadcast_id", "user_id", name="uq_broadcast_reads_broadcast_user"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    broadcast_id: Mapped[int] = mapped_column(
        ForeignKey("broadcasts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )

    read_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<BroadcastRead broadcast_id={self.broadcast_id} user_id={self.user_id!r}>"
