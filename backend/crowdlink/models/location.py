"""
models/location.py — Last known position of a member inside a group.

One row per (group, user): updates overwrite the previous position.
Owned by the group and removed by the group cascade.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from crowdlink.extensions import db


class Location(db.Model):
    __tablename__ = "locations"

    __table_args__ = (
        UniqueConstraint("group_id", "user_id", name="uq_locations_group_user"),
        CheckConstraint(
            "latitude >= -90 AND latitude <= 90",
            name="ck_locations_latitude_range",
        ),
        CheckConstraint(
            "longitude >= -180 AND longitude <= 180",
            name="ck_locations_longitude_range",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    group_id: Mapped[str] = mapped_column(
        String(160),
        ForeignKey("groups.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )

    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)

    is_emergency: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    emergency_message: Mapped[str | None] = mapped_column(String(500), nullable=True)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Location group_id={self.group_id!r} "
            f"user_id={self.user_id!r}>"
        )
