"""
models/poi.py — Point-of-interest markers on the event map.

POIs reference a group by id but are not owned by it: deleting a group does
not remove its markers, so group_id carries no foreign key.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Enum, Float, String, func
from sqlalchemy.orm import Mapped, mapped_column

from crowdlink.extensions import db
from crowdlink.models.user import _enum_values


class MarkerType(str, enum.Enum):
    MEDICAL        = "medical"
    DRINKING_WATER = "drinking_water"
    ACCESSIBILITY  = "accessibility"
    HISTORICAL     = "historical"
    RESTROOM       = "restroom"
    FOOD           = "food"
    PARKING        = "parking"
    SECURITY       = "security"
    INFORMATION    = "information"
    EMERGENCY      = "emergency"


class POI(db.Model):
    __tablename__ = "pois"

    __table_args__ = (
        CheckConstraint(
            "LENGTH(TRIM(name)) > 0",
            name="ck_pois_name_nonempty",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    group_id: Mapped[str] = mapped_column(String(160), nullable=False, index=True)

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    type: Mapped[MarkerType] = mapped_column(
        Enum(
            MarkerType,
            name="marker_type_enum",
            native_enum=False,
            length=30,
            values_callable=_enum_values,
        ),
        nullable=False,
    )

    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)

    description: Mapped[str] = mapped_column(String(300), nullable=False, default="")

    created_by: Mapped[str] = mapped_column(String(128), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<POI id={self.id} type={self.type.value!r}>"
