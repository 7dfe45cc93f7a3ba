"""
models/emergency.py — Emergency reports and volunteer responses.

An emergency is raised by a member inside one group, at a position. While
unresolved it is either active (nobody responding yet) or in_progress (at
least one volunteer response that is neither completed nor unavailable).

Both tables are owned by the group and removed by the group cascade,
responses first.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from crowdlink.extensions import db
from crowdlink.models.user import _enum_values


class EmergencyStatus(str, enum.Enum):
    ACTIVE      = "active"
    IN_PROGRESS = "in_progress"
    RESOLVED    = "resolved"


class ResponderStatus(str, enum.Enum):
    RESPONDING  = "responding"
    EN_ROUTE    = "en_route"
    ARRIVED     = "arrived"
    ASSISTING   = "assisting"
    COMPLETED   = "completed"
    UNAVAILABLE = "unavailable"

    @property
    def is_engaged(self) -> bool:
        """True while the volunteer is still working the emergency."""
        return self not in (ResponderStatus.COMPLETED, ResponderStatus.UNAVAILABLE)


class Emergency(db.Model):
    __tablename__ = "emergencies"

    __table_args__ = (
        CheckConstraint(
            "latitude >= -90 AND latitude <= 90",
            name="ck_emergencies_latitude_range",
        ),
        CheckConstraint(
            "longitude >= -180 AND longitude <= 180",
            name="ck_emergencies_longitude_range",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    group_id: Mapped[str] = mapped_column(
        String(160),
        ForeignKey("groups.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    reporter_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)

    message: Mapped[str | None] = mapped_column(String(500), nullable=True)

    status: Mapped[EmergencyStatus] = mapped_column(
        Enum(
            EmergencyStatus,
            name="emergency_status_enum",
            native_enum=False,
            length=20,
            values_callable=_enum_values,
        ),
        nullable=False,
        default=EmergencyStatus.ACTIVE,
    )

    # Set once any responder reports completed; the reporter still resolves.
    volunteer_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    resolved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    resolved_by: Mapped[str | None] = mapped_column(String(128), nullable=True)

    # ── Relationships ──────────────────────────────────────────────────────

    responses: Mapped[list["EmergencyResponse"]] = relationship(
        "EmergencyResponse",
        back_populates="emergency",
        order_by="EmergencyResponse.id",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Emergency id={self.id} status={self.status.value!r}>"


class EmergencyResponse(db.Model):
    __tablename__ = "emergency_responses"

    __table_args__ = (
        UniqueConstraint(
            "emergency_id",
            "volunteer_id",
            name="uq_emergency_responses_emergency_volunteer",
        ),
        CheckConstraint(
            "estimated_arrival_minutes IS NULL OR estimated_arrival_minutes >= 0",
            name="ck_emergency_responses_eta_nonnegative",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    emergency_id: Mapped[int] = mapped_column(
        ForeignKey("emergencies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    volunteer_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )

    status: Mapped[ResponderStatus] = mapped_column(
        Enum(
            ResponderStatus,
            name="responder_status_enum",
            native_enum=False,
            length=20,
            values_callable=_enum_values,
        ),
        nullable=False,
        default=ResponderStatus.RESPONDING,
    )

    estimated_arrival_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)

    responded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # ── Relationships ──────────────────────────────────────────────────────

    emergency: Mapped["Emergency"] = relationship(
        "Emergency",
        back_populates="responses",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<EmergencyResponse emergency_id={self.emergency_id} "
            f"volunteer_id={self.volunteer_id!r}>"
        )
