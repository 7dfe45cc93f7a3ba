"""
models/group_audit.py — Per-group record of organizer actions on members.

One row per kick or role change. Owned by the group and removed by the
group cascade. The per-user audit lists on User say which groups a user
left or was removed from; this table says who did it and when.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import JSON, DateTime, Enum, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column

from crowdlink.extensions import db
from crowdlink.models.user import _enum_values


class AuditAction(str, enum.Enum):
    MEMBER_KICKED = "member_kicked"
    ROLE_CHANGED  = "role_changed"


class GroupAuditEntry(db.Model):
    __tablename__ = "group_audit_entries"

    id: Mapped[int] = mapped_column(primary_key=True)

    group_id: Mapped[str] = mapped_column(
        String(160),
        ForeignKey("groups.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    action: Mapped[AuditAction] = mapped_column(
        Enum(
            AuditAction,
            name="audit_action_enum",
            native_enum=False,
            length=30,
            values_callable=_enum_values,
        ),
        nullable=False,
    )

    actor_id: Mapped[str] = mapped_column(String(128), nullable=False)

    target_user_id: Mapped[str] = mapped_column(String(128), nullable=False)

    # {"reason": ...} for kicks, {"previous_role": ..., "new_role": ...} for role changes
    details: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<GroupAuditEntry group_id={self.group_id!r} "
            f"action={self.action.value!r}>"
        )
