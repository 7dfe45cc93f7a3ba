"""
models/user_preference.py — Per-user key/value settings.

Plain get/set storage: the last resolved group id and client preferences
(notifications, location sharing, theme). Values are strings.
"""

from __future__ import annotations

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from crowdlink.extensions import db


class UserPreference(db.Model):
    __tablename__ = "user_preferences"

    __table_args__ = (
        UniqueConstraint("user_id", "key", name="uq_user_preferences_user_key"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    # CASCADE — preferences are owned by the user row.
    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    key: Mapped[str] = mapped_column(String(64), nullable=False)

    value: Mapped[str] = mapped_column(String(500), nullable=False)

    user: Mapped["User"] = relationship(  # noqa: F821
        "User",
        back_populates="preferences",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<UserPreference user_id={self.user_id!r} key={self.key!r}>"
