"""
services/common.py — Lookups and formatting shared by the group-scoped services.

Everything here is public and Flask-free. Group membership is the access rule
for every sub-resource, so the "group exists" and "caller is a member" checks
live in one place.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from crowdlink.errors import AppError, ErrorCode
from crowdlink.models.group import Group
from crowdlink.models.membership import Membership


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite returns naive datetimes; treat them as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def isoformat(value: datetime | None) -> str | None:
    value = as_utc(value)
    return value.isoformat() if value is not None else None


def get_group_or_404(group_id: str, session: Session) -> Group:
    """Returns the Group or raises GROUP_NOT_FOUND (404)."""
    group = session.get(Group, group_id)
    if group is None:
        raise AppError(
            ErrorCode.GROUP_NOT_FOUND,
            f"Group {group_id} does not exist.",
            404,
        )
    return group


def get_membership(group_id: str, user_id: str, session: Session) -> Membership | None:
    return session.execute(
        select(Membership).where(
            Membership.group_id == group_id,
            Membership.user_id == user_id,
        )
    ).scalar_one_or_none()


def is_member(group_id: str, user_id: str, session: Session) -> bool:
    return get_membership(group_id, user_id, session) is not None


def require_member(group_id: str, user_id: str, session: Session) -> None:
    """Raises FORBIDDEN (403) if user_id is not a member of group_id."""
    if not is_member(group_id, user_id, session):
        raise AppError(
            ErrorCode.FORBIDDEN,
            f"You are not a member of group {group_id}.",
            403,
        )
