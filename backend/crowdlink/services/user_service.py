"""
services/user_service.py — User records and presence.

Users are created on their first authenticated session and never deleted.
Presence is a heartbeat: last_seen and is_online.

Layer rules: no Flask imports, flush only.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy.orm import Session

from crowdlink.errors import AppError, ErrorCode
from crowdlink.models.user import User, UserRole
from crowdlink.permissions import permissions_for
from crowdlink.services.common import isoformat, utcnow


def serialize_user(user: User) -> dict:
    return {
        "id": user.id,
        "display_name": user.display_name,
        "email": user.email,
        "role": user.role.value,
        "group_id": user.group_id,
        "last_seen": isoformat(user.last_seen),
        "is_online": user.is_online,
        "created_at": isoformat(user.created_at),
    }


def get_user_or_404(user_id: str, session: Session) -> User:
    """Returns the User or raises USER_NOT_FOUND (404)."""
    user = session.get(User, user_id)
    if user is None:
        raise AppError(
            ErrorCode.USER_NOT_FOUND,
            f"User {user_id} does not exist.",
            404,
        )
    return user


def get_user(user_id: str, session: Session) -> dict:
    return serialize_user(get_user_or_404(user_id, session))


def get_or_create_user(
        user_id: str,
        session: Session,
        display_name: str | None = None,
        email: str | None = None,
        role: UserRole | None = None,
) -> tuple[User, bool]:
    """
    Returns (user, created).

    New users take `role` (from the identity token or the session request),
    defaulting to participant. An existing user's stored role is never
    changed here; only change_member_role does that.
    Non-empty display_name / email values overwrite the stored ones.
    """
    user = session.get(User, user_id)
    created = user is None
    if created:
        user = User(
            id=user_id,
            display_name=(display_name or "").strip() or "Unknown User",
            email=email,
            role=role or UserRole.PARTICIPANT,
            left_groups=[],
            kicked_from_groups=[],
            deleted_groups=[],
        )
        session.add(user)
    else:
        if display_name and display_name.strip():
            user.display_name = display_name.strip()
        if email:
            user.email = email
    session.flush()
    return user, created


def heartbeat(user_id: str, session: Session, now: datetime | None = None) -> dict:
    """Marks the user online and stamps last_seen."""
    user = get_user_or_404(user_id, session)
    user.last_seen = now or utcnow()
    user.is_online = True
    session.flush()
    return serialize_user(user)


def set_offline(user_id: str, session: Session) -> dict:
    user = get_user_or_404(user_id, session)
    if user.is_online:
        user.is_online = False
        session.flush()
    return serialize_user(user)


def get_permissions(user_id: str, session: Session) -> dict:
    """Permission row for the user's role, for resources they do not own and do own."""
    user = get_user_or_404(user_id, session)
    return {
        "role": user.role.value,
        "any": permissions_for(user.role, is_owner=False),
        "own": permissions_for(user.role, is_owner=True),
    }
