"""
services/session_service.py — Session start and group resolution.

resolve_session_group decides which group a session uses:

  stored reference absent          → the user's role group when their role
                                     has one (volunteer → "volunteers"),
                                     joined and created if missing;
                                     otherwise the personal group
                                     "personal-<user id>", created with
                                     members [user] if missing
  stored reference "default_group" → legacy shared group: drop the user's
                                     membership there, record the migration
                                     once, then treat as absent
  anything else                    → returned unchanged, groups untouched

Role groups come from the ROLE_GROUPS setting ({role: (group id, name)}).
The result is cached as the user's last_group_id preference. Database errors
propagate; they are never replaced by a default group.

Layer rules: no Flask imports, flush only.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from sqlalchemy import select
from sqlalchemy.orm import Session

from crowdlink.models.group import LEGACY_SHARED_GROUP_ID
from crowdlink.models.membership import Membership
from crowdlink.models.user import User, UserRole
from crowdlink.services import group_service, preference_service, user_service
from crowdlink.services.common import utcnow

logger = logging.getLogger(__name__)


def _migrate_from_legacy_group(user: User, session: Session) -> None:
    """Removes the user from the legacy shared group and stamps the migration once."""
    membership = session.execute(
        select(Membership).where(
            Membership.group_id == LEGACY_SHARED_GROUP_ID,
            Membership.user_id == user.id,
        )
    ).scalar_one_or_none()
    if membership is not None:
        session.delete(membership)

    if user.legacy_migrated_at is None:
        user.legacy_migrated_at = utcnow()
    user.group_id = None
    session.flush()

    logger.info("Migrated user %s off legacy group %s", user.id, LEGACY_SHARED_GROUP_ID)


def resolve_session_group(
        user_id: str,
        session: Session,
        role_groups: Mapping[str, tuple[str, str]] | None = None,
) -> dict:
    """
    Returns {"group_id", "migrated", "created"} for the user's session.

    Args:
        role_groups: role value → (group id, display name) of the protected
                     group a user with that role lands in when they have no
                     stored reference.

    Raises:
      AppError(USER_NOT_FOUND, 404)
    """
    user = user_service.get_user_or_404(user_id, session)

    migrated = False
    if user.group_id == LEGACY_SHARED_GROUP_ID:
        _migrate_from_legacy_group(user, session)
        migrated = True

    if user.group_id:
        preference_service.set_last_group_id(user.id, user.group_id, session)
        return {
            "group_id": user.group_id,
            "migrated": False,
            "created": False,
        }

    role = UserRole.from_value(user.role)
    role_group = (role_groups or {}).get(role.value) if role is not None else None
    if role_group is not None:
        group_id, name = role_group
        group, created = group_service.join_protected_group(user.id, group_id, name, session)
    else:
        group, created = group_service.ensure_personal_group(user.id, session)

    user.group_id = group.id
    preference_service.set_last_group_id(user.id, group.id, session)
    session.flush()

    return {
        "group_id": group.id,
        "migrated": migrated,
        "created": created,
    }


def start_session(
        user_id: str,
        session: Session,
        display_name: str | None = None,
        email: str | None = None,
        role: UserRole | None = None,
        role_groups: Mapping[str, tuple[str, str]] | None = None,
) -> dict:
    """
    Called once per app launch: creates the user on first authentication,
    records presence and resolves the session group.

    `role` only applies when the user is created here.
    """
    user, user_created = user_service.get_or_create_user(
        user_id,
        session,
        display_name=display_name,
        email=email,
        role=role,
    )
    user_service.heartbeat(user_id, session)
    resolution = resolve_session_group(user_id, session, role_groups=role_groups)

    return {
        "user": user_service.serialize_user(user),
        "user_created": user_created,
        **resolution,
    }
