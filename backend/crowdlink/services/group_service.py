"""
services/group_service.py — Group lifecycle and membership business logic.

Lifecycle:
  create_group    shared group with a generated join code, creator joins
  join_group      join by code; joining twice succeeds (already_member=True)
  join_protected_group
                  add a user to a role group ("volunteers"), creating it
                  if it has not been seeded yet
  leave_group     remove membership, evaluate cleanup, always clear the
                  user's stored group reference
  kick_member     organizer removes another member
  delete_group    creator with delete_group permission removes the group
                  for everyone
  cleanup_empty_group
                  delete a shared, unprotected group once it has no members;
                  personal and protected groups are always preserved

Kicks and role changes are written to the group's audit log
(group_audit_entries), readable by organizers through list_audit_log.

Cascade order: emergency responses → emergencies → messages → locations →
audit entries → memberships → group row. A failure part-way through leaves
at worst an empty-looking group, never a reference to a group that no
longer exists. All statements run in the caller's transaction; the route
commits once.

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

import enum
import logging
import secrets
import uuid
from datetime import datetime, timedelta

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from crowdlink.errors import AppError, ErrorCode
from crowdlink.models.emergency import Emergency, EmergencyResponse
from crowdlink.models.group import (
    Group,
    GroupType,
    personal_group_id,
)
from crowdlink.models.group_audit import AuditAction, GroupAuditEntry
from crowdlink.models.location import Location
from crowdlink.models.membership import Membership
from crowdlink.models.message import Message
from crowdlink.models.user import User, UserRole
from crowdlink.permissions import Action, can_perform
from crowdlink.services import preference_service, user_service
from crowdlink.services.common import (
    as_utc,
    get_group_or_404,
    get_membership,
    isoformat,
    require_member,
    utcnow,
)

logger = logging.getLogger(__name__)

JOIN_CODE_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
JOIN_CODE_LENGTH = 6
_JOIN_CODE_ATTEMPTS = 10

DEFAULT_ACTIVE_WINDOW = timedelta(minutes=10)
DEFAULT_AUDIT_LIMIT = 50

KICK_REASON = "Removed by organizer"


class CleanupOutcome(str, enum.Enum):
    MISSING            = "missing"
    HAS_MEMBERS        = "has_members"
    PROTECTED          = "protected"
    PERSONAL_PRESERVED = "personal_preserved"
    DELETED            = "deleted"


# ── Private helpers ────────────────────────────────────────────────────────

def _add_membership(group_id: str, user_id: str, session: Session) -> bool:
    """
    Adds user_id to the group's member set.
    Returns False if the user was already a member (no write happens).
    """
    if get_membership(group_id, user_id, session) is not None:
        return False
    session.add(Membership(group_id=group_id, user_id=user_id))
    session.flush()
    return True


def _member_ids(group_id: str, session: Session) -> list[str]:
    stmt = (
        select(Membership.user_id)
        .where(Membership.group_id == group_id)
        .order_by(Membership.joined_at.asc(), Membership.id.asc())
    )
    return list(session.execute(stmt).scalars().all())


def _member_count(group_id: str, session: Session) -> int:
    return session.execute(
        select(func.count(Membership.id)).where(Membership.group_id == group_id)
    ).scalar_one()


def _append_audit(user: User, attribute: str, group_id: str) -> None:
    """Appends group_id to one of the user's audit lists (new list, so JSON change is tracked)."""
    current = list(getattr(user, attribute) or [])
    current.append(group_id)
    setattr(user, attribute, current)


def _record_group_audit(
        group_id: str,
        action: AuditAction,
        actor_id: str,
        target_user_id: str,
        details: dict,
        session: Session,
) -> None:
    session.add(GroupAuditEntry(
        group_id=group_id,
        action=action,
        actor_id=actor_id,
        target_user_id=target_user_id,
        details=details,
    ))


def _generate_join_code(session: Session) -> str:
    """Random A-Z0-9 code, unique among existing groups."""
    for _ in range(_JOIN_CODE_ATTEMPTS):
        code = "".join(secrets.choice(JOIN_CODE_ALPHABET) for _ in range(JOIN_CODE_LENGTH))
        taken = session.execute(
            select(Group.id).where(Group.join_code == code)
        ).scalar_one_or_none()
        if taken is None:
            return code
    raise RuntimeError("Could not generate a unique join code.")


def _build_group_dict(group: Group, member_ids: list[str]) -> dict:
    """Serialises a Group with its member id list to a plain dict."""
    return {
        "id": group.id,
        "name": group.name,
        "join_code": group.join_code,
        "type": group.type.value,
        "is_protected": group.is_protected,
        "created_by": group.created_by,
        "created_at": isoformat(group.created_at),
        "member_ids": member_ids,
    }


# ── Group creation ─────────────────────────────────────────────────────────

def create_group(name: str, creator_id: str, session: Session) -> dict:
    """
    Creates a shared group with a fresh join code. The creator becomes the
    first member and their stored group reference moves to the new group.
    """
    creator = user_service.get_user_or_404(creator_id, session)

    group = Group(
        id=uuid.uuid4().hex,
        name=name.strip(),
        join_code=_generate_join_code(session),
        type=GroupType.SHARED,
        is_protected=False,
        created_by=creator.id,
    )
    session.add(group)
    session.flush()

    _add_membership(group.id, creator.id, session)
    creator.group_id = group.id
    preference_service.set_last_group_id(creator.id, group.id, session)
    session.flush()

    logger.info("Created group %s for user %s", group.id, creator.id)
    return _build_group_dict(group, [creator.id])


def ensure_personal_group(user_id: str, session: Session) -> tuple[Group, bool]:
    """
    Returns (group, created) for the user's personal group.

    Creates it with members [user_id] when missing; if it exists but the
    user is no longer in its member list, the user is added back.
    """
    group_id = personal_group_id(user_id)
    group = session.get(Group, group_id)
    if group is not None:
        _add_membership(group_id, user_id, session)
        return group, False

    group = Group(
        id=group_id,
        name="My Group",
        join_code=None,
        type=GroupType.PERSONAL,
        is_protected=False,
        created_by=user_id,
    )
    session.add(group)
    session.flush()
    _add_membership(group_id, user_id, session)

    logger.info("Created personal group %s", group_id)
    return group, True


def ensure_protected_group(group_id: str, name: str, session: Session) -> tuple[Group, bool]:
    """Idempotently creates a protected group (no join code, no creator)."""
    group = session.get(Group, group_id)
    if group is not None:
        if not group.is_protected:
            group.is_protected = True
            session.flush()
        return group, False

    group = Group(
        id=group_id,
        name=name,
        join_code=None,
        type=GroupType.SHARED,
        is_protected=True,
        created_by=None,
    )
    session.add(group)
    session.flush()

    logger.info("Created protected group %s", group_id)
    return group, True


def join_protected_group(
        user_id: str,
        group_id: str,
        name: str,
        session: Session,
) -> tuple[Group, bool]:
    """
    Adds the user to a protected role group, creating the group first if
    it was never seeded. Returns (group, created) like ensure_personal_group.
    Joining a group the user already belongs to writes nothing.
    """
    group, created = ensure_protected_group(group_id, name, session)
    if _add_membership(group.id, user_id, session):
        logger.info("Added user %s to protected group %s", user_id, group.id)
    return group, created


# ── Membership transitions ─────────────────────────────────────────────────

def join_group(user_id: str, code: str, session: Session) -> dict:
    """
    Joins the group whose join code matches `code` (trimmed, upper-cased).

    Raises:
      AppError(USER_NOT_FOUND, 404)
      AppError(JOIN_CODE_NOT_FOUND, 404) — no group has this code

    Joining a group the user already belongs to is a success with
    already_member=True.
    """
    user = user_service.get_user_or_404(user_id, session)

    normalised = (code or "").strip().upper()
    group = None
    if normalised:
        group = session.execute(
            select(Group).where(Group.join_code == normalised)
        ).scalar_one_or_none()
    if group is None:
        raise AppError(
            ErrorCode.JOIN_CODE_NOT_FOUND,
            "No group matches this join code.",
            404,
            field="code",
        )

    added = _add_membership(group.id, user.id, session)
    user.group_id = group.id
    preference_service.set_last_group_id(user.id, group.id, session)
    session.flush()

    return {
        "group_id": group.id,
        "user_id": user.id,
        "already_member": not added,
    }


def leave_group(user_id: str, group_id: str, session: Session) -> dict:
    """
    Removes the user from the group, then evaluates empty-group cleanup.

    The user's stored group reference and cached last_group_id are cleared
    whatever the cleanup outcome.

    Raises:
      AppError(USER_NOT_FOUND, 404)
      AppError(GROUP_NOT_FOUND, 404)
    """
    user = user_service.get_user_or_404(user_id, session)
    get_group_or_404(group_id, session)

    membership = get_membership(group_id, user_id, session)
    if membership is not None:
        session.delete(membership)
        session.flush()
    _append_audit(user, "left_groups", group_id)

    outcome = cleanup_empty_group(group_id, session)

    user.group_id = None
    preference_service.clear_last_group_id(user.id, session)
    session.flush()

    logger.info("User %s left group %s (cleanup: %s)", user_id, group_id, outcome.value)
    return {
        "group_id": group_id,
        "user_id": user_id,
        "cleanup": outcome.value,
        "group_deleted": outcome is CleanupOutcome.DELETED,
    }


def kick_member(
        group_id: str,
        caller_id: str,
        target_user_id: str,
        session: Session,
) -> dict:
    """
    Removes another member from the group.

    Raises:
      AppError(GROUP_NOT_FOUND, 404)
      AppError(FORBIDDEN, 403)          — caller lacks kick_member or is not a member
      AppError(CANNOT_KICK_SELF, 422)   — use leave_group instead
      AppError(MEMBER_NOT_FOUND, 404)   — target is not in the group
    """
    get_group_or_404(group_id, session)
    caller = user_service.get_user_or_404(caller_id, session)
    require_member(group_id, caller_id, session)

    if not can_perform(caller.role, Action.KICK_MEMBER):
        raise AppError(
            ErrorCode.FORBIDDEN,
            "Only organizers may remove other members.",
            403,
        )

    if caller_id == target_user_id:
        raise AppError(
            ErrorCode.CANNOT_KICK_SELF,
            "You cannot remove yourself. Leave the group instead.",
            422,
        )

    membership = get_membership(group_id, target_user_id, session)
    if membership is None:
        raise AppError(
            ErrorCode.MEMBER_NOT_FOUND,
            f"User {target_user_id} is not a member of group {group_id}.",
            404,
        )

    session.delete(membership)
    _record_group_audit(
        group_id,
        AuditAction.MEMBER_KICKED,
        caller_id,
        target_user_id,
        {"reason": KICK_REASON},
        session,
    )

    target = session.get(User, target_user_id)
    if target is not None:
        _append_audit(target, "kicked_from_groups", group_id)
        if target.group_id == group_id:
            target.group_id = None
            preference_service.clear_last_group_id(target.id, session)
    session.flush()

    logger.info("User %s removed %s from group %s", caller_id, target_user_id, group_id)
    return {
        "group_id": group_id,
        "user_id": target_user_id,
        "removed": True,
    }


def change_member_role(
        group_id: str,
        caller_id: str,
        target_user_id: str,
        new_role: UserRole,
        session: Session,
) -> dict:
    """
    Changes a member's role. Caller needs change_role and both users must be
    members of the group.
    """
    get_group_or_404(group_id, session)
    caller = user_service.get_user_or_404(caller_id, session)
    require_member(group_id, caller_id, session)

    if not can_perform(caller.role, Action.CHANGE_ROLE):
        raise AppError(
            ErrorCode.FORBIDDEN,
            "Only organizers may change member roles.",
            403,
        )

    if get_membership(group_id, target_user_id, session) is None:
        raise AppError(
            ErrorCode.MEMBER_NOT_FOUND,
            f"User {target_user_id} is not a member of group {group_id}.",
            404,
        )

    target = user_service.get_user_or_404(target_user_id, session)
    previous_role = target.role
    target.role = new_role
    _record_group_audit(
        group_id,
        AuditAction.ROLE_CHANGED,
        caller_id,
        target_user_id,
        {"previous_role": previous_role.value, "new_role": new_role.value},
        session,
    )
    session.flush()

    logger.info("User %s set role of %s to %s", caller_id, target_user_id, new_role.value)
    return {
        "group_id": group_id,
        "user_id": target_user_id,
        "role": new_role.value,
    }


# ── Deletion ───────────────────────────────────────────────────────────────

def cascade_delete_group(group_id: str, session: Session) -> dict:
    """
    Deletes a group and everything it owns, children first.

    Returns counts of deleted rows and the ids of the former members.
    Does not check permissions; callers do.
    """
    former_members = _member_ids(group_id, session)

    emergency_ids = select(Emergency.id).where(Emergency.group_id == group_id)
    session.execute(
        delete(EmergencyResponse).where(EmergencyResponse.emergency_id.in_(emergency_ids))
    )
    emergencies = session.execute(
        delete(Emergency).where(Emergency.group_id == group_id)
    ).rowcount
    messages = session.execute(
        delete(Message).where(Message.group_id == group_id)
    ).rowcount
    locations = session.execute(
        delete(Location).where(Location.group_id == group_id)
    ).rowcount
    session.execute(delete(GroupAuditEntry).where(GroupAuditEntry.group_id == group_id))
    session.execute(delete(Membership).where(Membership.group_id == group_id))
    session.execute(delete(Group).where(Group.id == group_id))
    session.flush()

    logger.info(
        "Deleted group %s with %d messages, %d locations and %d emergencies",
        group_id,
        messages,
        locations,
        emergencies,
    )
    return {
        "group_id": group_id,
        "messages_deleted": messages,
        "locations_deleted": locations,
        "emergencies_deleted": emergencies,
        "former_member_ids": former_members,
    }


def cleanup_empty_group(group_id: str, session: Session) -> CleanupOutcome:
    """
    Deletes the group if it is empty, shared and unprotected.

    Never deletes a group that still has members, a protected group, or a
    personal group (a personal group may be memberless briefly while its
    owner switches groups).
    """
    group = session.get(Group, group_id)
    if group is None:
        return CleanupOutcome.MISSING

    if _member_count(group_id, session) > 0:
        return CleanupOutcome.HAS_MEMBERS

    if group.is_protected:
        logger.debug("Keeping empty protected group %s", group_id)
        return CleanupOutcome.PROTECTED

    if group.type is GroupType.PERSONAL:
        logger.debug("Keeping empty personal group %s", group_id)
        return CleanupOutcome.PERSONAL_PRESERVED

    cascade_delete_group(group_id, session)
    return CleanupOutcome.DELETED


def delete_group(group_id: str, requester_id: str, session: Session) -> dict:
    """
    Deletes a group for all members.

    Allowed only when the permission gate grants delete_group, with
    ownership meaning the requester created the group. Every former member
    gets a deleted_groups audit entry, and their stored reference is cleared
    if it pointed at this group.

    Raises:
      AppError(GROUP_NOT_FOUND, 404)
      AppError(USER_NOT_FOUND, 404)
      AppError(FORBIDDEN, 403)
    """
    group = get_group_or_404(group_id, session)
    requester = user_service.get_user_or_404(requester_id, session)

    is_owner = group.created_by is not None and group.created_by == requester.id
    if not can_perform(requester.role, Action.DELETE_GROUP, is_owner=is_owner):
        raise AppError(
            ErrorCode.FORBIDDEN,
            "Only the organizer who created this group may delete it.",
            403,
        )

    result = cascade_delete_group(group_id, session)

    for member_id in result["former_member_ids"]:
        member = session.get(User, member_id)
        if member is None:
            continue
        _append_audit(member, "deleted_groups", group_id)
        if member.group_id == group_id:
            member.group_id = None
            preference_service.clear_last_group_id(member.id, session)
    session.flush()

    return result


# ── Reads ──────────────────────────────────────────────────────────────────

def get_group(
        group_id: str,
        caller_id: str,
        session: Session,
        active_window: timedelta = DEFAULT_ACTIVE_WINDOW,
        now: datetime | None = None,
) -> dict:
    """
    Returns group details with members and activity counts.

    A member is active if last seen within `active_window`.
    Caller must be a member (FORBIDDEN 403, not 404).
    """
    group = get_group_or_404(group_id, session)
    require_member(group_id, caller_id, session)

    now = now or utcnow()
    stmt = (
        select(User)
        .join(Membership, User.id == Membership.user_id)
        .where(Membership.group_id == group_id)
        .order_by(Membership.joined_at.asc(), Membership.id.asc())
    )
    members = list(session.execute(stmt).scalars().all())

    serialised = []
    active = 0
    for member in members:
        last_seen = as_utc(member.last_seen)
        is_active = last_seen is not None and now - last_seen <= active_window
        if is_active:
            active += 1
        serialised.append({
            "id": member.id,
            "display_name": member.display_name,
            "role": member.role.value,
            "last_seen": isoformat(last_seen),
            "is_online": member.is_online,
            "is_active": is_active,
        })

    result = _build_group_dict(group, [m.id for m in members])
    result["members"] = serialised
    result["total_members"] = len(members)
    result["active_members"] = active
    return result


def get_group_snapshot(group_id: str, session: Session) -> dict | None:
    """Membership snapshot for subscriptions. None once the group is gone."""
    group = session.get(Group, group_id)
    if group is None:
        return None
    return _build_group_dict(group, _member_ids(group_id, session))


def list_audit_log(
        group_id: str,
        caller_id: str,
        session: Session,
        limit: int = DEFAULT_AUDIT_LIMIT,
) -> list[dict]:
    """
    Newest-first kicks and role changes for the group.

    Raises:
      AppError(GROUP_NOT_FOUND, 404)
      AppError(FORBIDDEN, 403)   — caller is not a member or lacks view_audit_log
    """
    get_group_or_404(group_id, session)
    caller = user_service.get_user_or_404(caller_id, session)
    require_member(group_id, caller_id, session)

    if not can_perform(caller.role, Action.VIEW_AUDIT_LOG):
        raise AppError(
            ErrorCode.FORBIDDEN,
            "Only organizers may view the group audit log.",
            403,
        )

    stmt = (
        select(GroupAuditEntry)
        .where(GroupAuditEntry.group_id == group_id)
        .order_by(GroupAuditEntry.created_at.desc(), GroupAuditEntry.id.desc())
        .limit(limit)
    )
    return [
        {
            "id": entry.id,
            "action": entry.action.value,
            "actor_id": entry.actor_id,
            "target_user_id": entry.target_user_id,
            "details": entry.details or {},
            "created_at": isoformat(entry.created_at),
        }
        for entry in session.execute(stmt).scalars().all()
    ]
