"""
services/broadcast_service.py — Organizer announcements.

Organizers send a broadcast to an audience:
  all_users      everyone
  participants   participants (including legacy "attendee" accounts)
  volunteers     volunteers
  vips           VIP guests
  my_group       members whose stored group is the sender's group

Users list the broadcasts addressed to them, newest first, with a read flag,
and mark them read. The sender always sees their own broadcasts.

Layer rules: no Flask imports, flush only.
"""

from __future__ import annotations

import logging

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from crowdlink.errors import AppError, ErrorCode
from crowdlink.models.broadcast import (
    Broadcast,
    BroadcastAudience,
    BroadcastPriority,
    BroadcastRead,
)
from crowdlink.models.user import User, UserRole
from crowdlink.permissions import Action, can_perform
from crowdlink.services import user_service
from crowdlink.services.common import isoformat

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50

ROLE_AUDIENCES = {
    UserRole.PARTICIPANT: BroadcastAudience.PARTICIPANTS,
    UserRole.VOLUNTEER:   BroadcastAudience.VOLUNTEERS,
    UserRole.VIP:         BroadcastAudience.VIPS,
}


def _audience_clause(user: User):
    """SQL condition selecting the broadcasts addressed to `user`."""
    clauses = [
        Broadcast.audience == BroadcastAudience.ALL_USERS,
        Broadcast.sender_id == user.id,
    ]
    role_audience = ROLE_AUDIENCES.get(user.role)
    if role_audience is not None:
        clauses.append(Broadcast.audience == role_audience)
    if user.group_id:
        clauses.append(and_(
            Broadcast.audience == BroadcastAudience.MY_GROUP,
            Broadcast.group_id == user.group_id,
        ))
    return or_(*clauses)


def _serialize(broadcast: Broadcast, is_read: bool | None = None) -> dict:
    result = {
        "id": broadcast.id,
        "sender_id": broadcast.sender_id,
        "title": broadcast.title,
        "body": broadcast.body,
        "audience": broadcast.audience.value,
        "priority": broadcast.priority.value,
        "group_id": broadcast.group_id,
        "is_active": broadcast.is_active,
        "created_at": isoformat(broadcast.created_at),
    }
    if is_read is not None:
        result["is_read"] = is_read
    return result


def send_broadcast(
        sender_id: str,
        title: str,
        body: str,
        session: Session,
        audience: BroadcastAudience = BroadcastAudience.ALL_USERS,
        priority: BroadcastPriority = BroadcastPriority.NORMAL,
) -> dict:
    """
    Raises:
      AppError(USER_NOT_FOUND, 404)
      AppError(FORBIDDEN, 403)                  — sender lacks send_broadcast
      AppError(BROADCAST_GROUP_REQUIRED, 422)   — my_group without a stored group
    """
    sender = user_service.get_user_or_404(sender_id, session)
    if not can_perform(sender.role, Action.SEND_BROADCAST):
        raise AppError(
            ErrorCode.FORBIDDEN,
            "Only organizers may send broadcasts.",
            403,
        )

    group_id = None
    if audience is BroadcastAudience.MY_GROUP:
        if not sender.group_id:
            raise AppError(
                ErrorCode.BROADCAST_GROUP_REQUIRED,
                "You need a current group to broadcast to it.",
                422,
                field="audience",
            )
        group_id = sender.group_id

    broadcast = Broadcast(
        sender_id=sender.id,
        title=title.strip(),
        body=body,
        audience=audience,
        priority=priority,
        group_id=group_id,
        is_active=True,
    )
    session.add(broadcast)
    session.flush()

    logger.info(
        "User %s broadcast %s to %s (%s)",
        sender.id,
        broadcast.id,
        audience.value,
        priority.value,
    )
    return _serialize(broadcast)


def list_broadcasts(
        user_id: str,
        session: Session,
        unread_only: bool = False,
        limit: int = DEFAULT_PAGE_SIZE,
) -> list[dict]:
    """Active broadcasts addressed to the user, newest first, with is_read."""
    user = user_service.get_user_or_404(user_id, session)

    read_ids = set(session.execute(
        select(BroadcastRead.broadcast_id).where(BroadcastRead.user_id == user.id)
    ).scalars().all())

    stmt = (
        select(Broadcast)
        .where(Broadcast.is_active.is_(True), _audience_clause(user))
        .order_by(Broadcast.created_at.desc(), Broadcast.id.desc())
    )
    if unread_only and read_ids:
        stmt = stmt.where(Broadcast.id.not_in(read_ids))
    stmt = stmt.limit(limit)

    return [
        _serialize(b, is_read=b.id in read_ids)
        for b in session.execute(stmt).scalars().all()
    ]


def mark_read(broadcast_id: int, user_id: str, session: Session) -> dict:
    """
    Marks a broadcast read for the user. Marking twice is a success with
    already_read=True.

    Raises:
      AppError(USER_NOT_FOUND, 404)
      AppError(BROADCAST_NOT_FOUND, 404)   — missing, or not addressed to the user
    """
    user = user_service.get_user_or_404(user_id, session)
    broadcast = session.execute(
        select(Broadcast).where(Broadcast.id == broadcast_id, _audience_clause(user))
    ).scalar_one_or_none()
    if broadcast is None:
        raise AppError(
            ErrorCode.BROADCAST_NOT_FOUND,
            f"Broadcast {broadcast_id} does not exist.",
            404,
        )

    existing = session.execute(
        select(BroadcastRead).where(
            BroadcastRead.broadcast_id == broadcast.id,
            BroadcastRead.user_id == user.id,
        )
    ).scalar_one_or_none()
    if existing is None:
        session.add(BroadcastRead(broadcast_id=broadcast.id, user_id=user.id))
        session.flush()

    return {
        "broadcast_id": broadcast.id,
        "user_id": user.id,
        "already_read": existing is not None,
    }
