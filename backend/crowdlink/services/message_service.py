"""
services/message_service.py — Group chat messages.

Only members may post or read. Messages are removed with their group.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from crowdlink.models.message import Message
from crowdlink.services.common import (
    get_group_or_404,
    isoformat,
    require_member,
)

MAX_PAGE_SIZE = 100


def _serialize_message(message: Message) -> dict:
    return {
        "id": message.id,
        "group_id": message.group_id,
        "sender_id": message.sender_id,
        "body": message.body,
        "created_at": isoformat(message.created_at),
    }


def post_message(group_id: str, sender_id: str, body: str, session: Session) -> dict:
    get_group_or_404(group_id, session)
    require_member(group_id, sender_id, session)

    message = Message(group_id=group_id, sender_id=sender_id, body=body.strip())
    session.add(message)
    session.flush()
    return _serialize_message(message)


def list_messages(
        group_id: str,
        caller_id: str,
        session: Session,
        limit: int = 50,
) -> list[dict]:
    """Newest first, at most MAX_PAGE_SIZE."""
    get_group_or_404(group_id, session)
    require_member(group_id, caller_id, session)

    limit = max(1, min(limit, MAX_PAGE_SIZE))
    stmt = (
        select(Message)
        .where(Message.group_id == group_id)
        .order_by(Message.created_at.desc(), Message.id.desc())
        .limit(limit)
    )
    return [_serialize_message(m) for m in session.execute(stmt).scalars().all()]
