"""
services/poi_service.py — Map markers (points of interest).

Every privileged check goes through permissions.can_perform:
  create  → create_poi; volunteers (LIMITED grant) only get service types
  delete  → delete_any_marker, else delete_poi with ownership
Emergency markers may only be deleted by whoever placed them.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from crowdlink.errors import AppError, ErrorCode
from crowdlink.models.poi import POI, MarkerType
from crowdlink.models.user import UserRole
from crowdlink.permissions import Action, Grant, can_perform, grant_for
from crowdlink.services import user_service
from crowdlink.services.common import (
    get_group_or_404,
    isoformat,
    require_member,
)

logger = logging.getLogger(__name__)

VOLUNTEER_MARKER_TYPES = frozenset({
    MarkerType.MEDICAL,
    MarkerType.DRINKING_WATER,
    MarkerType.ACCESSIBILITY,
    MarkerType.RESTROOM,
    MarkerType.INFORMATION,
})


def _serialize_poi(poi: POI) -> dict:
    return {
        "id": poi.id,
        "group_id": poi.group_id,
        "name": poi.name,
        "type": poi.type.value,
        "latitude": poi.latitude,
        "longitude": poi.longitude,
        "description": poi.description,
        "created_by": poi.created_by,
        "created_at": isoformat(poi.created_at),
    }


def create_poi(
        group_id: str,
        creator_id: str,
        name: str,
        marker_type: MarkerType,
        latitude: float,
        longitude: float,
        session: Session,
        description: str = "",
) -> dict:
    """
    Raises:
      AppError(FORBIDDEN, 403)                 — role may not create markers
      AppError(MARKER_TYPE_NOT_ALLOWED, 422)   — limited role, restricted type
    """
    get_group_or_404(group_id, session)
    creator = user_service.get_user_or_404(creator_id, session)
    require_member(group_id, creator_id, session)

    if not can_perform(creator.role, Action.CREATE_POI):
        raise AppError(
            ErrorCode.FORBIDDEN,
            "Your role may not place markers.",
            403,
        )
    if (
        grant_for(creator.role, Action.CREATE_POI) is Grant.LIMITED
        and marker_type not in VOLUNTEER_MARKER_TYPES
    ):
        raise AppError(
            ErrorCode.MARKER_TYPE_NOT_ALLOWED,
            f"Your role may not place {marker_type.value} markers.",
            422,
            field="type",
        )

    poi = POI(
        group_id=group_id,
        name=name.strip(),
        type=marker_type,
        latitude=latitude,
        longitude=longitude,
        description=(description or "").strip(),
        created_by=creator.id,
    )
    session.add(poi)
    session.flush()
    return _serialize_poi(poi)


def list_pois(
        group_id: str,
        caller_id: str,
        session: Session,
        marker_type: MarkerType | None = None,
) -> list[dict]:
    get_group_or_404(group_id, session)
    require_member(group_id, caller_id, session)

    stmt = select(POI).where(POI.group_id == group_id)
    if marker_type is not None:
        stmt = stmt.where(POI.type == marker_type)
    rows = session.execute(stmt.order_by(POI.id.asc())).scalars().all()
    return [_serialize_poi(p) for p in rows]


def can_delete_poi(role: UserRole, poi: POI, caller_id: str) -> bool:
    is_owner = poi.created_by == caller_id
    if poi.type is MarkerType.EMERGENCY:
        return is_owner
    return (
        can_perform(role, Action.DELETE_ANY_MARKER)
        or can_perform(role, Action.DELETE_POI, is_owner=is_owner)
    )


def delete_poi(poi_id: int, caller_id: str, session: Session) -> None:
    """
    Raises:
      AppError(POI_NOT_FOUND, 404)
      AppError(FORBIDDEN, 403)
    """
    poi = session.get(POI, poi_id)
    if poi is None:
        raise AppError(
            ErrorCode.POI_NOT_FOUND,
            f"Marker {poi_id} does not exist.",
            404,
        )
    caller = user_service.get_user_or_404(caller_id, session)

    if not can_delete_poi(caller.role, poi, caller.id):
        raise AppError(
            ErrorCode.FORBIDDEN,
            "You may not delete this marker.",
            403,
        )

    session.delete(poi)
    session.flush()
    logger.info("User %s deleted marker %s", caller_id, poi_id)
