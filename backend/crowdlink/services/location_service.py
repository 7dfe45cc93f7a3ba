"""
services/location_service.py — Member location sharing inside a group.

Each member has at most one location row per group; updates overwrite it.
Nearby queries filter the group's rows by great-circle distance.
"""

from __future__ import annotations

import math

from sqlalchemy import select
from sqlalchemy.orm import Session

from crowdlink.models.location import Location
from crowdlink.services.common import (
    get_group_or_404,
    isoformat,
    require_member,
    utcnow,
)

EARTH_RADIUS_M = 6_371_000.0


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in metres between two WGS84 points."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def _serialize_location(location: Location) -> dict:
    return {
        "group_id": location.group_id,
        "user_id": location.user_id,
        "latitude": location.latitude,
        "longitude": location.longitude,
        "is_emergency": location.is_emergency,
        "emergency_message": location.emergency_message,
        "updated_at": isoformat(location.updated_at),
    }


def update_location(
        group_id: str,
        user_id: str,
        latitude: float,
        longitude: float,
        session: Session,
        is_emergency: bool = False,
        emergency_message: str | None = None,
) -> dict:
    """Upserts the caller's position in the group."""
    get_group_or_404(group_id, session)
    require_member(group_id, user_id, session)

    location = session.execute(
        select(Location).where(
            Location.group_id == group_id,
            Location.user_id == user_id,
        )
    ).scalar_one_or_none()

    if location is None:
        location = Location(group_id=group_id, user_id=user_id)
        session.add(location)

    location.latitude = latitude
    location.longitude = longitude
    location.is_emergency = is_emergency
    location.emergency_message = emergency_message if is_emergency else None
    location.updated_at = utcnow()
    session.flush()
    return _serialize_location(location)


def clear_emergency_flag(group_id: str, user_id: str, session: Session) -> bool:
    """
    Clears the emergency state on the user's location row in the group.
    Returns False when there is no row or it was not flagged.
    """
    location = session.execute(
        select(Location).where(
            Location.group_id == group_id,
            Location.user_id == user_id,
        )
    ).scalar_one_or_none()
    if location is None or not location.is_emergency:
        return False
    location.is_emergency = False
    location.emergency_message = None
    location.updated_at = utcnow()
    session.flush()
    return True


def _group_locations(group_id: str, session: Session, emergency_only: bool = False) -> list[Location]:
    stmt = select(Location).where(Location.group_id == group_id)
    if emergency_only:
        stmt = stmt.where(Location.is_emergency.is_(True))
    return list(session.execute(stmt.order_by(Location.id.asc())).scalars().all())


def list_locations(
        group_id: str,
        caller_id: str,
        session: Session,
        emergency_only: bool = False,
) -> list[dict]:
    get_group_or_404(group_id, session)
    require_member(group_id, caller_id, session)
    return [
        _serialize_location(loc)
        for loc in _group_locations(group_id, session, emergency_only=emergency_only)
    ]


def nearby_members(
        group_id: str,
        caller_id: str,
        latitude: float,
        longitude: float,
        radius_m: float,
        session: Session,
) -> list[dict]:
    """Group locations within radius_m of the point, nearest first."""
    get_group_or_404(group_id, session)
    require_member(group_id, caller_id, session)

    hits = []
    for loc in _group_locations(group_id, session):
        distance = haversine_distance(latitude, longitude, loc.latitude, loc.longitude)
        if distance <= radius_m:
            item = _serialize_location(loc)
            item["distance_m"] = round(distance, 1)
            hits.append(item)
    hits.sort(key=lambda item: item["distance_m"])
    return hits
