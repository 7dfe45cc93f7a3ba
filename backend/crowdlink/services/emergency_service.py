"""
services/emergency_service.py — Emergency reports and volunteer response.

Lifecycle:
  create_emergency        a member raises an emergency at a position in a
                          group; their location row is flagged. A user has at
                          most one unresolved emergency: raising again returns
                          the open one (already_open=True)
  respond_to_emergency    a volunteer or organizer takes the emergency;
                          active → in_progress
  update_response_status  responder progress (en_route, arrived, ...);
                          completed marks volunteer_completed
  withdraw_response       responder drops out; back to active if nobody is
                          left engaged
  resolve_emergency       reporter (or an organizer) closes it and the
                          reporter's location flag is cleared

Visibility: group members see the group's emergencies; responders
(respond_emergency) see every unresolved one, since volunteers sit in their
own role group rather than the reporter's.

Pushing notifications to responders is out of scope; clients poll
list_open_emergencies.

Layer rules: no Flask imports, flush only.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from crowdlink.errors import AppError, ErrorCode
from crowdlink.models.emergency import (
    Emergency,
    EmergencyResponse,
    EmergencyStatus,
    ResponderStatus,
)
from crowdlink.models.user import User
from crowdlink.permissions import Action, can_perform
from crowdlink.services import location_service, user_service
from crowdlink.services.common import (
    get_group_or_404,
    is_member,
    isoformat,
    require_member,
    utcnow,
)

logger = logging.getLogger(__name__)


# ── Private helpers ────────────────────────────────────────────────────────

def _get_emergency_or_404(emergency_id: int, session: Session) -> Emergency:
    emergency = session.get(Emergency, emergency_id)
    if emergency is None:
        raise AppError(
            ErrorCode.EMERGENCY_NOT_FOUND,
            f"Emergency {emergency_id} does not exist.",
            404,
        )
    return emergency


def _get_response(emergency_id: int, volunteer_id: str, session: Session) -> EmergencyResponse | None:
    return session.execute(
        select(EmergencyResponse).where(
            EmergencyResponse.emergency_id == emergency_id,
            EmergencyResponse.volunteer_id == volunteer_id,
        )
    ).scalar_one_or_none()


def _responses(emergency_id: int, session: Session) -> list[EmergencyResponse]:
    stmt = (
        select(EmergencyResponse)
        .where(EmergencyResponse.emergency_id == emergency_id)
        .order_by(EmergencyResponse.id.asc())
    )
    return list(session.execute(stmt).scalars().all())


def _require_open(emergency: Emergency) -> None:
    if emergency.status is EmergencyStatus.RESOLVED:
        raise AppError(
            ErrorCode.EMERGENCY_RESOLVED,
            f"Emergency {emergency.id} has already been resolved.",
            409,
        )


def _require_responder(user: User) -> None:
    if not can_perform(user.role, Action.RESPOND_EMERGENCY):
        raise AppError(
            ErrorCode.FORBIDDEN,
            "Only volunteers and organizers may respond to emergencies.",
            403,
        )


def _refresh_status(emergency: Emergency, session: Session) -> None:
    """in_progress while any responder is engaged, otherwise active."""
    if emergency.status is EmergencyStatus.RESOLVED:
        return
    engaged = any(r.status.is_engaged for r in _responses(emergency.id, session))
    emergency.status = EmergencyStatus.IN_PROGRESS if engaged else EmergencyStatus.ACTIVE
    emergency.updated_at = utcnow()
    session.flush()


def _serialize_response(response: EmergencyResponse) -> dict:
    return {
        "volunteer_id": response.volunteer_id,
        "status": response.status.value,
        "estimated_arrival_minutes": response.estimated_arrival_minutes,
        "responded_at": isoformat(response.responded_at),
        "updated_at": isoformat(response.updated_at),
    }


def serialize_emergency(emergency: Emergency, session: Session) -> dict:
    responses = _responses(emergency.id, session)
    return {
        "id": emergency.id,
        "group_id": emergency.group_id,
        "reporter_id": emergency.reporter_id,
        "latitude": emergency.latitude,
        "longitude": emergency.longitude,
        "message": emergency.message,
        "status": emergency.status.value,
        "volunteer_completed": emergency.volunteer_completed,
        "responders": [_serialize_response(r) for r in responses],
        "active_responder_count": sum(1 for r in responses if r.status.is_engaged),
        "created_at": isoformat(emergency.created_at),
        "updated_at": isoformat(emergency.updated_at),
        "resolved_at": isoformat(emergency.resolved_at),
        "resolved_by": emergency.resolved_by,
    }


def _open_emergency_for(reporter_id: str, session: Session) -> Emergency | None:
    return session.execute(
        select(Emergency)
        .where(
            Emergency.reporter_id == reporter_id,
            Emergency.status != EmergencyStatus.RESOLVED,
        )
        .order_by(Emergency.created_at.desc(), Emergency.id.desc())
        .limit(1)
    ).scalar_one_or_none()


# ── Reporting ──────────────────────────────────────────────────────────────

def create_emergency(
        group_id: str,
        reporter_id: str,
        latitude: float,
        longitude: float,
        session: Session,
        message: str | None = None,
) -> dict:
    """
    Raises an emergency for the reporter inside group_id.

    Returns {"emergency", "already_open"}. When the reporter already has an
    unresolved emergency, nothing is written and that one is returned.

    Raises:
      AppError(GROUP_NOT_FOUND, 404)
      AppError(USER_NOT_FOUND, 404)
      AppError(FORBIDDEN, 403)   — reporter is not a member of the group
    """
    get_group_or_404(group_id, session)
    reporter = user_service.get_user_or_404(reporter_id, session)
    require_member(group_id, reporter.id, session)

    existing = _open_emergency_for(reporter.id, session)
    if existing is not None:
        return {
            "emergency": serialize_emergency(existing, session),
            "already_open": True,
        }

    emergency = Emergency(
        group_id=group_id,
        reporter_id=reporter.id,
        latitude=latitude,
        longitude=longitude,
        message=message,
        status=EmergencyStatus.ACTIVE,
        volunteer_completed=False,
    )
    session.add(emergency)
    session.flush()

    location_service.update_location(
        group_id,
        reporter.id,
        latitude,
        longitude,
        session,
        is_emergency=True,
        emergency_message=message,
    )

    logger.warning(
        "Emergency %s raised by %s in group %s",
        emergency.id,
        reporter.id,
        group_id,
    )
    return {
        "emergency": serialize_emergency(emergency, session),
        "already_open": False,
    }


def resolve_emergency(emergency_id: int, caller_id: str, session: Session) -> dict:
    """
    Closes the emergency. The reporter may always resolve their own;
    organizers may resolve any. Resolving twice is a success with
    already_resolved=True.

    Raises:
      AppError(USER_NOT_FOUND, 404)
      AppError(EMERGENCY_NOT_FOUND, 404)
      AppError(FORBIDDEN, 403)
    """
    caller = user_service.get_user_or_404(caller_id, session)
    emergency = _get_emergency_or_404(emergency_id, session)

    is_owner = emergency.reporter_id == caller.id
    if not can_perform(caller.role, Action.RESOLVE_EMERGENCY, is_owner=is_owner):
        raise AppError(
            ErrorCode.FORBIDDEN,
            "Only the reporter or an organizer may resolve this emergency.",
            403,
        )

    if emergency.status is EmergencyStatus.RESOLVED:
        return {
            "emergency": serialize_emergency(emergency, session),
            "already_resolved": True,
        }

    now = utcnow()
    emergency.status = EmergencyStatus.RESOLVED
    emergency.resolved_at = now
    emergency.resolved_by = caller.id
    emergency.updated_at = now
    session.flush()

    location_service.clear_emergency_flag(emergency.group_id, emergency.reporter_id, session)

    logger.info("Emergency %s resolved by %s", emergency.id, caller.id)
    return {
        "emergency": serialize_emergency(emergency, session),
        "already_resolved": False,
    }


# ── Volunteer response ─────────────────────────────────────────────────────

def respond_to_emergency(
        emergency_id: int,
        volunteer_id: str,
        session: Session,
        estimated_arrival_minutes: int | None = None,
) -> dict:
    """
    Registers the caller as a responder. Responding twice is a success with
    already_responding=True (an ETA given the second time is stored).

    Raises:
      AppError(USER_NOT_FOUND, 404)
      AppError(FORBIDDEN, 403)                          — role cannot respond
      AppError(EMERGENCY_NOT_FOUND, 404)
      AppError(EMERGENCY_RESOLVED, 409)
      AppError(CANNOT_RESPOND_TO_OWN_EMERGENCY, 422)
    """
    volunteer = user_service.get_user_or_404(volunteer_id, session)
    _require_responder(volunteer)
    emergency = _get_emergency_or_404(emergency_id, session)
    _require_open(emergency)

    if emergency.reporter_id == volunteer.id:
        raise AppError(
            ErrorCode.CANNOT_RESPOND_TO_OWN_EMERGENCY,
            "You cannot respond to your own emergency.",
            422,
        )

    response = _get_response(emergency.id, volunteer.id, session)
    already_responding = response is not None
    if response is None:
        response = EmergencyResponse(
            emergency_id=emergency.id,
            volunteer_id=volunteer.id,
            status=ResponderStatus.RESPONDING,
        )
        session.add(response)
    elif not response.status.is_engaged:
        response.status = ResponderStatus.RESPONDING
        response.updated_at = utcnow()
    if estimated_arrival_minutes is not None:
        response.estimated_arrival_minutes = estimated_arrival_minutes
    session.flush()

    _refresh_status(emergency, session)

    logger.info("User %s responding to emergency %s", volunteer.id, emergency.id)
    return {
        "emergency": serialize_emergency(emergency, session),
        "already_responding": already_responding,
    }


def update_response_status(
        emergency_id: int,
        volunteer_id: str,
        status: ResponderStatus,
        session: Session,
        estimated_arrival_minutes: int | None = None,
) -> dict:
    """
    Records responder progress.

    Raises:
      AppError(EMERGENCY_NOT_FOUND, 404)
      AppError(EMERGENCY_RESOLVED, 409)
      AppError(RESPONSE_NOT_FOUND, 404)   — caller never responded
    """
    emergency = _get_emergency_or_404(emergency_id, session)
    _require_open(emergency)

    response = _get_response(emergency.id, volunteer_id, session)
    if response is None:
        raise AppError(
            ErrorCode.RESPONSE_NOT_FOUND,
            f"You are not responding to emergency {emergency_id}.",
            404,
        )

    response.status = status
    response.updated_at = utcnow()
    if estimated_arrival_minutes is not None:
        response.estimated_arrival_minutes = estimated_arrival_minutes
    if status is ResponderStatus.COMPLETED:
        emergency.volunteer_completed = True
    session.flush()

    _refresh_status(emergency, session)
    return serialize_emergency(emergency, session)


def withdraw_response(emergency_id: int, volunteer_id: str, session: Session) -> dict:
    """
    Removes the caller's response.

    Raises:
      AppError(EMERGENCY_NOT_FOUND, 404)
      AppError(RESPONSE_NOT_FOUND, 404)
    """
    emergency = _get_emergency_or_404(emergency_id, session)

    response = _get_response(emergency.id, volunteer_id, session)
    if response is None:
        raise AppError(
            ErrorCode.RESPONSE_NOT_FOUND,
            f"You are not responding to emergency {emergency_id}.",
            404,
        )

    session.delete(response)
    session.flush()

    _refresh_status(emergency, session)
    logger.info("User %s withdrew from emergency %s", volunteer_id, emergency.id)
    return serialize_emergency(emergency, session)


# ── Reads ──────────────────────────────────────────────────────────────────

def get_emergency(emergency_id: int, caller_id: str, session: Session) -> dict:
    """
    Raises:
      AppError(USER_NOT_FOUND, 404)
      AppError(EMERGENCY_NOT_FOUND, 404)
      AppError(FORBIDDEN, 403)   — neither a group member nor a responder
    """
    caller = user_service.get_user_or_404(caller_id, session)
    emergency = _get_emergency_or_404(emergency_id, session)

    visible = (
        emergency.reporter_id == caller.id
        or can_perform(caller.role, Action.RESPOND_EMERGENCY)
        or is_member(emergency.group_id, caller.id, session)
    )
    if not visible:
        raise AppError(
            ErrorCode.FORBIDDEN,
            f"You cannot view emergency {emergency_id}.",
            403,
        )
    return serialize_emergency(emergency, session)


def list_emergencies(
        group_id: str,
        caller_id: str,
        session: Session,
        active_only: bool = False,
) -> list[dict]:
    """The group's emergencies, newest first. Caller must be a member."""
    get_group_or_404(group_id, session)
    require_member(group_id, caller_id, session)

    stmt = select(Emergency).where(Emergency.group_id == group_id)
    if active_only:
        stmt = stmt.where(Emergency.status != EmergencyStatus.RESOLVED)
    stmt = stmt.order_by(Emergency.created_at.desc(), Emergency.id.desc())
    return [
        serialize_emergency(e, session)
        for e in session.execute(stmt).scalars().all()
    ]


def list_open_emergencies(caller_id: str, session: Session) -> list[dict]:
    """Every unresolved emergency, oldest first. Responders only."""
    caller = user_service.get_user_or_404(caller_id, session)
    _require_responder(caller)

    stmt = (
        select(Emergency)
        .where(Emergency.status != EmergencyStatus.RESOLVED)
        .order_by(Emergency.created_at.asc(), Emergency.id.asc())
    )
    return [
        serialize_emergency(e, session)
        for e in session.execute(stmt).scalars().all()
    ]


def get_emergency_stats(group_id: str, caller_id: str, session: Session) -> dict:
    """Counts per status for the group, plus the total."""
    get_group_or_404(group_id, session)
    require_member(group_id, caller_id, session)

    rows = session.execute(
        select(Emergency.status, func.count(Emergency.id))
        .where(Emergency.group_id == group_id)
        .group_by(Emergency.status)
    ).all()

    stats = {status.value: 0 for status in EmergencyStatus}
    for status, count in rows:
        stats[EmergencyStatus(status).value] = count
    stats["total"] = sum(stats.values())
    return stats
