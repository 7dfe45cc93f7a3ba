"""
Unit tests for emergency_service and broadcast_service branches.

DB-free: the session is a MagicMock and lookups are patched.
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from crowdlink.errors import AppError, ErrorCode
from crowdlink.models.broadcast import BroadcastAudience
from crowdlink.models.emergency import EmergencyStatus, ResponderStatus
from crowdlink.models.user import UserRole
from crowdlink.services import broadcast_service, emergency_service


def _user(user_id="u1", role=UserRole.PARTICIPANT, group_id="g1") -> SimpleNamespace:
    return SimpleNamespace(id=user_id, role=role, group_id=group_id)


def _emergency(**overrides) -> SimpleNamespace:
    values = {
        "id": 7,
        "group_id": "g1",
        "reporter_id": "reporter",
        "status": EmergencyStatus.ACTIVE,
        "updated_at": None,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


# ── Responder status ───────────────────────────────────────────────────────

@pytest.mark.parametrize(
    "status, engaged",
    [
        (ResponderStatus.RESPONDING, True),
        (ResponderStatus.EN_ROUTE, True),
        (ResponderStatus.ARRIVED, True),
        (ResponderStatus.ASSISTING, True),
        (ResponderStatus.COMPLETED, False),
        (ResponderStatus.UNAVAILABLE, False),
    ],
)
def test_responder_engagement(status, engaged):
    assert status.is_engaged is engaged


@pytest.mark.parametrize(
    "statuses, expected",
    [
        ([], EmergencyStatus.ACTIVE),
        ([ResponderStatus.COMPLETED], EmergencyStatus.ACTIVE),
        ([ResponderStatus.UNAVAILABLE, ResponderStatus.EN_ROUTE], EmergencyStatus.IN_PROGRESS),
    ],
)
@patch("crowdlink.services.emergency_service._responses")
def test_refresh_status_follows_engaged_responders(mock_responses, statuses, expected):
    mock_responses.return_value = [SimpleNamespace(status=s) for s in statuses]
    emergency = _emergency(status=EmergencyStatus.IN_PROGRESS)

    emergency_service._refresh_status(emergency, MagicMock())

    assert emergency.status is expected
    assert emergency.updated_at is not None


@patch("crowdlink.services.emergency_service._responses")
def test_refresh_status_leaves_resolved_alone(mock_responses):
    emergency = _emergency(status=EmergencyStatus.RESOLVED)

    emergency_service._refresh_status(emergency, MagicMock())

    assert emergency.status is EmergencyStatus.RESOLVED
    mock_responses.assert_not_called()


# ── Resolve permissions ────────────────────────────────────────────────────

@pytest.mark.parametrize("role", [UserRole.PARTICIPANT, UserRole.VOLUNTEER, UserRole.VIP])
@patch("crowdlink.services.emergency_service._get_emergency_or_404")
@patch("crowdlink.services.user_service.get_user_or_404")
def test_only_reporter_or_organizer_resolves(mock_get_user, mock_get_emergency, role):
    mock_get_user.return_value = _user(role=role)
    mock_get_emergency.return_value = _emergency()

    with pytest.raises(AppError) as exc_info:
        emergency_service.resolve_emergency(7, "u1", MagicMock())

    assert exc_info.value.code == ErrorCode.FORBIDDEN
    assert exc_info.value.http_status == 403


@patch("crowdlink.services.emergency_service.serialize_emergency", return_value={})
@patch("crowdlink.services.emergency_service._get_emergency_or_404")
@patch("crowdlink.services.user_service.get_user_or_404")
def test_resolving_resolved_emergency_writes_nothing(mock_get_user, mock_get_emergency, mock_serialize):
    mock_get_user.return_value = _user(user_id="reporter")
    mock_get_emergency.return_value = _emergency(status=EmergencyStatus.RESOLVED)
    session = MagicMock()

    result = emergency_service.resolve_emergency(7, "reporter", session)

    assert result["already_resolved"] is True
    session.flush.assert_not_called()


@pytest.mark.parametrize("role", [UserRole.PARTICIPANT, UserRole.VIP])
@patch("crowdlink.services.emergency_service._get_emergency_or_404")
@patch("crowdlink.services.user_service.get_user_or_404")
def test_non_responders_cannot_respond(mock_get_user, mock_get_emergency, role):
    mock_get_user.return_value = _user(role=role)

    with pytest.raises(AppError) as exc_info:
        emergency_service.respond_to_emergency(7, "u1", MagicMock())

    assert exc_info.value.code == ErrorCode.FORBIDDEN
    mock_get_emergency.assert_not_called()


# ── Broadcasts ─────────────────────────────────────────────────────────────

@pytest.mark.parametrize("role", [UserRole.PARTICIPANT, UserRole.VOLUNTEER, UserRole.VIP])
@patch("crowdlink.services.user_service.get_user_or_404")
def test_only_organizers_send_broadcasts(mock_get_user, role):
    mock_get_user.return_value = _user(role=role)
    session = MagicMock()

    with pytest.raises(AppError) as exc_info:
        broadcast_service.send_broadcast("u1", "Title", "Body", session)

    assert exc_info.value.code == ErrorCode.FORBIDDEN
    session.add.assert_not_called()


@patch("crowdlink.services.user_service.get_user_or_404")
def test_my_group_broadcast_needs_a_group(mock_get_user):
    mock_get_user.return_value = _user(role=UserRole.ORGANIZER, group_id=None)
    session = MagicMock()

    with pytest.raises(AppError) as exc_info:
        broadcast_service.send_broadcast(
            "u1", "Title", "Body", session, audience=BroadcastAudience.MY_GROUP,
        )

    assert exc_info.value.code == ErrorCode.BROADCAST_GROUP_REQUIRED
    assert exc_info.value.field == "audience"
    session.add.assert_not_called()


def test_organizers_have_no_role_audience():
    assert UserRole.ORGANIZER not in broadcast_service.ROLE_AUDIENCES
    assert broadcast_service.ROLE_AUDIENCES[UserRole.VIP] is BroadcastAudience.VIPS
