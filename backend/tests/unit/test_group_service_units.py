"""
Unit tests for group_service branches that are awkward to reach through the API.

These tests run DB-free with mocked session/query behavior.
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from crowdlink.errors import AppError, ErrorCode
from crowdlink.models.group import GroupType
from crowdlink.models.group_audit import AuditAction
from crowdlink.models.user import UserRole
from crowdlink.services import group_service
from crowdlink.services.group_service import CleanupOutcome


def _group(**overrides) -> SimpleNamespace:
    values = {
        "id": "g1",
        "type": GroupType.SHARED,
        "is_protected": False,
        "created_by": "u1",
    }
    values.update(overrides)
    return SimpleNamespace(**values)


# ── cleanup_empty_group ────────────────────────────────────────────────────

def test_cleanup_missing_group():
    session = MagicMock()
    session.get.return_value = None

    assert group_service.cleanup_empty_group("gone", session) is CleanupOutcome.MISSING


@patch("crowdlink.services.group_service.cascade_delete_group")
@patch("crowdlink.services.group_service._member_count", return_value=2)
def test_cleanup_keeps_group_with_members(mock_member_count, mock_cascade):
    session = MagicMock()
    session.get.return_value = _group()

    assert group_service.cleanup_empty_group("g1", session) is CleanupOutcome.HAS_MEMBERS
    mock_cascade.assert_not_called()


@pytest.mark.parametrize(
    "group, expected",
    [
        (_group(is_protected=True), CleanupOutcome.PROTECTED),
        (_group(type=GroupType.PERSONAL), CleanupOutcome.PERSONAL_PRESERVED),
        (_group(type=GroupType.PERSONAL, is_protected=True), CleanupOutcome.PROTECTED),
    ],
)
@patch("crowdlink.services.group_service.cascade_delete_group")
@patch("crowdlink.services.group_service._member_count", return_value=0)
def test_cleanup_preserves_empty_groups(mock_member_count, mock_cascade, group, expected):
    session = MagicMock()
    session.get.return_value = group

    assert group_service.cleanup_empty_group(group.id, session) is expected
    mock_cascade.assert_not_called()


@patch("crowdlink.services.group_service.cascade_delete_group")
@patch("crowdlink.services.group_service._member_count", return_value=0)
def test_cleanup_deletes_empty_shared_group(mock_member_count, mock_cascade):
    session = MagicMock()
    session.get.return_value = _group()

    assert group_service.cleanup_empty_group("g1", session) is CleanupOutcome.DELETED
    mock_cascade.assert_called_once_with("g1", session)


# ── leave_group ────────────────────────────────────────────────────────────

@patch("crowdlink.services.group_service.preference_service.clear_last_group_id")
@patch("crowdlink.services.group_service.cleanup_empty_group", return_value=CleanupOutcome.PROTECTED)
@patch("crowdlink.services.group_service.get_membership", return_value=None)
@patch("crowdlink.services.group_service.get_group_or_404")
@patch("crowdlink.services.user_service.get_user_or_404")
def test_leave_clears_reference_even_when_group_survives(
    mock_get_user,
    mock_get_group,
    mock_get_membership,
    mock_cleanup,
    mock_clear_last_group_id,
):
    session = MagicMock()
    user = SimpleNamespace(id="u1", group_id="volunteers", left_groups=[])
    mock_get_user.return_value = user

    result = group_service.leave_group("u1", "volunteers", session)

    assert result == {
        "group_id": "volunteers",
        "user_id": "u1",
        "cleanup": "protected",
        "group_deleted": False,
    }
    assert user.group_id is None
    assert user.left_groups == ["volunteers"]
    mock_clear_last_group_id.assert_called_once_with("u1", session)
    session.delete.assert_not_called()


# ── delete_group ───────────────────────────────────────────────────────────

@patch("crowdlink.services.group_service.cascade_delete_group")
@patch("crowdlink.services.user_service.get_user_or_404")
@patch("crowdlink.services.group_service.get_group_or_404")
def test_delete_group_by_non_creator_organizer_is_forbidden(
    mock_get_group,
    mock_get_user,
    mock_cascade,
):
    session = MagicMock()
    mock_get_group.return_value = _group(created_by="someone-else")
    mock_get_user.return_value = SimpleNamespace(id="u1", role=UserRole.ORGANIZER)

    with pytest.raises(AppError) as exc_info:
        group_service.delete_group("g1", "u1", session)

    assert exc_info.value.code == ErrorCode.FORBIDDEN
    assert exc_info.value.http_status == 403
    mock_cascade.assert_not_called()


@patch("crowdlink.services.group_service.cascade_delete_group")
@patch("crowdlink.services.user_service.get_user_or_404")
@patch("crowdlink.services.group_service.get_group_or_404")
def test_delete_protected_group_without_creator_is_forbidden(
    mock_get_group,
    mock_get_user,
    mock_cascade,
):
    session = MagicMock()
    mock_get_group.return_value = _group(id="volunteers", is_protected=True, created_by=None)
    mock_get_user.return_value = SimpleNamespace(id="u1", role=UserRole.ORGANIZER)

    with pytest.raises(AppError) as exc_info:
        group_service.delete_group("volunteers", "u1", session)

    assert exc_info.value.code == ErrorCode.FORBIDDEN
    mock_cascade.assert_not_called()


# ── kick_member ────────────────────────────────────────────────────────────

@patch("crowdlink.services.group_service.require_member")
@patch("crowdlink.services.user_service.get_user_or_404")
@patch("crowdlink.services.group_service.get_group_or_404")
def test_kick_self_is_rejected(mock_get_group, mock_get_user, mock_require_member):
    session = MagicMock()
    mock_get_user.return_value = SimpleNamespace(id="u1", role=UserRole.ORGANIZER)

    with pytest.raises(AppError) as exc_info:
        group_service.kick_member("g1", "u1", "u1", session)

    assert exc_info.value.code == ErrorCode.CANNOT_KICK_SELF
    assert exc_info.value.http_status == 422
    session.delete.assert_not_called()


@patch("crowdlink.services.group_service.require_member")
@patch("crowdlink.services.user_service.get_user_or_404")
@patch("crowdlink.services.group_service.get_group_or_404")
def test_volunteer_cannot_kick(mock_get_group, mock_get_user, mock_require_member):
    session = MagicMock()
    mock_get_user.return_value = SimpleNamespace(id="u1", role=UserRole.VOLUNTEER)

    with pytest.raises(AppError) as exc_info:
        group_service.kick_member("g1", "u1", "u2", session)

    assert exc_info.value.code == ErrorCode.FORBIDDEN
    session.delete.assert_not_called()


@patch("crowdlink.services.group_service.preference_service.clear_last_group_id")
@patch("crowdlink.services.group_service._record_group_audit")
@patch("crowdlink.services.group_service.get_membership")
@patch("crowdlink.services.group_service.require_member")
@patch("crowdlink.services.user_service.get_user_or_404")
@patch("crowdlink.services.group_service.get_group_or_404")
def test_kick_writes_group_audit_entry(
    mock_get_group,
    mock_get_user,
    mock_require_member,
    mock_get_membership,
    mock_record_audit,
    mock_clear_last_group_id,
):
    session = MagicMock()
    membership = SimpleNamespace(group_id="g1", user_id="u2")
    mock_get_membership.return_value = membership
    mock_get_user.return_value = SimpleNamespace(id="u1", role=UserRole.ORGANIZER)
    target = SimpleNamespace(id="u2", group_id="g1", kicked_from_groups=[])
    session.get.return_value = target

    group_service.kick_member("g1", "u1", "u2", session)

    session.delete.assert_called_once_with(membership)
    mock_record_audit.assert_called_once_with(
        "g1",
        AuditAction.MEMBER_KICKED,
        "u1",
        "u2",
        {"reason": group_service.KICK_REASON},
        session,
    )
    assert target.kicked_from_groups == ["g1"]
    assert target.group_id is None


@patch("crowdlink.services.group_service._record_group_audit")
@patch("crowdlink.services.group_service.get_membership")
@patch("crowdlink.services.group_service.require_member")
@patch("crowdlink.services.user_service.get_user_or_404")
@patch("crowdlink.services.group_service.get_group_or_404")
def test_role_change_records_previous_and_new_role(
    mock_get_group,
    mock_get_user,
    mock_require_member,
    mock_get_membership,
    mock_record_audit,
):
    session = MagicMock()
    organizer = SimpleNamespace(id="u1", role=UserRole.ORGANIZER)
    target = SimpleNamespace(id="u2", role=UserRole.PARTICIPANT)
    mock_get_user.side_effect = [organizer, target]

    result = group_service.change_member_role("g1", "u1", "u2", UserRole.VOLUNTEER, session)

    assert result["role"] == "volunteer"
    assert target.role is UserRole.VOLUNTEER
    mock_record_audit.assert_called_once_with(
        "g1",
        AuditAction.ROLE_CHANGED,
        "u1",
        "u2",
        {"previous_role": "participant", "new_role": "volunteer"},
        session,
    )


@pytest.mark.parametrize("role", [UserRole.VOLUNTEER, UserRole.PARTICIPANT, UserRole.VIP])
@patch("crowdlink.services.group_service.require_member")
@patch("crowdlink.services.user_service.get_user_or_404")
@patch("crowdlink.services.group_service.get_group_or_404")
def test_only_organizers_read_the_audit_log(
    mock_get_group,
    mock_get_user,
    mock_require_member,
    role,
):
    session = MagicMock()
    mock_get_user.return_value = SimpleNamespace(id="u1", role=role)

    with pytest.raises(AppError) as exc_info:
        group_service.list_audit_log("g1", "u1", session)

    assert exc_info.value.code == ErrorCode.FORBIDDEN
    session.execute.assert_not_called()


# ── join_protected_group ───────────────────────────────────────────────────

@pytest.mark.parametrize("created", [False, True])
@patch("crowdlink.services.group_service._add_membership")
@patch("crowdlink.services.group_service.ensure_protected_group")
def test_join_protected_group_ensures_group_then_adds_member(
    mock_ensure,
    mock_add_membership,
    created,
):
    session = MagicMock()
    group = _group(id="volunteers", is_protected=True, created_by=None)
    mock_ensure.return_value = (group, created)
    mock_add_membership.return_value = True

    result = group_service.join_protected_group("u1", "volunteers", "Volunteers", session)

    assert result == (group, created)
    mock_ensure.assert_called_once_with("volunteers", "Volunteers", session)
    mock_add_membership.assert_called_once_with("volunteers", "u1", session)


# ── join_group ─────────────────────────────────────────────────────────────

@pytest.mark.parametrize("code", ["", "   ", None])
@patch("crowdlink.services.user_service.get_user_or_404")
def test_join_with_blank_code_never_queries(mock_get_user, code):
    session = MagicMock()
    mock_get_user.return_value = SimpleNamespace(id="u1", group_id=None)

    with pytest.raises(AppError) as exc_info:
        group_service.join_group("u1", code, session)

    assert exc_info.value.code == ErrorCode.JOIN_CODE_NOT_FOUND
    assert exc_info.value.field == "code"
    session.execute.assert_not_called()


# ── Helpers ────────────────────────────────────────────────────────────────

def test_generate_join_code_uses_alphabet():
    session = MagicMock()
    session.execute.return_value.scalar_one_or_none.return_value = None

    code = group_service._generate_join_code(session)

    assert len(code) == group_service.JOIN_CODE_LENGTH
    assert set(code) <= set(group_service.JOIN_CODE_ALPHABET)


def test_generate_join_code_gives_up_when_every_code_is_taken():
    session = MagicMock()
    session.execute.return_value.scalar_one_or_none.return_value = "taken"

    with pytest.raises(RuntimeError):
        group_service._generate_join_code(session)

    assert session.execute.call_count == group_service._JOIN_CODE_ATTEMPTS


def test_snapshot_of_missing_group_is_none():
    session = MagicMock()
    session.get.return_value = None

    assert group_service.get_group_snapshot("gone", session) is None
    session.execute.assert_not_called()
