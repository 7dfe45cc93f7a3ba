"""
Unit tests for session group resolution.

DB-free: the user lookup, group creation and preference cache are
patched, and the session is a MagicMock.
"""

from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from crowdlink.models.group import LEGACY_SHARED_GROUP_ID
from crowdlink.models.user import UserRole
from crowdlink.services import session_service


def _user(**overrides) -> SimpleNamespace:
    values = {
        "id": "u1",
        "role": UserRole.PARTICIPANT,
        "group_id": None,
        "legacy_migrated_at": None,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


@patch("crowdlink.services.session_service.group_service.ensure_personal_group")
@patch("crowdlink.services.session_service.preference_service.set_last_group_id")
@patch("crowdlink.services.user_service.get_user_or_404")
def test_existing_reference_is_returned_unchanged(mock_get_user, mock_set_last, mock_ensure):
    session = MagicMock()
    mock_get_user.return_value = _user(group_id="g1")

    result = session_service.resolve_session_group("u1", session)

    assert result == {"group_id": "g1", "migrated": False, "created": False}
    mock_ensure.assert_not_called()
    mock_set_last.assert_called_once_with("u1", "g1", session)
    session.delete.assert_not_called()


@patch("crowdlink.services.session_service.group_service.ensure_personal_group")
@patch("crowdlink.services.session_service.preference_service.set_last_group_id")
@patch("crowdlink.services.user_service.get_user_or_404")
def test_absent_reference_resolves_to_personal_group(mock_get_user, mock_set_last, mock_ensure):
    session = MagicMock()
    user = _user()
    mock_get_user.return_value = user
    mock_ensure.return_value = (SimpleNamespace(id="personal-u1"), True)

    result = session_service.resolve_session_group("u1", session)

    assert result == {"group_id": "personal-u1", "migrated": False, "created": True}
    assert user.group_id == "personal-u1"
    mock_ensure.assert_called_once_with("u1", session)
    mock_set_last.assert_called_once_with("u1", "personal-u1", session)


@patch("crowdlink.services.session_service.group_service.ensure_personal_group")
@patch("crowdlink.services.session_service.preference_service.set_last_group_id")
@patch("crowdlink.services.user_service.get_user_or_404")
def test_legacy_reference_is_migrated(mock_get_user, mock_set_last, mock_ensure):
    session = MagicMock()
    legacy_membership = object()
    session.execute.return_value.scalar_one_or_none.return_value = legacy_membership
    user = _user(group_id=LEGACY_SHARED_GROUP_ID)
    mock_get_user.return_value = user
    mock_ensure.return_value = (SimpleNamespace(id="personal-u1"), False)

    result = session_service.resolve_session_group("u1", session)

    assert result == {"group_id": "personal-u1", "migrated": True, "created": False}
    session.delete.assert_called_once_with(legacy_membership)
    assert user.legacy_migrated_at is not None
    assert user.group_id == "personal-u1"


@patch("crowdlink.services.session_service.group_service.ensure_personal_group")
@patch("crowdlink.services.session_service.preference_service.set_last_group_id")
@patch("crowdlink.services.user_service.get_user_or_404")
def test_legacy_migration_keeps_first_timestamp(mock_get_user, mock_set_last, mock_ensure):
    session = MagicMock()
    session.execute.return_value.scalar_one_or_none.return_value = None
    first = datetime(2025, 12, 1, tzinfo=timezone.utc)
    user = _user(group_id=LEGACY_SHARED_GROUP_ID, legacy_migrated_at=first)
    mock_get_user.return_value = user
    mock_ensure.return_value = (SimpleNamespace(id="personal-u1"), False)

    session_service.resolve_session_group("u1", session)

    assert user.legacy_migrated_at is first
    session.delete.assert_not_called()


@patch("crowdlink.services.session_service.group_service.ensure_personal_group")
@patch("crowdlink.services.user_service.get_user_or_404")
def test_database_errors_propagate(mock_get_user, mock_ensure):
    session = MagicMock()
    mock_get_user.side_effect = OperationalError("SELECT", {}, Exception("connection refused"))

    with pytest.raises(OperationalError):
        session_service.resolve_session_group("u1", session)

    mock_ensure.assert_not_called()


ROLE_GROUPS = {
    "volunteer": ("volunteers", "Volunteers"),
    "organizer": ("organizers", "Organizers"),
}


@pytest.mark.parametrize(
    "role, group_id",
    [(UserRole.VOLUNTEER, "volunteers"), (UserRole.ORGANIZER, "organizers")],
)
@patch("crowdlink.services.session_service.group_service.ensure_personal_group")
@patch("crowdlink.services.session_service.group_service.join_protected_group")
@patch("crowdlink.services.session_service.preference_service.set_last_group_id")
@patch("crowdlink.services.user_service.get_user_or_404")
def test_absent_reference_with_role_group_joins_it(
    mock_get_user,
    mock_set_last,
    mock_join_protected,
    mock_ensure_personal,
    role,
    group_id,
):
    session = MagicMock()
    user = _user(role=role)
    mock_get_user.return_value = user
    mock_join_protected.return_value = (SimpleNamespace(id=group_id), False)

    result = session_service.resolve_session_group("u1", session, role_groups=ROLE_GROUPS)

    assert result == {"group_id": group_id, "migrated": False, "created": False}
    assert user.group_id == group_id
    mock_join_protected.assert_called_once_with("u1", *ROLE_GROUPS[role.value], session)
    mock_ensure_personal.assert_not_called()
    mock_set_last.assert_called_once_with("u1", group_id, session)


@pytest.mark.parametrize("role", [UserRole.PARTICIPANT, UserRole.VIP])
@patch("crowdlink.services.session_service.group_service.ensure_personal_group")
@patch("crowdlink.services.session_service.group_service.join_protected_group")
@patch("crowdlink.services.session_service.preference_service.set_last_group_id")
@patch("crowdlink.services.user_service.get_user_or_404")
def test_roles_without_role_group_get_personal_group(
    mock_get_user,
    mock_set_last,
    mock_join_protected,
    mock_ensure_personal,
    role,
):
    session = MagicMock()
    mock_get_user.return_value = _user(role=role)
    mock_ensure_personal.return_value = (SimpleNamespace(id="personal-u1"), True)

    result = session_service.resolve_session_group("u1", session, role_groups=ROLE_GROUPS)

    assert result["group_id"] == "personal-u1"
    mock_join_protected.assert_not_called()


@patch("crowdlink.services.session_service.group_service.join_protected_group")
@patch("crowdlink.services.session_service.preference_service.set_last_group_id")
@patch("crowdlink.services.user_service.get_user_or_404")
def test_role_group_never_replaces_a_stored_reference(mock_get_user, mock_set_last, mock_join_protected):
    session = MagicMock()
    mock_get_user.return_value = _user(role=UserRole.VOLUNTEER, group_id="g1")

    result = session_service.resolve_session_group("u1", session, role_groups=ROLE_GROUPS)

    assert result["group_id"] == "g1"
    mock_join_protected.assert_not_called()


@patch("crowdlink.services.session_service.resolve_session_group")
@patch("crowdlink.services.session_service.user_service")
def test_start_session_passes_role_hint_to_user_creation(mock_user_service, mock_resolve):
    session = MagicMock()
    user = _user(role=UserRole.ORGANIZER)
    mock_user_service.get_or_create_user.return_value = (user, True)
    mock_user_service.serialize_user.return_value = {"id": "u1", "role": "organizer"}
    mock_resolve.return_value = {"group_id": "organizers", "migrated": False, "created": True}

    result = session_service.start_session(
        "u1",
        session,
        role=UserRole.ORGANIZER,
        role_groups=ROLE_GROUPS,
    )

    mock_user_service.get_or_create_user.assert_called_once_with(
        "u1",
        session,
        display_name=None,
        email=None,
        role=UserRole.ORGANIZER,
    )
    mock_resolve.assert_called_once_with("u1", session, role_groups=ROLE_GROUPS)
    assert result["user_created"] is True
    assert result["group_id"] == "organizers"
