"""
tests/unit/test_permissions.py — The role/action permission gate.

No database, no app context: can_perform is a pure function over an
immutable table.
"""

from __future__ import annotations

import pytest

from crowdlink.models.user import UserRole
from crowdlink.permissions import (
    PERMISSION_TABLE,
    Action,
    Grant,
    can_perform,
    grant_for,
    permissions_for,
)


class TestOwnershipRule:

    def test_organizer_delete_group_requires_ownership(self):
        assert can_perform(UserRole.ORGANIZER, Action.DELETE_GROUP, is_owner=False) is False
        assert can_perform(UserRole.ORGANIZER, Action.DELETE_GROUP, is_owner=True) is True

    def test_camel_case_action_names_are_accepted(self):
        assert can_perform("organizer", "deleteGroup", is_owner=False) is False
        assert can_perform("organizer", "deleteGroup", is_owner=True) is True

    @pytest.mark.parametrize("role", [UserRole.VOLUNTEER, UserRole.PARTICIPANT, UserRole.VIP])
    def test_delete_poi_is_owner_only_below_organizer(self, role):
        assert can_perform(role, Action.DELETE_POI, is_owner=False) is False
        assert can_perform(role, Action.DELETE_POI, is_owner=True) is True

    def test_ownership_never_lifts_a_deny(self):
        assert can_perform(UserRole.VOLUNTEER, Action.KICK_MEMBER, is_owner=True) is False
        assert can_perform(UserRole.VIP, Action.DELETE_GROUP, is_owner=True) is False


class TestGrants:

    def test_limited_grants_the_action(self):
        assert grant_for(UserRole.VOLUNTEER, Action.CREATE_POI) is Grant.LIMITED
        assert can_perform(UserRole.VOLUNTEER, Action.CREATE_POI) is True

    def test_organizer_allows_everything_but_group_deletion(self):
        row = permissions_for(UserRole.ORGANIZER, is_owner=False)
        assert row == {
            "create_poi": True,
            "delete_poi": True,
            "delete_any_marker": True,
            "kick_member": True,
            "delete_group": False,
            "change_role": True,
            "view_audit_log": True,
            "respond_emergency": True,
            "resolve_emergency": True,
            "send_broadcast": True,
        }

    @pytest.mark.parametrize(
        "role, can_respond",
        [
            (UserRole.ORGANIZER, True),
            (UserRole.VOLUNTEER, True),
            (UserRole.PARTICIPANT, False),
            (UserRole.VIP, False),
        ],
    )
    def test_emergency_response_is_for_volunteers_and_organizers(self, role, can_respond):
        assert can_perform(role, Action.RESPOND_EMERGENCY) is can_respond

    @pytest.mark.parametrize("role", [UserRole.VOLUNTEER, UserRole.PARTICIPANT, UserRole.VIP])
    def test_reporters_resolve_only_their_own_emergency(self, role):
        assert can_perform(role, Action.RESOLVE_EMERGENCY, is_owner=False) is False
        assert can_perform(role, Action.RESOLVE_EMERGENCY, is_owner=True) is True

    def test_organizers_resolve_any_emergency(self):
        assert can_perform(UserRole.ORGANIZER, Action.RESOLVE_EMERGENCY, is_owner=False) is True

    @pytest.mark.parametrize("action", [Action.SEND_BROADCAST, Action.VIEW_AUDIT_LOG])
    def test_organizer_only_actions(self, action):
        assert [role for role in UserRole if can_perform(role, action, is_owner=True)] == [
            UserRole.ORGANIZER
        ]

    def test_camel_case_emergency_and_broadcast_actions(self):
        assert can_perform("volunteer", "respondEmergency") is True
        assert can_perform("vip", "sendBroadcast") is False

    def test_participant_and_vip_rows_match(self):
        assert permissions_for("participant") == permissions_for("vip")
        assert permissions_for("participant", is_owner=True) == permissions_for("vip", is_owner=True)


class TestFailClosed:

    @pytest.mark.parametrize("role", ["admin", "", None, 42, "organiser"])
    def test_unknown_roles_are_denied(self, role):
        for action in Action:
            assert can_perform(role, action, is_owner=True) is False

    @pytest.mark.parametrize("action", ["fly", "", None, "deleteEverything"])
    def test_unknown_actions_are_denied(self, action):
        assert can_perform(UserRole.ORGANIZER, action, is_owner=True) is False

    def test_legacy_attendee_role_maps_to_participant(self):
        assert permissions_for("Attendee", is_owner=True) == permissions_for(
            UserRole.PARTICIPANT, is_owner=True
        )

    def test_role_strings_are_case_insensitive(self):
        assert can_perform("ORGANIZER", Action.KICK_MEMBER) is True


class TestTable:

    def test_table_is_total(self):
        assert set(PERMISSION_TABLE) == set(UserRole)
        for row in PERMISSION_TABLE.values():
            assert set(row) == set(Action)

    def test_table_is_immutable(self):
        with pytest.raises(TypeError):
            PERMISSION_TABLE[UserRole.VIP] = {}
        with pytest.raises(TypeError):
            PERMISSION_TABLE[UserRole.VIP][Action.DELETE_GROUP] = Grant.ALLOW

    def test_results_are_bools(self):
        for role in UserRole:
            for action in Action:
                for is_owner in (False, True):
                    assert isinstance(can_perform(role, action, is_owner), bool)
