"""
permissions.py — Role/action permission gate.

One immutable table decides every role-based check in the service. Routes
and services call can_perform(); nothing re-implements role switches.

Grants:
  ALLOW       — permitted
  LIMITED     — permitted, with a narrower scope enforced by the caller
                (volunteers may only create service markers, see
                poi_service.VOLUNTEER_MARKER_TYPES)
  OWNER_ONLY  — permitted only when the caller owns the resource
                (created the group, placed the marker, reported the emergency)
  DENY        — never permitted

Unknown roles or actions are denied.
"""

from __future__ import annotations

import enum
import re
from types import MappingProxyType

from crowdlink.models.user import UserRole


class Action(str, enum.Enum):
    CREATE_POI        = "create_poi"
    DELETE_POI        = "delete_poi"
    DELETE_ANY_MARKER = "delete_any_marker"
    KICK_MEMBER       = "kick_member"
    DELETE_GROUP      = "delete_group"
    CHANGE_ROLE       = "change_role"
    VIEW_AUDIT_LOG    = "view_audit_log"
    RESPOND_EMERGENCY = "respond_emergency"
    RESOLVE_EMERGENCY = "resolve_emergency"
    SEND_BROADCAST    = "send_broadcast"

    @classmethod
    def from_value(cls, value) -> "Action | None":
        """Accepts enum members, snake_case or camelCase names ("deleteGroup")."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        snake = re.sub(r"(?<!^)(?=[A-Z])", "_", value.strip()).lower()
        try:
            return cls(snake)
        except ValueError:
            return None


class Grant(enum.Enum):
    ALLOW      = "allow"
    LIMITED    = "limited"
    OWNER_ONLY = "owner_only"
    DENY       = "deny"


_A = Action
_G = Grant

PERMISSION_TABLE = MappingProxyType({
    UserRole.ORGANIZER: MappingProxyType({
        _A.CREATE_POI:        _G.ALLOW,
        _A.DELETE_POI:        _G.ALLOW,
        _A.DELETE_ANY_MARKER: _G.ALLOW,
        _A.KICK_MEMBER:       _G.ALLOW,
        _A.DELETE_GROUP:      _G.OWNER_ONLY,
        _A.CHANGE_ROLE:       _G.ALLOW,
        _A.VIEW_AUDIT_LOG:    _G.ALLOW,
        _A.RESPOND_EMERGENCY: _G.ALLOW,
        _A.RESOLVE_EMERGENCY: _G.ALLOW,
        _A.SEND_BROADCAST:    _G.ALLOW,
    }),
    UserRole.VOLUNTEER: MappingProxyType({
        _A.CREATE_POI:        _G.LIMITED,
        _A.DELETE_POI:        _G.OWNER_ONLY,
        _A.DELETE_ANY_MARKER: _G.DENY,
        _A.KICK_MEMBER:       _G.DENY,
        _A.DELETE_GROUP:      _G.DENY,
        _A.CHANGE_ROLE:       _G.DENY,
        _A.VIEW_AUDIT_LOG:    _G.DENY,
        _A.RESPOND_EMERGENCY: _G.ALLOW,
        _A.RESOLVE_EMERGENCY: _G.OWNER_ONLY,
        _A.SEND_BROADCAST:    _G.DENY,
    }),
    UserRole.PARTICIPANT: MappingProxyType({
        _A.CREATE_POI:        _G.DENY,
        _A.DELETE_POI:        _G.OWNER_ONLY,
        _A.DELETE_ANY_MARKER: _G.DENY,
        _A.KICK_MEMBER:       _G.DENY,
        _A.DELETE_GROUP:      _G.DENY,
        _A.CHANGE_ROLE:       _G.DENY,
        _A.VIEW_AUDIT_LOG:    _G.DENY,
        _A.RESPOND_EMERGENCY: _G.DENY,
        _A.RESOLVE_EMERGENCY: _G.OWNER_ONLY,
        _A.SEND_BROADCAST:    _G.DENY,
    }),
    UserRole.VIP: MappingProxyType({
        _A.CREATE_POI:        _G.DENY,
        _A.DELETE_POI:        _G.OWNER_ONLY,
        _A.DELETE_ANY_MARKER: _G.DENY,
        _A.KICK_MEMBER:       _G.DENY,
        _A.DELETE_GROUP:      _G.DENY,
        _A.CHANGE_ROLE:       _G.DENY,
        _A.VIEW_AUDIT_LOG:    _G.DENY,
        _A.RESPOND_EMERGENCY: _G.DENY,
        _A.RESOLVE_EMERGENCY: _G.OWNER_ONLY,
        _A.SEND_BROADCAST:    _G.DENY,
    }),
})


def _check_table_is_total() -> None:
    for role in UserRole:
        row = PERMISSION_TABLE.get(role)
        if row is None or set(row) != set(Action):
            raise RuntimeError(f"Permission table is incomplete for role {role.value!r}.")


_check_table_is_total()


def grant_for(role, action) -> Grant:
    """Returns the raw grant for (role, action); DENY for unknown input."""
    parsed_role = UserRole.from_value(role)
    parsed_action = Action.from_value(action)
    if parsed_role is None or parsed_action is None:
        return Grant.DENY
    return PERMISSION_TABLE[parsed_role][parsed_action]


def can_perform(role, action, is_owner: bool = False) -> bool:
    """
    Returns True if `role` may perform `action`.

    Args:
        role:     UserRole or its string value ("organizer", "Organizer").
        action:   Action or its name ("delete_group", "deleteGroup").
        is_owner: whether the caller owns the target resource (created the
                  group, placed the marker).
    """
    grant = grant_for(role, action)
    if grant is Grant.OWNER_ONLY:
        return bool(is_owner)
    return grant in (Grant.ALLOW, Grant.LIMITED)


def permissions_for(role, is_owner: bool = False) -> dict[str, bool]:
    """Full row for one role, keyed by action value. Used to render UI buttons."""
    return {
        action.value: can_perform(role, action, is_owner)
        for action in Action
    }
