"""
schemas/group_schema.py — Marshmallow schemas for group and membership endpoints.

Validation responsibility:
  - This file: field types, string lengths, non-empty checks (including trim),
    role values.
  - services/group_service.py: anything needing a DB lookup
    (GROUP_NOT_FOUND, JOIN_CODE_NOT_FOUND, MEMBER_NOT_FOUND, FORBIDDEN).
"""

from __future__ import annotations

from marshmallow import EXCLUDE, Schema, fields, post_load, validate

from crowdlink.schemas.common import RoleField, validate_non_empty_after_trim


class CreateGroupSchema(Schema):
    """POST /groups — name is non-empty after trim, max 100 chars."""

    name = fields.Str(
        required=True,
        validate=[
            validate.Length(
                min=1,
                max=100,
                error="Group name must be between 1 and 100 characters.",
            ),
            validate_non_empty_after_trim,
        ],
    )


class JoinGroupSchema(Schema):
    """
    POST /groups/join

    The code is returned trimmed and upper-cased; whether a group has it is
    decided by the service (JOIN_CODE_NOT_FOUND, 404).
    """

    code = fields.Str(
        required=True,
        validate=[
            validate.Length(max=32, error="Join code is too long."),
            validate_non_empty_after_trim,
        ],
    )

    @post_load
    def normalise_code(self, data: dict, **kwargs) -> dict:
        data["code"] = data["code"].strip().upper()
        return data


class ChangeRoleSchema(Schema):
    """PATCH /groups/:id/members/:uid/role"""

    role = RoleField(required=True)


class AuditQuerySchema(Schema):
    """GET /groups/:id/audit?limit=N"""

    class Meta:
        unknown = EXCLUDE

    limit = fields.Int(
        load_default=50,
        validate=validate.Range(min=1, max=200, error="limit must be between 1 and 200."),
    )
