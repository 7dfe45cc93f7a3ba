"""
schemas/common.py — Validators and fields shared by several schemas.

IMPORTANT: Schemas inherit from marshmallow.Schema directly, never ma.Schema,
so unit tests can load them without an app context.
"""

from __future__ import annotations

from marshmallow import ValidationError, fields, validate

from crowdlink.errors import ErrorCode
from crowdlink.models.user import UserRole


def validate_non_empty_after_trim(value: str) -> None:
    """
    Raises ValidationError if the string is blank or only whitespace.
    Mirrors the DB CHECK(LENGTH(TRIM(...)) > 0) constraints at the API layer.
    """
    if not value.strip():
        raise ValidationError("This field must not be blank or contain only whitespace.")


def latitude_field(**kwargs) -> fields.Float:
    return fields.Float(
        validate=validate.Range(
            min=-90,
            max=90,
            error="latitude must be between -90 and 90.",
        ),
        **kwargs,
    )


def longitude_field(**kwargs) -> fields.Float:
    return fields.Float(
        validate=validate.Range(
            min=-180,
            max=180,
            error="longitude must be between -180 and 180.",
        ),
        **kwargs,
    )


class RoleField(fields.Field):
    """
    Deserialises a role string to UserRole, case-insensitively.
    The legacy spelling "attendee" loads as participant.
    """

    def _deserialize(self, value, attr, data, **kwargs):
        role = UserRole.from_value(value)
        if role is None:
            raise ValidationError(ErrorCode.INVALID_ROLE)
        return role

    def _serialize(self, value, attr, obj, **kwargs):
        if value is None:
            return None
        return value.value
