"""
schemas/preference_schema.py — PUT /users/me/preferences payload.

Values are strings. last_group_id is maintained by the group services and
cannot be written by clients.
"""

from __future__ import annotations

from marshmallow import Schema, ValidationError, fields, validate, validates

from crowdlink.services.preference_service import LAST_GROUP_ID_KEY

RESERVED_PREFERENCE_KEYS = frozenset({LAST_GROUP_ID_KEY})


class UpdatePreferencesSchema(Schema):

    preferences = fields.Dict(
        required=True,
        keys=fields.Str(validate=validate.Length(min=1, max=64)),
        values=fields.Str(validate=validate.Length(max=500)),
    )

    @validates("preferences")
    def validate_keys(self, value: dict, **kwargs) -> None:
        reserved = sorted(RESERVED_PREFERENCE_KEYS.intersection(value))
        if reserved:
            raise ValidationError(f"Preference key {reserved[0]!r} is read-only.")
