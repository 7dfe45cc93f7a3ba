"""
schemas/session_schema.py — POST /session payload.

All fields are optional hints from the identity provider; the user id
itself always comes from the token. `role` only takes effect the first
time a user starts a session.
"""

from __future__ import annotations

from marshmallow import Schema, fields, validate

from crowdlink.schemas.common import RoleField


class StartSessionSchema(Schema):

    display_name = fields.Str(
        load_default=None,
        allow_none=True,
        validate=validate.Length(max=100, error="display_name must be at most 100 characters."),
    )

    email = fields.Email(
        load_default=None,
        allow_none=True,
        validate=validate.Length(max=255),
    )

    role = RoleField(load_default=None, allow_none=True)
