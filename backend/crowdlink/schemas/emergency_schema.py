"""
schemas/emergency_schema.py — Emergency reporting and response payloads.

Who may respond or resolve is decided by the permission gate in
services/emergency_service.py.
"""

from __future__ import annotations

from marshmallow import EXCLUDE, Schema, fields, validate

from crowdlink.errors import ErrorCode
from crowdlink.models.emergency import ResponderStatus
from crowdlink.schemas.common import latitude_field, longitude_field

MAX_ETA_MINUTES = 24 * 60


def _eta_field() -> fields.Int:
    return fields.Int(
        load_default=None,
        allow_none=True,
        validate=validate.Range(
            min=0,
            max=MAX_ETA_MINUTES,
            error=f"estimated_arrival_minutes must be between 0 and {MAX_ETA_MINUTES}.",
        ),
    )


class CreateEmergencySchema(Schema):
    """POST /groups/:id/emergencies"""

    latitude = latitude_field(required=True)
    longitude = longitude_field(required=True)

    message = fields.Str(
        load_default=None,
        allow_none=True,
        validate=validate.Length(max=500),
    )


class RespondSchema(Schema):
    """POST /emergencies/:id/responses"""

    estimated_arrival_minutes = _eta_field()


class UpdateResponseSchema(Schema):
    """PATCH /emergencies/:id/responses/me"""

    status = fields.Enum(
        ResponderStatus,
        required=True,
        by_value=True,
        error_messages={"unknown": ErrorCode.INVALID_RESPONDER_STATUS},
    )

    estimated_arrival_minutes = _eta_field()


class ListEmergenciesQuerySchema(Schema):
    """GET /groups/:id/emergencies?active_only=true"""

    class Meta:
        unknown = EXCLUDE

    active_only = fields.Bool(load_default=False)
