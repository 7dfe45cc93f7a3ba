"""
schemas/location_schema.py — Location sharing payloads and query strings.
"""

from __future__ import annotations

from marshmallow import EXCLUDE, Schema, ValidationError, fields, validate, validates_schema

from crowdlink.schemas.common import latitude_field, longitude_field

MAX_NEARBY_RADIUS_M = 50_000


class UpdateLocationSchema(Schema):
    """PUT /groups/:id/locations — the caller's own position."""

    latitude = latitude_field(required=True)
    longitude = longitude_field(required=True)

    is_emergency = fields.Bool(load_default=False)

    emergency_message = fields.Str(
        load_default=None,
        allow_none=True,
        validate=validate.Length(max=500),
    )

    @validates_schema
    def validate_emergency_message(self, data: dict, **kwargs) -> None:
        if data.get("emergency_message") and not data.get("is_emergency"):
            raise ValidationError(
                "emergency_message is only allowed when is_emergency is true.",
                field_name="emergency_message",
            )


class ListLocationsQuerySchema(Schema):
    """GET /groups/:id/locations?emergency_only=true"""

    class Meta:
        unknown = EXCLUDE

    emergency_only = fields.Bool(load_default=False)


class NearbyQuerySchema(Schema):
    """GET /groups/:id/locations/nearby?latitude=..&longitude=..&radius_m=.."""

    class Meta:
        unknown = EXCLUDE

    latitude = latitude_field(required=True)
    longitude = longitude_field(required=True)

    radius_m = fields.Float(
        load_default=500.0,
        validate=validate.Range(
            min=0,
            max=MAX_NEARBY_RADIUS_M,
            min_inclusive=False,
            error=f"radius_m must be greater than 0 and at most {MAX_NEARBY_RADIUS_M}.",
        ),
    )
