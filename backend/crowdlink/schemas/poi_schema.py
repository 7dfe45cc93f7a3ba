"""
schemas/poi_schema.py — Map marker payloads.

Which roles may place which marker types is a permission question answered
in services/poi_service.py, not here.
"""

from __future__ import annotations

from marshmallow import EXCLUDE, Schema, fields, validate

from crowdlink.errors import ErrorCode
from crowdlink.models.poi import MarkerType
from crowdlink.schemas.common import (
    latitude_field,
    longitude_field,
    validate_non_empty_after_trim,
)


class CreatePOISchema(Schema):

    name = fields.Str(
        required=True,
        validate=[
            validate.Length(
                min=1,
                max=100,
                error="Marker name must be between 1 and 100 characters.",
            ),
            validate_non_empty_after_trim,
        ],
    )

    type = fields.Enum(
        MarkerType,
        required=True,
        by_value=True,
        error_messages={"unknown": ErrorCode.INVALID_MARKER_TYPE},
    )

    latitude = latitude_field(required=True)
    longitude = longitude_field(required=True)

    description = fields.Str(
        load_default="",
        validate=validate.Length(max=300),
    )


class ListPOIsQuerySchema(Schema):
    """GET /groups/:id/pois?type=medical"""

    class Meta:
        unknown = EXCLUDE

    type = fields.Enum(
        MarkerType,
        load_default=None,
        by_value=True,
        error_messages={"unknown": ErrorCode.INVALID_MARKER_TYPE},
    )
