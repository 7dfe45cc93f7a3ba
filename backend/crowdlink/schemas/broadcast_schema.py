"""
schemas/broadcast_schema.py — Organizer broadcast payloads.
"""

from __future__ import annotations

from marshmallow import EXCLUDE, Schema, fields, validate

from crowdlink.errors import ErrorCode
from crowdlink.models.broadcast import BroadcastAudience, BroadcastPriority
from crowdlink.schemas.common import validate_non_empty_after_trim

MAX_PAGE_SIZE = 100


class SendBroadcastSchema(Schema):
    """POST /broadcasts"""

    title = fields.Str(
        required=True,
        validate=[
            validate.Length(min=1, max=120, error="title must be between 1 and 120 characters."),
            validate_non_empty_after_trim,
        ],
    )

    body = fields.Str(
        required=True,
        validate=[
            validate.Length(min=1, max=2000, error="body must be between 1 and 2000 characters."),
            validate_non_empty_after_trim,
        ],
    )

    audience = fields.Enum(
        BroadcastAudience,
        load_default=BroadcastAudience.ALL_USERS,
        by_value=True,
        error_messages={"unknown": ErrorCode.INVALID_AUDIENCE},
    )

    priority = fields.Enum(
        BroadcastPriority,
        load_default=BroadcastPriority.NORMAL,
        by_value=True,
    )


class ListBroadcastsQuerySchema(Schema):
    """GET /broadcasts?unread_only=true&limit=N"""

    class Meta:
        unknown = EXCLUDE

    unread_only = fields.Bool(load_default=False)

    limit = fields.Int(
        load_default=50,
        validate=validate.Range(
            min=1,
            max=MAX_PAGE_SIZE,
            error=f"limit must be between 1 and {MAX_PAGE_SIZE}.",
        ),
    )
