"""
schemas/message_schema.py — Group chat payloads.
"""

from __future__ import annotations

from marshmallow import EXCLUDE, Schema, fields, validate

from crowdlink.schemas.common import validate_non_empty_after_trim
from crowdlink.services.message_service import MAX_PAGE_SIZE


class PostMessageSchema(Schema):

    body = fields.Str(
        required=True,
        validate=[
            validate.Length(
                min=1,
                max=2000,
                error="Message must be between 1 and 2000 characters.",
            ),
            validate_non_empty_after_trim,
        ],
    )


class ListMessagesQuerySchema(Schema):
    """GET /groups/:id/messages?limit=N"""

    class Meta:
        unknown = EXCLUDE

    limit = fields.Int(
        load_default=50,
        validate=validate.Range(
            min=1,
            max=MAX_PAGE_SIZE,
            error=f"limit must be between 1 and {MAX_PAGE_SIZE}.",
        ),
    )
