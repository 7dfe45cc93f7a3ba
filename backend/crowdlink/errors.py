"""
errors.py — AppError base class and error code registry.

Every error returned by the CrowdLink API uses a code defined here.
Services raise AppError; routes never catch it. The global handler in
crowdlink/__init__.py turns it into the JSON error envelope.

Failure taxonomy:
  NotFound          → *_NOT_FOUND codes (404)
  PermissionDenied  → FORBIDDEN (403)
  TransientIOError  → BACKEND_UNAVAILABLE (503), raised by the handler for
                      SQLAlchemy OperationalError; never retried here
  AlreadyInState    → not an error. Joining a group twice succeeds with
                      already_member=True.
  Conflict          → EMERGENCY_RESOLVED (409): the emergency was closed
                      while a volunteer was responding
"""

from __future__ import annotations


class AppError(Exception):

    def __init__(
            self,
            code: str,
            message: str,
            http_status: int,
            field: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code        = code
        self.message     = message
        self.http_status = http_status
        self.field       = field  # which request field caused the error

    def to_dict(self) -> dict:
        payload = {
            "code":    self.code,
            "message": self.message,
        }
        if self.field is not None:
            payload["field"] = self.field
        return {"error": payload}

    def __repr__(self) -> str:
        return (
            f"AppError(code={self.code!r}, "
            f"http_status={self.http_status}, "
            f"message={self.message!r})"
        )


# ── Error Code Registry ────────────────────────────────────────────────────
#
# These are the string values sent in the API response.
# Do not rename them without a major version bump.
# ──────────────────────────────────────────────────────────────────────────

class ErrorCode:

    # ── Schema / Input Errors (400) ────────────────────────────────────────
    MISSING_FIELD              = "MISSING_FIELD"
    INVALID_FIELD              = "INVALID_FIELD"
    INVALID_ROLE               = "INVALID_ROLE"
    INVALID_MARKER_TYPE        = "INVALID_MARKER_TYPE"
    INVALID_RESPONDER_STATUS   = "INVALID_RESPONDER_STATUS"
    INVALID_AUDIENCE           = "INVALID_AUDIENCE"

    # ── Not Found Errors (404) ─────────────────────────────────────────────
    USER_NOT_FOUND             = "USER_NOT_FOUND"
    GROUP_NOT_FOUND            = "GROUP_NOT_FOUND"
    JOIN_CODE_NOT_FOUND        = "JOIN_CODE_NOT_FOUND"
    MEMBER_NOT_FOUND           = "MEMBER_NOT_FOUND"
    POI_NOT_FOUND              = "POI_NOT_FOUND"
    EMERGENCY_NOT_FOUND        = "EMERGENCY_NOT_FOUND"
    RESPONSE_NOT_FOUND         = "RESPONSE_NOT_FOUND"
    BROADCAST_NOT_FOUND        = "BROADCAST_NOT_FOUND"

    # ── State Conflicts (409) ─────────────────────────────────────────────
    EMERGENCY_RESOLVED         = "EMERGENCY_RESOLVED"

    # ── Business Rule Violations (422) ────────────────────────────────────
    CANNOT_KICK_SELF           = "CANNOT_KICK_SELF"
    MARKER_TYPE_NOT_ALLOWED    = "MARKER_TYPE_NOT_ALLOWED"
    CANNOT_RESPOND_TO_OWN_EMERGENCY = "CANNOT_RESPOND_TO_OWN_EMERGENCY"
    BROADCAST_GROUP_REQUIRED   = "BROADCAST_GROUP_REQUIRED"

    # ── Auth Errors ────────────────────────────────────────────────────────
    # 401 = we do not know who you are (unauthenticated)
    # 403 = we know who you are, but the permission gate says no
    TOKEN_MISSING              = "TOKEN_MISSING"          # 401
    TOKEN_INVALID              = "TOKEN_INVALID"          # 401
    TOKEN_EXPIRED              = "TOKEN_EXPIRED"          # 401
    FORBIDDEN                  = "FORBIDDEN"              # 403

    # ── System Errors ──────────────────────────────────────────────────────
    BACKEND_UNAVAILABLE        = "BACKEND_UNAVAILABLE"    # 503
    INTERNAL_ERROR             = "INTERNAL_ERROR"         # 500
