"""
routes/session.py — Session start.

Layer rules:
  - Parse, validate, call ONE service, commit, return envelope.
  - No business logic. No DB queries.

Endpoints (url_prefix=/api/v1/session):
  POST /session → 200  create the user on first sign-in, resolve the group
"""

from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request

from crowdlink.extensions import db
from crowdlink.middleware.auth_middleware import require_auth
from crowdlink.models.user import UserRole
from crowdlink.schemas.session_schema import StartSessionSchema
from crowdlink.services import session_service

session_bp = Blueprint("session", __name__)


@session_bp.route("", methods=["POST"])
@require_auth
def start_session():
    """
    POST /session — Called once per app launch.

    Profile hints fall back to the token's name/email/role claims. An
    unrecognised role claim is ignored (the user starts as participant);
    an unrecognised role in the body is a 400.
    """
    data = StartSessionSchema().load(request.get_json(silent=True) or {})
    claims = g.token_claims
    result = session_service.start_session(
        user_id=g.user_id,
        session=db.session,
        display_name=data["display_name"] or claims.get("name"),
        email=data["email"] or claims.get("email"),
        role=data["role"] or UserRole.from_value(claims.get("role")),
        role_groups=current_app.config.get("ROLE_GROUPS"),
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200
