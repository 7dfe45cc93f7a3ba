"""
routes/users.py — The authenticated user's profile, presence and settings.

Endpoints (url_prefix=/api/v1/users):
  GET  /users/me               → 200  profile
  POST /users/me/heartbeat     → 200  mark online, stamp last_seen
  POST /users/me/offline       → 200  mark offline
  GET  /users/me/preferences   → 200
  PUT  /users/me/preferences   → 200  upsert, returns the full map
  GET  /users/me/permissions   → 200  permission rows for UI buttons
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from crowdlink.extensions import db
from crowdlink.middleware.auth_middleware import require_auth
from crowdlink.schemas.preference_schema import UpdatePreferencesSchema
from crowdlink.services import preference_service, user_service

users_bp = Blueprint("users", __name__)


@users_bp.route("/me", methods=["GET"])
@require_auth
def get_me():
    result = user_service.get_user(g.user_id, db.session)
    return jsonify({"data": result, "warnings": []}), 200


@users_bp.route("/me/heartbeat", methods=["POST"])
@require_auth
def heartbeat():
    result = user_service.heartbeat(g.user_id, db.session)
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200


@users_bp.route("/me/offline", methods=["POST"])
@require_auth
def set_offline():
    result = user_service.set_offline(g.user_id, db.session)
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200


@users_bp.route("/me/preferences", methods=["GET"])
@require_auth
def get_preferences():
    user_service.get_user_or_404(g.user_id, db.session)
    result = preference_service.get_preferences(g.user_id, db.session)
    return jsonify({"data": result, "warnings": []}), 200


@users_bp.route("/me/preferences", methods=["PUT"])
@require_auth
def update_preferences():
    data = UpdatePreferencesSchema().load(request.get_json(force=True) or {})
    user_service.get_user_or_404(g.user_id, db.session)
    result = preference_service.set_preferences(
        g.user_id,
        data["preferences"],
        db.session,
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200


@users_bp.route("/me/permissions", methods=["GET"])
@require_auth
def get_permissions():
    result = user_service.get_permissions(g.user_id, db.session)
    return jsonify({"data": result, "warnings": []}), 200
