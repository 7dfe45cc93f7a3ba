"""
routes/emergencies.py — Emergency reporting and volunteer response.

Registered at url_prefix=/api/v1 because this blueprint owns both the
group-scoped paths (/groups/:id/emergencies) and /emergencies/:id.

Endpoints:
  POST   /groups/:id/emergencies            → 201  raise (200 if one is open)
  GET    /groups/:id/emergencies            → 200  newest first
  GET    /groups/:id/emergencies/stats      → 200  counts per status
  GET    /emergencies/open                  → 200  unresolved, responders only
  GET    /emergencies/:id                   → 200
  POST   /emergencies/:id/responses         → 201  respond (200 if already)
  PATCH  /emergencies/:id/responses/me      → 200  responder progress
  DELETE /emergencies/:id/responses/me      → 200  withdraw
  POST   /emergencies/:id/resolve           → 200  reporter or organizer
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from crowdlink.extensions import db
from crowdlink.middleware.auth_middleware import require_auth
from crowdlink.schemas.emergency_schema import (
    CreateEmergencySchema,
    ListEmergenciesQuerySchema,
    RespondSchema,
    UpdateResponseSchema,
)
from crowdlink.services import emergency_service

emergencies_bp = Blueprint("emergencies", __name__)


# ── Group-scoped ───────────────────────────────────────────────────────────

@emergencies_bp.route("/groups/<group_id>/emergencies", methods=["POST"])
@require_auth
def create_emergency(group_id: str):
    data = CreateEmergencySchema().load(request.get_json(force=True) or {})
    result = emergency_service.create_emergency(
        group_id=group_id,
        reporter_id=g.user_id,
        latitude=data["latitude"],
        longitude=data["longitude"],
        session=db.session,
        message=data["message"],
    )
    db.session.commit()

    if result["already_open"]:
        return jsonify({
            "data": result["emergency"],
            "warnings": ["You already have an open emergency."],
        }), 200
    return jsonify({"data": result["emergency"], "warnings": []}), 201


@emergencies_bp.route("/groups/<group_id>/emergencies", methods=["GET"])
@require_auth
def list_emergencies(group_id: str):
    query = ListEmergenciesQuerySchema().load(request.args)
    result = emergency_service.list_emergencies(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
        active_only=query["active_only"],
    )
    return jsonify({"data": result, "warnings": []}), 200


@emergencies_bp.route("/groups/<group_id>/emergencies/stats", methods=["GET"])
@require_auth
def emergency_stats(group_id: str):
    result = emergency_service.get_emergency_stats(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200


# ── By emergency id ────────────────────────────────────────────────────────

@emergencies_bp.route("/emergencies/open", methods=["GET"])
@require_auth
def list_open_emergencies():
    result = emergency_service.list_open_emergencies(g.user_id, db.session)
    return jsonify({"data": result, "warnings": []}), 200


@emergencies_bp.route("/emergencies/<int:emergency_id>", methods=["GET"])
@require_auth
def get_emergency(emergency_id: int):
    result = emergency_service.get_emergency(emergency_id, g.user_id, db.session)
    return jsonify({"data": result, "warnings": []}), 200


@emergencies_bp.route("/emergencies/<int:emergency_id>/responses", methods=["POST"])
@require_auth
def respond_to_emergency(emergency_id: int):
    data = RespondSchema().load(request.get_json(silent=True) or {})
    result = emergency_service.respond_to_emergency(
        emergency_id=emergency_id,
        volunteer_id=g.user_id,
        session=db.session,
        estimated_arrival_minutes=data["estimated_arrival_minutes"],
    )
    db.session.commit()

    if result["already_responding"]:
        return jsonify({
            "data": result["emergency"],
            "warnings": ["You are already responding to this emergency."],
        }), 200
    return jsonify({"data": result["emergency"], "warnings": []}), 201


@emergencies_bp.route("/emergencies/<int:emergency_id>/responses/me", methods=["PATCH"])
@require_auth
def update_response_status(emergency_id: int):
    data = UpdateResponseSchema().load(request.get_json(force=True) or {})
    result = emergency_service.update_response_status(
        emergency_id=emergency_id,
        volunteer_id=g.user_id,
        status=data["status"],
        session=db.session,
        estimated_arrival_minutes=data["estimated_arrival_minutes"],
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200


@emergencies_bp.route("/emergencies/<int:emergency_id>/responses/me", methods=["DELETE"])
@require_auth
def withdraw_response(emergency_id: int):
    result = emergency_service.withdraw_response(emergency_id, g.user_id, db.session)
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200


@emergencies_bp.route("/emergencies/<int:emergency_id>/resolve", methods=["POST"])
@require_auth
def resolve_emergency(emergency_id: int):
    result = emergency_service.resolve_emergency(emergency_id, g.user_id, db.session)
    db.session.commit()

    warnings = []
    if result["already_resolved"]:
        warnings.append("This emergency was already resolved.")
    return jsonify({"data": result["emergency"], "warnings": warnings}), 200
