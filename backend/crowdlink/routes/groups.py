"""
routes/groups.py — Group lifecycle and membership route handlers.

Layer rules:
  - Parse, validate, call ONE service, commit, return envelope.
  - No business logic. No DB queries. No bare SQL.

Endpoints (url_prefix=/api/v1/groups):
  POST   /groups                          → 201  create shared group
  POST   /groups/join                     → 200  join by code
  GET    /groups/:id                      → 200  group + members + activity
  POST   /groups/:id/leave                → 200  leave (may delete empty group)
  DELETE /groups/:id                      → 200  delete for everyone (owner)
  DELETE /groups/:id/members/:uid         → 200  kick member (organizer)
  PATCH  /groups/:id/members/:uid/role    → 200  change role (organizer)
  GET    /groups/:id/audit                → 200  kicks and role changes (organizer)
"""

from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request

from crowdlink.extensions import db
from crowdlink.middleware.auth_middleware import require_auth
from crowdlink.schemas.group_schema import (
    AuditQuerySchema,
    ChangeRoleSchema,
    CreateGroupSchema,
    JoinGroupSchema,
)
from crowdlink.services import group_service

groups_bp = Blueprint("groups", __name__)


@groups_bp.route("/", methods=["POST"])
@require_auth
def create_group():
    """POST /groups — Create a shared group. Caller becomes its first member."""
    data = CreateGroupSchema().load(request.get_json(force=True) or {})
    result = group_service.create_group(
        name=data["name"],
        creator_id=g.user_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 201


@groups_bp.route("/join", methods=["POST"])
@require_auth
def join_group():
    """POST /groups/join — Join by code. Joining twice is a success."""
    data = JoinGroupSchema().load(request.get_json(force=True) or {})
    result = group_service.join_group(
        user_id=g.user_id,
        code=data["code"],
        session=db.session,
    )
    db.session.commit()

    warnings = []
    if result["already_member"]:
        warnings.append("You are already a member of this group.")
    return jsonify({"data": result, "warnings": warnings}), 200


@groups_bp.route("/<group_id>", methods=["GET"])
@require_auth
def get_group(group_id: str):
    """GET /groups/:id — Group details with members. Caller must be a member."""
    result = group_service.get_group(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
        active_window=current_app.config["ACTIVE_MEMBER_WINDOW"],
    )
    return jsonify({"data": result, "warnings": []}), 200


@groups_bp.route("/<group_id>/leave", methods=["POST"])
@require_auth
def leave_group(group_id: str):
    """POST /groups/:id/leave — Leave; an emptied shared group is deleted."""
    result = group_service.leave_group(
        user_id=g.user_id,
        group_id=group_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200


@groups_bp.route("/<group_id>", methods=["DELETE"])
@require_auth
def delete_group(group_id: str):
    """DELETE /groups/:id — Delete for all members. Creator with permission only."""
    result = group_service.delete_group(
        group_id=group_id,
        requester_id=g.user_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify({
        "data": {
            "deleted": True,
            "group_id": result["group_id"],
            "messages_deleted": result["messages_deleted"],
            "locations_deleted": result["locations_deleted"],
            "emergencies_deleted": result["emergencies_deleted"],
            "former_member_ids": result["former_member_ids"],
        },
        "warnings": [],
    }), 200


@groups_bp.route("/<group_id>/members/<target_uid>", methods=["DELETE"])
@require_auth
def kick_member(group_id: str, target_uid: str):
    """DELETE /groups/:id/members/:uid — Remove another member."""
    result = group_service.kick_member(
        group_id=group_id,
        caller_id=g.user_id,
        target_user_id=target_uid,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200


@groups_bp.route("/<group_id>/members/<target_uid>/role", methods=["PATCH"])
@require_auth
def change_member_role(group_id: str, target_uid: str):
    """PATCH /groups/:id/members/:uid/role — Change a member's role."""
    data = ChangeRoleSchema().load(request.get_json(force=True) or {})
    result = group_service.change_member_role(
        group_id=group_id,
        caller_id=g.user_id,
        target_user_id=target_uid,
        new_role=data["role"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200


@groups_bp.route("/<group_id>/audit", methods=["GET"])
@require_auth
def list_audit_log(group_id: str):
    """GET /groups/:id/audit — Newest-first kicks and role changes."""
    params = AuditQuerySchema().load(request.args)
    result = group_service.list_audit_log(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
        limit=params["limit"],
    )
    return jsonify({"data": result, "warnings": []}), 200
