"""
routes/broadcasts.py — Organizer announcements.

Endpoints (url_prefix=/api/v1/broadcasts):
  POST /broadcasts             → 201  organizers only
  GET  /broadcasts             → 200  addressed to the caller, newest first
  POST /broadcasts/:id/read    → 200  mark read (idempotent)
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from crowdlink.extensions import db
from crowdlink.middleware.auth_middleware import require_auth
from crowdlink.schemas.broadcast_schema import ListBroadcastsQuerySchema, SendBroadcastSchema
from crowdlink.services import broadcast_service

broadcasts_bp = Blueprint("broadcasts", __name__)


@broadcasts_bp.route("", methods=["POST"])
@require_auth
def send_broadcast():
    data = SendBroadcastSchema().load(request.get_json(force=True) or {})
    result = broadcast_service.send_broadcast(
        sender_id=g.user_id,
        title=data["title"],
        body=data["body"],
        session=db.session,
        audience=data["audience"],
        priority=data["priority"],
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 201


@broadcasts_bp.route("", methods=["GET"])
@require_auth
def list_broadcasts():
    query = ListBroadcastsQuerySchema().load(request.args)
    result = broadcast_service.list_broadcasts(
        user_id=g.user_id,
        session=db.session,
        unread_only=query["unread_only"],
        limit=query["limit"],
    )
    return jsonify({"data": result, "warnings": []}), 200


@broadcasts_bp.route("/<int:broadcast_id>/read", methods=["POST"])
@require_auth
def mark_read(broadcast_id: int):
    result = broadcast_service.mark_read(broadcast_id, g.user_id, db.session)
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200
