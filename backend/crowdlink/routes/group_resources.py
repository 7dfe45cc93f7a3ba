"""
routes/group_resources.py — Messages, locations and markers inside a group.

Registered at url_prefix=/api/v1 because this blueprint owns BOTH the
group-scoped paths (/groups/:id/...) and the marker-id path (/pois/:id).

Endpoints:
  GET    /groups/:id/messages            → 200  newest first
  POST   /groups/:id/messages            → 201
  GET    /groups/:id/locations           → 200
  PUT    /groups/:id/locations           → 200  upsert caller's position
  GET    /groups/:id/locations/nearby    → 200  members within radius_m
  GET    /groups/:id/pois                → 200
  POST   /groups/:id/pois                → 201  gated by role
  DELETE /pois/:id                       → 200  gated by role and ownership
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from crowdlink.extensions import db
from crowdlink.middleware.auth_middleware import require_auth
from crowdlink.schemas.location_schema import (
    ListLocationsQuerySchema,
    NearbyQuerySchema,
    UpdateLocationSchema,
)
from crowdlink.schemas.message_schema import ListMessagesQuerySchema, PostMessageSchema
from crowdlink.schemas.poi_schema import CreatePOISchema, ListPOIsQuerySchema
from crowdlink.services import location_service, message_service, poi_service

group_resources_bp = Blueprint("group_resources", __name__)


# ── Messages ───────────────────────────────────────────────────────────────

@group_resources_bp.route("/groups/<group_id>/messages", methods=["GET"])
@require_auth
def list_messages(group_id: str):
    query = ListMessagesQuerySchema().load(request.args)
    result = message_service.list_messages(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
        limit=query["limit"],
    )
    return jsonify({"data": result, "warnings": []}), 200


@group_resources_bp.route("/groups/<group_id>/messages", methods=["POST"])
@require_auth
def post_message(group_id: str):
    data = PostMessageSchema().load(request.get_json(force=True) or {})
    result = message_service.post_message(
        group_id=group_id,
        sender_id=g.user_id,
        body=data["body"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 201


# ── Locations ──────────────────────────────────────────────────────────────

@group_resources_bp.route("/groups/<group_id>/locations", methods=["GET"])
@require_auth
def list_locations(group_id: str):
    query = ListLocationsQuerySchema().load(request.args)
    result = location_service.list_locations(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
        emergency_only=query["emergency_only"],
    )
    return jsonify({"data": result, "warnings": []}), 200


@group_resources_bp.route("/groups/<group_id>/locations", methods=["PUT"])
@require_auth
def update_location(group_id: str):
    data = UpdateLocationSchema().load(request.get_json(force=True) or {})
    result = location_service.update_location(
        group_id=group_id,
        user_id=g.user_id,
        latitude=data["latitude"],
        longitude=data["longitude"],
        session=db.session,
        is_emergency=data["is_emergency"],
        emergency_message=data["emergency_message"],
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200


@group_resources_bp.route("/groups/<group_id>/locations/nearby", methods=["GET"])
@require_auth
def nearby_members(group_id: str):
    query = NearbyQuerySchema().load(request.args)
    result = location_service.nearby_members(
        group_id=group_id,
        caller_id=g.user_id,
        latitude=query["latitude"],
        longitude=query["longitude"],
        radius_m=query["radius_m"],
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200


# ── Markers ────────────────────────────────────────────────────────────────

@group_resources_bp.route("/groups/<group_id>/pois", methods=["GET"])
@require_auth
def list_pois(group_id: str):
    query = ListPOIsQuerySchema().load(request.args)
    result = poi_service.list_pois(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
        marker_type=query["type"],
    )
    return jsonify({"data": result, "warnings": []}), 200


@group_resources_bp.route("/groups/<group_id>/pois", methods=["POST"])
@require_auth
def create_poi(group_id: str):
    data = CreatePOISchema().load(request.get_json(force=True) or {})
    result = poi_service.create_poi(
        group_id=group_id,
        creator_id=g.user_id,
        name=data["name"],
        marker_type=data["type"],
        latitude=data["latitude"],
        longitude=data["longitude"],
        session=db.session,
        description=data["description"],
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 201


@group_resources_bp.route("/pois/<int:poi_id>", methods=["DELETE"])
@require_auth
def delete_poi(poi_id: int):
    poi_service.delete_poi(
        poi_id=poi_id,
        caller_id=g.user_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify({
        "data": {"deleted": True, "poi_id": poi_id},
        "warnings": [],
    }), 200
