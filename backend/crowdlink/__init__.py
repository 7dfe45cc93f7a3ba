"""
crowdlink/__init__.py — Flask application factory.

Pattern: create_app(config_name) creates and returns a configured Flask app.
         Nothing is initialised at import time, so tests can build isolated
         app instances and `flask seed-groups` runs without a server.

Responsibilities:
  1. Load configuration from config_by_name[config_name]
  2. Configure logging from LOG_LEVEL
  3. Initialise extensions (SQLAlchemy, Marshmallow) via init_app()
  4. Register all route blueprints under /api/v1
  5. Register global error handlers (AppError → JSON, database outage → 503,
     Exception → 500)
  6. Register the JSON provider (ISO-8601 datetimes, enums by value)
  7. Register CLI commands

Note on model imports:
  All model classes are imported inside create_app() so that SQLAlchemy's
  metadata is populated before Alembic or db.create_all() inspects it.
"""

from __future__ import annotations

import enum
import logging
import traceback
from datetime import datetime

import click
from flask import Flask, jsonify, request
from flask.json.provider import DefaultJSONProvider
from marshmallow import ValidationError
from sqlalchemy.exc import OperationalError
from werkzeug.exceptions import HTTPException

from crowdlink.config import config_by_name, validate_production_config

logger = logging.getLogger(__name__)


# ── Custom JSON provider ───────────────────────────────────────────────────

class CrowdLinkJSONProvider(DefaultJSONProvider):
    """
    Serialises datetimes as ISO-8601 (Flask's default is an HTTP date) and
    enums by value: UserRole.ORGANIZER → "organizer".
    """

    def default(self, o):
        if isinstance(o, datetime):
            return o.isoformat()
        if isinstance(o, enum.Enum):
            return o.value
        return super().default(o)


# ── Application factory ────────────────────────────────────────────────────

def create_app(config_name: str = "development") -> Flask:
    """
    Creates and returns a configured Flask application instance.

    Args:
        config_name: One of "development", "testing", "production".
                     Defaults to "development".
    """
    app = Flask(__name__)
    app.json_provider_class = CrowdLinkJSONProvider
    app.json = CrowdLinkJSONProvider(app)

    # ── Configuration ──────────────────────────────────────────────────────
    config_class = config_by_name.get(config_name, config_by_name["development"])
    app.config.from_object(config_class)

    if config_name == "production":
        validate_production_config(app)  # raises ValueError if misconfigured

    _configure_logging(app)

    # ── Extensions ─────────────────────────────────────────────────────────
    from crowdlink.extensions import db, ma
    db.init_app(app)
    ma.init_app(app)

    # ── Model registration ─────────────────────────────────────────────────
    with app.app_context():
        from crowdlink.models import (  # noqa: F401
            broadcast,
            emergency,
            group,
            group_audit,
            location,
            membership,
            message,
            poi,
            user,
            user_preference,
        )

    _register_blueprints(app)
    _register_error_handlers(app)
    _register_cors(app)
    _register_commands(app)

    return app


def _configure_logging(app: Flask) -> None:
    """Sets the crowdlink logger level; adds a stderr handler if none exists."""
    level = logging.getLevelName(app.config.get("LOG_LEVEL", "INFO"))
    if not isinstance(level, int):
        level = logging.INFO

    package_logger = logging.getLogger("crowdlink")
    package_logger.setLevel(level)
    if not logging.getLogger().handlers and not package_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s [%(name)s] %(message)s"
        ))
        package_logger.addHandler(handler)
    app.logger.setLevel(level)


def _register_blueprints(app: Flask) -> None:
    """
    Registers all route blueprints under the /api/v1 prefix.

    group_resources_bp owns both /groups/<id>/{messages,locations,pois} and
    /pois/<id>, and emergencies_bp owns /groups/<id>/emergencies and
    /emergencies/<id>, so both are registered at /api/v1 rather than under
    /groups.
    """
    from crowdlink.routes.broadcasts import broadcasts_bp
    from crowdlink.routes.emergencies import emergencies_bp
    from crowdlink.routes.group_resources import group_resources_bp
    from crowdlink.routes.groups import groups_bp
    from crowdlink.routes.session import session_bp
    from crowdlink.routes.users import users_bp

    app.register_blueprint(session_bp,         url_prefix="/api/v1/session")
    app.register_blueprint(groups_bp,          url_prefix="/api/v1/groups")
    app.register_blueprint(group_resources_bp, url_prefix="/api/v1")
    app.register_blueprint(users_bp,           url_prefix="/api/v1/users")
    app.register_blueprint(emergencies_bp,     url_prefix="/api/v1")
    app.register_blueprint(broadcasts_bp,      url_prefix="/api/v1/broadcasts")


def _register_error_handlers(app: Flask) -> None:
    """
    Registers global error handlers.

    Handlers:
      AppError         → structured JSON error envelope with its HTTP status
      ValidationError  → first marshmallow error as MISSING_FIELD /
                         INVALID_FIELD (400)
      OperationalError → BACKEND_UNAVAILABLE (503); the transaction is rolled
                         back and nothing is retried
      Exception        → INTERNAL_ERROR (500); traceback logged, never returned
    """
    from crowdlink.errors import AppError, ErrorCode
    from crowdlink.extensions import db

    @app.errorhandler(AppError)
    def handle_app_error(error: AppError):
        return jsonify(error.to_dict()), error.http_status

    @app.errorhandler(ValidationError)
    def handle_validation_error(error: ValidationError):
        """
        Returns the FIRST field error only. A message that is itself a
        registered error code is used as the code.
        """
        messages = error.messages

        field = None
        raw_message = "Invalid input."
        code = ErrorCode.INVALID_FIELD

        if isinstance(messages, dict):
            for field_name, field_errors in messages.items():
                field = field_name if field_name != "_schema" else None

                if isinstance(field_errors, list):
                    raw_message = field_errors[0] if field_errors else "Invalid value."
                elif isinstance(field_errors, dict):
                    raw_message = "Invalid value."
                else:
                    raw_message = str(field_errors)

                if raw_message in vars(ErrorCode).values():
                    code = raw_message
                elif str(raw_message).startswith("Missing data for required field"):
                    code = ErrorCode.MISSING_FIELD
                else:
                    code = ErrorCode.INVALID_FIELD
                break
        elif isinstance(messages, list):
            raw_message = messages[0] if messages else "Invalid input."
            if raw_message in vars(ErrorCode).values():
                code = raw_message
            elif str(raw_message).startswith("Missing data for required field"):
                code = ErrorCode.MISSING_FIELD

        response_body = {
            "error": {
                "code": code,
                "message": raw_message if raw_message not in vars(ErrorCode).values()
                else _code_to_message(code),
            }
        }
        if field is not None:
            response_body["error"]["field"] = field

        return jsonify(response_body), 400

    @app.errorhandler(OperationalError)
    def handle_backend_unavailable(error: OperationalError):
        db.session.rollback()
        app.logger.warning("Database unavailable: %s", error.orig)
        return jsonify({
            "error": {
                "code": ErrorCode.BACKEND_UNAVAILABLE,
                "message": "The service is temporarily unavailable. Please try again.",
            }
        }), 503

    @app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException):
        """Unknown routes and wrong methods keep their status (404, 405)."""
        return jsonify({
            "error": {
                "code": error.name.upper().replace(" ", "_"),
                "message": error.description,
            }
        }), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        app.logger.error(
            "Unhandled exception: %s\n%s",
            str(error),
            traceback.format_exc(),
        )
        return jsonify({
            "error": {
                "code": ErrorCode.INTERNAL_ERROR,
                "message": "An unexpected error occurred. Please try again later.",
            }
        }), 500


def _register_cors(app: Flask) -> None:
    """
    Adds CORS headers for local development (DEBUG or TESTING) so a web
    build of the client on another port can call the API with bearer tokens.
    """

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allow_all = bool(app.config.get("DEBUG") or app.config.get("TESTING"))

        if allow_all:
            response.headers["Access-Control-Allow-Origin"] = origin if origin else "*"
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Methods"] = "GET, POST, PUT, PATCH, DELETE, OPTIONS"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"

        return response


def _register_commands(app: Flask) -> None:

    @app.cli.command("seed-groups")
    def seed_groups():
        """Creates the configured protected groups if they are missing."""
        from crowdlink.extensions import db

        created = seed_protected_groups(app, db.session)
        db.session.commit()
        for group_id in created:
            click.echo(f"created {group_id}")
        click.echo(f"{len(created)} protected group(s) created.")


def seed_protected_groups(app: Flask, session) -> list[str]:
    """Ensures every PROTECTED_GROUPS entry exists. Returns the ids created."""
    from crowdlink.services import group_service

    created = []
    for group_id, name in app.config.get("PROTECTED_GROUPS", ()):
        _, was_created = group_service.ensure_protected_group(group_id, name, session)
        if was_created:
            created.append(group_id)
    logger.info("Seeded protected groups: %s", ", ".join(created) or "none")
    return created


def _code_to_message(code: str) -> str:
    """Default message when a ValidationError message is an error code constant."""
    _messages = {
        "INVALID_ROLE": "role must be one of organizer, volunteer, participant, vip.",
        "INVALID_MARKER_TYPE": "The marker type value is not valid.",
        "INVALID_RESPONDER_STATUS": "status must be one of responding, en_route, arrived, assisting, completed, unavailable.",
        "INVALID_AUDIENCE": "audience must be one of all_users, participants, volunteers, vips, my_group.",
    }
    return _messages.get(code, "Invalid input.")
