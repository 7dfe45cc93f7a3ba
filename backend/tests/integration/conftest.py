"""
tests/integration/conftest.py — Fixtures and helpers for all integration tests.

Design:
  - Tests run against the TestingConfig database: in-memory SQLite by default,
    or TEST_DATABASE_URL when set.
  - The app is created once per session using create_app("testing") and all
    tables are created with db.create_all().
  - SQLite foreign keys are switched on so the cascade order is checked the
    same way PostgreSQL checks it.
  - Between tests, all rows are deleted in FK-safe order.

Helper functions (not fixtures):
  - make_token(user_id, ...)     → signed HS256 bearer token
  - auth_headers(user_id)        → {"Authorization": "Bearer <token>"}
  - start_session(client, uid)   → session resolution dict; role= sets the
                                   role of a first-time user
  - set_role(uid, role)          → promote a user directly in the DB
  - make_group(client, uid, ...) → group dict
  - join(client, uid, code)      → HTTP response
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt
import pytest
from sqlalchemy import event, text

from crowdlink import create_app
from crowdlink.config import TestingConfig
from crowdlink.extensions import db as _db
from crowdlink.models.user import User, UserRole


# ═══════════════════════════════════════════════════════════════════════════
# Session-scoped app fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(scope="session")
def app():
    flask_app = create_app("testing")

    with flask_app.app_context():
        if _db.engine.dialect.name == "sqlite":
            @event.listens_for(_db.engine, "connect")
            def _enable_foreign_keys(dbapi_connection, connection_record):
                cursor = dbapi_connection.cursor()
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.close()

        _db.create_all()

    yield flask_app

    with flask_app.app_context():
        _db.drop_all()


# ═══════════════════════════════════════════════════════════════════════════
# Function-scoped test isolation
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(autouse=True)
def clean_tables(app):
    """Deletes all rows after every test, children before parents."""
    yield

    with app.app_context():
        _db.session.rollback()
        for table in (
            "emergency_responses",
            "emergencies",
            "group_audit_entries",
            "broadcast_reads",
            "broadcasts",
            "messages",
            "locations",
            "pois",
            "memberships",
            "user_preferences",
            "groups",
            "users",
        ):
            _db.session.execute(text(f"DELETE FROM {table}"))
        _db.session.commit()
        _db.session.remove()


@pytest.fixture
def client(app):
    """Flask test client. Each test gets a fresh client (function-scoped)."""
    return app.test_client()


@pytest.fixture
def db_session(app):
    """
    The app's scoped session inside a pushed app context, for service-level
    tests and for checking rows after HTTP calls.
    """
    with app.app_context():
        yield _db.session
        _db.session.rollback()
        _db.session.remove()


# ═══════════════════════════════════════════════════════════════════════════
# Shared helper functions (not fixtures)
# ═══════════════════════════════════════════════════════════════════════════

def make_token(
    user_id: str,
    expires_in: timedelta = timedelta(hours=1),
    secret: str = TestingConfig.JWT_SECRET_KEY,
    **claims,
) -> str:
    """Signs a token the way the identity provider does."""
    now = datetime.now(timezone.utc)
    payload = {"sub": user_id, "iat": now, "exp": now + expires_in, **claims}
    return jwt.encode(payload, secret, algorithm="HS256")


def auth_headers(user_id: str, **claims) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id, **claims)}"}


def start_session(
    client,
    user_id: str,
    display_name: str | None = None,
    role: str | None = None,
) -> dict:
    body = {"display_name": display_name} if display_name else {}
    if role:
        body["role"] = role
    resp = client.post("/api/v1/session", json=body, headers=auth_headers(user_id))
    assert resp.status_code == 200, f"start_session failed: {resp.get_json()}"
    return resp.get_json()["data"]


def set_role(user_id: str, role: UserRole) -> None:
    """Requires an app context (use inside db_session or app.app_context())."""
    user = _db.session.get(User, user_id)
    user.role = role
    _db.session.commit()


def make_group(client, user_id: str, name: str = "Festival Crew") -> dict:
    resp = client.post(
        "/api/v1/groups/",
        json={"name": name},
        headers=auth_headers(user_id),
    )
    assert resp.status_code == 201, f"make_group failed: {resp.get_json()}"
    return resp.get_json()["data"]


def join(client, user_id: str, code: str):
    return client.post(
        "/api/v1/groups/join",
        json={"code": code},
        headers=auth_headers(user_id),
    )
