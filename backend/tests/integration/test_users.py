"""
tests/integration/test_users.py — Profile, presence, preferences, permissions.

Endpoints covered:
  GET  /users/me
  POST /users/me/heartbeat
  POST /users/me/offline
  GET  /users/me/preferences
  PUT  /users/me/preferences
  GET  /users/me/permissions
"""

from __future__ import annotations

from crowdlink.models.user import UserRole

from .conftest import auth_headers, set_role, start_session


class TestProfileAndPresence:

    def test_get_me(self, client):
        start_session(client, "u1", display_name="Asha")
        resp = client.get("/api/v1/users/me", headers=auth_headers("u1"))
        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert data["id"] == "u1"
        assert data["display_name"] == "Asha"
        assert data["group_id"] == "personal-u1"

    def test_offline_then_heartbeat(self, client):
        start_session(client, "u1")

        offline = client.post("/api/v1/users/me/offline", headers=auth_headers("u1"))
        online = client.post("/api/v1/users/me/heartbeat", headers=auth_headers("u1"))

        assert offline.get_json()["data"]["is_online"] is False
        assert online.get_json()["data"]["is_online"] is True
        assert online.get_json()["data"]["last_seen"] is not None


class TestPreferences:

    def test_put_then_get(self, client):
        start_session(client, "u1")

        resp = client.put(
            "/api/v1/users/me/preferences",
            json={"preferences": {"theme": "dark", "share_location": "true"}},
            headers=auth_headers("u1"),
        )

        assert resp.status_code == 200
        prefs = client.get("/api/v1/users/me/preferences", headers=auth_headers("u1")).get_json()["data"]
        assert prefs["theme"] == "dark"
        assert prefs["share_location"] == "true"
        assert prefs["last_group_id"] == "personal-u1"

    def test_last_group_id_is_read_only(self, client):
        start_session(client, "u1")
        resp = client.put(
            "/api/v1/users/me/preferences",
            json={"preferences": {"last_group_id": "elsewhere"}},
            headers=auth_headers("u1"),
        )
        assert resp.status_code == 400
        assert resp.get_json()["error"]["field"] == "preferences"

    def test_non_string_value_returns_400(self, client):
        start_session(client, "u1")
        resp = client.put(
            "/api/v1/users/me/preferences",
            json={"preferences": {"theme": 3}},
            headers=auth_headers("u1"),
        )
        assert resp.status_code == 400


class TestPermissions:

    def test_participant_row(self, client):
        start_session(client, "u1")
        data = client.get("/api/v1/users/me/permissions", headers=auth_headers("u1")).get_json()["data"]

        assert data["role"] == "participant"
        assert data["any"]["create_poi"] is False
        assert data["any"]["delete_poi"] is False
        assert data["own"]["delete_poi"] is True

    def test_organizer_row(self, client, db_session):
        start_session(client, "u1")
        set_role("u1", UserRole.ORGANIZER)

        data = client.get("/api/v1/users/me/permissions", headers=auth_headers("u1")).get_json()["data"]

        assert data["any"]["delete_group"] is False
        assert data["own"]["delete_group"] is True
        assert data["any"]["kick_member"] is True
