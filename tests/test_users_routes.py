"""
tests/test_users_routes.py -- Integration tests for role-aware user CRUD.

Coverage:
  - GET /api/users: admin only (401 guest, 403 user, 200 admin)
  - GET /api/users/{id}: self or admin; 403 for other users; 404 for admin on missing id
  - PATCH: self-service profile updates, admin-only role changes, email conflicts,
    admin self-demotion blocked, refreshed cookie on self-update
  - DELETE: self-delete clears the cookie; admin deletes others; admin self-delete blocked
"""

from __future__ import annotations

import uuid

import pytest
from fastapi.testclient import TestClient

from auth.tokens import create_access_token


@pytest.fixture
def member(client: TestClient) -> tuple[dict, dict[str, str]]:
    """Sign up a fresh regular user; return (user_json, bearer_headers)."""
    n = uuid.uuid4().hex[:8]
    resp = client.post(
        "/api/auth/sign-up",
        json={"name": f"Member {n}", "email": f"member{n}@x.com", "password": "Secret123"},
    )
    assert resp.status_code == 201, resp.text
    client.cookies.clear()
    user = resp.json()["user"]
    token = create_access_token(user["id"], user["email"], user["role"])
    return user, {"Authorization": f"Bearer {token}"}


class TestListUsers:
    def test_guest_gets_401(self, client: TestClient) -> None:
        assert client.get("/api/users").status_code == 401

    def test_regular_user_gets_403(self, client: TestClient, member) -> None:
        _user, headers = member
        resp = client.get("/api/users", headers=headers)
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "forbidden"

    def test_admin_lists_users_without_hashes(self, client: TestClient, admin_headers, member) -> None:
        resp = client.get("/api/users", headers=admin_headers)
        assert resp.status_code == 200
        users = resp.json()
        assert any(u["email"] == "admin@example.com" for u in users)
        assert all("hashed_password" not in u and "password" not in u for u in users)


class TestGetUser:
    def test_user_reads_self(self, client: TestClient, member) -> None:
        user, headers = member
        resp = client.get(f"/api/users/{user['id']}", headers=headers)
        assert resp.status_code == 200
        assert resp.json()["email"] == user["email"]

    def test_user_cannot_read_others(self, client: TestClient, member, api_client) -> None:
        _client, _token, admin_id = api_client
        _user, headers = member
        assert client.get(f"/api/users/{admin_id}", headers=headers).status_code == 403

    def test_admin_reads_anyone(self, client: TestClient, member, admin_headers) -> None:
        user, _headers = member
        assert client.get(f"/api/users/{user['id']}", headers=admin_headers).status_code == 200

    def test_admin_missing_user_404(self, client: TestClient, admin_headers) -> None:
        assert client.get("/api/users/99999", headers=admin_headers).status_code == 404


class TestUpdateUser:
    def test_user_updates_own_profile(self, client: TestClient, member) -> None:
        user, headers = member
        resp = client.patch(
            f"/api/users/{user['id']}",
            json={"name": "Renamed", "email": "RENAMED-" + user["email"]},
            headers=headers,
        )
        assert resp.status_code == 200, resp.text
        assert resp.json()["name"] == "Renamed"
        assert resp.json()["email"] == "renamed-" + user["email"]
        assert any(h.startswith("token=") for h in resp.headers.get_list("set-cookie"))

    def test_password_change_allows_new_signin(self, client: TestClient, member) -> None:
        user, headers = member
        resp = client.patch(f"/api/users/{user['id']}", json={"password": "NewSecret456"}, headers=headers)
        assert resp.status_code == 200
        client.cookies.clear()
        signin = client.post("/api/auth/sign-in", json={"email": user["email"], "password": "NewSecret456"})
        assert signin.status_code == 200

    def test_user_cannot_change_own_role(self, client: TestClient, member) -> None:
        user, headers = member
        resp = client.patch(f"/api/users/{user['id']}", json={"role": "admin"}, headers=headers)
        assert resp.status_code == 403

    def test_admin_promotes_user(self, client: TestClient, member, admin_headers) -> None:
        user, _headers = member
        resp = client.patch(f"/api/users/{user['id']}", json={"role": "admin"}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json()["role"] == "admin"
        assert resp.headers.get_list("set-cookie") == []

    def test_admin_cannot_demote_self(self, client: TestClient, admin_headers, api_client) -> None:
        _client, _token, admin_id = api_client
        resp = client.patch(f"/api/users/{admin_id}", json={"role": "user"}, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "self_demotion"

    def test_email_conflict(self, client: TestClient, member) -> None:
        user, headers = member
        resp = client.patch(f"/api/users/{user['id']}", json={"email": "admin@example.com"}, headers=headers)
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "duplicate_email"

    def test_empty_update_rejected(self, client: TestClient, member) -> None:
        user, headers = member
        resp = client.patch(f"/api/users/{user['id']}", json={}, headers=headers)
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "no_changes"


class TestDeleteUser:
    def test_user_deletes_self_and_session_ends(self, client: TestClient, member) -> None:
        user, headers = member
        resp = client.delete(f"/api/users/{user['id']}", headers=headers)
        assert resp.status_code == 204
        assert any("max-age=0" in h.lower() for h in resp.headers.get_list("set-cookie"))
        # The token still verifies, but the account is gone.
        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_user_cannot_delete_others(self, client: TestClient, member, api_client) -> None:
        _client, _token, admin_id = api_client
        _user, headers = member
        assert client.delete(f"/api/users/{admin_id}", headers=headers).status_code == 403

    def test_admin_deletes_user(self, client: TestClient, member, admin_headers) -> None:
        user, _headers = member
        assert client.delete(f"/api/users/{user['id']}", headers=admin_headers).status_code == 204
        assert client.get(f"/api/users/{user['id']}", headers=admin_headers).status_code == 404

    def test_admin_cannot_delete_self(self, client: TestClient, admin_headers, api_client) -> None:
        _client, _token, admin_id = api_client
        resp = client.delete(f"/api/users/{admin_id}", headers=admin_headers)
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "self_deletion"
