"""Tests for the current-identity endpoint."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi.testclient import TestClient

from blog_api.users import UserRecord

if TYPE_CHECKING:
    from collections.abc import Callable


class TestMeEndpoint:
    """Tests for GET /api/auth/me."""

    def test_returns_profile(
        self,
        client: TestClient,
        auth_header: Callable[[UserRecord], dict[str, str]],
        alice: UserRecord,
    ):
        response = client.get("/api/auth/me", headers=auth_header(alice))

        assert response.status_code == 200
        assert response.json() == {
            "user": {"id": "1", "username": "alice", "email": "alice@example.com"}
        }

    def test_deleted_user_not_found(
        self, client: TestClient, auth_header: Callable[[UserRecord], dict[str, str]]
    ):
        ghost = UserRecord(id="99", username="ghost", email="ghost@example.com")

        response = client.get("/api/auth/me", headers=auth_header(ghost))

        assert response.status_code == 404
        assert response.json() == {"error": "User not found"}

    def test_requires_token(self, client: TestClient):
        response = client.get("/api/auth/me")

        assert response.status_code == 401
        assert response.json()["error"] == "Access token required"

    def test_rejects_invalid_token(self, client: TestClient):
        response = client.get("/api/auth/me", headers={"Authorization": "Bearer abc.def.ghi"})

        assert response.status_code == 401
        assert response.json()["error"] == "Invalid or expired token"
