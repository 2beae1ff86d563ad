"""Tests for admin endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi.testclient import TestClient

from blog_api.users import UserRecord

if TYPE_CHECKING:
    from collections.abc import Callable


class TestAdminMetricsEndpoint:
    """Tests for GET /api/admin/metrics."""

    def test_admin_reads_metrics(
        self,
        client: TestClient,
        auth_header: Callable[[UserRecord], dict[str, str]],
        admin: UserRecord,
    ):
        client.get("/")
        client.get("/health")

        response = client.get("/api/admin/metrics", headers=auth_header(admin))

        assert response.status_code == 200
        data = response.json()
        assert data["requestCount"] >= 2
        assert data["averageResponseTimeMs"] >= 0
        assert data["activeOperations"] >= 1  # the metrics request itself
        assert set(data["memory"]) == {"rss", "heapUsed", "heapTotal", "external"}
        assert data["rateLimitedClients"] == 1
        assert "eventLoopLagMs" in data

    def test_other_role_forbidden(
        self,
        client: TestClient,
        auth_header: Callable[[UserRecord], dict[str, str]],
        bob: UserRecord,
    ):
        response = client.get("/api/admin/metrics", headers=auth_header(bob))

        assert response.status_code == 403
        assert response.json() == {"error": "Insufficient permissions", "code": "forbidden"}

    def test_missing_role_reported(
        self,
        client: TestClient,
        auth_header: Callable[[UserRecord], dict[str, str]],
        alice: UserRecord,
    ):
        response = client.get("/api/admin/metrics", headers=auth_header(alice))

        assert response.status_code == 403
        assert response.json()["error"] == "Role information not found"

    def test_requires_token(self, client: TestClient):
        assert client.get("/api/admin/metrics").status_code == 401
