"""Tests for the request timing middleware."""

import logging

import pytest
from fastapi import FastAPI, HTTPException, Request
from fastapi.testclient import TestClient

from blog_api.config import MonitoringConfig
from blog_api.error_handlers import register_error_handlers
from blog_api.middleware.timing import RequestTimingMiddleware
from blog_api.monitoring import PerformanceMonitor


def _timed_app(monitor: PerformanceMonitor) -> FastAPI:
    app = FastAPI()
    register_error_handlers(app)
    app.add_middleware(RequestTimingMiddleware, monitor=monitor)

    @app.get("/ok")
    async def ok(request: Request):
        return {
            "request_id": request.state.request_id,
            "timer_running": not request.state.request_timer.stopped,
        }

    @app.get("/bad")
    async def bad():
        raise HTTPException(status_code=400, detail="Bad input")

    @app.get("/boom")
    async def boom():
        raise RuntimeError("unexpected")

    return app


@pytest.fixture
def monitor() -> PerformanceMonitor:
    return PerformanceMonitor(MonitoringConfig(sampling_enabled=False))


@pytest.fixture
def client(monitor: PerformanceMonitor) -> TestClient:
    return TestClient(_timed_app(monitor), raise_server_exceptions=False)


class TestRequestTimingMiddleware:
    """Tests for timing and request id propagation."""

    def test_successful_request_is_recorded(self, client: TestClient, monitor: PerformanceMonitor):
        response = client.get("/ok")

        assert response.status_code == 200
        count, average = monitor.stats.snapshot()
        assert count == 1
        assert average >= 0
        assert monitor.timing.active_count == 0

    def test_request_id_header_matches_request_state(self, client: TestClient):
        response = client.get("/ok")

        assert len(response.headers["X-Request-ID"]) == 36  # UUID length
        assert response.json()["request_id"] == response.headers["X-Request-ID"]
        assert response.json()["timer_running"] is True

    def test_request_ids_are_unique(self, client: TestClient):
        ids = {client.get("/ok").headers["X-Request-ID"] for _ in range(5)}
        assert len(ids) == 5

    def test_error_response_is_recorded_once(
        self, client: TestClient, monitor: PerformanceMonitor
    ):
        response = client.get("/bad")

        assert response.status_code == 400
        assert response.json() == {"error": "Bad input"}
        assert monitor.stats.snapshot()[0] == 1
        assert monitor.timing.active_count == 0

    def test_unhandled_exception_is_recorded_once(
        self, client: TestClient, monitor: PerformanceMonitor
    ):
        response = client.get("/boom")

        assert response.status_code == 500
        assert response.json()["error"] == "Internal Server Error"
        assert monitor.stats.snapshot()[0] == 1
        assert monitor.timing.active_count == 0

    def test_unknown_route_is_recorded(self, client: TestClient, monitor: PerformanceMonitor):
        response = client.get("/missing")

        assert response.status_code == 404
        assert response.json() == {"error": "Route not found", "message": "Cannot GET /missing"}
        assert monitor.stats.snapshot()[0] == 1

    def test_mixed_requests_leave_no_entries(
        self, client: TestClient, monitor: PerformanceMonitor
    ):
        for path in ("/ok", "/bad", "/boom", "/ok", "/missing"):
            client.get(path)

        assert monitor.stats.snapshot()[0] == 5
        assert monitor.timing.active_count == 0

    def test_slow_request_logs_warning(self, caplog):
        monitor = PerformanceMonitor(
            MonitoringConfig(sampling_enabled=False, slow_request_threshold_ms=1e-9)
        )
        client = TestClient(_timed_app(monitor))

        with caplog.at_level(logging.WARNING, logger="blog_api.monitoring.timing"):
            client.get("/ok")

        assert "Slow operation detected: request-GET-/ok-" in caplog.text
