"""Pytest fixtures for Blog API tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from fastapi.testclient import TestClient

from blog_api.api import create_app
from blog_api.auth import AuditEvent, AuditHandler, CredentialCodec
from blog_api.config import AppConfig, AuthConfig, MonitoringConfig, RateLimitConfig
from blog_api.users import InMemoryUserStore, UserRecord

if TYPE_CHECKING:
    from collections.abc import Callable, Generator

    from fastapi import FastAPI

# Test credentials - not real secrets
TEST_SECRET = "test-signing-secret-0123456789abcdef"  # noqa: S105
OTHER_SECRET = "another-signing-secret-fedcba9876543210"  # noqa: S105

# 2023-11-14T22:13:20Z
FIXED_NOW = 1_700_000_000.0


class FakeClock:
    """Manually advanced clock returning seconds."""

    def __init__(self, now: float = FIXED_NOW) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingAuditHandler(AuditHandler):
    """Audit handler that keeps events in memory."""

    def __init__(self) -> None:
        self.events: list[AuditEvent] = []

    async def handle(self, event: AuditEvent) -> None:
        self.events.append(event)


@pytest.fixture
def clock() -> FakeClock:
    """Clock fixed at FIXED_NOW."""
    return FakeClock()


@pytest.fixture
def codec(clock: FakeClock) -> CredentialCodec:
    """Codec using the fixed clock and a one-hour lifetime."""
    return CredentialCodec(TEST_SECRET, ttl_seconds=3600, clock=clock)


@pytest.fixture
def alice() -> UserRecord:
    return UserRecord(id="1", username="alice", email="alice@example.com")


@pytest.fixture
def bob() -> UserRecord:
    return UserRecord(id="2", username="bob", email="bob@example.com", role="user")


@pytest.fixture
def admin() -> UserRecord:
    return UserRecord(id="3", username="root", email="root@example.com", role="admin")


@pytest.fixture
def user_store(alice: UserRecord, bob: UserRecord, admin: UserRecord) -> InMemoryUserStore:
    return InMemoryUserStore([alice, bob, admin])


@pytest.fixture
def app_config() -> AppConfig:
    """Configuration for app-level tests (sampling off, generous rate limit)."""
    return AppConfig(
        auth=AuthConfig(jwt_secret=TEST_SECRET),
        rate_limit=RateLimitConfig(limit="100/15 minutes"),
        monitoring=MonitoringConfig(sampling_enabled=False),
        environment="test",
    )


@pytest.fixture
def audit_events() -> RecordingAuditHandler:
    return RecordingAuditHandler()


@pytest.fixture
def app(
    app_config: AppConfig,
    user_store: InMemoryUserStore,
    audit_events: RecordingAuditHandler,
) -> FastAPI:
    """Application built by the factory with a recording audit handler."""
    application = create_app(app_config, user_store=user_store)
    application.state.audit_trail.add_handler(audit_events)
    return application


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    """Test client with the lifespan running."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_header(app: FastAPI) -> Callable[[UserRecord], dict[str, str]]:
    """Build an Authorization header for a user, signed by the app's codec."""

    def _header(user: UserRecord) -> dict[str, str]:
        token = app.state.credential_codec.issue(user)
        return {"Authorization": f"Bearer {token}"}

    return _header
