"""FastAPI application for the Blog API.

This module provides the application factory for the Blog API request
guard layer.

Features:
- Bearer token authentication with ownership and role checks
- Per-client sliding-window rate limiting
- Request timing, request statistics and process resource sampling
- Health and admin metrics endpoints

All shared components (credential codec, rate limiter, performance monitor,
audit logger, user store) are built once in ``create_app`` and stored on
``app.state``. The lifespan only starts and stops background loops.
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from blog_api import __version__
from blog_api.auth import AuditTrail, CredentialCodec, LoggingAuditHandler
from blog_api.config import get_config
from blog_api.error_handlers import register_error_handlers
from blog_api.middleware import (
    RateLimitMiddleware,
    RequestTimingMiddleware,
    SlidingWindowRateLimiter,
)
from blog_api.monitoring import PerformanceMonitor
from blog_api.routes import admin_router, auth_router, health_router, users_router
from blog_api.users import InMemoryUserStore, UserStore

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from blog_api.config import AppConfig

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage background loops for the application's lifetime.

    Starts:
    - Periodic resource sampling
    - Periodic purge of drained rate limit windows

    Both are cancelled and awaited on shutdown so no timer outlives the app.
    """
    config: AppConfig = app.state.config

    # Configure logging
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    monitor: PerformanceMonitor = app.state.performance_monitor
    limiter: SlidingWindowRateLimiter | None = app.state.rate_limiter

    await monitor.start()
    purge_task = (
        limiter.start_purging(config.rate_limit.sweep_interval_seconds, clock=time.monotonic)
        if limiter is not None
        else None
    )

    logger.info(
        "Guards initialized: rate_limit=%s, sampling=%s, audit=%s",
        config.rate_limit.limit if limiter is not None else "disabled",
        config.monitoring.sampling_enabled,
        config.auth.audit_enabled,
    )
    logger.info("API startup complete (environment=%s)", config.environment)

    yield

    # Cleanup
    logger.info("Shutting down API...")
    if purge_task is not None:
        await purge_task.stop()
    await monitor.shutdown()
    await app.state.audit_trail.close()
    logger.info("Background tasks stopped")


def create_app(
    config: AppConfig | None = None,
    *,
    user_store: UserStore | None = None,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        config: Application configuration (default: loaded from environment).
        user_store: User lookup backend (default: empty in-memory store).

    Returns:
        Configured FastAPI app.

    Raises:
        ConfigurationError: If the signing secret or other settings are invalid.
    """
    config = config or get_config()

    app = FastAPI(
        title="Blog API",
        description=(
            "Blog platform REST API. Provides bearer authentication, "
            "per-client rate limiting and service health metrics."
        ),
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    codec = CredentialCodec(
        config.auth.jwt_secret,
        ttl_seconds=config.auth.token_ttl_seconds,
        algorithm=config.auth.jwt_algorithm,
    )
    limiter = (
        SlidingWindowRateLimiter.from_config(config.rate_limit)
        if config.rate_limit.enabled
        else None
    )
    monitor = PerformanceMonitor(config.monitoring)

    audit = AuditTrail()
    if config.auth.audit_enabled:
        audit.add_handler(LoggingAuditHandler())

    # Store in app state for dependencies and route handlers
    app.state.config = config
    app.state.credential_codec = codec
    app.state.rate_limiter = limiter
    app.state.performance_monitor = monitor
    app.state.audit_trail = audit
    app.state.user_store = user_store if user_store is not None else InMemoryUserStore()

    register_error_handlers(app, include_details=config.is_development)

    # Note: Middleware runs in reverse order of registration.
    # Timing is outermost so rejected requests are timed too. CORS wraps the
    # rate limiter so 429 responses still carry CORS headers.
    if limiter is not None:
        app.add_middleware(
            RateLimitMiddleware,
            limiter=limiter,
            excluded_paths=config.rate_limit.excluded_paths,
        )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestTimingMiddleware, monitor=monitor)

    # Mount routers
    app.include_router(health_router, tags=["Health"])
    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(admin_router)

    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint with API information."""
        return {
            "name": "Blog API",
            "version": __version__,
            "docs": "/docs",
            "health": "/health",
        }

    return app


def run() -> None:
    """Run the API server (for local development)."""
    import uvicorn

    config = get_config()
    uvicorn.run(
        "blog_api.api:create_app",
        factory=True,
        host=config.host,
        port=config.port,
        reload=config.is_development,
    )


if __name__ == "__main__":
    run()
