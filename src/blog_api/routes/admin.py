"""Admin endpoints for service monitoring.

All endpoints require the ``admin`` role.

Usage:
    GET /api/admin/metrics - Request statistics and process resources
"""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request

from blog_api.auth import IdentityClaim, RoleChecker
from blog_api.middleware import SlidingWindowRateLimiter
from blog_api.monitoring import PerformanceMonitor

router = APIRouter(prefix="/api/admin", tags=["Admin"])

# Module-level dependency for admin role checking
AdminClaim = Annotated[IdentityClaim, Depends(RoleChecker("admin"))]


@router.get("/metrics")
async def get_metrics(request: Request, claim: AdminClaim) -> dict[str, Any]:
    """Get request statistics and process resource usage.

    Requires the admin role.

    Returns:
        Request count, mean response time, in-flight operations,
        memory, event loop lag and rate limiter occupancy.
    """
    _ = claim  # Dependency ensures admin role
    monitor: PerformanceMonitor = request.app.state.performance_monitor
    limiter: SlidingWindowRateLimiter | None = request.app.state.rate_limiter

    payload = monitor.get_health_snapshot().to_dict()
    payload["eventLoopLagMs"] = round(monitor.sampler.last_lag_ms, 3)
    payload["rateLimitedClients"] = len(limiter) if limiter is not None else None
    return payload
