"""Health check endpoint.

Public and exempt from rate limiting so load balancers can poll it freely.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Request

from blog_api.monitoring import PerformanceMonitor

router = APIRouter()


@router.get("/health")
async def health_check(request: Request) -> dict[str, Any]:
    """Report liveness, uptime and memory usage.

    Reads the latest resource sample; never waits on a sampling tick.

    Returns:
        Health status with uptime and memory figures.
    """
    monitor: PerformanceMonitor = request.app.state.performance_monitor
    sample = monitor.get_health_snapshot().sample

    return {
        "status": "OK" if sample else "degraded",
        "timestamp": datetime.now(UTC).isoformat(),
        "uptimeSeconds": round(sample.uptime_seconds, 3) if sample else None,
        "memory": sample.memory_dict() if sample else None,
    }
