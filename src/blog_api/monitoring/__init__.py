"""Request timing and process resource monitoring."""

from __future__ import annotations

from blog_api.monitoring.health import HealthMetrics, PerformanceMonitor, RequestStats
from blog_api.monitoring.resources import ResourceSample, ResourceSampler
from blog_api.monitoring.timing import OperationTimer, TimingMonitor

__all__ = [
    "HealthMetrics",
    "OperationTimer",
    "PerformanceMonitor",
    "RequestStats",
    "ResourceSample",
    "ResourceSampler",
    "TimingMonitor",
]
