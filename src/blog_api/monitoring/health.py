"""Aggregated request and process metrics for health endpoints.

``PerformanceMonitor`` owns the timing registry, the resource sampler and
the request counters. One instance is created per application and stored
on ``app.state.performance_monitor``.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import psutil

from blog_api.config import MonitoringConfig
from blog_api.monitoring.resources import ResourceSample, ResourceSampler
from blog_api.monitoring.timing import TimingMonitor

if TYPE_CHECKING:
    from blog_api.tasks import PeriodicTask

logger = logging.getLogger(__name__)


class RequestStats:
    """Completed request count and running mean response time."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._count = 0
        self._average_ms = 0.0

    def record(self, duration_ms: float) -> None:
        """Fold one completed request into the statistics."""
        with self._lock:
            self._count += 1
            self._average_ms += (duration_ms - self._average_ms) / self._count

    def snapshot(self) -> tuple[int, float]:
        """Return ``(count, average_ms)`` read together."""
        with self._lock:
            return self._count, self._average_ms


@dataclass(frozen=True, slots=True)
class HealthMetrics:
    """Point-in-time view of service health.

    Attributes:
        request_count: Requests completed since startup.
        average_response_time_ms: Mean duration of completed requests.
        active_operations: Operations currently being timed.
        sample: Latest resource sample, None if sampling has never succeeded.
    """

    request_count: int
    average_response_time_ms: float
    active_operations: int
    sample: ResourceSample | None

    def to_dict(self) -> dict[str, Any]:
        """Full metrics payload for the admin endpoint."""
        return {
            "requestCount": self.request_count,
            "averageResponseTimeMs": round(self.average_response_time_ms, 3),
            "activeOperations": self.active_operations,
            "uptimeSeconds": self.sample.uptime_seconds if self.sample else None,
            "memory": self.sample.memory_dict(full=True) if self.sample else None,
        }


class PerformanceMonitor:
    """Request timing, request statistics and resource sampling for one app.

    Args:
        config: Monitoring settings.
        process: Process to sample (default: the current process).

    Example:
        monitor = PerformanceMonitor(config.monitoring)
        await monitor.start()
        ...
        metrics = monitor.get_health_snapshot()
        await monitor.shutdown()
    """

    def __init__(
        self,
        config: MonitoringConfig | None = None,
        *,
        process: psutil.Process | None = None,
    ) -> None:
        self.config = config or MonitoringConfig()
        self.timing = TimingMonitor(slow_threshold_ms=self.config.slow_operation_threshold_ms)
        self.sampler = ResourceSampler(
            process,
            active_operations=lambda: self.timing.active_count,
            lag_threshold_ms=self.config.event_loop_lag_threshold_ms,
            heap_warning_ratio=self.config.heap_warning_ratio,
        )
        self.stats = RequestStats()
        self._sampling: PeriodicTask | None = None

    async def start(self) -> None:
        """Take an initial sample and start periodic sampling if enabled."""
        if not self.config.sampling_enabled:
            return
        self._safe_sample()
        self._sampling = self.sampler.start_periodic_sampling(self.config.sample_interval_ms)

    async def shutdown(self) -> None:
        """Stop periodic sampling and wait for the loop to exit."""
        if self._sampling is None:
            return
        handle, self._sampling = self._sampling, None
        self.sampler.stop_periodic_sampling(handle)
        await handle.stop()

    def record_request(self, duration_ms: float) -> None:
        """Record a completed request."""
        self.stats.record(duration_ms)

    def get_health_snapshot(self) -> HealthMetrics:
        """Current metrics. Samples on demand if no sample exists yet."""
        count, average = self.stats.snapshot()
        sample = self.sampler.latest or self._safe_sample()
        return HealthMetrics(
            request_count=count,
            average_response_time_ms=average,
            active_operations=self.timing.active_count,
            sample=sample,
        )

    def _safe_sample(self) -> ResourceSample | None:
        try:
            return self.sampler.sample_now()
        except (psutil.Error, OSError) as e:
            logger.warning("Resource sampling failed: %s", e)
            return None
