"""Process resource sampling.

Memory readings come from psutil. ``heap_used`` reports the traced Python
allocations when ``tracemalloc`` is running and falls back to the resident
set size otherwise; ``heap_total`` is the process virtual memory size.

The periodic sampler also measures event loop lag: how much later than
scheduled each tick woke up.
"""

from __future__ import annotations

import asyncio
import logging
import time
import tracemalloc
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import psutil

from blog_api.tasks import PeriodicTask

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ResourceSample:
    """One reading of process resources.

    Memory values are in bytes.
    """

    rss: int
    heap_used: int
    heap_total: int
    external: int
    uptime_seconds: float
    active_operations: int
    timestamp: datetime

    @property
    def heap_ratio(self) -> float:
        """heap_used / heap_total, 0 when the total is unknown."""
        return self.heap_used / self.heap_total if self.heap_total else 0.0

    def memory_dict(self, *, full: bool = False) -> dict[str, int]:
        """Memory figures in the shape returned by the HTTP API."""
        memory = {"rss": self.rss, "heapUsed": self.heap_used, "heapTotal": self.heap_total}
        if full:
            memory["external"] = self.external
        return memory


class ResourceSampler:
    """Reads process memory and uptime, on demand or on a fixed interval.

    The latest sample is published by swapping a single reference, so
    readers never see a partially written sample.

    Args:
        process: Process to sample (default: the current process).
        active_operations: Callable returning the in-flight operation count.
        lag_threshold_ms: Event loop lag above which a warning is logged.
        heap_warning_ratio: Heap usage ratio above which a warning is logged.
        clock: Monotonic clock in seconds, used for lag measurement.
        wall_clock: Wall clock in epoch seconds, used for uptime.
    """

    def __init__(
        self,
        process: psutil.Process | None = None,
        *,
        active_operations: Callable[[], int] = lambda: 0,
        lag_threshold_ms: float = 100.0,
        heap_warning_ratio: float = 0.8,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        self._process = process if process is not None else psutil.Process()
        self._active_operations = active_operations
        self.lag_threshold_ms = lag_threshold_ms
        self.heap_warning_ratio = heap_warning_ratio
        self._clock = clock
        self._wall_clock = wall_clock
        self._latest: ResourceSample | None = None
        self._last_lag_ms: float = 0.0
        self._handle: PeriodicTask | None = None

    @property
    def latest(self) -> ResourceSample | None:
        """Most recent sample, None before the first one."""
        return self._latest

    @property
    def last_lag_ms(self) -> float:
        """Event loop lag measured on the most recent periodic tick."""
        return self._last_lag_ms

    def sample_now(self) -> ResourceSample:
        """Take a sample immediately and publish it as ``latest``.

        Raises:
            psutil.Error: If the process can no longer be inspected.
        """
        mem = self._process.memory_info()
        heap_used = tracemalloc.get_traced_memory()[0] if tracemalloc.is_tracing() else mem.rss

        sample = ResourceSample(
            rss=mem.rss,
            heap_used=heap_used,
            heap_total=mem.vms,
            external=getattr(mem, "shared", 0),
            uptime_seconds=max(0.0, self._wall_clock() - self._process.create_time()),
            active_operations=self._active_operations(),
            timestamp=datetime.now(UTC),
        )
        self._latest = sample
        return sample

    def start_periodic_sampling(self, interval_ms: int) -> PeriodicTask:
        """Start sampling every ``interval_ms`` milliseconds.

        Must be called from a running event loop. Calling again while a
        sampler is running returns the existing handle.
        """
        if self._handle is not None and self._handle.running:
            return self._handle
        self._handle = PeriodicTask("resource-sampler", self._sample_loop(interval_ms / 1000))
        logger.info("Resource sampling started", extra={"interval_ms": interval_ms})
        return self._handle

    def stop_periodic_sampling(self, handle: PeriodicTask) -> None:
        """Cancel a sampling loop. Safe to call more than once."""
        if handle.cancel():
            logger.info("Resource sampling stopped")
        if handle is self._handle:
            self._handle = None

    async def _sample_loop(self, interval: float) -> None:
        last = self._clock()
        while True:
            await asyncio.sleep(interval)
            now = self._clock()
            lag_ms = (now - last - interval) * 1000
            last = now
            self._last_lag_ms = max(0.0, lag_ms)

            if lag_ms > self.lag_threshold_ms:
                logger.warning("Event loop lag detected: %.2fms", lag_ms, extra={"lag_ms": lag_ms})

            try:
                sample = self.sample_now()
            except (psutil.Error, OSError) as e:
                logger.warning("Resource sampling failed, skipping tick: %s", e)
                continue
            except Exception:
                logger.exception("Unexpected error while sampling resources, skipping tick")
                continue

            self._log_sample(sample)

    def _log_sample(self, sample: ResourceSample) -> None:
        extra: dict[str, Any] = {"memory": sample.memory_dict(full=True)}
        logger.debug(
            "Memory usage: rss=%.1fMB heap=%.1fMB/%.1fMB",
            sample.rss / 1024 / 1024,
            sample.heap_used / 1024 / 1024,
            sample.heap_total / 1024 / 1024,
            extra=extra,
        )
        if sample.heap_ratio > self.heap_warning_ratio:
            logger.warning(
                "High memory usage detected: %.1f%% of heap",
                sample.heap_ratio * 100,
                extra=extra,
            )
