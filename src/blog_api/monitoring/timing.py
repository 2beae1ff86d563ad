"""Operation timing.

Two ways to time an operation:
- ``start(id)`` / ``stop(id)``: start times kept in a registry keyed by id.
  Ids must be unique per concurrent operation; starting an id that is
  already running restarts it.
- ``begin(id)``: returns an ``OperationTimer`` owned by the caller (for
  requests, attached to the request scope). Nothing is looked up by id, so
  concurrent operations may share a label.

Both report the same way: ``stop`` returns elapsed milliseconds and logs a
warning when the duration exceeds the slow threshold.
"""

from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterator

logger = logging.getLogger(__name__)


class OperationTimer:
    """A single in-flight measurement. Only the first ``stop`` reports; later calls warn."""

    __slots__ = ("_monitor", "_stopped", "operation_id", "started_at")

    def __init__(self, monitor: TimingMonitor, operation_id: str, started: float) -> None:
        self._monitor = monitor
        self.started_at = started
        self._stopped = False
        self.operation_id = operation_id

    @property
    def stopped(self) -> bool:
        return self._stopped

    def stop(self, *, slow_threshold_ms: float | None = None, **details: Any) -> float | None:
        """Stop the measurement.

        Returns:
            Elapsed milliseconds, or None if already stopped.
        """
        if self._stopped:
            logger.warning("No timing started for operation: %s", self.operation_id)
            return None
        self._stopped = True
        return self._monitor._finish_scoped(self, slow_threshold_ms, details)


class TimingMonitor:
    """Thread-safe operation timing.

    Args:
        slow_threshold_ms: Default duration above which ``stop`` logs a warning.
        clock: Monotonic clock in seconds.
    """

    def __init__(
        self,
        slow_threshold_ms: float = 100.0,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.slow_threshold_ms = slow_threshold_ms
        self._clock = clock
        self._started: dict[str, float] = {}
        self._scoped = 0
        self._lock = threading.Lock()

    @property
    def active_count(self) -> int:
        """Number of operations started but not yet stopped."""
        with self._lock:
            return len(self._started) + self._scoped

    def active_operations(self) -> tuple[str, ...]:
        """Ids of registry operations currently being timed."""
        with self._lock:
            return tuple(self._started)

    def start(self, operation_id: str) -> None:
        """Record the start time of an operation."""
        now = self._clock()
        with self._lock:
            restarted = operation_id in self._started
            self._started[operation_id] = now
        if restarted:
            logger.debug("Timing restarted for operation: %s", operation_id)

    def stop(
        self,
        operation_id: str,
        *,
        slow_threshold_ms: float | None = None,
        **details: Any,
    ) -> float | None:
        """Stop timing an operation.

        Args:
            operation_id: Id passed to ``start``.
            slow_threshold_ms: Override of the default slow threshold.
            **details: Context included in the log record.

        Returns:
            Elapsed milliseconds, or None if the operation was never started.
        """
        end = self._clock()
        with self._lock:
            started = self._started.pop(operation_id, None)

        if started is None:
            logger.warning("No timing started for operation: %s", operation_id)
            return None

        return self._report(operation_id, (end - started) * 1000, slow_threshold_ms, details)

    def begin(self, operation_id: str) -> OperationTimer:
        """Start a caller-owned measurement.

        Example:
            timer = monitor.begin("render-feed")
            try:
                ...
            finally:
                timer.stop()
        """
        with self._lock:
            self._scoped += 1
        return OperationTimer(self, operation_id, self._clock())

    def _finish_scoped(
        self, timer: OperationTimer, slow_threshold_ms: float | None, details: dict[str, Any]
    ) -> float:
        end = self._clock()
        with self._lock:
            self._scoped -= 1
        return self._report(
            timer.operation_id, (end - timer.started_at) * 1000, slow_threshold_ms, details
        )

    def _report(
        self,
        operation_id: str,
        duration_ms: float,
        slow_threshold_ms: float | None,
        details: dict[str, Any],
    ) -> float:
        threshold = self.slow_threshold_ms if slow_threshold_ms is None else slow_threshold_ms
        extra = {"operation_id": operation_id, "duration_ms": duration_ms, "details": details}

        if duration_ms > threshold:
            logger.warning(
                "Slow operation detected: %s took %.2fms", operation_id, duration_ms, extra=extra
            )
        else:
            logger.debug(
                "Operation completed: %s took %.2fms", operation_id, duration_ms, extra=extra
            )
        return duration_ms

    @contextmanager
    def timed(
        self,
        operation_id: str,
        *,
        slow_threshold_ms: float | None = None,
        **details: Any,
    ) -> Iterator[OperationTimer]:
        """Time the enclosed block, stopping exactly once on every exit path."""
        timer = self.begin(operation_id)
        try:
            yield timer
        except BaseException as e:
            timer.stop(slow_threshold_ms=slow_threshold_ms, error=type(e).__name__, **details)
            raise
        timer.stop(slow_threshold_ms=slow_threshold_ms, **details)

    async def time_call[T](
        self,
        operation_id: str,
        fn: Callable[[], Awaitable[T]],
        **details: Any,
    ) -> T:
        """Await ``fn()`` while timing it.

        Example:
            user = await monitor.time_call("load-user", lambda: store.find_by_id(uid))
        """
        with self.timed(operation_id, **details):
            return await fn()
