"""Per-client sliding-window rate limiting.

Each client key (the remote address by default) owns a sorted list of
request timestamps. An admission check evicts timestamps that have left the
window, then admits the request if fewer than ``max_requests`` remain.

Concurrency:
    - Check-and-append for one key runs under that key's lock, so concurrent
      requests for the same client can never over-admit
    - Different keys never share an admission lock; the registry lock only
      guards inserting and removing keys
    - Windows drained to zero are removed by ``purge``, which a background
      task runs on a fixed interval

Default limit: 100 requests per 15 minutes per client.
"""

from __future__ import annotations

import asyncio
import bisect
import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware

from blog_api.auth.audit import record_rate_limited
from blog_api.config import DEFAULT_RATE_LIMIT_EXCLUDED_PATHS
from blog_api.error_handlers import error_response
from blog_api.exceptions import RateLimitedError
from blog_api.tasks import PeriodicTask

if TYPE_CHECKING:
    from collections.abc import Callable

    from starlette.requests import Request
    from starlette.responses import Response
    from starlette.types import ASGIApp

    from blog_api.config import RateLimitConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Admission:
    """Result of an admission check.

    Attributes:
        allowed: Whether the request was admitted (and recorded).
        limit: Requests admitted per window.
        remaining: Slots left in the window after this check.
        retry_after: Seconds until the oldest request leaves the window (0 when allowed).
    """

    allowed: bool
    limit: int
    remaining: int
    retry_after: float = 0.0


class _Window:
    __slots__ = ("lock", "retired", "timestamps")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.timestamps: list[float] = []
        self.retired = False

    def evict(self, cutoff: float) -> None:
        """Drop timestamps at or before ``cutoff``."""
        stale = bisect.bisect_right(self.timestamps, cutoff)
        if stale:
            del self.timestamps[:stale]


class SlidingWindowRateLimiter:
    """Admission control keyed by client identifier.

    Args:
        max_requests: Requests admitted per window. Must be positive.
        window_seconds: Window length in seconds. Must be positive.

    Example:
        limiter = SlidingWindowRateLimiter(max_requests=2, window_seconds=1.0)
        limiter.try_acquire("10.0.0.1", now=0.0).allowed  # True
        limiter.try_acquire("10.0.0.1", now=0.1).allowed  # True
        limiter.try_acquire("10.0.0.1", now=0.2).allowed  # False
        limiter.try_acquire("10.0.0.1", now=1.01).allowed  # True
    """

    def __init__(self, max_requests: int, window_seconds: float) -> None:
        if max_requests <= 0:
            msg = "max_requests must be positive"
            raise ValueError(msg)
        if window_seconds <= 0:
            msg = "window_seconds must be positive"
            raise ValueError(msg)

        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._windows: dict[str, _Window] = {}
        self._registry_lock = threading.Lock()

    @classmethod
    def from_config(cls, config: RateLimitConfig) -> SlidingWindowRateLimiter:
        """Build a limiter from the parsed limit string."""
        return cls(max_requests=config.max_requests, window_seconds=config.window_seconds)

    def __len__(self) -> int:
        return len(self._windows)

    def _window_for(self, key: str) -> _Window:
        window = self._windows.get(key)
        if window is None:
            with self._registry_lock:
                window = self._windows.setdefault(key, _Window())
        return window

    def try_acquire(self, key: str, now: float) -> Admission:
        """Admit or deny one request for ``key`` at time ``now``.

        Eviction and the append happen as one atomic step under the key's lock.
        A denied request is not recorded.

        Args:
            key: Client identifier.
            now: Request timestamp in seconds (monotonic clock).

        Returns:
            The admission decision.
        """
        while True:
            window = self._window_for(key)
            with window.lock:
                # Purged between lookup and lock; fetch the replacement
                if window.retired:
                    continue

                window.evict(now - self.window_seconds)
                timestamps = window.timestamps

                if len(timestamps) < self.max_requests:
                    bisect.insort(timestamps, now)
                    return Admission(
                        allowed=True,
                        limit=self.max_requests,
                        remaining=self.max_requests - len(timestamps),
                    )

                return Admission(
                    allowed=False,
                    limit=self.max_requests,
                    remaining=0,
                    retry_after=max(0.0, timestamps[0] + self.window_seconds - now),
                )

    def purge(self, now: float) -> int:
        """Remove keys whose windows have fully drained.

        Args:
            now: Current time on the same clock used for ``try_acquire``.

        Returns:
            Number of keys removed.
        """
        removed = 0
        cutoff = now - self.window_seconds
        with self._registry_lock:
            for key, window in list(self._windows.items()):
                with window.lock:
                    window.evict(cutoff)
                    if not window.timestamps:
                        window.retired = True
                        del self._windows[key]
                        removed += 1
        return removed

    def start_purging(
        self, interval_seconds: float, clock: Callable[[], float] = time.monotonic
    ) -> PeriodicTask:
        """Start a background task that purges drained windows.

        Must be called from a running event loop (the app lifespan).
        """

        async def _purge_loop() -> None:
            while True:
                await asyncio.sleep(interval_seconds)
                removed = self.purge(clock())
                if removed:
                    logger.debug(
                        "Purged %d idle rate limit windows (%d active)", removed, len(self)
                    )

        return PeriodicTask("rate-limit-purge", _purge_loop())


def get_rate_limit_key(request: Request) -> str:
    """Get the rate limit key for a request (the client's network address)."""
    return get_remote_address(request)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Middleware applying a SlidingWindowRateLimiter to incoming requests.

    Denied requests get 429 with ``Retry-After``; admitted responses carry
    ``X-RateLimit-Limit`` and ``X-RateLimit-Remaining``.

    Example:
        limiter = SlidingWindowRateLimiter.from_config(config.rate_limit)
        app.add_middleware(RateLimitMiddleware, limiter=limiter)
    """

    def __init__(
        self,
        app: ASGIApp,
        limiter: SlidingWindowRateLimiter,
        excluded_paths: tuple[str, ...] = DEFAULT_RATE_LIMIT_EXCLUDED_PATHS,
        key_func: Callable[[Request], str] = get_rate_limit_key,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(app)
        self.limiter = limiter
        self.excluded_paths = excluded_paths
        self.key_func = key_func
        self.clock = clock

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Admit or reject the request before it reaches routing."""
        # Skip excluded paths and CORS preflight requests
        if request.method == "OPTIONS" or any(
            request.url.path.startswith(path) for path in self.excluded_paths
        ):
            return await call_next(request)

        key = self.key_func(request)
        admission = self.limiter.try_acquire(key, self.clock())

        if not admission.allowed:
            logger.warning(
                "Rate limit exceeded: key=%s, limit=%d/%ss, path=%s",
                key,
                self.limiter.max_requests,
                self.limiter.window_seconds,
                request.url.path,
            )
            await record_rate_limited(
                request, key, self.limiter.max_requests, self.limiter.window_seconds
            )
            return error_response(
                RateLimitedError(
                    headers={
                        "Retry-After": str(max(1, math.ceil(admission.retry_after))),
                        "X-RateLimit-Limit": str(admission.limit),
                        "X-RateLimit-Remaining": "0",
                    }
                )
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(admission.limit)
        response.headers["X-RateLimit-Remaining"] = str(admission.remaining)
        return response
