"""Middleware module for request/response processing.

This module provides middleware components for the Blog API:
- Per-client sliding-window rate limiting
- Request timing with request id propagation

Usage:
    from blog_api.middleware import (
        RateLimitMiddleware,
        RequestTimingMiddleware,
        SlidingWindowRateLimiter,
    )

    limiter = SlidingWindowRateLimiter(max_requests=100, window_seconds=900)
    app.add_middleware(RateLimitMiddleware, limiter=limiter)
    app.add_middleware(RequestTimingMiddleware, monitor=monitor)
"""

from __future__ import annotations

from blog_api.middleware.rate_limit import (
    Admission,
    RateLimitMiddleware,
    SlidingWindowRateLimiter,
    get_rate_limit_key,
)
from blog_api.middleware.timing import RequestTimingMiddleware

__all__ = [
    "Admission",
    "RateLimitMiddleware",
    "RequestTimingMiddleware",
    "SlidingWindowRateLimiter",
    "get_rate_limit_key",
]
