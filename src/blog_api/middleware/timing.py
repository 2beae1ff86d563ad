"""Request timing middleware (raw ASGI, NOT BaseHTTPMiddleware).

Assigns each HTTP request a unique id, stores it in
``scope["state"]["request_id"]`` and echoes it as ``X-Request-ID``. The
request's timer lives on its own scope (``request.state.request_timer``) and
is stopped in a ``finally`` block, so exactly one stop fires whether the
downstream app returns or raises.
"""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from blog_api.monitoring.health import PerformanceMonitor

logger = logging.getLogger(__name__)


class RequestTimingMiddleware:
    """Raw ASGI middleware that times every HTTP request."""

    def __init__(self, app: Any, monitor: PerformanceMonitor) -> None:
        self.app = app
        self.monitor = monitor

    async def __call__(self, scope: dict, receive: Any, send: Any) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = str(uuid.uuid4())
        scope.setdefault("state", {})
        scope["state"]["request_id"] = request_id

        method = scope["method"]
        path = scope["path"]
        operation_id = f"request-{method}-{path}-{request_id}"
        status_code: int | None = None

        async def send_with_request_id(message: dict) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
                headers = list(message.get("headers", []))
                headers.append((b"x-request-id", request_id.encode()))
                message["headers"] = headers
            await send(message)

        timer = self.monitor.timing.begin(operation_id)
        scope["state"]["request_timer"] = timer
        try:
            await self.app(scope, receive, send_with_request_id)
        finally:
            duration_ms = timer.stop(
                slow_threshold_ms=self.monitor.config.slow_request_threshold_ms,
                method=method,
                path=path,
                status_code=status_code or 500,
            )
            if duration_ms is not None:
                self.monitor.record_request(duration_ms)


__all__ = ["RequestTimingMiddleware"]
