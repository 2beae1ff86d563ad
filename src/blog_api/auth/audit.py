"""Audit trail for credential, access and rate limit decisions.

Each decision the guard layer makes about a request can be published as an
``AuditEvent``. Events never contain the bearer token; credential failures
carry only the error code.

The ``AuditTrail`` lives on ``app.state.audit_trail``. The ``record_*``
helpers look it up from the request and do nothing when it is absent, so
guards can call them unconditionally.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from slowapi.util import get_remote_address

if TYPE_CHECKING:
    from starlette.requests import Request

    from blog_api.auth.tokens import IdentityClaim

logger = logging.getLogger(__name__)

# Destination of LoggingAuditHandler, kept apart from application logs
audit_log = logging.getLogger("audit")


class AuditEventType(StrEnum):
    """Kinds of guard decisions."""

    CREDENTIAL_ACCEPTED = "credential.accepted"
    CREDENTIAL_REJECTED = "credential.rejected"
    ACCESS_DENIED = "access.denied"
    RATE_LIMITED = "rate_limit.exceeded"


@dataclass(frozen=True, slots=True)
class AuditEvent:
    """One guard decision about one request.

    Attributes:
        event_type: What was decided.
        timestamp: Wall-clock time of the decision (UTC).
        request_id: Correlation id assigned by the timing middleware.
        subject_id: Identity the decision applies to, None before authentication.
        client_ip: Remote address, the same value the rate limiter keys on.
        endpoint: Request path.
        method: HTTP method.
        details: Decision-specific context.
    """

    event_type: AuditEventType
    timestamp: datetime
    request_id: str | None
    subject_id: str | None
    client_ip: str | None
    endpoint: str
    method: str
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def severity(self) -> int:
        """Logging level for this event; only accepted credentials are INFO."""
        if self.event_type is AuditEventType.CREDENTIAL_ACCEPTED:
            return logging.INFO
        return logging.WARNING

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe representation."""
        return {
            "event_type": self.event_type.value,
            "timestamp": self.timestamp.isoformat(),
            "request_id": self.request_id,
            "subject_id": self.subject_id,
            "client_ip": self.client_ip,
            "endpoint": self.endpoint,
            "method": self.method,
            "details": dict(self.details),
        }


class AuditHandler:
    """Receiver of audit events. Subclasses implement ``handle``."""

    async def handle(self, event: AuditEvent) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        """Release resources on shutdown."""


class LoggingAuditHandler(AuditHandler):
    """Writes events to the ``audit`` logger at the event's severity."""

    def __init__(self, target: logging.Logger | None = None) -> None:
        self.target = target or audit_log

    async def handle(self, event: AuditEvent) -> None:
        self.target.log(
            event.severity,
            "Audit %s: %s %s",
            event.event_type.value,
            event.method,
            event.endpoint,
            extra={"audit_event": event.to_dict()},
        )


class AuditTrail:
    """Fans each event out to the registered handlers.

    A handler that raises is logged and skipped; the remaining handlers still
    receive the event and the request is unaffected.
    """

    def __init__(self) -> None:
        self._handlers: tuple[AuditHandler, ...] = ()

    @property
    def handlers(self) -> tuple[AuditHandler, ...]:
        return self._handlers

    def add_handler(self, handler: AuditHandler) -> None:
        self._handlers = (*self._handlers, handler)

    def remove_handler(self, handler: AuditHandler) -> None:
        self._handlers = tuple(h for h in self._handlers if h is not handler)

    async def publish(self, event: AuditEvent) -> None:
        """Deliver ``event`` to every handler in registration order."""
        for handler in self._handlers:
            try:
                await handler.handle(event)
            except Exception:
                logger.exception(
                    "Audit handler %s failed on %s",
                    type(handler).__name__,
                    event.event_type.value,
                )

    async def close(self) -> None:
        """Close every handler, continuing past failures."""
        for handler in self._handlers:
            try:
                await handler.close()
            except Exception:
                logger.exception("Audit handler %s failed to close", type(handler).__name__)


async def _publish(
    request: Request,
    event_type: AuditEventType,
    subject_id: str | None,
    **details: Any,
) -> None:
    trail: AuditTrail | None = getattr(request.app.state, "audit_trail", None)
    if trail is None:
        return

    event = AuditEvent(
        event_type=event_type,
        timestamp=datetime.now(UTC),
        request_id=getattr(request.state, "request_id", None),
        subject_id=subject_id,
        client_ip=get_remote_address(request),
        endpoint=request.url.path,
        method=request.method,
        details=details,
    )
    await trail.publish(event)


async def record_credential_accepted(request: Request, claim: IdentityClaim) -> None:
    await _publish(
        request,
        AuditEventType.CREDENTIAL_ACCEPTED,
        claim.subject_id,
        role=claim.role,
        expires_at=claim.expires_at.isoformat(),
    )


async def record_credential_rejected(request: Request, reason: str) -> None:
    """Publish a missing or invalid credential.

    Args:
        request: The incoming request.
        reason: Error code of the failure, never the token.
    """
    await _publish(request, AuditEventType.CREDENTIAL_REJECTED, None, reason=reason)


async def record_access_denied(request: Request, claim: IdentityClaim, reason: str) -> None:
    await _publish(
        request,
        AuditEventType.ACCESS_DENIED,
        claim.subject_id,
        reason=reason,
        role=claim.role,
    )


async def record_rate_limited(
    request: Request, key: str, limit: int, window_seconds: float
) -> None:
    await _publish(
        request,
        AuditEventType.RATE_LIMITED,
        None,
        key=key,
        limit=limit,
        window_seconds=window_seconds,
    )
