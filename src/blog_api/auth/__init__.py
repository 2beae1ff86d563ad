"""Authentication and authorization for the Blog API.

This module provides:
- Signed, time-bounded bearer tokens (issue, verify, header extraction)
- Ownership and role checks against a decoded identity
- FastAPI dependencies wiring both into route handlers
- An audit trail of credential, access and rate limit decisions

Usage:
    from blog_api.auth import CredentialCodec, RoleChecker, require_claim

    codec = CredentialCodec(config.auth.jwt_secret)
    app.state.credential_codec = codec

    @router.get("/admin/metrics")
    async def metrics(claim: IdentityClaim = Depends(RoleChecker("admin"))):
        ...
"""

from __future__ import annotations

from blog_api.auth.audit import (
    AuditEvent,
    AuditEventType,
    AuditHandler,
    AuditTrail,
    LoggingAuditHandler,
    record_access_denied,
    record_credential_accepted,
    record_credential_rejected,
    record_rate_limited,
)
from blog_api.auth.authorization import (
    ALLOWED,
    Decision,
    Denial,
    require_ownership,
    require_role,
)
from blog_api.auth.dependencies import (
    BearerAuth,
    OwnershipChecker,
    RoleChecker,
    authorize,
    require_claim,
)
from blog_api.auth.tokens import (
    BEARER_PREFIX,
    CredentialCodec,
    IdentityClaim,
    extract_bearer,
)

__all__ = [
    "ALLOWED",
    "BEARER_PREFIX",
    "AuditEvent",
    "AuditEventType",
    "AuditHandler",
    "AuditTrail",
    "BearerAuth",
    "CredentialCodec",
    "Decision",
    "Denial",
    "IdentityClaim",
    "LoggingAuditHandler",
    "OwnershipChecker",
    "RoleChecker",
    "authorize",
    "extract_bearer",
    "record_access_denied",
    "record_credential_accepted",
    "record_credential_rejected",
    "record_rate_limited",
    "require_claim",
    "require_ownership",
    "require_role",
]
