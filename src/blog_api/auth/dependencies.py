"""FastAPI dependencies for bearer authentication and authorization.

Usage:
    from blog_api.auth.dependencies import OwnershipChecker, RoleChecker, require_claim

    @router.get("/me")
    async def me(claim: IdentityClaim = Depends(require_claim)):
        ...

    @router.get("/admin/metrics")
    async def metrics(claim: IdentityClaim = Depends(RoleChecker("admin"))):
        ...

    @router.get("/users/{user_id}")
    async def profile(user_id: str, claim: IdentityClaim = Depends(OwnershipChecker("user_id"))):
        ...

Note:
    This module intentionally does NOT use `from __future__ import annotations`
    because FastAPI's dependency injection needs to inspect the actual `Request`
    and `IdentityClaim` types at runtime.
"""

import logging

from fastapi import Depends, Request

from blog_api.auth.audit import (
    record_access_denied,
    record_credential_accepted,
    record_credential_rejected,
)
from blog_api.auth.authorization import Decision, require_ownership, require_role
from blog_api.auth.tokens import CredentialCodec, IdentityClaim, extract_bearer
from blog_api.exceptions import InvalidCredentialError, MissingCredentialError

logger = logging.getLogger(__name__)


def get_codec(request: Request) -> CredentialCodec:
    """Return the codec created by the application factory."""
    return request.app.state.credential_codec


class BearerAuth:
    """Dependency that verifies the bearer token and returns its claim.

    The decoded claim is stored on ``request.state.claim`` for the rest of
    the request; it is never shared between requests.
    """

    async def __call__(self, request: Request) -> IdentityClaim:
        """Authenticate the request.

        Raises:
            MissingCredentialError: 401 if no bearer token is present.
            InvalidCredentialError: 401 if the token fails verification.
        """
        existing = getattr(request.state, "claim", None)
        if existing is not None:
            return existing

        token = extract_bearer(request.headers.get("Authorization"))
        if token is None:
            logger.warning(
                "Missing bearer token on protected endpoint",
                extra={"path": request.url.path, "method": request.method},
            )
            await record_credential_rejected(request, MissingCredentialError.code)
            raise MissingCredentialError()

        try:
            claim = get_codec(request).verify(token)
        except InvalidCredentialError:
            logger.warning(
                "Invalid or expired bearer token",
                extra={"path": request.url.path, "method": request.method},
            )
            await record_credential_rejected(request, InvalidCredentialError.code)
            raise

        request.state.claim = claim
        logger.debug("Bearer token authenticated", extra={"subject_id": claim.subject_id})
        await record_credential_accepted(request, claim)
        return claim


require_claim = BearerAuth()


async def authorize(request: Request, claim: IdentityClaim, decision: Decision) -> None:
    """Audit and raise for a denied decision; no-op when allowed.

    Use from handlers that must load a resource before checking ownership.
    """
    if decision.allowed:
        return
    logger.warning(
        "Access denied: %s",
        decision.denial,
        extra={"path": request.url.path, "subject_id": claim.subject_id},
    )
    await record_access_denied(request, claim, str(decision.denial))
    decision.raise_for_denial()


class RoleChecker:
    """Dependency that requires the authenticated identity to hold a role."""

    def __init__(self, role: str) -> None:
        self.role = role

    async def __call__(
        self, request: Request, claim: IdentityClaim = Depends(require_claim)
    ) -> IdentityClaim:
        """Check the role.

        Raises:
            MissingRoleError: 403 if the identity has no role.
            ForbiddenError: 403 if the role differs.
        """
        await authorize(request, claim, require_role(claim, self.role))
        return claim


class OwnershipChecker:
    """Dependency that requires the identity to own the resource named in the path.

    Args:
        path_param: Path parameter holding the owner's user id.
    """

    def __init__(self, path_param: str = "user_id") -> None:
        self.path_param = path_param

    async def __call__(
        self, request: Request, claim: IdentityClaim = Depends(require_claim)
    ) -> IdentityClaim:
        """Check ownership.

        Raises:
            ForbiddenError: 403 if the identity is not the owner.
        """
        owner_id = request.path_params.get(self.path_param, "")
        await authorize(request, claim, require_ownership(claim, owner_id))
        return claim
