"""Exception hierarchy for the Blog API request guard layer.

Every request-level error carries an HTTP status, a stable machine-readable
code and a client-safe message, so handlers and middleware can render the
same JSON body. None of them is fatal to the process.

Startup failures use ``ConfigurationError`` instead, which is never mapped to
a response.
"""

from __future__ import annotations

from typing import Any


class ConfigurationError(Exception):
    """Raised when configuration is invalid or missing at startup."""


class BlogAPIError(Exception):
    """Base exception for errors that map onto an HTTP response.

    Attributes:
        status_code: HTTP status code for the response.
        code: Stable error code for programmatic handling.
        message: Human-readable message safe to return to clients.
        headers: Extra response headers.
    """

    status_code: int = 500
    code: str = "internal_error"
    default_message: str = "Internal Server Error"

    def __init__(self, message: str | None = None, *, headers: dict[str, str] | None = None):
        self.message = message or self.default_message
        self.headers = headers or {}
        super().__init__(self.message)

    def to_response(self) -> dict[str, Any]:
        """Build the JSON body returned to the client."""
        return {"error": self.message, "code": self.code}


class MissingCredentialError(BlogAPIError):
    """No bearer credential was presented."""

    status_code = 401
    code = "missing_credential"
    default_message = "Access token required"

    def __init__(self, message: str | None = None, *, headers: dict[str, str] | None = None):
        super().__init__(message, headers={"WWW-Authenticate": "Bearer", **(headers or {})})


class InvalidCredentialError(BlogAPIError):
    """The bearer credential failed verification.

    Signature, structure and expiry failures all raise this same error so
    callers cannot tell which check failed.
    """

    status_code = 401
    code = "invalid_credential"
    default_message = "Invalid or expired token"

    def __init__(self, message: str | None = None, *, headers: dict[str, str] | None = None):
        super().__init__(message, headers={"WWW-Authenticate": "Bearer", **(headers or {})})


class ForbiddenError(BlogAPIError):
    """The identity is not allowed to act on the resource."""

    status_code = 403
    code = "forbidden"
    default_message = "Insufficient permissions"


class MissingRoleError(BlogAPIError):
    """A role check ran against an identity that carries no role."""

    status_code = 403
    code = "missing_role"
    default_message = "Role information not found"


class RateLimitedError(BlogAPIError):
    """The client exceeded its request budget for the current window."""

    status_code = 429
    code = "rate_limited"
    default_message = "Too many requests"
