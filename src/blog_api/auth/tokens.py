"""Bearer credential issuance and verification.

Tokens are HS256 (or HS384/HS512) JSON Web Tokens signed with a single
process-wide secret:
- ``sub``: user id (string)
- ``username``: display name
- ``role``: optional role, omitted when the user has none
- ``iat`` / ``exp``: whole-second issue and expiry times (UTC epoch)

Security considerations:
- Every verification failure raises the same InvalidCredentialError, so a
  client cannot tell a bad signature from an expired token
- Expiry is checked against an injected wall clock, not the decoder's own
- Segments must be canonical base64url, so no byte of a token can be altered
  without failing verification

Usage:
    codec = CredentialCodec(secret)
    token = codec.issue(user)
    claim = codec.verify(token)  # raises InvalidCredentialError

    token = extract_bearer(request.headers.get("Authorization"))
    if token is None:
        raise MissingCredentialError()
"""

from __future__ import annotations

import binascii
import logging
import math
import time
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Protocol

import jwt
from jwt.utils import base64url_decode, base64url_encode

from blog_api.config import DEFAULT_TOKEN_TTL_SECONDS, SUPPORTED_JWT_ALGORITHMS
from blog_api.exceptions import ConfigurationError, InvalidCredentialError

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "

REQUIRED_CLAIMS: tuple[str, ...] = ("sub", "username", "iat", "exp")


class TokenSubject(Protocol):
    """Anything a token can be issued for (e.g. a UserRecord)."""

    id: str
    username: str
    role: str | None


@dataclass(frozen=True, slots=True)
class IdentityClaim:
    """Decoded identity carried by a verified credential.

    Attributes:
        subject_id: Id of the user the token was issued to.
        display_name: Username at issue time.
        role: Role at issue time, None if the user had none.
        issued_at: Issue time (UTC).
        expires_at: Expiry time (UTC), always after issued_at.
    """

    subject_id: str
    display_name: str
    role: str | None
    issued_at: datetime
    expires_at: datetime


def extract_bearer(header_value: str | None) -> str | None:
    """Extract the token from an Authorization header value.

    Args:
        header_value: Raw header value, or None when the header is absent.

    Returns:
        The trimmed token, or None when the header is not a non-empty bearer
        credential. The prefix match is case-sensitive.

    Example:
        >>> extract_bearer("Bearer   padded   ")
        'padded'
        >>> extract_bearer("Basic xyz") is None
        True
    """
    if not header_value or not header_value.startswith(BEARER_PREFIX):
        return None
    token = header_value[len(BEARER_PREFIX) :].strip()
    return token or None


def _is_canonical(segment: str) -> bool:
    try:
        decoded = base64url_decode(segment)
    except (binascii.Error, ValueError):
        return False
    return base64url_encode(decoded).decode("ascii") == segment


class CredentialCodec:
    """Issues and verifies signed, time-bounded identity tokens.

    The codec is immutable after construction and safe to share across
    concurrent requests.

    Args:
        secret: Signing secret. Must be non-empty.
        ttl_seconds: Token lifetime.
        algorithm: HMAC algorithm name.
        clock: Wall-clock source returning epoch seconds.

    Raises:
        ConfigurationError: If the secret is empty or settings are invalid.
    """

    def __init__(
        self,
        secret: str,
        *,
        ttl_seconds: int = DEFAULT_TOKEN_TTL_SECONDS,
        algorithm: str = "HS256",
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not secret:
            msg = "A signing secret is required to issue or verify tokens"
            raise ConfigurationError(msg)
        if algorithm not in SUPPORTED_JWT_ALGORITHMS:
            msg = f"Unsupported signing algorithm: {algorithm}"
            raise ConfigurationError(msg)
        if ttl_seconds <= 0:
            msg = "Token lifetime must be positive"
            raise ConfigurationError(msg)

        self._secret = secret
        self._algorithm = algorithm
        self._clock = clock
        self.ttl_seconds = ttl_seconds

    def issue(self, subject: TokenSubject) -> str:
        """Issue a token for a subject.

        Args:
            subject: Object with ``id``, ``username`` and optional ``role``.

        Returns:
            Encoded token string.
        """
        issued_at = math.floor(self._clock())
        payload: dict[str, Any] = {
            "sub": str(subject.id),
            "username": subject.username,
            "iat": issued_at,
            "exp": issued_at + self.ttl_seconds,
        }
        role = getattr(subject, "role", None)
        if role:
            payload["role"] = role

        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> IdentityClaim:
        """Verify a token and decode its identity claim.

        Args:
            token: Encoded token string.

        Returns:
            The decoded IdentityClaim.

        Raises:
            InvalidCredentialError: On malformed structure, bad signature,
                missing claims, or ``now >= expires_at``.
        """
        try:
            payload = self._decode(token)
            claim = self._to_claim(payload)
        except (jwt.InvalidTokenError, TypeError, ValueError) as e:
            logger.debug("Token verification failed: %s", type(e).__name__)
            raise InvalidCredentialError() from None

        if self._clock() >= claim.expires_at.timestamp():
            logger.debug("Token verification failed: expired")
            raise InvalidCredentialError()

        return claim

    def _decode(self, token: str) -> dict[str, Any]:
        segments = token.split(".")
        if len(segments) != 3 or not all(_is_canonical(s) for s in segments):
            raise jwt.DecodeError("Non-canonical token segments")

        return jwt.decode(
            token,
            self._secret,
            algorithms=[self._algorithm],
            options={
                "require": list(REQUIRED_CLAIMS),
                # Expiry is checked against the injected clock instead
                "verify_exp": False,
                "verify_iat": False,
            },
        )

    @staticmethod
    def _to_claim(payload: dict[str, Any]) -> IdentityClaim:
        subject_id = payload["sub"]
        display_name = payload["username"]
        role = payload.get("role")
        issued_at = payload["iat"]
        expires_at = payload["exp"]

        if not isinstance(subject_id, str) or not subject_id:
            raise TypeError("sub must be a non-empty string")
        if not isinstance(display_name, str):
            raise TypeError("username must be a string")
        if role is not None and not isinstance(role, str):
            raise TypeError("role must be a string")
        if not isinstance(issued_at, int | float) or not isinstance(expires_at, int | float):
            raise TypeError("iat and exp must be numeric")
        if issued_at >= expires_at:
            raise ValueError("iat must precede exp")

        return IdentityClaim(
            subject_id=subject_id,
            display_name=display_name,
            role=role,
            issued_at=datetime.fromtimestamp(issued_at, UTC),
            expires_at=datetime.fromtimestamp(expires_at, UTC),
        )
