"""Ownership and role checks against a decoded identity.

The checks are pure functions over their inputs: no I/O, no state. They
return a Decision; callers that want an exception call
``Decision.raise_for_denial()``.

Denials are split so clients can tell them apart:
- NOT_OWNER: identity is not the resource owner
- INSUFFICIENT_ROLE: identity has a role, but not the required one
- MISSING_ROLE: identity carries no role at all
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from blog_api.exceptions import ForbiddenError, MissingRoleError

if TYPE_CHECKING:
    from blog_api.auth.tokens import IdentityClaim


class Denial(StrEnum):
    """Why an authorization check failed."""

    NOT_OWNER = "not_owner"
    INSUFFICIENT_ROLE = "insufficient_role"
    MISSING_ROLE = "missing_role"


DENIAL_MESSAGES: dict[Denial, str] = {
    Denial.NOT_OWNER: "Access denied. Not the owner.",
    Denial.INSUFFICIENT_ROLE: "Insufficient permissions",
    Denial.MISSING_ROLE: "Role information not found",
}


@dataclass(frozen=True, slots=True)
class Decision:
    """Outcome of an authorization check.

    Attributes:
        allowed: Whether access is granted.
        denial: Reason for denial, None when allowed.
    """

    allowed: bool
    denial: Denial | None = None

    @property
    def message(self) -> str | None:
        """Client-facing message for the denial."""
        return DENIAL_MESSAGES[self.denial] if self.denial else None

    def raise_for_denial(self) -> None:
        """Raise the matching error if access was denied.

        Raises:
            MissingRoleError: If the identity has no role.
            ForbiddenError: For ownership or role mismatches.
        """
        if self.allowed or self.denial is None:
            return
        if self.denial is Denial.MISSING_ROLE:
            raise MissingRoleError(self.message)
        raise ForbiddenError(self.message)


ALLOWED = Decision(allowed=True)


def require_ownership(claim: IdentityClaim, resource_owner_id: str | int) -> Decision:
    """Allow only the owner of a resource.

    Example:
        >>> require_ownership(claim, claim.subject_id).allowed
        True
    """
    if claim.subject_id == str(resource_owner_id):
        return ALLOWED
    return Decision(allowed=False, denial=Denial.NOT_OWNER)


def require_role(claim: IdentityClaim, required_role: str) -> Decision:
    """Allow only identities holding ``required_role``."""
    if not claim.role:
        return Decision(allowed=False, denial=Denial.MISSING_ROLE)
    if claim.role != required_role:
        return Decision(allowed=False, denial=Denial.INSUFFICIENT_ROLE)
    return ALLOWED
