"""User lookup used by routes after authentication.

The guard layer never queries storage itself. Routes receive a ``UserStore``
from app state and fetch profile data for an already-verified identity.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class UserRecord:
    """A registered user.

    Attributes:
        id: Unique user identifier.
        username: Display name, copied into issued tokens.
        email: Contact email.
        role: Optional role (e.g. "admin"); users without one fail role checks.
    """

    id: str
    username: str
    email: str
    role: str | None = None

    def to_public_dict(self) -> dict[str, Any]:
        """Profile fields safe to return to clients."""
        return {"id": self.id, "username": self.username, "email": self.email}


class UserStore:
    """Abstract base for user lookup.

    Subclasses must implement ``find_by_id``.
    """

    async def find_by_id(self, user_id: str) -> UserRecord | None:
        """Fetch a user by id.

        Args:
            user_id: The user identifier.

        Returns:
            UserRecord if found, None otherwise.
        """
        raise NotImplementedError


class InMemoryUserStore(UserStore):
    """In-memory user store for development and testing.

    Warning:
        Users are lost when the process restarts.
    """

    def __init__(self, users: list[UserRecord] | None = None) -> None:
        self._users: dict[str, UserRecord] = {user.id: user for user in users or []}

    def add(self, user: UserRecord) -> None:
        """Add or replace a user."""
        self._users[user.id] = user

    async def find_by_id(self, user_id: str) -> UserRecord | None:
        """Fetch a user by id."""
        return self._users.get(str(user_id))
