"""
Auth context - the "who is asking" for each request.

This is the lightweight object passed to route handlers. It is built from
a verified session token and is never refreshed from storage during the
token's lifetime, so ``role`` is the role the user had at sign-in.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from hearth.core.models import Role, User


@dataclass(frozen=True)
class AuthContext:
    """
    Identity of the caller.

    Usage in routes:
        async def my_route(ctx: AuthContext = Depends(require_auth())):
            print(f"User {ctx.user_id} with role {ctx.role}")
    """

    user_id: str | None = None
    email: str | None = None
    name: str | None = None
    role: Role | None = None

    # Session bookkeeping (absent for contexts built directly from a user)
    session_id: str | None = None
    expires_at: datetime | None = None

    metadata: dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def is_authenticated(self) -> bool:
        """Is there a logged-in user?"""
        return self.user_id is not None

    @property
    def is_anonymous(self) -> bool:
        return self.user_id is None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def owns(self, owner_id: str | None) -> bool:
        """Is this identity the owner of a resource?"""
        return self.is_authenticated and owner_id is not None and self.user_id == owner_id

    @classmethod
    def anonymous(cls) -> AuthContext:
        """Create an anonymous context (no user)."""
        return cls()

    @classmethod
    def from_user(cls, user: User) -> AuthContext:
        """Snapshot a user's identity and role."""
        return cls(
            user_id=user.id,
            email=user.email,
            name=user.name,
            role=user.role,
        )
