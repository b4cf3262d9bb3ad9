"""
Policies - the single place where access decisions are made.

Design:
- ``authorize()`` is a pure function: identity + Capability -> Decision
- A Deny is a value, not an exception; ``enforce()`` turns it into
  UnauthenticatedError / ForbiddenError for the HTTP layer
- ``require_auth()`` / ``require_role()`` return FastAPI dependencies that
  resolve to the caller's AuthContext

The guard reads the role from the verified session only. It never looks
anything up in storage.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from hearth.auth.capabilities import Capability
from hearth.auth.context import AuthContext
from hearth.core.exceptions import ForbiddenError, UnauthenticatedError
from hearth.core.models import Role
from hearth.integrations.sentry import set_user

logger = logging.getLogger(__name__)


# =============================================================================
# Public routes
# =============================================================================


PUBLIC_ROUTES: frozenset[str] = frozenset({
    "/",
    "/health",
    "/openapi.json",
    "/auth/register",
    "/auth/login",
    "/auth/providers",
    "/webhooks/stripe",  # authenticated by its signature header instead
})

PUBLIC_PREFIXES: tuple[str, ...] = (
    "/docs",
    "/redoc",
    "/auth/oauth/",
)


def is_public(path: str) -> bool:
    """Check a request path against the fixed allow-list."""
    normalized = path.rstrip("/") or "/"
    if normalized in PUBLIC_ROUTES:
        return True
    return any(path.startswith(prefix) for prefix in PUBLIC_PREFIXES)


# =============================================================================
# Decision - the result of a check
# =============================================================================


class DenyReason(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    FORBIDDEN = "forbidden"


@dataclass(frozen=True)
class Decision:
    """Allow, or Deny with a reason the caller maps to 401/403."""

    allowed: bool
    reason: DenyReason | None = None
    message: str | None = None

    def __bool__(self) -> bool:
        return self.allowed

    @classmethod
    def allow(cls) -> Decision:
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: DenyReason, message: str) -> Decision:
        return cls(allowed=False, reason=reason, message=message)


# =============================================================================
# Main interface
# =============================================================================


def authorize(ctx: AuthContext | None, capability: Capability) -> Decision:
    """
    Decide whether an identity holds a capability.

    Rules, in order:
    1. Public route -> allow
    2. No identity -> deny (unauthenticated)
    3. Acting on oneself where that is forbidden -> deny, whatever the role
    4. Owner of the resource -> allow, unless restricted fields are touched
    5. Role in the capability's role set (or no role set) -> allow
    """
    if capability.route is not None and is_public(capability.route):
        return Decision.allow()

    if ctx is None or ctx.is_anonymous:
        return Decision.deny(DenyReason.UNAUTHENTICATED, "Authentication required")

    is_self = ctx.owns(capability.owner_id)

    if capability.forbid_self and is_self:
        return Decision.deny(
            DenyReason.FORBIDDEN,
            "Cannot perform this action on your own account",
        )

    if capability.allow_owner and is_self and not capability.touches_restricted_fields:
        return Decision.allow()

    if capability.roles is None or ctx.role in capability.roles:
        return Decision.allow()

    if is_self and capability.touches_restricted_fields:
        restricted = ", ".join(sorted(capability.fields & capability.restricted_fields))
        return Decision.deny(
            DenyReason.FORBIDDEN,
            f"Insufficient role to change: {restricted}",
        )

    return Decision.deny(DenyReason.FORBIDDEN, "Access denied")


def enforce(ctx: AuthContext | None, capability: Capability) -> AuthContext:
    """
    Authorize or raise.

    Returns the context so handlers can write
    ``ctx = enforce(ctx, update_user(user_id, fields))``.
    """
    decision = authorize(ctx, capability)
    if decision:
        return ctx

    user_id = ctx.user_id if ctx else None
    logger.info(f"Denied {capability.name} for {user_id}: {decision.message}")

    if decision.reason == DenyReason.UNAUTHENTICATED:
        raise UnauthenticatedError(decision.message)
    raise ForbiddenError(decision.message)


# =============================================================================
# FastAPI dependencies
# =============================================================================


# Optional bearer (doesn't fail if no token)
optional_bearer = HTTPBearer(auto_error=False)


async def get_auth_context(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(optional_bearer),
) -> AuthContext | None:
    """
    Resolve the caller's identity from the bearer token.

    Returns None when no token is sent. An invalid or expired token
    raises, so a stale client gets 401 rather than anonymous access.
    """
    if not credentials:
        return None

    ctx = request.app.state.sessions.verify_session(credentials.credentials)
    set_user(ctx.user_id, role=ctx.role.value if ctx.role else None)
    return ctx


def require(capability: Capability) -> Callable:
    """
    Require a fixed capability to access a route.

    Usage:
        @router.get("/users")
        async def list_users(ctx: AuthContext = Depends(require(list_users()))):
            ...
    """

    async def dependency(
        ctx: AuthContext | None = Depends(get_auth_context),
    ) -> AuthContext:
        return enforce(ctx, capability)

    return dependency


def require_auth() -> Callable:
    """Just require authentication, no specific role."""
    return require(Capability(name="authenticated"))


def require_role(*roles: Role) -> Callable:
    """Require one of the listed roles."""
    return require(Capability(name="role", roles=frozenset(roles)))
