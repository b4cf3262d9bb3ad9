"""
Capabilities - what an operation requires.

This defines WHAT a protected operation needs, not HOW we check it.
The actual checking happens in policies.py. Handlers never test roles
themselves; they build a Capability and hand it to ``authorize()``.
"""

from __future__ import annotations

from dataclasses import dataclass

from hearth.core.models import Role


# Fields only an admin may change, even on their own record
RESTRICTED_USER_FIELDS: frozenset[str] = frozenset({"role", "status"})

ADMIN_ONLY: frozenset[Role] = frozenset({Role.ADMIN})


@dataclass(frozen=True)
class Capability:
    """
    The permission required to perform one operation.

    Attributes:
        name: Operation name, used in deny messages and logs
        roles: Roles that satisfy the requirement. None admits any
            authenticated identity; an empty set admits nobody by role
            (ownership is then the only way in)
        owner_id: Id of the identity that owns the target resource
        allow_owner: Whether the owner may act regardless of role
        forbid_self: Deny when the identity is the target (owner_id)
        fields: Fields the operation modifies
        restricted_fields: Fields that always need the role requirement
        route: Request path, for route-level checks
    """

    name: str
    roles: frozenset[Role] | None = None
    owner_id: str | None = None
    allow_owner: bool = False
    forbid_self: bool = False
    fields: frozenset[str] = frozenset()
    restricted_fields: frozenset[str] = frozenset()
    route: str | None = None

    @property
    def touches_restricted_fields(self) -> bool:
        return bool(self.fields & self.restricted_fields)


# =============================================================================
# Users
# =============================================================================


def list_users() -> Capability:
    return Capability(name="user.list", roles=ADMIN_ONLY)


def read_user(user_id: str) -> Capability:
    """Users can view their own profile; admins can view anyone."""
    return Capability(
        name="user.read",
        roles=ADMIN_ONLY,
        owner_id=user_id,
        allow_owner=True,
    )


def update_user(user_id: str, fields: set[str] | frozenset[str]) -> Capability:
    """
    Users can edit their own profile; admins can edit anyone.

    Role and status changes require ADMIN even on one's own record.
    """
    return Capability(
        name="user.update",
        roles=ADMIN_ONLY,
        owner_id=user_id,
        allow_owner=True,
        fields=frozenset(fields),
        restricted_fields=RESTRICTED_USER_FIELDS,
    )


def delete_user(user_id: str) -> Capability:
    """Admins can delete other accounts, never their own."""
    return Capability(
        name="user.delete",
        roles=ADMIN_ONLY,
        owner_id=user_id,
        forbid_self=True,
    )


# =============================================================================
# Notifications
# =============================================================================


def read_notifications() -> Capability:
    return Capability(name="notification.read")


def create_notification() -> Capability:
    """Only admins can create notifications for other users."""
    return Capability(name="notification.create", roles=ADMIN_ONLY)


def mark_notification_read(owner_id: str) -> Capability:
    """Only the recipient can mark a notification as read."""
    return Capability(
        name="notification.mark_read",
        roles=frozenset(),
        owner_id=owner_id,
        allow_owner=True,
    )


# =============================================================================
# Payments
# =============================================================================


def create_payment() -> Capability:
    return Capability(name="payment.create")


def create_subscription() -> Capability:
    return Capability(name="subscription.create")


# =============================================================================
# Routes
# =============================================================================


# Role-restricted path prefixes, checked in order
ROUTE_ROLES: list[tuple[str, frozenset[Role]]] = [
    ("/admin", ADMIN_ONLY),
    ("/parent", frozenset({Role.PARENT, Role.ADMIN})),
    ("/child", frozenset({Role.CHILD, Role.PARENT, Role.ADMIN})),
    ("/partner", frozenset({Role.PARTNER, Role.ADMIN})),
    ("/supporter", frozenset({Role.SUPPORTER, Role.ADMIN})),
]


def _matches_prefix(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix.rstrip("/") + "/")


def route_capability(path: str) -> Capability:
    """
    Capability needed to reach a path.

    Paths under a role prefix need one of its roles; every other
    non-public path only needs a session.
    """
    for prefix, roles in ROUTE_ROLES:
        if _matches_prefix(path, prefix):
            return Capability(name=f"route:{prefix}", roles=roles, route=path)
    return Capability(name="route", route=path)
