"""
Authentication and authorization.

Design principles:
1. One decision function (``authorize``) for every access check
2. Operations declare a Capability; handlers never test roles themselves
3. Stateless sessions carrying the role they were issued with
"""

from hearth.auth.audit import AuditLog
from hearth.auth.capabilities import Capability, route_capability
from hearth.auth.context import AuthContext
from hearth.auth.credentials import CredentialStore, normalize_email
from hearth.auth.policies import (
    Decision,
    DenyReason,
    authorize,
    enforce,
    get_auth_context,
    is_public,
    require,
    require_auth,
    require_role,
)
from hearth.auth.security import FailedLoginTracker
from hearth.auth.sessions import (
    SessionIssuer,
    SessionToken,
    UserCreate,
    hash_password,
    verify_password,
)

__all__ = [
    # Main interface
    "authorize",
    "enforce",
    "require",
    "require_auth",
    "require_role",
    "get_auth_context",
    "is_public",
    "route_capability",
    # Types
    "AuthContext",
    "Capability",
    "Decision",
    "DenyReason",
    # Credentials and sessions
    "CredentialStore",
    "normalize_email",
    "SessionIssuer",
    "SessionToken",
    "UserCreate",
    "hash_password",
    "verify_password",
    # Audit and abuse mitigation
    "AuditLog",
    "FailedLoginTracker",
]
