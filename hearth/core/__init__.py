"""
Core module - data models, exceptions and shared utilities.

This module contains:
- models: Core data models (User, AuditLogEntry, Notification, Payment)
- exceptions: Error taxonomy surfaced by the HTTP layer
- utils: Shared utility functions
"""

from hearth.core.models import (
    AuditAction,
    AuditLogEntry,
    Notification,
    Payment,
    PaymentStatus,
    PaymentType,
    Role,
    Subscription,
    SubscriptionStatus,
    User,
    UserResponse,
    UserStatus,
)
from hearth.core.utils import generate_id, utc_now

__all__ = [
    # Models
    "AuditAction",
    "AuditLogEntry",
    "Notification",
    "Payment",
    "PaymentStatus",
    "PaymentType",
    "Role",
    "Subscription",
    "SubscriptionStatus",
    "User",
    "UserResponse",
    "UserStatus",
    # Utils
    "generate_id",
    "utc_now",
]
