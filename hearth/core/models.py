"""
Core data models.

Users, audit entries, notifications, payments and subscriptions. Models are
stored as JSON-compatible dicts (``model_dump(mode="json")``) so any
``MetadataStorage`` backend can hold them.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from hearth.core.utils import generate_id, utc_now


# =============================================================================
# Enums
# =============================================================================


class Role(str, Enum):
    """Platform-wide identity category."""

    ADMIN = "ADMIN"
    PARENT = "PARENT"
    CHILD = "CHILD"
    SUPPORTER = "SUPPORTER"
    PARTNER = "PARTNER"


class UserStatus(str, Enum):
    """Account status."""

    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"
    PENDING_VERIFICATION = "PENDING_VERIFICATION"


class AuditAction(str, Enum):
    """Security-relevant actions recorded in the audit log."""

    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"
    REGISTER = "REGISTER"
    USER_UPDATED = "USER_UPDATED"
    USER_DELETED = "USER_DELETED"
    NOTIFICATION_CREATED = "NOTIFICATION_CREATED"
    PAYMENT_INTENT_CREATED = "PAYMENT_INTENT_CREATED"
    PAYMENT_COMPLETED = "PAYMENT_COMPLETED"
    PAYMENT_FAILED = "PAYMENT_FAILED"
    SUBSCRIPTION_CREATED = "SUBSCRIPTION_CREATED"


class PaymentType(str, Enum):
    ONE_TIME = "ONE_TIME"
    DONATION = "DONATION"
    SUBSCRIPTION = "SUBSCRIPTION"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class SubscriptionStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    PAST_DUE = "PAST_DUE"
    CANCELED = "CANCELED"
    UNPAID = "UNPAID"

    @classmethod
    def from_provider(cls, status: str | None) -> SubscriptionStatus:
        """Map a Stripe subscription status ("active", "past_due", ...)."""
        try:
            return cls((status or "").upper())
        except ValueError:
            return cls.INACTIVE


# =============================================================================
# User
# =============================================================================


class User(BaseModel):
    """
    A platform account.

    ``password_hash`` is None for accounts created through an OAuth
    provider; those never authenticate with a password.
    """

    id: str = Field(default_factory=lambda: generate_id("user"))
    email: str
    name: str
    password_hash: str | None = None

    role: Role = Role.PARENT
    status: UserStatus = UserStatus.ACTIVE

    phone_number: str | None = None
    image: str | None = None
    email_verified: bool = False

    # OAuth links
    google_id: str | None = None

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    last_login_at: datetime | None = None

    @property
    def has_password(self) -> bool:
        return bool(self.password_hash)

    def to_response(self) -> UserResponse:
        return UserResponse.model_validate(self.model_dump(exclude={"password_hash"}))


class UserResponse(BaseModel):
    """User data returned to clients (no credentials)."""

    id: str
    email: str
    name: str
    role: Role
    status: UserStatus
    phone_number: str | None = None
    image: str | None = None
    email_verified: bool = False
    created_at: datetime
    last_login_at: datetime | None = None


# =============================================================================
# Audit
# =============================================================================


class AuditLogEntry(BaseModel):
    """Immutable record of a security-relevant action."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: generate_id("audit"))
    actor_id: str
    action: AuditAction
    resource_type: str | None = None
    detail: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utc_now)


# =============================================================================
# Notifications
# =============================================================================


class Notification(BaseModel):
    """An in-app message addressed to one user."""

    id: str = Field(default_factory=lambda: generate_id("notif"))
    user_id: str
    title: str
    message: str
    type: str = "general"

    is_read: bool = False
    read_at: datetime | None = None
    scheduled_at: datetime | None = None
    created_at: datetime = Field(default_factory=utc_now)


# =============================================================================
# Payments
# =============================================================================


class Payment(BaseModel):
    """A charge tracked against the payment processor. Amounts are in cents."""

    id: str = Field(default_factory=lambda: generate_id("pay"))
    user_id: str
    stripe_payment_id: str | None = None
    amount: int
    currency: str = "usd"
    type: PaymentType
    status: PaymentStatus = PaymentStatus.PENDING
    description: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class Subscription(BaseModel):
    """A recurring plan mirrored from the payment processor."""

    id: str = Field(default_factory=lambda: generate_id("sub"))
    user_id: str
    stripe_subscription_id: str
    stripe_price_id: str
    status: SubscriptionStatus = SubscriptionStatus.INACTIVE
    current_period_start: datetime | None = None
    current_period_end: datetime | None = None
    cancel_at_period_end: bool = False
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
