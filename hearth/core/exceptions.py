"""
Application exceptions.

Every exception the HTTP layer knows how to surface derives from
``HearthError``. Each carries the status code it maps to and a message that
is safe to show to the caller. Anything else escaping a handler is treated
as an internal failure and never shown verbatim.
"""

from __future__ import annotations

from typing import Any


class HearthError(Exception):
    """Base exception for all application errors."""

    status_code: int = 500
    public_message: str = "Internal server error"

    def __init__(self, message: str | None = None, details: Any = None):
        self.message = message or self.public_message
        self.details = details
        super().__init__(self.message)


# =============================================================================
# Authentication / Authorization
# =============================================================================


class UnauthenticatedError(HearthError):
    """No valid session was presented."""

    status_code = 401
    public_message = "Authentication required"


class TokenExpiredError(UnauthenticatedError):
    """Session token has expired."""

    public_message = "Session expired"


class TokenInvalidError(UnauthenticatedError):
    """Session token is invalid or malformed."""

    public_message = "Invalid session"


class InvalidCredentialsError(UnauthenticatedError):
    """
    Login failed.

    Raised for unknown emails, password-less accounts and wrong passwords
    alike, always with the same message.
    """

    public_message = "Invalid email or password"

    def __init__(self):
        super().__init__(self.public_message)


class ForbiddenError(HearthError):
    """Valid session, insufficient role or ownership."""

    status_code = 403
    public_message = "Access denied"


# =============================================================================
# Data
# =============================================================================


class NotFoundError(HearthError):
    """A requested resource does not exist."""

    status_code = 404
    public_message = "Not found"

    def __init__(self, resource: str, resource_id: str):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource.capitalize()} not found")


class UserNotFoundError(NotFoundError):
    """Raised when a user id does not exist."""

    def __init__(self, user_id: str):
        super().__init__("user", user_id)


class DuplicateEmailError(HearthError):
    """Raised when registering an email that already has an account."""

    status_code = 409
    public_message = "User with this email already exists"

    def __init__(self, email: str):
        self.email = email
        super().__init__(self.public_message)


class ValidationError(HearthError):
    """Raised when input is well-formed but not acceptable."""

    status_code = 400
    public_message = "Validation error"


# =============================================================================
# Payments
# =============================================================================


class WebhookSignatureError(HearthError):
    """Webhook signature header missing or not matching the payload."""

    status_code = 400
    public_message = "Invalid signature"


class WebhookPayloadError(HearthError):
    """Webhook signature is valid but the payload cannot be used."""

    status_code = 400
    public_message = "Invalid payload"


class PaymentProviderError(HearthError):
    """The payment processor rejected or failed a request."""

    status_code = 502
    public_message = "Payment provider error"
