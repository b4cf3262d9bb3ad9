"""Services - notifications and payments built on the auth core."""

from hearth.services.notification import NotificationService
from hearth.services.payments import PaymentService, WebhookDispatcher

__all__ = [
    "NotificationService",
    "PaymentService",
    "WebhookDispatcher",
]
