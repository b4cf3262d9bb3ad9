"""
Payment Service.

Two halves:
- PaymentService: user-initiated operations (payment intents, subscriptions)
- WebhookDispatcher: reacts to verified processor events and keeps local
  Payment / Subscription rows in sync, notifying users along the way
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

from hearth.auth.audit import AuditLog
from hearth.auth.context import AuthContext
from hearth.auth.credentials import CredentialStore
from hearth.core.exceptions import ValidationError
from hearth.core.models import (
    AuditAction,
    Payment,
    PaymentStatus,
    PaymentType,
    Subscription,
    SubscriptionStatus,
)
from hearth.core.utils import utc_now
from hearth.integrations.payments import PaymentGateway
from hearth.services.notification import NotificationService
from hearth.storage.base import Collections, MetadataStorage

logger = logging.getLogger(__name__)

# Smallest charge the processor accepts, in cents
MIN_AMOUNT = 50

# Types a user can pay for directly; SUBSCRIPTION rows come from invoices
DIRECT_PAYMENT_TYPES = frozenset({PaymentType.ONE_TIME, PaymentType.DONATION})


def _dollars(cents: int) -> str:
    return f"${cents / 100:.2f}"


def _from_timestamp(value: int | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)


# =============================================================================
# Payment Service
# =============================================================================


class PaymentService:
    """Creates payments and subscriptions for the signed-in user."""

    def __init__(
        self,
        metadata: MetadataStorage,
        audit: AuditLog,
        credentials: CredentialStore,
        gateway: PaymentGateway,
    ):
        self.metadata = metadata
        self.audit = audit
        self.credentials = credentials
        self.gateway = gateway

    async def create_payment_intent(
        self,
        ctx: AuthContext,
        amount: int,
        type: PaymentType,
        currency: str = "usd",
        description: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> tuple[Payment, str | None]:
        """
        Start a one-off payment.

        Returns the PENDING payment row and the client secret the frontend
        uses to confirm the charge.

        Raises:
            ValidationError: Amount below the minimum or unsupported type
            PaymentProviderError: The processor refused the request
        """
        if amount < MIN_AMOUNT:
            raise ValidationError("Minimum amount is $0.50")
        if type not in DIRECT_PAYMENT_TYPES:
            raise ValidationError(f"Unsupported payment type: {type.value}")

        intent = await self.gateway.create_payment_intent(
            amount=amount,
            currency=currency,
            description=description or f"Payment from {ctx.name or ctx.email}",
            metadata={**(metadata or {}), "userId": ctx.user_id, "type": type.value},
        )

        payment = Payment(
            user_id=ctx.user_id,
            stripe_payment_id=intent.id,
            amount=amount,
            currency=currency,
            type=type,
            description=description,
            metadata=metadata or {},
        )
        await self.metadata.insert(Collections.PAYMENTS, payment.id, payment.model_dump(mode="json"))

        await self.audit.record(
            ctx.user_id,
            AuditAction.PAYMENT_INTENT_CREATED,
            resource_type="payment",
            detail={"paymentId": payment.id, "amount": amount, "type": type.value},
        )
        return payment, intent.client_secret

    async def create_subscription(
        self,
        ctx: AuthContext,
        price_id: str,
        payment_method_id: str,
    ) -> tuple[Subscription, str | None]:
        """
        Subscribe the caller to a price.

        Raises:
            UserNotFoundError: The caller's account no longer exists
            PaymentProviderError: The processor refused the request
        """
        user = await self.credentials.get_or_raise(ctx.user_id)

        result = await self.gateway.create_subscription(
            email=user.email,
            name=user.name,
            user_id=user.id,
            price_id=price_id,
            payment_method_id=payment_method_id,
        )

        subscription = Subscription(
            user_id=user.id,
            stripe_subscription_id=result.id,
            stripe_price_id=price_id,
            status=SubscriptionStatus.from_provider(result.status),
            current_period_start=_from_timestamp(result.current_period_start),
            current_period_end=_from_timestamp(result.current_period_end),
            cancel_at_period_end=result.cancel_at_period_end,
        )
        await self.metadata.insert(
            Collections.SUBSCRIPTIONS, subscription.id, subscription.model_dump(mode="json")
        )

        await self.audit.record(
            user.id,
            AuditAction.SUBSCRIPTION_CREATED,
            resource_type="subscription",
            detail={
                "subscriptionId": subscription.id,
                "priceId": price_id,
                "status": subscription.status.value,
            },
        )
        return subscription, result.client_secret

    # =========================================================================
    # Lookups by processor id
    # =========================================================================

    async def find_payment(self, stripe_payment_id: str) -> Payment | None:
        docs = await self.metadata.query(
            Collections.PAYMENTS, {"stripe_payment_id": stripe_payment_id}, limit=1
        )
        return Payment.model_validate(docs[0]) if docs else None

    async def find_subscription(self, stripe_subscription_id: str) -> Subscription | None:
        docs = await self.metadata.query(
            Collections.SUBSCRIPTIONS, {"stripe_subscription_id": stripe_subscription_id}, limit=1
        )
        return Subscription.model_validate(docs[0]) if docs else None

    async def update_payment(self, payment: Payment, **changes: Any) -> Payment:
        updated = payment.model_copy(update={**changes, "updated_at": utc_now()})
        await self.metadata.update(
            Collections.PAYMENTS, payment.id, updated.model_dump(mode="json", exclude={"id"})
        )
        return updated

    async def update_subscription(self, subscription: Subscription, **changes: Any) -> Subscription:
        updated = subscription.model_copy(update={**changes, "updated_at": utc_now()})
        await self.metadata.update(
            Collections.SUBSCRIPTIONS, subscription.id, updated.model_dump(mode="json", exclude={"id"})
        )
        return updated


# =============================================================================
# Webhook Dispatcher
# =============================================================================


EventHandler = Callable[[Any], Awaitable[None]]


class WebhookDispatcher:
    """
    Routes verified processor events to handlers by event type.

    Handlers receive the event's ``data.object``. Events whose local row
    cannot be found are ignored; the processor sends events for objects
    created outside this application too.
    """

    def __init__(
        self,
        payments: PaymentService,
        notifications: NotificationService,
        gateway: PaymentGateway,
    ):
        self.payments = payments
        self.notifications = notifications
        self.gateway = gateway
        self.audit = payments.audit

        self._handlers: dict[str, EventHandler] = {
            "payment_intent.succeeded": self._payment_succeeded,
            "payment_intent.payment_failed": self._payment_failed,
            "invoice.payment_succeeded": self._invoice_paid,
            "invoice.payment_failed": self._invoice_failed,
            "customer.subscription.created": self._subscription_updated,
            "customer.subscription.updated": self._subscription_updated,
            "customer.subscription.deleted": self._subscription_deleted,
        }

    @property
    def event_types(self) -> list[str]:
        return list(self._handlers)

    def verify(self, payload: bytes, sig_header: str | None) -> Any:
        """Verify the signature and parse the event. See PaymentGateway.construct_event."""
        return self.gateway.construct_event(payload, sig_header)

    async def dispatch(self, event: Any) -> bool:
        """
        Run the handler for an event.

        Returns False for event types with no handler. Handler errors
        propagate.
        """
        event_type = event["type"]
        handler = self._handlers.get(event_type)

        if handler is None:
            logger.info(f"Unhandled webhook event type: {event_type}")
            return False

        logger.info(f"Handling webhook {event_type} ({event.get('id')})")
        await handler(event["data"]["object"])
        return True

    # =========================================================================
    # One-off payments
    # =========================================================================

    async def _payment_succeeded(self, intent: Any) -> None:
        payment = await self.payments.find_payment(intent["id"])
        if payment is None:
            logger.info(f"No payment for intent {intent['id']}")
            return

        payment = await self.payments.update_payment(payment, status=PaymentStatus.COMPLETED)

        await self.audit.record(
            payment.user_id,
            AuditAction.PAYMENT_COMPLETED,
            resource_type="payment",
            detail={
                "paymentId": payment.id,
                "amount": payment.amount,
                "type": payment.type.value,
                "timestamp": utc_now().isoformat(),
            },
        )
        await self.notifications.notify(
            payment.user_id,
            "Payment Successful",
            f"Your payment of {_dollars(payment.amount)} has been processed successfully.",
            type="payment",
        )

    async def _payment_failed(self, intent: Any) -> None:
        payment = await self.payments.find_payment(intent["id"])
        if payment is None:
            logger.info(f"No payment for intent {intent['id']}")
            return

        payment = await self.payments.update_payment(payment, status=PaymentStatus.FAILED)

        error = intent.get("last_payment_error") or {}
        await self.audit.record(
            payment.user_id,
            AuditAction.PAYMENT_FAILED,
            resource_type="payment",
            detail={
                "paymentId": payment.id,
                "amount": payment.amount,
                "type": payment.type.value,
                "error": error.get("message"),
                "timestamp": utc_now().isoformat(),
            },
        )
        await self.notifications.notify(
            payment.user_id,
            "Payment Failed",
            f"Your payment of {_dollars(payment.amount)} could not be processed. Please try again.",
            type="payment",
        )

    # =========================================================================
    # Subscriptions
    # =========================================================================

    async def _invoice_paid(self, invoice: Any) -> None:
        if not invoice.get("subscription"):
            return
        subscription = await self.payments.find_subscription(invoice["subscription"])
        if subscription is None:
            return

        amount = invoice["amount_paid"]
        payment = Payment(
            user_id=subscription.user_id,
            stripe_payment_id=invoice.get("payment_intent"),
            amount=amount,
            currency=invoice.get("currency") or "usd",
            type=PaymentType.SUBSCRIPTION,
            status=PaymentStatus.COMPLETED,
            description=f"Subscription payment - Invoice {invoice.get('number')}",
            metadata={"invoiceId": invoice["id"], "subscriptionId": subscription.id},
        )
        await self.payments.metadata.insert(
            Collections.PAYMENTS, payment.id, payment.model_dump(mode="json")
        )

        await self.notifications.notify(
            subscription.user_id,
            "Subscription Payment Successful",
            f"Your subscription payment of {_dollars(amount)} has been processed.",
            type="subscription",
        )

    async def _invoice_failed(self, invoice: Any) -> None:
        if not invoice.get("subscription"):
            return
        subscription = await self.payments.find_subscription(invoice["subscription"])
        if subscription is None:
            return

        await self.notifications.notify(
            subscription.user_id,
            "Subscription Payment Failed",
            f"Your subscription payment of {_dollars(invoice.get('amount_due') or 0)} failed. "
            "Please update your payment method.",
            type="subscription",
        )

    async def _subscription_updated(self, sub: Any) -> None:
        subscription = await self.payments.find_subscription(sub["id"])
        if subscription is None:
            logger.info(f"No subscription row for {sub['id']}")
            return

        await self.payments.update_subscription(
            subscription,
            status=SubscriptionStatus.from_provider(sub.get("status")),
            current_period_start=_from_timestamp(sub.get("current_period_start")),
            current_period_end=_from_timestamp(sub.get("current_period_end")),
            cancel_at_period_end=bool(sub.get("cancel_at_period_end")),
        )

    async def _subscription_deleted(self, sub: Any) -> None:
        subscription = await self.payments.find_subscription(sub["id"])
        if subscription is None:
            return

        await self.payments.update_subscription(subscription, status=SubscriptionStatus.CANCELED)
        await self.notifications.notify(
            subscription.user_id,
            "Subscription Canceled",
            "Your subscription has been canceled and will not renew.",
            type="subscription",
        )
