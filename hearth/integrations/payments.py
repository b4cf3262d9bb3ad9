# =============================================================================
# Payments Integration (Stripe)
# =============================================================================
#
# Setup:
#   1. Get API keys at https://dashboard.stripe.com/apikeys
#   2. Add a webhook endpoint pointing at /webhooks/stripe and copy its
#      signing secret
#   3. Set env vars:
#      - STRIPE_SECRET_KEY=sk_...
#      - STRIPE_WEBHOOK_SECRET=whsec_...
#
# The Stripe SDK is synchronous; calls run in a worker thread so they don't
# block the event loop. Everything leaving this module is a plain dict:
# StripeObject is not a dict subclass in current SDK releases.
#
# =============================================================================

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import stripe
from pydantic import BaseModel

from hearth.config import Settings, get_settings
from hearth.core.exceptions import (
    PaymentProviderError,
    WebhookPayloadError,
    WebhookSignatureError,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Models
# =============================================================================

class IntentResult(BaseModel):
    """A created payment intent."""
    id: str
    client_secret: str | None = None
    status: str


class SubscriptionResult(BaseModel):
    """A created subscription."""
    id: str
    customer_id: str
    status: str
    current_period_start: int | None = None
    current_period_end: int | None = None
    cancel_at_period_end: bool = False
    client_secret: str | None = None


# =============================================================================
# Gateway
# =============================================================================

class PaymentGateway:
    """Thin async wrapper over the Stripe API."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    @property
    def is_configured(self) -> bool:
        return bool(self.settings.stripe_secret_key)

    @property
    def _request_options(self) -> dict[str, Any]:
        return {
            "api_key": self.settings.stripe_secret_key,
            "stripe_version": self.settings.stripe_api_version,
        }

    async def _call(self, fn, *args, **kwargs) -> dict[str, Any]:
        if not self.is_configured:
            raise PaymentProviderError("Payments not configured")
        try:
            result = await asyncio.to_thread(fn, *args, **kwargs, **self._request_options)
        except stripe.StripeError as e:
            logger.error(f"Stripe request failed: {e}")
            raise PaymentProviderError(details=str(e))
        return result.to_dict()

    # =========================================================================
    # One-off payments
    # =========================================================================

    async def create_payment_intent(
        self,
        amount: int,
        currency: str = "usd",
        description: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> IntentResult:
        params: dict[str, Any] = {
            "amount": amount,
            "currency": currency,
            "metadata": metadata or {},
            "automatic_payment_methods": {"enabled": True},
        }
        if description:
            params["description"] = description

        intent = await self._call(stripe.PaymentIntent.create, **params)
        return IntentResult(
            id=intent["id"],
            client_secret=intent.get("client_secret"),
            status=intent["status"],
        )

    # =========================================================================
    # Subscriptions
    # =========================================================================

    async def get_or_create_customer(self, email: str, name: str | None, user_id: str) -> str:
        """Find the customer for an email, creating it if needed."""
        existing = await self._call(stripe.Customer.list, email=email, limit=1)
        if existing["data"]:
            return existing["data"][0]["id"]

        customer = await self._call(
            stripe.Customer.create,
            email=email,
            name=name,
            metadata={"userId": user_id},
        )
        logger.info(f"Created Stripe customer {customer['id']} for {user_id}")
        return customer["id"]

    async def create_subscription(
        self,
        email: str,
        name: str | None,
        user_id: str,
        price_id: str,
        payment_method_id: str,
    ) -> SubscriptionResult:
        """
        Subscribe a user to a price.

        The payment method is attached to the customer and made the default
        for invoices before the subscription is created.
        """
        customer_id = await self.get_or_create_customer(email, name, user_id)

        await self._call(stripe.PaymentMethod.attach, payment_method_id, customer=customer_id)
        await self._call(
            stripe.Customer.modify,
            customer_id,
            invoice_settings={"default_payment_method": payment_method_id},
        )

        sub = await self._call(
            stripe.Subscription.create,
            customer=customer_id,
            items=[{"price": price_id}],
            metadata={"userId": user_id},
            expand=["latest_invoice.payment_intent"],
        )

        client_secret = None
        invoice = sub.get("latest_invoice")
        if invoice and not isinstance(invoice, str) and invoice.get("payment_intent"):
            client_secret = invoice["payment_intent"].get("client_secret")

        return SubscriptionResult(
            id=sub["id"],
            customer_id=customer_id,
            status=sub["status"],
            current_period_start=sub.get("current_period_start"),
            current_period_end=sub.get("current_period_end"),
            cancel_at_period_end=bool(sub.get("cancel_at_period_end")),
            client_secret=client_secret,
        )

    # =========================================================================
    # Webhooks
    # =========================================================================

    def construct_event(self, payload: bytes, sig_header: str | None) -> dict[str, Any]:
        """
        Verify a webhook delivery and parse its event into a plain dict.

        Raises:
            WebhookSignatureError: Missing header or signature mismatch
            WebhookPayloadError: Body is not a valid event
        """
        if not sig_header:
            raise WebhookSignatureError("Missing signature")

        try:
            stripe.WebhookSignature.verify_header(
                payload, sig_header, self.settings.stripe_webhook_secret
            )
        except stripe.SignatureVerificationError as e:
            logger.warning(f"Webhook signature verification failed: {e}")
            raise WebhookSignatureError()

        try:
            event = json.loads(payload)
        except ValueError as e:
            logger.warning(f"Webhook payload invalid: {e}")
            raise WebhookPayloadError()

        if not isinstance(event, dict) or "type" not in event or not isinstance(event.get("data"), dict) \
                or "object" not in event["data"]:
            logger.warning("Webhook payload is not an event")
            raise WebhookPayloadError()
        return event
