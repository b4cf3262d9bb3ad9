"""
Tests for payment intents and subscriptions.

The processor is replaced by FakeGateway (see conftest.py).
"""

import asyncio

from hearth.core.models import AuditAction, PaymentStatus, PaymentType, SubscriptionStatus
from hearth.storage import Collections


def payment_rows(app):
    return asyncio.run(app.state.storage.metadata.query(Collections.PAYMENTS, limit=None))


# =============================================================================
# Payment intents
# =============================================================================


class TestPaymentIntents:
    def test_create(self, client, app, gateway, make_user):
        user, headers = make_user(name="Pat")

        response = client.post(
            "/payments/payment-intents",
            json={"amount": 2500, "type": "DONATION", "metadata": {"campaign": "spring"}},
            headers=headers,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["client_secret"] == "pi_test_1_secret"

        payment = asyncio.run(app.state.payments.find_payment("pi_test_1"))
        assert payment.id == body["payment_id"]
        assert payment.user_id == user.id
        assert payment.status == PaymentStatus.PENDING
        assert payment.type == PaymentType.DONATION

        _, call = gateway.calls[0]
        assert call["metadata"] == {"campaign": "spring", "userId": user.id, "type": "DONATION"}
        assert call["description"] == "Payment from Pat"

        entries = asyncio.run(app.state.audit.entries(action=AuditAction.PAYMENT_INTENT_CREATED))
        assert entries[0].detail == {"paymentId": payment.id, "amount": 2500, "type": "DONATION"}

    def test_minimum_amount(self, client, app, gateway, make_user):
        _, headers = make_user()

        response = client.post(
            "/payments/payment-intents",
            json={"amount": 49, "type": "ONE_TIME"},
            headers=headers,
        )

        assert response.status_code == 400
        assert gateway.calls == []
        assert payment_rows(app) == []

    def test_subscription_type_not_allowed(self, client, gateway, make_user):
        _, headers = make_user()

        response = client.post(
            "/payments/payment-intents",
            json={"amount": 1000, "type": "SUBSCRIPTION"},
            headers=headers,
        )

        assert response.status_code == 400
        assert gateway.calls == []

    def test_requires_session(self, client):
        response = client.post("/payments/payment-intents", json={"amount": 1000, "type": "ONE_TIME"})

        assert response.status_code == 401


# =============================================================================
# Subscriptions
# =============================================================================


class TestSubscriptions:
    def test_create(self, client, app, gateway, make_user):
        user, headers = make_user()

        response = client.post(
            "/payments/subscriptions",
            json={"price_id": "price_monthly", "payment_method_id": "pm_card_visa"},
            headers=headers,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ACTIVE"
        assert body["client_secret"] == "pi_sub_secret"

        subscription = asyncio.run(app.state.payments.find_subscription("sub_stripe_1"))
        assert subscription.id == body["subscription_id"]
        assert subscription.user_id == user.id
        assert subscription.status == SubscriptionStatus.ACTIVE
        assert subscription.current_period_end is not None

        _, call = gateway.calls[0]
        assert call["email"] == user.email
        assert call["payment_method_id"] == "pm_card_visa"

        entries = asyncio.run(app.state.audit.entries(action=AuditAction.SUBSCRIPTION_CREATED))
        assert entries[0].detail == {
            "subscriptionId": subscription.id,
            "priceId": "price_monthly",
            "status": "ACTIVE",
        }

    def test_missing_fields(self, client, make_user):
        _, headers = make_user()

        response = client.post("/payments/subscriptions", json={"price_id": "price_x"}, headers=headers)

        assert response.status_code == 422
