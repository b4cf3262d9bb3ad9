"""
Shared fixtures.

Everything runs on in-memory storage with cheap bcrypt rounds. Payment
processor calls go to a fake gateway; webhook signatures are real.
"""

import asyncio
import hashlib
import hmac
import itertools
import json
import os
import time

# Keep bcrypt cheap for anything that reads settings from the environment
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient

from hearth.api.app import create_app
from hearth.auth.audit import AuditLog
from hearth.auth.context import AuthContext
from hearth.auth.credentials import CredentialStore
from hearth.auth.sessions import SessionIssuer, hash_password
from hearth.config import Settings
from hearth.core.models import Role, User
from hearth.integrations.payments import IntentResult, PaymentGateway, SubscriptionResult
from hearth.storage import create_local_storage

WEBHOOK_SECRET = "whsec_test_secret"
PASSWORD = "correct-horse-battery"


# =============================================================================
# Fakes
# =============================================================================


class FakeGateway(PaymentGateway):
    """Records processor calls instead of making them. Webhook verification is inherited."""

    def __init__(self, settings: Settings):
        super().__init__(settings)
        self.calls: list[tuple[str, dict]] = []

    async def create_payment_intent(self, amount, currency="usd", description=None, metadata=None):
        n = len(self.calls) + 1
        self.calls.append(("payment_intent", {
            "amount": amount,
            "currency": currency,
            "description": description,
            "metadata": metadata,
        }))
        return IntentResult(id=f"pi_test_{n}", client_secret=f"pi_test_{n}_secret", status="requires_payment_method")

    async def create_subscription(self, email, name, user_id, price_id, payment_method_id):
        self.calls.append(("subscription", {
            "email": email,
            "user_id": user_id,
            "price_id": price_id,
            "payment_method_id": payment_method_id,
        }))
        return SubscriptionResult(
            id="sub_stripe_1",
            customer_id="cus_test_1",
            status="active",
            current_period_start=1_700_000_000,
            current_period_end=1_702_592_000,
            client_secret="pi_sub_secret",
        )


def sign_webhook(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    """Build a Stripe-Signature header for a payload."""
    timestamp = timestamp or int(time.time())
    signature = hmac.new(
        secret.encode("utf-8"),
        f"{timestamp}.{payload}".encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()
    return f"t={timestamp},v1={signature}"


def stripe_event(event_type: str, obj: dict, event_id: str = "evt_test_1") -> str:
    return json.dumps({
        "id": event_id,
        "object": "event",
        "type": event_type,
        "data": {"object": obj},
    })


# =============================================================================
# Core fixtures
# =============================================================================


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        environment="test",
        jwt_secret_key="test-jwt-secret-with-enough-bytes-for-hs256",
        bcrypt_rounds=4,
        stripe_secret_key="sk_test_dummy",
        stripe_webhook_secret=WEBHOOK_SECRET,
        sentry_dsn="",
        cors_origins="http://localhost:3000",
        # TestClient connects from this peer
        trusted_proxies="testclient",
    )


@pytest.fixture
def storage():
    return create_local_storage()


@pytest.fixture
def audit(storage):
    return AuditLog(storage.metadata)


@pytest.fixture
def credentials(storage):
    return CredentialStore(storage.metadata)


@pytest.fixture
def sessions(credentials, audit, settings):
    return SessionIssuer(credentials, audit, settings)


# =============================================================================
# HTTP fixtures
# =============================================================================


@pytest.fixture
def gateway(settings):
    return FakeGateway(settings)


@pytest.fixture
def app(settings, storage, gateway):
    return create_app(settings=settings, storage=storage, payment_gateway=gateway)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def make_user(app):
    """
    Create a user directly in storage and sign them in.

    Returns (user, auth headers).
    """

    counter = itertools.count(1)

    def _make(role: Role = Role.PARENT, email: str | None = None, name: str = "Test User"):
        email = email or f"{role.value.lower()}-{next(counter)}@example.com"
        user = User(
            email=email,
            name=name,
            role=role,
            password_hash=hash_password(PASSWORD, rounds=4),
        )
        user = asyncio.run(app.state.credentials.create(user))
        token = asyncio.run(app.state.sessions.issue_session(AuthContext.from_user(user)))
        return user, {"Authorization": f"Bearer {token.access_token}"}

    return _make
