# =============================================================================
# Payment Routes
# =============================================================================
#
# Endpoints:
#   POST /payments/payment-intents  - Start a one-off payment or donation
#   POST /payments/subscriptions    - Subscribe to a price
#
# =============================================================================

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from hearth.api.deps import get_payments
from hearth.auth import capabilities
from hearth.auth.context import AuthContext
from hearth.auth.policies import require
from hearth.core.models import PaymentType, SubscriptionStatus
from hearth.services.payments import PaymentService

router = APIRouter(prefix="/payments", tags=["payments"])


class PaymentIntentCreate(BaseModel):
    amount: int  # cents
    type: PaymentType
    currency: str = "usd"
    description: str | None = None
    metadata: dict[str, str] | None = None


class PaymentIntentResponse(BaseModel):
    payment_id: str
    client_secret: str | None


class SubscriptionCreate(BaseModel):
    price_id: str
    payment_method_id: str


class SubscriptionResponse(BaseModel):
    subscription_id: str
    status: SubscriptionStatus
    client_secret: str | None


@router.post("/payment-intents", response_model=PaymentIntentResponse)
async def create_payment_intent(
    data: PaymentIntentCreate,
    ctx: AuthContext = Depends(require(capabilities.create_payment())),
    payments: PaymentService = Depends(get_payments),
):
    payment, client_secret = await payments.create_payment_intent(
        ctx,
        amount=data.amount,
        type=data.type,
        currency=data.currency,
        description=data.description,
        metadata=data.metadata,
    )
    return PaymentIntentResponse(payment_id=payment.id, client_secret=client_secret)


@router.post("/subscriptions", response_model=SubscriptionResponse)
async def create_subscription(
    data: SubscriptionCreate,
    ctx: AuthContext = Depends(require(capabilities.create_subscription())),
    payments: PaymentService = Depends(get_payments),
):
    subscription, client_secret = await payments.create_subscription(
        ctx, data.price_id, data.payment_method_id
    )
    return SubscriptionResponse(
        subscription_id=subscription.id,
        status=subscription.status,
        client_secret=client_secret,
    )
