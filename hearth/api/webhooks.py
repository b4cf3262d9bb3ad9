# =============================================================================
# Webhook Routes
# =============================================================================
#
# POST /webhooks/stripe
#
# Public, but every delivery must carry a valid Stripe-Signature header.
# Nothing is written before the signature checks out.
#
# =============================================================================

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from hearth.api.deps import get_webhooks
from hearth.integrations.sentry import capture_exception
from hearth.services.payments import WebhookDispatcher

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    webhooks: WebhookDispatcher = Depends(get_webhooks),
):
    payload = await request.body()

    # Raises WebhookSignatureError / WebhookPayloadError -> 400
    event = webhooks.verify(payload, request.headers.get("stripe-signature"))

    try:
        await webhooks.dispatch(event)
    except Exception as e:
        logger.exception(f"Webhook handler failed for {event['type']}")
        capture_exception(e, webhook_event=event["type"], webhook_id=event.get("id"))
        return JSONResponse({"detail": "Webhook handler failed"}, status_code=500)

    return {"received": True}
