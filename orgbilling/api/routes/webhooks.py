from __future__ import annotations

from fastapi import APIRouter, Depends, Header, Request

from orgbilling.core.dependencies import get_billing_provider, get_webhook_dispatcher
from orgbilling.core.stripe_client import StripeClient
from orgbilling.core.webhooks import WebhookDispatcher
from orgbilling.schemas.billing import BillingWebhookResponse

router = APIRouter(prefix="/stripe", tags=["webhooks"])


@router.post("/webhook", response_model=BillingWebhookResponse)
async def stripe_webhook(
    request: Request,
    provider: StripeClient = Depends(get_billing_provider),
    dispatcher: WebhookDispatcher = Depends(get_webhook_dispatcher),
    stripe_signature: str | None = Header(default=None, alias="Stripe-Signature"),
) -> BillingWebhookResponse:
    raw_body = await request.body()
    event = provider.construct_event(raw_body, stripe_signature)
    event_type = event.get("type") or "unknown"

    handled = await dispatcher.dispatch(event)
    return BillingWebhookResponse(received=True, event_type=event_type, handled=handled)
