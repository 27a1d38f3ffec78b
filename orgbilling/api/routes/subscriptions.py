from __future__ import annotations

from fastapi import APIRouter, Depends

from orgbilling.core import subscriptions
from orgbilling.core.dependencies import get_billing_provider, get_organization, get_reconciler
from orgbilling.core.reconciler import SubscriptionReconciler
from orgbilling.core.stripe_client import StripeClient
from orgbilling.models.organization import Organization
from orgbilling.schemas.billing import (
    InvoiceResponse,
    RetryInvoiceRequest,
    SubscriptionCreateRequest,
    SubscriptionResponse,
    SubscriptionUpdateRequest,
)

router = APIRouter(prefix="/organization/{organization_id}/sub", tags=["subscriptions"])


@router.get("", response_model=SubscriptionResponse)
async def get_subscription(
    organization: Organization = Depends(get_organization),
    provider: StripeClient = Depends(get_billing_provider),
) -> SubscriptionResponse:
    return await subscriptions.describe_subscription(organization, provider)


@router.post("", response_model=SubscriptionResponse)
async def create_subscription(
    payload: SubscriptionCreateRequest,
    organization: Organization = Depends(get_organization),
    provider: StripeClient = Depends(get_billing_provider),
    reconciler: SubscriptionReconciler = Depends(get_reconciler),
) -> SubscriptionResponse:
    return await subscriptions.create_subscription(organization, payload.plan, provider, reconciler)


@router.patch("", response_model=SubscriptionResponse)
async def update_subscription(
    payload: SubscriptionUpdateRequest,
    organization: Organization = Depends(get_organization),
    provider: StripeClient = Depends(get_billing_provider),
) -> SubscriptionResponse:
    return await subscriptions.change_subscription_plan(organization, payload.plan, provider)


@router.delete("", response_model=SubscriptionResponse)
async def cancel_subscription(
    organization: Organization = Depends(get_organization),
    provider: StripeClient = Depends(get_billing_provider),
    reconciler: SubscriptionReconciler = Depends(get_reconciler),
) -> SubscriptionResponse:
    return await subscriptions.cancel_subscription(organization, provider, reconciler)


@router.post("/retry-invoice", response_model=InvoiceResponse)
async def retry_invoice(
    payload: RetryInvoiceRequest,
    organization: Organization = Depends(get_organization),
    provider: StripeClient = Depends(get_billing_provider),
) -> InvoiceResponse:
    return await subscriptions.retry_invoice(
        organization,
        payment_method_id=payload.payment_method_id,
        invoice_id=payload.invoice_id,
        provider=provider,
    )
