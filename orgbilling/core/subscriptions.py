from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

from orgbilling.core.config import settings
from orgbilling.core.errors import NotFoundError, ProviderError, ValidationError
from orgbilling.core.reconciler import SubscriptionReconciler, line_items_of
from orgbilling.core.stripe_client import StripeClient
from orgbilling.models.organization import Organization
from orgbilling.schemas.billing import InvoiceResponse, SubscriptionResponse

logger = logging.getLogger(__name__)


def resolve_price_id(plan: str) -> str:
    price_id = settings.price_id_for(plan)
    if not price_id:
        raise ValidationError(f"Invalid plan: {plan}")
    return price_id


def invoice_client_secret(invoice: Mapping[str, Any]) -> str:
    confirmation = invoice.get("confirmation_secret")
    if isinstance(confirmation, Mapping) and confirmation.get("client_secret"):
        return confirmation["client_secret"]
    # API versions before 2025-03-31 carry it on the payment intent.
    intent = invoice.get("payment_intent")
    if isinstance(intent, Mapping):
        return intent.get("client_secret") or ""
    return ""


def subscription_response(subscription: Mapping[str, Any]) -> SubscriptionResponse:
    invoice = subscription.get("latest_invoice")
    return SubscriptionResponse(
        subscription_id=subscription.get("id") or "",
        subscription_status=subscription.get("status") or "",
        client_secret=invoice_client_secret(invoice) if isinstance(invoice, Mapping) else "",
    )


def _current_subscription_id(organization: Organization) -> str:
    subscription_id = (organization.stripe_sub or "").strip()
    if not subscription_id:
        raise NotFoundError(f"Organization {organization.id} has no subscription")
    return subscription_id


async def describe_subscription(
    organization: Organization,
    provider: StripeClient,
) -> SubscriptionResponse:
    subscription_id = _current_subscription_id(organization)
    try:
        subscription = await asyncio.to_thread(provider.retrieve_subscription, subscription_id)
    except ProviderError as exc:
        raise ProviderError(
            exc.message, code=exc.code, status_code=ValidationError.status_code
        ) from exc
    return subscription_response(subscription)


async def create_subscription(
    organization: Organization,
    plan: str,
    provider: StripeClient,
    reconciler: SubscriptionReconciler,
) -> SubscriptionResponse:
    price_id = resolve_price_id(plan)

    previous = (organization.stripe_sub or "").strip()
    if previous:
        try:
            await asyncio.to_thread(provider.cancel_subscription, previous)
        except ProviderError as exc:
            if not exc.resource_missing:
                raise
            logger.info(
                "Previous subscription already gone organization=%s subscription=%s",
                organization.id,
                previous,
            )

    try:
        subscription = await asyncio.to_thread(
            provider.create_subscription,
            customer_id=organization.stripe_id,
            price_id=price_id,
        )
    except ProviderError as exc:
        raise ProviderError(
            exc.message, code=exc.code, status_code=ValidationError.status_code
        ) from exc

    # The created webhook reconciles the same subscription again later.
    await reconciler.apply_create(subscription, organization_id=organization.id)
    return subscription_response(subscription)


async def cancel_subscription(
    organization: Organization,
    provider: StripeClient,
    reconciler: SubscriptionReconciler,
) -> SubscriptionResponse:
    subscription_id = _current_subscription_id(organization)
    try:
        subscription = await asyncio.to_thread(provider.cancel_subscription, subscription_id)
    except ProviderError as exc:
        if not exc.resource_missing:
            raise
        logger.info(
            "Subscription missing at Stripe, clearing organization=%s subscription=%s",
            organization.id,
            subscription_id,
        )
        await reconciler.apply_delete_for_organization(organization.id)
        return SubscriptionResponse(subscription_id=subscription_id, subscription_status="canceled")

    await reconciler.apply_delete(subscription)
    return subscription_response(subscription)


async def change_subscription_plan(
    organization: Organization,
    plan: str,
    provider: StripeClient,
) -> SubscriptionResponse:
    price_id = resolve_price_id(plan)
    subscription_id = _current_subscription_id(organization)

    subscription = await asyncio.to_thread(provider.retrieve_subscription, subscription_id)
    items = line_items_of(subscription)
    if not items:
        raise ValidationError(f"Subscription {subscription_id} has no line items")

    updated = await asyncio.to_thread(
        provider.change_subscription_price,
        subscription_id,
        item_id=items[0]["id"],
        price_id=price_id,
    )
    return subscription_response(updated)


async def retry_invoice(
    organization: Organization,
    *,
    payment_method_id: str,
    invoice_id: str,
    provider: StripeClient,
) -> InvoiceResponse:
    payment_method = await asyncio.to_thread(
        provider.attach_payment_method, payment_method_id, organization.stripe_id
    )
    await asyncio.to_thread(
        provider.set_default_payment_method,
        organization.stripe_id,
        payment_method.get("id") or payment_method_id,
    )
    invoice = await asyncio.to_thread(provider.retrieve_invoice, invoice_id)
    return InvoiceResponse(
        id=invoice.get("id") or invoice_id,
        status=invoice.get("status"),
        client_secret=invoice_client_secret(invoice),
    )
