from __future__ import annotations

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from orgbilling.core.config import settings
from orgbilling.core.db import get_db_session
from orgbilling.core.errors import NotFoundError
from orgbilling.core.reconciler import SubscriptionReconciler
from orgbilling.core.repositories.organizations import OrganizationRepository
from orgbilling.core.stripe_client import StripeClient
from orgbilling.core.webhooks import WebhookDispatcher
from orgbilling.models.organization import Organization


def get_billing_provider() -> StripeClient:
    return StripeClient(
        settings.stripe_secret_key,
        webhook_secret=settings.stripe_webhook_secret,
        api_version=settings.stripe_api_version,
    )


def get_reconciler(
    session: AsyncSession = Depends(get_db_session),
    provider: StripeClient = Depends(get_billing_provider),
) -> SubscriptionReconciler:
    return SubscriptionReconciler(session, provider)


def get_webhook_dispatcher(
    reconciler: SubscriptionReconciler = Depends(get_reconciler),
) -> WebhookDispatcher:
    return WebhookDispatcher(reconciler)


async def get_organization(
    organization_id: int,
    session: AsyncSession = Depends(get_db_session),
) -> Organization:
    organization = await OrganizationRepository(session).get(organization_id)
    if organization is None:
        raise NotFoundError(f"Organization {organization_id} not found")
    return organization
