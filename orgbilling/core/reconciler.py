"""Keeps an organization's local subscription fields in step with Stripe.

Every apply rebuilds the complete plan list from the subscription object and
overwrites ``stripe_sub``, ``sub_status`` and ``plans`` in one statement, so
replaying the same subscription is harmless and out-of-order deliveries never
leave a half-merged list behind.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from pydantic_core import PydanticSerializationError
from sqlalchemy.ext.asyncio import AsyncSession

from orgbilling.core.errors import PersistenceError, ProviderError, SerializationError
from orgbilling.core.repositories.organizations import OrganizationRepository
from orgbilling.core.stripe_client import StripeClient
from orgbilling.schemas.billing import Plan, Product

logger = logging.getLogger(__name__)

_plan_list = TypeAdapter(list[Plan])


def encode_plans(plans: list[Plan]) -> bytes:
    try:
        return _plan_list.dump_json(plans)
    except PydanticSerializationError as exc:
        raise SerializationError(f"Failed to encode plans: {exc}") from exc


def decode_plans(raw: bytes | None) -> list[Plan]:
    if not raw:
        return []
    try:
        return _plan_list.validate_json(raw)
    except PydanticValidationError:
        logger.warning("Stored plan list could not be decoded, treating as empty")
        return []


def _ref_id(value: Any) -> str:
    # Stripe returns either a bare id or the expanded object.
    if isinstance(value, Mapping):
        return value.get("id") or ""
    return value or ""


def customer_id_of(subscription: Mapping[str, Any]) -> str:
    return _ref_id(subscription.get("customer"))


def line_items_of(subscription: Mapping[str, Any]) -> list[Mapping[str, Any]]:
    items = subscription.get("items") or {}
    return list(items.get("data") or [])


class SubscriptionReconciler:
    def __init__(self, session: AsyncSession, provider: StripeClient) -> None:
        self.session = session
        self.provider = provider
        self.repository = OrganizationRepository(session)

    async def enrich_product(self, product_id: str) -> Product:
        product = Product(id=product_id)
        if not product_id:
            return product

        try:
            remote = await asyncio.to_thread(self.provider.retrieve_product, product_id)
        except ProviderError as exc:
            logger.warning("Product lookup failed product=%s: %s", product_id, exc.message)
            return product

        product.active = bool(remote.get("active"))
        product.name = remote.get("name") or ""
        product.description = remote.get("description") or ""
        return product

    async def build_plans(self, subscription: Mapping[str, Any]) -> list[Plan]:
        plans: list[Plan] = []
        for item in line_items_of(subscription):
            price = item.get("plan") or item.get("price") or {}
            amount = price.get("amount")
            if amount is None:
                amount = price.get("unit_amount")

            plans.append(
                Plan(
                    id=price.get("id") or "",
                    si_id=item.get("id") or "",
                    sub_id=item.get("subscription") or subscription.get("id") or "",
                    active=bool(price.get("active")),
                    quantity=int(item.get("quantity") or 0),
                    amount=int(amount or 0),
                    product=await self.enrich_product(_ref_id(price.get("product"))),
                )
            )
        return plans

    async def _snapshot(self, subscription: Mapping[str, Any]) -> dict[str, Any]:
        return {
            "stripe_sub": subscription.get("id") or "",
            "sub_status": subscription.get("status") or "",
            "plans": encode_plans(await self.build_plans(subscription)),
        }

    async def apply_create(
        self,
        subscription: Mapping[str, Any],
        organization_id: int | None = None,
    ) -> None:
        snapshot = await self._snapshot(subscription)

        if organization_id is not None:
            target = f"organization={organization_id}"
            touched = await self.repository.set_subscription_for_organization(
                organization_id, **snapshot
            )
        else:
            customer_id = customer_id_of(subscription)
            target = f"customer={customer_id}"
            touched = await self.repository.set_subscription_for_customer(customer_id, **snapshot)

        if not touched:
            await self.session.rollback()
            raise PersistenceError(f"No organization matches {target}")

        await self.session.commit()
        logger.info(
            "Subscription applied %s subscription=%s status=%s",
            target,
            snapshot["stripe_sub"],
            snapshot["sub_status"],
        )

    async def apply_update(self, subscription: Mapping[str, Any]) -> bool:
        snapshot = await self._snapshot(subscription)
        customer_id = customer_id_of(subscription)

        touched = await self.repository.refresh_subscription(customer_id, **snapshot)
        await self.session.commit()
        if not touched:
            logger.info(
                "Skipping stale subscription update customer=%s subscription=%s",
                customer_id,
                snapshot["stripe_sub"],
            )
            return False

        logger.info(
            "Subscription refreshed customer=%s subscription=%s status=%s",
            customer_id,
            snapshot["stripe_sub"],
            snapshot["sub_status"],
        )
        return True

    async def apply_delete(self, subscription: Mapping[str, Any]) -> bool:
        subscription_id = subscription.get("id") or ""
        if not subscription_id:
            return False

        touched = await self.repository.clear_subscription(subscription_id)
        await self.session.commit()
        logger.info("Subscription cleared subscription=%s rows=%s", subscription_id, touched)
        return touched > 0

    async def apply_delete_for_organization(self, organization_id: int) -> bool:
        touched = await self.repository.clear_subscription_for_organization(organization_id)
        await self.session.commit()
        logger.info("Subscription cleared organization=%s rows=%s", organization_id, touched)
        return touched > 0
