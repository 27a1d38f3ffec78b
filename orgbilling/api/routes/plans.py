from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import Any

from fastapi import APIRouter, Depends

from orgbilling.core.config import settings
from orgbilling.core.dependencies import get_billing_provider
from orgbilling.core.stripe_client import StripeClient
from orgbilling.schemas.billing import PlanPriceResponse, Product, PublishableConfigResponse

router = APIRouter(tags=["plans"])


def _plan_price(nickname: str, price: Mapping[str, Any]) -> PlanPriceResponse:
    product = price.get("product")
    if isinstance(product, Mapping):
        snapshot = Product(
            id=product.get("id") or "",
            active=bool(product.get("active")),
            name=product.get("name") or "",
            description=product.get("description") or "",
        )
    else:
        snapshot = Product(id=product or "")

    recurring = price.get("recurring") or {}
    return PlanPriceResponse(
        id=price.get("id") or "",
        nickname=nickname,
        active=bool(price.get("active")),
        currency=price.get("currency") or "",
        unit_amount=price.get("unit_amount"),
        interval=recurring.get("interval"),
        interval_count=recurring.get("interval_count"),
        product=snapshot,
    )


@router.get("/config", response_model=PublishableConfigResponse)
async def get_config() -> PublishableConfigResponse:
    return PublishableConfigResponse(publishable_key=settings.stripe_publishable_key)


@router.get("/plans", response_model=list[PlanPriceResponse])
async def list_plans(
    provider: StripeClient = Depends(get_billing_provider),
) -> list[PlanPriceResponse]:
    plans: list[PlanPriceResponse] = []
    for nickname, price_id in settings.subscription_plans().items():
        price = await asyncio.to_thread(provider.retrieve_price, price_id)
        plans.append(_plan_price(nickname, price))
    return plans
