from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from orgbilling.core.db import get_db_session
from orgbilling.core.dependencies import get_billing_provider, get_organization
from orgbilling.core.errors import ConflictError, NotFoundError, PersistenceError
from orgbilling.core.reconciler import decode_plans
from orgbilling.core.repositories.organizations import OrganizationRepository
from orgbilling.core.stripe_client import StripeClient
from orgbilling.models.organization import Organization
from orgbilling.schemas.billing import PaymentMethodResponse
from orgbilling.schemas.organization import OrganizationCreateRequest, OrganizationResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/organization", tags=["organizations"])


def organization_response(organization: Organization) -> OrganizationResponse:
    return OrganizationResponse(
        id=organization.id,
        name=organization.name,
        email=organization.email,
        stripe_id=organization.stripe_id,
        stripe_sub=organization.stripe_sub or "",
        sub_status=organization.sub_status or "",
        plans=decode_plans(organization.plans),
    )


@router.post("/create", response_model=OrganizationResponse, status_code=status.HTTP_201_CREATED)
async def create_organization(
    payload: OrganizationCreateRequest,
    session: AsyncSession = Depends(get_db_session),
    provider: StripeClient = Depends(get_billing_provider),
) -> OrganizationResponse:
    repository = OrganizationRepository(session)
    if await repository.find_by_name_and_email(payload.name, payload.email) is not None:
        raise ConflictError("Organization already exists")

    # The Stripe customer must exist before any row points at it.
    customer = await asyncio.to_thread(
        provider.create_customer, name=payload.name, email=payload.email
    )

    try:
        organization = await repository.create(
            name=payload.name,
            email=payload.email,
            stripe_id=customer["id"],
            stripe_sub="",
            sub_status="",
            plans=None,
        )
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.error("Organization insert failed after customer=%s was created", customer["id"])
        raise PersistenceError(f"Failed to create organization: {exc}") from exc

    logger.info("Organization created organization=%s customer=%s", organization.id, customer["id"])
    return organization_response(organization)


@router.get("", response_model=list[OrganizationResponse])
async def list_organizations(
    session: AsyncSession = Depends(get_db_session),
) -> list[OrganizationResponse]:
    organizations = await OrganizationRepository(session).list()
    return [organization_response(organization) for organization in organizations]


@router.get("/{organization_id}", response_model=OrganizationResponse)
async def get_organization_by_id(
    organization: Organization = Depends(get_organization),
) -> OrganizationResponse:
    return organization_response(organization)


@router.get("/{organization_id}/payment-method", response_model=PaymentMethodResponse)
async def get_payment_method(
    organization: Organization = Depends(get_organization),
    provider: StripeClient = Depends(get_billing_provider),
) -> PaymentMethodResponse:
    payment_method = await asyncio.to_thread(provider.first_payment_method, organization.stripe_id)
    if payment_method is None:
        raise NotFoundError(f"No payment method for organization {organization.id}")

    card = payment_method.get("card") or {}
    return PaymentMethodResponse(
        id=payment_method.get("id") or "",
        type=payment_method.get("type") or "",
        brand=card.get("brand"),
        last4=card.get("last4"),
        exp_month=card.get("exp_month"),
        exp_year=card.get("exp_year"),
    )
