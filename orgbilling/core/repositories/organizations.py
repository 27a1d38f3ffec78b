from __future__ import annotations

from sqlalchemy import ColumnElement, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from orgbilling.core.errors import PersistenceError
from orgbilling.core.repositories.base import Repository
from orgbilling.models.organization import Organization


class OrganizationRepository(Repository[Organization]):
    """Row-level access to ``organization``.

    Subscription writers return the number of rows they touched so callers can
    tell a missing or stale row apart from a successful write.
    """

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session=session, model=Organization)

    async def find_by_name_and_email(self, name: str, email: str) -> Organization | None:
        result = await self.session.execute(
            select(Organization)
            .where(Organization.name == name, Organization.email == email)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def set_subscription_for_organization(
        self, organization_id: int, *, stripe_sub: str, sub_status: str, plans: bytes
    ) -> int:
        return await self._write_subscription(
            Organization.id == organization_id,
            stripe_sub=stripe_sub,
            sub_status=sub_status,
            plans=plans,
        )

    async def set_subscription_for_customer(
        self, stripe_id: str, *, stripe_sub: str, sub_status: str, plans: bytes
    ) -> int:
        return await self._write_subscription(
            Organization.stripe_id == stripe_id,
            stripe_sub=stripe_sub,
            sub_status=sub_status,
            plans=plans,
        )

    async def refresh_subscription(
        self, stripe_id: str, *, stripe_sub: str, sub_status: str, plans: bytes
    ) -> int:
        # Only the row still pointing at this subscription may be refreshed.
        return await self._write_subscription(
            Organization.stripe_id == stripe_id,
            Organization.stripe_sub == stripe_sub,
            stripe_sub=stripe_sub,
            sub_status=sub_status,
            plans=plans,
        )

    async def clear_subscription(self, stripe_sub: str) -> int:
        return await self._write_subscription(
            Organization.stripe_sub == stripe_sub,
            stripe_sub="",
            sub_status="",
            plans=None,
        )

    async def clear_subscription_for_organization(self, organization_id: int) -> int:
        return await self._write_subscription(
            Organization.id == organization_id,
            stripe_sub="",
            sub_status="",
            plans=None,
        )

    async def _write_subscription(
        self,
        *criteria: ColumnElement[bool],
        stripe_sub: str,
        sub_status: str,
        plans: bytes | None,
    ) -> int:
        stmt = (
            update(Organization)
            .where(*criteria)
            .values(stripe_sub=stripe_sub, sub_status=sub_status, plans=plans)
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to write subscription state: {exc}") from exc
        return result.rowcount or 0
