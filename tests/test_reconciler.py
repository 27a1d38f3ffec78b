from __future__ import annotations

import pytest
import stripe
from pydantic_core import PydanticSerializationError

from orgbilling.core import reconciler as reconciler_module
from orgbilling.core.errors import PersistenceError, ProviderError, SerializationError
from orgbilling.core.reconciler import SubscriptionReconciler, decode_plans
from orgbilling.core.stripe_client import StripeClient
from orgbilling.models import Organization


class _FakeProvider:
    def __init__(self, products: dict | None = None) -> None:
        self.products = products or {}
        self.product_calls: list[str] = []

    def retrieve_product(self, product_id: str) -> dict:
        self.product_calls.append(product_id)
        if product_id not in self.products:
            raise ProviderError(f"No such product: {product_id}", code="resource_missing")
        return self.products[product_id]


def _item(
    item_id: str = "si_1",
    sub_id: str = "sub_1",
    plan_id: str = "price_A",
    product: str = "prod_A",
    amount: int = 1500,
    quantity: int = 1,
) -> dict:
    return {
        "id": item_id,
        "subscription": sub_id,
        "quantity": quantity,
        "plan": {"id": plan_id, "active": True, "amount": amount, "product": product},
    }


def _subscription(
    sub_id: str = "sub_1",
    customer: object = "cus_1",
    status: str = "incomplete",
    items: list[dict] | None = None,
) -> dict:
    return {
        "id": sub_id,
        "customer": customer,
        "status": status,
        "items": {"data": items if items is not None else [_item(sub_id=sub_id)]},
    }


PRODUCTS = {
    "prod_A": {"id": "prod_A", "active": True, "name": "Plan A", "description": "Starter"},
    "prod_B": {"id": "prod_B", "active": True, "name": "Plan B", "description": None},
}


async def _seed(
    factory,  # noqa: ANN001
    *,
    name: str = "Acme",
    stripe_id: str = "cus_1",
    stripe_sub: str = "",
    sub_status: str = "",
    plans: bytes | None = None,
) -> int:
    async with factory() as session:
        organization = Organization(
            name=name,
            email=f"{name.lower()}@example.com",
            stripe_id=stripe_id,
            stripe_sub=stripe_sub,
            sub_status=sub_status,
            plans=plans,
        )
        session.add(organization)
        await session.commit()
        return organization.id


async def _load(factory, organization_id: int) -> Organization:  # noqa: ANN001
    async with factory() as session:
        organization = await session.get(Organization, organization_id)
        assert organization is not None
        return organization


def _assert_joint_state(organization: Organization) -> None:
    populated = [
        bool(organization.stripe_sub),
        bool(organization.sub_status),
        bool(decode_plans(organization.plans)),
    ]
    assert all(populated) or not any(populated)


@pytest.mark.asyncio
async def test_build_plans_keeps_provider_order_and_enriches_products(session_factory) -> None:  # noqa: ANN001
    provider = _FakeProvider(PRODUCTS)
    subscription = _subscription(
        items=[
            _item(item_id="si_2", plan_id="price_B", product="prod_B", amount=4900, quantity=3),
            _item(item_id="si_1", plan_id="price_A", product="prod_A"),
        ]
    )

    async with session_factory() as session:
        plans = await SubscriptionReconciler(session, provider).build_plans(subscription)

    assert [plan.si_id for plan in plans] == ["si_2", "si_1"]
    assert plans[0].amount == 4900
    assert plans[0].quantity == 3
    assert plans[0].product.name == "Plan B"
    assert plans[0].product.description == ""
    assert plans[1].product.description == "Starter"
    assert provider.product_calls == ["prod_B", "prod_A"]


@pytest.mark.asyncio
async def test_build_plans_reads_price_when_plan_is_absent(session_factory) -> None:  # noqa: ANN001
    item = {
        "id": "si_1",
        "subscription": "sub_1",
        "quantity": 1,
        "price": {"id": "price_A", "active": True, "unit_amount": 990, "product": {"id": "prod_A"}},
    }

    async with session_factory() as session:
        plans = await SubscriptionReconciler(session, _FakeProvider(PRODUCTS)).build_plans(
            _subscription(items=[item])
        )

    assert plans[0].id == "price_A"
    assert plans[0].amount == 990
    assert plans[0].product.id == "prod_A"


@pytest.mark.asyncio
async def test_enrich_product_failure_keeps_only_id(session_factory) -> None:  # noqa: ANN001
    async with session_factory() as session:
        product = await SubscriptionReconciler(session, _FakeProvider()).enrich_product("prod_gone")

    assert product.id == "prod_gone"
    assert product.name == ""
    assert product.description == ""
    assert product.active is False


@pytest.mark.asyncio
async def test_apply_create_by_customer_sets_all_fields(session_factory) -> None:  # noqa: ANN001
    organization_id = await _seed(session_factory)

    async with session_factory() as session:
        await SubscriptionReconciler(session, _FakeProvider(PRODUCTS)).apply_create(
            _subscription(customer={"id": "cus_1", "object": "customer"})
        )

    stored = await _load(session_factory, organization_id)
    assert stored.stripe_sub == "sub_1"
    assert stored.sub_status == "incomplete"
    plans = decode_plans(stored.plans)
    assert len(plans) == 1
    assert plans[0].sub_id == "sub_1"
    assert plans[0].product.name == "Plan A"
    _assert_joint_state(stored)


@pytest.mark.asyncio
async def test_apply_create_by_organization_id_ignores_customer(session_factory) -> None:  # noqa: ANN001
    organization_id = await _seed(session_factory, stripe_id="cus_1")
    other_id = await _seed(session_factory, name="Other", stripe_id="cus_other")

    async with session_factory() as session:
        await SubscriptionReconciler(session, _FakeProvider(PRODUCTS)).apply_create(
            _subscription(customer="cus_other", status="active"),
            organization_id=organization_id,
        )

    assert (await _load(session_factory, organization_id)).stripe_sub == "sub_1"
    assert (await _load(session_factory, other_id)).stripe_sub == ""


@pytest.mark.asyncio
async def test_apply_create_without_matching_row_raises(session_factory) -> None:  # noqa: ANN001
    await _seed(session_factory, stripe_id="cus_1")

    async with session_factory() as session:
        reconciler = SubscriptionReconciler(session, _FakeProvider(PRODUCTS))
        with pytest.raises(PersistenceError):
            await reconciler.apply_create(_subscription(customer="cus_unknown"))
        with pytest.raises(PersistenceError):
            await reconciler.apply_create(_subscription(), organization_id=9999)


@pytest.mark.asyncio
async def test_apply_create_encoding_failure_abandons_write(
    session_factory, monkeypatch: pytest.MonkeyPatch  # noqa: ANN001
) -> None:
    organization_id = await _seed(session_factory)

    class _BrokenAdapter:
        def dump_json(self, _plans):  # noqa: ANN001
            raise PydanticSerializationError("cannot encode")

    monkeypatch.setattr(reconciler_module, "_plan_list", _BrokenAdapter())

    async with session_factory() as session:
        with pytest.raises(SerializationError):
            await SubscriptionReconciler(session, _FakeProvider(PRODUCTS)).apply_create(_subscription())

    stored = await _load(session_factory, organization_id)
    assert stored.stripe_sub == ""
    assert stored.sub_status == ""
    assert stored.plans is None


@pytest.mark.asyncio
async def test_apply_update_rejects_stale_event(session_factory) -> None:  # noqa: ANN001
    async with session_factory() as session:
        seeded = await SubscriptionReconciler(session, _FakeProvider(PRODUCTS))._snapshot(
            _subscription(sub_id="sub_new", status="active")
        )
    organization_id = await _seed(session_factory, **seeded)

    async with session_factory() as session:
        updated = await SubscriptionReconciler(session, _FakeProvider(PRODUCTS)).apply_update(
            _subscription(sub_id="sub_old", status="past_due")
        )

    assert updated is False
    stored = await _load(session_factory, organization_id)
    assert stored.stripe_sub == "sub_new"
    assert stored.sub_status == "active"
    assert stored.plans == seeded["plans"]


@pytest.mark.asyncio
async def test_apply_update_refreshes_matching_row(session_factory) -> None:  # noqa: ANN001
    organization_id = await _seed(session_factory)
    provider = _FakeProvider(PRODUCTS)

    async with session_factory() as session:
        reconciler = SubscriptionReconciler(session, provider)
        await reconciler.apply_create(_subscription(status="incomplete"))
        updated = await reconciler.apply_update(
            _subscription(
                status="active",
                items=[_item(plan_id="price_B", product="prod_B", amount=4900, quantity=2)],
            )
        )

    assert updated is True
    stored = await _load(session_factory, organization_id)
    assert stored.sub_status == "active"
    plans = decode_plans(stored.plans)
    assert [plan.id for plan in plans] == ["price_B"]
    assert plans[0].quantity == 2


@pytest.mark.asyncio
async def test_apply_delete_clears_only_matching_subscription(session_factory) -> None:  # noqa: ANN001
    async with session_factory() as session:
        reconciler = SubscriptionReconciler(session, _FakeProvider(PRODUCTS))
        first = await reconciler._snapshot(_subscription(sub_id="sub_1", status="active"))
        second = await reconciler._snapshot(_subscription(sub_id="sub_2", status="active"))
    organization_id = await _seed(session_factory, **first)
    other_id = await _seed(session_factory, name="Other", stripe_id="cus_2", **second)

    async with session_factory() as session:
        cleared = await SubscriptionReconciler(session, _FakeProvider(PRODUCTS)).apply_delete(
            _subscription(sub_id="sub_1", status="canceled")
        )

    assert cleared is True
    stored = await _load(session_factory, organization_id)
    assert (stored.stripe_sub, stored.sub_status, stored.plans) == ("", "", None)
    _assert_joint_state(stored)

    untouched = await _load(session_factory, other_id)
    assert untouched.stripe_sub == "sub_2"
    _assert_joint_state(untouched)


@pytest.mark.asyncio
async def test_apply_delete_for_organization_ignores_current_subscription(session_factory) -> None:  # noqa: ANN001
    async with session_factory() as session:
        snapshot = await SubscriptionReconciler(session, _FakeProvider(PRODUCTS))._snapshot(
            _subscription(sub_id="sub_unrelated", status="active")
        )
    organization_id = await _seed(session_factory, **snapshot)
    other_id = await _seed(session_factory, name="Other", stripe_id="cus_2", **snapshot)

    async with session_factory() as session:
        cleared = await SubscriptionReconciler(
            session, _FakeProvider(PRODUCTS)
        ).apply_delete_for_organization(organization_id)

    assert cleared is True
    stored = await _load(session_factory, organization_id)
    assert (stored.stripe_sub, stored.sub_status, stored.plans) == ("", "", None)
    assert (await _load(session_factory, other_id)).stripe_sub == "sub_unrelated"


@pytest.mark.asyncio
async def test_reconciling_same_subscription_twice_is_idempotent(session_factory) -> None:  # noqa: ANN001
    organization_id = await _seed(session_factory)
    subscription = _subscription(status="active")

    async with session_factory() as session:
        reconciler = SubscriptionReconciler(session, _FakeProvider(PRODUCTS))
        await reconciler.apply_create(subscription, organization_id=organization_id)
    first = await _load(session_factory, organization_id)

    async with session_factory() as session:
        await SubscriptionReconciler(session, _FakeProvider(PRODUCTS)).apply_create(subscription)
    second = await _load(session_factory, organization_id)

    assert first.plans == second.plans
    assert (first.stripe_sub, first.sub_status) == (second.stripe_sub, second.sub_status)


@pytest.mark.asyncio
async def test_apply_create_from_stripe_sdk_objects(
    session_factory, monkeypatch: pytest.MonkeyPatch  # noqa: ANN001
) -> None:
    organization_id = await _seed(session_factory)

    def _retrieve_subscription(subscription_id, **kwargs):  # noqa: ANN001, ANN003
        return stripe.Subscription.construct_from(
            {
                "id": subscription_id,
                "object": "subscription",
                "customer": "cus_1",
                "status": "active",
                "items": {
                    "object": "list",
                    "data": [
                        {
                            "id": "si_1",
                            "object": "subscription_item",
                            "subscription": subscription_id,
                            "quantity": 1,
                            "price": {
                                "id": "price_A",
                                "object": "price",
                                "active": True,
                                "unit_amount": 1500,
                                "product": "prod_A",
                            },
                        }
                    ],
                },
            },
            "sk_test_123",
        )

    def _retrieve_product(product_id, **kwargs):  # noqa: ANN001, ANN003
        return stripe.Product.construct_from(
            {"id": product_id, "object": "product", "active": True, "name": "Plan A", "description": None},
            "sk_test_123",
        )

    monkeypatch.setattr(stripe.Subscription, "retrieve", _retrieve_subscription)
    monkeypatch.setattr(stripe.Product, "retrieve", _retrieve_product)
    provider = StripeClient("sk_test_123")

    async with session_factory() as session:
        await SubscriptionReconciler(session, provider).apply_create(provider.retrieve_subscription("sub_1"))

    stored = await _load(session_factory, organization_id)
    assert (stored.stripe_sub, stored.sub_status) == ("sub_1", "active")
    plans = decode_plans(stored.plans)
    assert [(plan.id, plan.si_id, plan.amount) for plan in plans] == [("price_A", "si_1", 1500)]
    assert plans[0].product.name == "Plan A"
