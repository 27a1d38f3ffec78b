"""Thin wrapper around the Stripe SDK.

Every call goes through :meth:`StripeClient._call`, which turns SDK failures
into :class:`ProviderError` so that nothing above this module handles
``stripe`` exceptions directly.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

import stripe

from orgbilling.core.errors import AuthError, ProviderError

logger = logging.getLogger(__name__)


def _plain(value: Any) -> Any:
    # Callers only ever see plain dicts, never StripeObject.
    if isinstance(value, stripe.StripeObject):
        return value.to_dict(recursive=True)
    return value


class StripeClient:
    def __init__(
        self,
        secret_key: str,
        *,
        webhook_secret: str = "",
        api_version: str = "",
    ) -> None:
        if not secret_key:
            raise ProviderError("STRIPE_SECRET_KEY is not configured")
        stripe.api_key = secret_key
        if api_version:
            stripe.api_version = api_version
        self._webhook_secret = webhook_secret

    def _call(self, operation: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        try:
            return _plain(fn(*args, **kwargs))
        except stripe.StripeError as exc:
            message = exc.user_message or str(exc)
            logger.warning("Stripe %s failed code=%s: %s", operation, exc.code, message)
            raise ProviderError(message, code=exc.code) from exc

    # Webhooks

    def construct_event(self, payload: bytes, signature: str | None) -> Any:
        if not self._webhook_secret:
            raise AuthError("STRIPE_WEBHOOK_SECRET is not configured", status_code=500)
        if not signature:
            raise AuthError("Missing Stripe signature")
        try:
            event = stripe.Webhook.construct_event(payload, signature, self._webhook_secret)
        except ValueError as exc:
            raise AuthError("Invalid webhook payload") from exc
        except stripe.SignatureVerificationError as exc:
            raise AuthError(f"Invalid Stripe signature: {exc}") from exc
        return _plain(event)

    # Customers & payment methods

    def create_customer(self, *, name: str, email: str) -> Any:
        return self._call("customer.create", stripe.Customer.create, name=name, email=email)

    def first_payment_method(self, customer_id: str) -> Any | None:
        result = self._call(
            "payment_method.list", stripe.PaymentMethod.list, customer=customer_id, limit=1
        )
        data = result.get("data") or []
        return data[0] if data else None

    def attach_payment_method(self, payment_method_id: str, customer_id: str) -> Any:
        return self._call(
            "payment_method.attach",
            stripe.PaymentMethod.attach,
            payment_method_id,
            customer=customer_id,
        )

    def set_default_payment_method(self, customer_id: str, payment_method_id: str) -> Any:
        return self._call(
            "customer.modify",
            stripe.Customer.modify,
            customer_id,
            invoice_settings={"default_payment_method": payment_method_id},
        )

    # Catalog

    def retrieve_price(self, price_id: str) -> Any:
        return self._call("price.retrieve", stripe.Price.retrieve, price_id, expand=["product"])

    def retrieve_product(self, product_id: str) -> Any:
        return self._call("product.retrieve", stripe.Product.retrieve, product_id)

    # Subscriptions & invoices

    def create_subscription(self, *, customer_id: str, price_id: str) -> Any:
        return self._call(
            "subscription.create",
            stripe.Subscription.create,
            customer=customer_id,
            items=[{"price": price_id}],
            payment_behavior="default_incomplete",
            payment_settings={"save_default_payment_method": "on_subscription"},
            expand=["latest_invoice.confirmation_secret"],
        )

    def retrieve_subscription(self, subscription_id: str) -> Any:
        return self._call(
            "subscription.retrieve",
            stripe.Subscription.retrieve,
            subscription_id,
            expand=["latest_invoice.confirmation_secret"],
        )

    def cancel_subscription(self, subscription_id: str) -> Any:
        return self._call("subscription.cancel", stripe.Subscription.cancel, subscription_id)

    def change_subscription_price(self, subscription_id: str, *, item_id: str, price_id: str) -> Any:
        return self._call(
            "subscription.modify",
            stripe.Subscription.modify,
            subscription_id,
            cancel_at_period_end=False,
            items=[{"id": item_id, "price": price_id}],
        )

    def retrieve_invoice(self, invoice_id: str) -> Any:
        return self._call(
            "invoice.retrieve", stripe.Invoice.retrieve, invoice_id, expand=["confirmation_secret"]
        )
