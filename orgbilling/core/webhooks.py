from __future__ import annotations

import logging
from collections.abc import Mapping
from enum import Enum
from typing import Any

from orgbilling.core.reconciler import SubscriptionReconciler

logger = logging.getLogger(__name__)


class EventKind(str, Enum):
    CHECKOUT_COMPLETED = "checkout_completed"
    SUBSCRIPTION_CREATED = "subscription_created"
    SUBSCRIPTION_UPDATED = "subscription_updated"
    SUBSCRIPTION_DELETED = "subscription_deleted"
    IGNORED = "ignored"


# Every status lands on the same refresh path.
SUBSCRIPTION_UPDATE_EVENTS = frozenset(
    {
        "customer.subscription.updated",
        "customer.subscription.paused",
        "customer.subscription.resumed",
        "customer.subscription.pending_update_applied",
        "customer.subscription.pending_update_expired",
        "customer.subscription.trial_will_end",
    }
)


def classify_event(event_type: str) -> EventKind:
    if event_type == "checkout.session.completed":
        return EventKind.CHECKOUT_COMPLETED
    if event_type == "customer.subscription.created":
        return EventKind.SUBSCRIPTION_CREATED
    if event_type == "customer.subscription.deleted":
        return EventKind.SUBSCRIPTION_DELETED
    if event_type in SUBSCRIPTION_UPDATE_EVENTS:
        return EventKind.SUBSCRIPTION_UPDATED
    return EventKind.IGNORED


class WebhookDispatcher:
    """Routes verified Stripe events to the reconciler.

    Reconciliation failures are logged and swallowed: Stripe only needs a
    quick acknowledgement and redelivers on its own schedule.
    """

    def __init__(self, reconciler: SubscriptionReconciler) -> None:
        self.reconciler = reconciler

    async def dispatch(self, event: Mapping[str, Any]) -> bool:
        event_type = event.get("type") or "unknown"
        kind = classify_event(event_type)
        if kind is EventKind.IGNORED:
            logger.debug("Ignoring webhook event type=%s", event_type)
            return False

        data_object = (event.get("data") or {}).get("object") or {}

        if kind is EventKind.CHECKOUT_COMPLETED:
            logger.info(
                "Checkout completed customer=%s session=%s",
                data_object.get("customer"),
                data_object.get("id"),
            )
            return True

        try:
            if kind is EventKind.SUBSCRIPTION_CREATED:
                await self.reconciler.apply_create(data_object)
            elif kind is EventKind.SUBSCRIPTION_UPDATED:
                await self.reconciler.apply_update(data_object)
            else:
                await self.reconciler.apply_delete(data_object)
        except Exception:
            logger.exception(
                "Webhook reconciliation failed type=%s subscription=%s",
                event_type,
                data_object.get("id"),
            )
            return False

        return True
