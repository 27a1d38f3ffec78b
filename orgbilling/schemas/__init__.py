from orgbilling.schemas.billing import (
    BillingWebhookResponse,
    InvoiceResponse,
    PaymentMethodResponse,
    Plan,
    PlanPriceResponse,
    Product,
    PublishableConfigResponse,
    RetryInvoiceRequest,
    SubscriptionCreateRequest,
    SubscriptionResponse,
    SubscriptionUpdateRequest,
)
from orgbilling.schemas.organization import OrganizationCreateRequest, OrganizationResponse

__all__ = [
    "Product",
    "Plan",
    "PlanPriceResponse",
    "PublishableConfigResponse",
    "SubscriptionCreateRequest",
    "SubscriptionUpdateRequest",
    "SubscriptionResponse",
    "RetryInvoiceRequest",
    "InvoiceResponse",
    "PaymentMethodResponse",
    "BillingWebhookResponse",
    "OrganizationCreateRequest",
    "OrganizationResponse",
]
