from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class Product(BaseModel):
    id: str
    active: bool = False
    name: str = ""
    description: str = ""


class Plan(BaseModel):
    id: str
    si_id: str
    sub_id: str
    active: bool = False
    quantity: int = 0
    amount: int = 0
    product: Product


class PlanPriceResponse(BaseModel):
    id: str
    nickname: str
    active: bool
    currency: str
    unit_amount: int | None = None
    interval: str | None = None
    interval_count: int | None = None
    product: Product


class PublishableConfigResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    publishable_key: str = Field(alias="publishableKey")


class SubscriptionCreateRequest(BaseModel):
    plan: str = Field(min_length=1, max_length=64)


class SubscriptionUpdateRequest(BaseModel):
    plan: str = Field(min_length=1, max_length=64)


class SubscriptionResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    subscription_id: str = Field(alias="subscriptionId")
    subscription_status: str = Field(alias="subscriptionStatus")
    client_secret: str = Field(default="", alias="clientSecret")


class RetryInvoiceRequest(BaseModel):
    payment_method_id: str = Field(min_length=1, max_length=255)
    invoice_id: str = Field(min_length=1, max_length=255)


class InvoiceResponse(BaseModel):
    id: str
    status: str | None = None
    client_secret: str = ""


class PaymentMethodResponse(BaseModel):
    id: str
    type: str
    brand: str | None = None
    last4: str | None = None
    exp_month: int | None = None
    exp_year: int | None = None


class BillingWebhookResponse(BaseModel):
    received: bool
    event_type: str
    handled: bool
