"""Pydantic models for subscriptions, payments and billing requests."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from conduit.models.enums import Currency


class Subscription(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str | None = None
    billing_customer_id: str | None = None
    billing_subscription_id: str
    price_id: str | None = None
    status: str
    current_period_end: datetime | None = None
    cancel_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class Payment(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    payment_intent_id: str
    amount: int
    currency: str
    status: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class AnalyticsEvent(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str | None = None
    event_type: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = None


class BillingCustomer(BaseModel):
    """Result of find-or-create: ``created`` is False when the customer already existed."""

    id: str
    created: bool


class CreateCheckoutSessionRequest(BaseModel):
    amount: int = Field(..., ge=1)
    currency: Currency
    success_url: str = Field(..., alias="successUrl")
    cancel_url: str = Field(..., alias="cancelUrl")
    customer_id: str | None = Field(None, alias="customerId")

    model_config = ConfigDict(populate_by_name=True)


class CreatePaymentIntentRequest(BaseModel):
    amount: int = Field(..., ge=1)
    currency: Currency
    customer_id: str | None = Field(None, alias="customerId")

    model_config = ConfigDict(populate_by_name=True)


class RefundPaymentRequest(BaseModel):
    payment_intent_id: str = Field(..., min_length=1, alias="paymentIntentId")
    amount: int | None = Field(None, ge=1)
    reason: str | None = None

    model_config = ConfigDict(populate_by_name=True)


class CreateSubscriptionRequest(BaseModel):
    price_id: str = Field(..., min_length=1, alias="priceId")

    model_config = ConfigDict(populate_by_name=True)


class UpdateSubscriptionRequest(BaseModel):
    price_id: str | None = Field(None, alias="priceId")
    cancel_at_period_end: bool | None = Field(None, alias="cancelAtPeriodEnd")

    model_config = ConfigDict(populate_by_name=True)


class PauseSubscriptionRequest(BaseModel):
    resume_at: datetime | None = Field(None, alias="resumeAt")

    model_config = ConfigDict(populate_by_name=True)
