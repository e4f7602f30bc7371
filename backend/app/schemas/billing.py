"""Pydantic v2 response schemas for billing endpoints."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class SubscriptionResponse(BaseModel):
    """A locally mirrored Polar subscription."""

    id: str
    status: str
    product_id: str
    amount: int
    currency: str
    interval: str
    current_period_end: datetime | None
    cancel_at_period_end: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SubscriptionListResponse(BaseModel):
    """All subscriptions of the authenticated user, newest first."""

    customer_id: str | None
    subscriptions: list[SubscriptionResponse]
