"""Pydantic v2 schemas for inbound Polar webhook payloads.

Polar sends snake_case keys; the better-auth Polar plugin re-emits them in
camelCase. Both spellings are accepted so either sender can be pointed at
the endpoint.
"""

from datetime import datetime, timezone

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


def _alias(snake: str, camel: str) -> AliasChoices:
    return AliasChoices(snake, camel)


class WebhookEnvelope(BaseModel):
    """Outer shape shared by every event: a type tag and an opaque body."""

    model_config = ConfigDict(extra="ignore")

    type: str = Field(..., min_length=1)
    data: dict = Field(default_factory=dict)


class PolarCustomer(BaseModel):
    """The paying customer as Polar knows it."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str = Field(..., min_length=1)
    email: str = Field(..., min_length=1)
    external_id: str | None = Field(default=None, validation_alias=_alias("external_id", "externalId"))


class PolarSubscription(BaseModel):
    """Subscription fields carried on an order; only ``id`` is mandatory."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str = Field(..., min_length=1)
    status: str | None = None
    recurring_interval: str | None = Field(
        default=None, validation_alias=_alias("recurring_interval", "recurringInterval")
    )
    # Unix seconds or ISO-8601; pydantic treats very large numbers as milliseconds.
    current_period_end: datetime | None = Field(
        default=None, validation_alias=_alias("current_period_end", "currentPeriodEnd")
    )
    cancel_at_period_end: bool | None = Field(
        default=None, validation_alias=_alias("cancel_at_period_end", "cancelAtPeriodEnd")
    )

    @field_validator("current_period_end")
    @classmethod
    def _to_naive_utc(cls, value: datetime | None) -> datetime | None:
        """Store naive UTC to match the DB column."""
        if value is None or value.tzinfo is None:
            return value
        return value.astimezone(timezone.utc).replace(tzinfo=None)


class OrderPaidEvent(BaseModel):
    """Normalized ``order.paid`` body; the only input reconciliation accepts."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    customer: PolarCustomer
    subscription: PolarSubscription | None = None
    product_id: str = Field(..., min_length=1, validation_alias=_alias("product_id", "productId"))
    amount: int = Field(..., ge=0)
    currency: str = Field(..., min_length=1)
    status: str | None = None
