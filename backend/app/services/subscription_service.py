"""Subscription service — persistence for Polar subscriptions."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.subscription import Subscription
from app.models.user import User
from app.schemas.webhook import OrderPaidEvent, PolarSubscription

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubscriptionDefaults:
    """Values used when an event omits a field on first insert."""

    status: str = "active"
    interval: str = "month"
    period: timedelta = timedelta(days=30)
    cancel_at_period_end: bool = False


DEFAULTS = SubscriptionDefaults()


def utcnow() -> datetime:
    """Current time as naive UTC, matching the DB columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


async def get_subscription(db: AsyncSession, subscription_id: str) -> Subscription | None:
    """Look up a subscription by its Polar ID."""
    result = await db.execute(select(Subscription).where(Subscription.id == subscription_id))
    return result.scalar_one_or_none()


async def list_user_subscriptions(db: AsyncSession, user_id: str) -> list[Subscription]:
    result = await db.execute(
        select(Subscription)
        .where(Subscription.user_id == user_id)
        .order_by(Subscription.created_at.desc())
    )
    return list(result.scalars().all())


async def insert_subscription(
    db: AsyncSession,
    user: User,
    event: OrderPaidEvent,
    now: datetime,
    defaults: SubscriptionDefaults = DEFAULTS,
) -> Subscription:
    """Insert a new row for ``event.subscription``, filling gaps from ``defaults``."""
    sub = event.subscription
    if sub is None:
        raise ValueError("order has no subscription")
    subscription = Subscription(
        id=sub.id,
        user_id=user.id,
        status=sub.status or event.status or defaults.status,
        product_id=event.product_id,
        amount=event.amount,
        currency=event.currency,
        interval=sub.recurring_interval or defaults.interval,
        current_period_end=sub.current_period_end or (now + defaults.period),
        cancel_at_period_end=(
            sub.cancel_at_period_end
            if sub.cancel_at_period_end is not None
            else defaults.cancel_at_period_end
        ),
        created_at=now,
        updated_at=now,
    )
    db.add(subscription)
    await db.flush()
    logger.info("Inserted subscription %s for user %s (status=%s)", sub.id, user.id, subscription.status)
    return subscription


async def apply_subscription_update(
    db: AsyncSession,
    subscription: Subscription,
    sub: PolarSubscription,
    now: datetime,
    order_status: str | None = None,
) -> Subscription:
    """Update the mutable fields of an existing row.

    Only status, period end and the cancel flag change; fields the event
    leaves out keep their stored value. ``order_status`` stands in when the
    subscription itself carries no status.
    """
    status = sub.status or order_status
    if status:
        subscription.status = status
    if sub.current_period_end is not None:
        subscription.current_period_end = sub.current_period_end
    if sub.cancel_at_period_end is not None:
        subscription.cancel_at_period_end = sub.cancel_at_period_end
    subscription.updated_at = now
    await db.flush()
    logger.info(
        "Updated subscription %s: status=%s, cancel_at_period_end=%s",
        subscription.id,
        subscription.status,
        subscription.cancel_at_period_end,
    )
    return subscription


async def upsert_subscription(
    db: AsyncSession,
    user: User,
    event: OrderPaidEvent,
    now: datetime,
) -> tuple[Subscription, bool]:
    """Insert or update keyed on the Polar subscription ID.

    Returns:
        ``(subscription, created)``.
    """
    sub = event.subscription
    if sub is None:
        raise ValueError("order has no subscription")
    existing = await get_subscription(db, sub.id)
    if existing is None:
        return await insert_subscription(db, user, event, now), True
    if existing.user_id != user.id:
        logger.warning(
            "Subscription %s belongs to user %s but order resolved to user %s; keeping owner",
            sub.id,
            existing.user_id,
            user.id,
        )
    return await apply_subscription_update(db, existing, sub, now, event.status), False
