"""Polar webhook processing — reconcile paid orders into user/subscription rows.

``process_polar_webhook`` is transport-independent: it takes the decoded
payload and a session factory and returns a ``WebhookResult`` that the HTTP
layer turns into a response. It never raises.
"""

import asyncio
import enum
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import settings
from app.models.user import User
from app.schemas.webhook import OrderPaidEvent, WebhookEnvelope
from app.services.subscription_service import upsert_subscription, utcnow
from app.services.user_service import (
    get_user_by_customer_id,
    get_user_by_email,
    get_user_by_id,
    link_customer_id,
)

logger = logging.getLogger(__name__)


class ReconcileOutcome(enum.Enum):
    APPLIED = "applied"
    UNRESOLVED_USER = "unresolved_user"


@dataclass
class WebhookResult:
    """Status code and JSON body for the webhook sender."""

    status_code: int
    body: dict[str, Any] = field(default_factory=dict)


async def resolve_user(db: AsyncSession, event: OrderPaidEvent) -> User | None:
    """Find the local user for an order.

    Tried in order: customer email, Polar external ID (our user ID), and the
    Polar customer ID already linked to a user.
    """
    customer = event.customer
    user = await get_user_by_email(db, customer.email)
    if user is None and customer.external_id:
        user = await get_user_by_id(db, customer.external_id)
    if user is None:
        user = await get_user_by_customer_id(db, customer.id)
    return user


async def reconcile_order_paid(
    db: AsyncSession,
    event: OrderPaidEvent,
    now: datetime | None = None,
) -> ReconcileOutcome:
    """Apply a paid order to the local tables.

    Upserts the subscription (when the order carries one) and then points
    ``user.customer_id`` at the Polar customer. Runs inside the caller's
    transaction; nothing is committed here.
    """
    now = now or utcnow()

    user = await resolve_user(db, event)
    if user is None:
        logger.warning(
            "No user for Polar customer %s (email=%s, external_id=%s); order acknowledged without changes",
            event.customer.id,
            event.customer.email,
            event.customer.external_id,
        )
        return ReconcileOutcome.UNRESOLVED_USER

    if event.subscription is not None:
        _, created = await upsert_subscription(db, user, event, now)
        logger.info(
            "%s subscription %s for user %s",
            "Created" if created else "Updated",
            event.subscription.id,
            user.id,
        )
    else:
        logger.info("Order for user %s carries no subscription; linking customer only", user.id)

    await link_customer_id(db, user, event.customer.id)
    return ReconcileOutcome.APPLIED


# Map event types to handler functions
EVENT_HANDLERS: dict[str, Callable[[AsyncSession, OrderPaidEvent], Awaitable[ReconcileOutcome]]] = {
    "order.paid": reconcile_order_paid,
}


async def _safe_rollback(db: AsyncSession) -> None:
    """Roll back, logging instead of raising if the connection is already gone."""
    try:
        await db.rollback()
    except Exception:
        logger.exception("Rollback failed after webhook error")


def _error(message: str, exc: BaseException | str) -> WebhookResult:
    details = exc if isinstance(exc, str) else (str(exc) or type(exc).__name__)
    return WebhookResult(status_code=500, body={"error": message, "details": details})


async def process_polar_webhook(
    payload: Any,
    session_factory: async_sessionmaker[AsyncSession],
) -> WebhookResult:
    """Validate, dispatch and commit a single webhook delivery."""
    try:
        envelope = WebhookEnvelope.model_validate(payload)
    except ValidationError as exc:
        logger.warning("Rejected webhook with malformed envelope: %s", exc)
        return _error("Webhook processing error", exc)

    logger.info("Processing Polar webhook: %s", envelope.type)

    handler = EVENT_HANDLERS.get(envelope.type)
    if handler is None:
        logger.debug("Unhandled webhook event type: %s", envelope.type)
        return WebhookResult(status_code=200, body={"message": "Event type not handled"})

    try:
        event = OrderPaidEvent.model_validate(envelope.data)
    except ValidationError as exc:
        logger.warning("Rejected %s webhook with invalid data: %s", envelope.type, exc)
        return _error("Invalid webhook payload", exc)

    async with session_factory() as db:
        try:
            outcome = await asyncio.wait_for(
                handler(db, event),
                timeout=settings.webhook_transaction_timeout_seconds,
            )
            await db.commit()
        except asyncio.TimeoutError:
            await _safe_rollback(db)
            logger.error(
                "Webhook %s for customer %s exceeded %.1fs; rolled back",
                envelope.type,
                event.customer.id,
                settings.webhook_transaction_timeout_seconds,
            )
            return _error("Database error", "Transaction timed out")
        except Exception as exc:
            await _safe_rollback(db)
            logger.exception("Error processing webhook %s for customer %s", envelope.type, event.customer.id)
            return _error("Database error", exc)

    if outcome is ReconcileOutcome.UNRESOLVED_USER:
        return WebhookResult(
            status_code=200,
            body={"success": True, "message": "No matching user; event acknowledged"},
        )
    return WebhookResult(status_code=200, body={"success": True})
