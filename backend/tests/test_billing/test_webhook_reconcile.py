"""Tests for order.paid reconciliation (process_polar_webhook) against a real session."""

import asyncio
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import func, select

from app.billing.webhooks import (
    EVENT_HANDLERS,
    ReconcileOutcome,
    process_polar_webhook,
    reconcile_order_paid,
)
from app.models.subscription import Subscription
from app.models.user import User
from app.schemas.webhook import OrderPaidEvent
from app.services.subscription_service import DEFAULTS, utcnow

pytestmark = pytest.mark.asyncio

PERIOD_END_TS = 1893456000  # 2030-01-01T00:00:00Z


def _order_paid(email: str = "a@x.com", **overrides) -> dict:
    """The canonical paid-order payload; ``overrides`` patch ``data``."""
    data = {
        "customer": {"id": "cus_1", "email": email},
        "subscription": {
            "id": "sub_1",
            "status": "active",
            "recurring_interval": "month",
            "current_period_end": PERIOD_END_TS,
        },
        "product_id": "p1",
        "amount": 1000,
        "currency": "usd",
    }
    data.update(overrides)
    return {"type": "order.paid", "data": data}


async def _subscriptions(session_factory) -> list[Subscription]:
    async with session_factory() as s:
        return list((await s.execute(select(Subscription))).scalars().all())


async def _user(session_factory, user_id: str) -> User:
    async with session_factory() as s:
        return (await s.execute(select(User).where(User.id == user_id))).scalar_one()


async def _counts(session_factory) -> tuple[int, int]:
    async with session_factory() as s:
        users = (await s.execute(select(func.count()).select_from(User))).scalar_one()
        subs = (await s.execute(select(func.count()).select_from(Subscription))).scalar_one()
        return users, subs


# ---------------------------------------------------------------------------
# Happy path and redelivery
# ---------------------------------------------------------------------------


class TestOrderPaid:
    async def test_inserts_subscription_and_links_customer(self, session_factory, user_factory) -> None:
        await user_factory(id="u1", email="a@x.com")

        result = await process_polar_webhook(_order_paid(), session_factory)

        assert result.status_code == 200
        assert result.body == {"success": True}

        subs = await _subscriptions(session_factory)
        assert len(subs) == 1
        sub = subs[0]
        assert sub.id == "sub_1"
        assert sub.user_id == "u1"
        assert sub.status == "active"
        assert sub.product_id == "p1"
        assert sub.amount == 1000
        assert sub.currency == "usd"
        assert sub.interval == "month"
        assert sub.current_period_end == datetime(2030, 1, 1)
        assert sub.cancel_at_period_end is False
        assert sub.created_at == sub.updated_at

        user = await _user(session_factory, "u1")
        assert user.customer_id == "cus_1"

    async def test_redelivery_updates_in_place(self, session_factory, user_factory) -> None:
        await user_factory(id="u1", email="a@x.com")
        await process_polar_webhook(_order_paid(), session_factory)
        first = (await _subscriptions(session_factory))[0]

        redelivery = _order_paid(
            subscription={"id": "sub_1", "status": "canceled", "cancel_at_period_end": True},
        )
        result = await process_polar_webhook(redelivery, session_factory)

        assert result.status_code == 200
        subs = await _subscriptions(session_factory)
        assert len(subs) == 1
        sub = subs[0]
        assert sub.status == "canceled"
        assert sub.cancel_at_period_end is True
        # Absent fields keep their stored value
        assert sub.current_period_end == datetime(2030, 1, 1)
        assert sub.interval == "month"
        assert sub.created_at == first.created_at
        assert sub.updated_at >= first.updated_at

    async def test_same_payload_twice_is_idempotent(self, session_factory, user_factory) -> None:
        await user_factory(id="u1", email="a@x.com")
        for _ in range(2):
            result = await process_polar_webhook(_order_paid(), session_factory)
            assert result.status_code == 200

        subs = await _subscriptions(session_factory)
        assert [(s.id, s.status, s.user_id) for s in subs] == [("sub_1", "active", "u1")]

    async def test_defaults_fill_missing_fields_on_insert(self, session_factory, user_factory) -> None:
        await user_factory(id="u1", email="a@x.com")
        before = utcnow()

        await process_polar_webhook(_order_paid(subscription={"id": "sub_2"}), session_factory)

        sub = (await _subscriptions(session_factory))[0]
        assert sub.status == DEFAULTS.status
        assert sub.interval == DEFAULTS.interval
        assert sub.cancel_at_period_end is DEFAULTS.cancel_at_period_end
        expected_end = before + DEFAULTS.period
        assert abs(sub.current_period_end - expected_end) < timedelta(minutes=1)

    async def test_camel_case_payload_accepted(self, session_factory, user_factory) -> None:
        await user_factory(id="u1", email="a@x.com")
        payload = {
            "type": "order.paid",
            "data": {
                "customer": {"id": "cus_9", "email": "a@x.com"},
                "subscription": {
                    "id": "sub_9",
                    "recurringInterval": "year",
                    "currentPeriodEnd": "2031-06-01T12:00:00Z",
                    "cancelAtPeriodEnd": False,
                },
                "productId": "p9",
                "amount": 9900,
                "currency": "eur",
            },
        }

        result = await process_polar_webhook(payload, session_factory)

        assert result.status_code == 200
        sub = (await _subscriptions(session_factory))[0]
        assert sub.interval == "year"
        assert sub.product_id == "p9"
        assert sub.current_period_end == datetime(2031, 6, 1, 12, 0)

    async def test_order_status_used_when_subscription_has_none(self, session_factory, user_factory) -> None:
        await user_factory(id="u1", email="a@x.com")

        result = await process_polar_webhook(
            _order_paid(subscription={"id": "sub_1"}, status="trialing"), session_factory
        )

        assert result.status_code == 200
        assert (await _subscriptions(session_factory))[0].status == "trialing"

    async def test_subscription_status_wins_over_order_status(self, session_factory, user_factory) -> None:
        await user_factory(id="u1", email="a@x.com")

        await process_polar_webhook(_order_paid(status="paid"), session_factory)

        assert (await _subscriptions(session_factory))[0].status == "active"

    async def test_redelivery_falls_back_to_order_status(self, session_factory, user_factory) -> None:
        await user_factory(id="u1", email="a@x.com")
        await process_polar_webhook(_order_paid(), session_factory)

        await process_polar_webhook(
            _order_paid(subscription={"id": "sub_1"}, status="past_due"), session_factory
        )

        sub = (await _subscriptions(session_factory))[0]
        assert sub.status == "past_due"
        assert sub.interval == "month"

    async def test_order_without_subscription_links_customer_only(self, session_factory, user_factory) -> None:
        await user_factory(id="u1", email="a@x.com")
        payload = _order_paid()
        payload["data"].pop("subscription")

        result = await process_polar_webhook(payload, session_factory)

        assert result.status_code == 200
        assert await _subscriptions(session_factory) == []
        assert (await _user(session_factory, "u1")).customer_id == "cus_1"


# ---------------------------------------------------------------------------
# User resolution
# ---------------------------------------------------------------------------


class TestUserResolution:
    async def test_falls_back_to_external_id(self, session_factory, user_factory) -> None:
        await user_factory(id="u7", email="old@x.com")
        payload = _order_paid(customer={"id": "cus_7", "email": "new@x.com", "external_id": "u7"})

        result = await process_polar_webhook(payload, session_factory)

        assert result.body == {"success": True}
        sub = (await _subscriptions(session_factory))[0]
        assert sub.user_id == "u7"
        assert (await _user(session_factory, "u7")).customer_id == "cus_7"

    async def test_email_match_wins_over_external_id(self, session_factory, user_factory) -> None:
        await user_factory(id="by-email", email="a@x.com")
        await user_factory(id="by-external", email="b@x.com")
        payload = _order_paid(customer={"id": "cus_1", "email": "a@x.com", "externalId": "by-external"})

        await process_polar_webhook(payload, session_factory)

        sub = (await _subscriptions(session_factory))[0]
        assert sub.user_id == "by-email"

    async def test_falls_back_to_linked_customer_id(self, session_factory, user_factory) -> None:
        await user_factory(id="u1", email="old@x.com", customer_id="cus_1")

        result = await process_polar_webhook(_order_paid(email="new@x.com"), session_factory)

        assert result.body == {"success": True}
        subs = await _subscriptions(session_factory)
        assert [(s.id, s.user_id) for s in subs] == [("sub_1", "u1")]

    async def test_external_id_wins_over_customer_id(self, session_factory, user_factory) -> None:
        await user_factory(id="linked", email="l@x.com", customer_id="cus_1")
        await user_factory(id="external", email="e@x.com")
        payload = _order_paid(customer={"id": "cus_1", "email": "new@x.com", "external_id": "external"})

        await process_polar_webhook(payload, session_factory)

        assert (await _subscriptions(session_factory))[0].user_id == "external"

    async def test_unknown_customer_acknowledged_without_writes(self, session_factory, user_factory) -> None:
        await user_factory(id="u1", email="someone@x.com")
        before = await _counts(session_factory)

        result = await process_polar_webhook(_order_paid(email="nobody@x.com"), session_factory)

        assert result.status_code == 200
        assert result.body["success"] is True
        assert "message" in result.body
        assert await _counts(session_factory) == before
        assert (await _user(session_factory, "u1")).customer_id is None

    async def test_unknown_external_id_acknowledged(self, session_factory) -> None:
        payload = _order_paid(customer={"id": "cus_1", "email": "ghost@x.com", "external_id": "missing"})

        result = await process_polar_webhook(payload, session_factory)

        assert result.status_code == 200
        assert await _counts(session_factory) == (0, 0)


# ---------------------------------------------------------------------------
# Ignored and malformed events
# ---------------------------------------------------------------------------


class TestIgnoredAndMalformed:
    @pytest.mark.parametrize("event_type", ["order.created", "subscription.updated", "checkout.created"])
    async def test_other_event_types_write_nothing(self, session_factory, user_factory, event_type) -> None:
        await user_factory(id="u1", email="a@x.com")
        payload = _order_paid()
        payload["type"] = event_type

        result = await process_polar_webhook(payload, session_factory)

        assert result.status_code == 200
        assert result.body == {"message": "Event type not handled"}
        assert await _subscriptions(session_factory) == []
        assert (await _user(session_factory, "u1")).customer_id is None

    async def test_missing_customer_email_is_invalid(self, session_factory) -> None:
        payload = _order_paid(customer={"id": "cus_1"})

        result = await process_polar_webhook(payload, session_factory)

        assert result.status_code == 500
        assert result.body["error"] == "Invalid webhook payload"
        assert result.body["details"]

    async def test_negative_amount_is_invalid(self, session_factory) -> None:
        result = await process_polar_webhook(_order_paid(amount=-5), session_factory)
        assert result.status_code == 500
        assert result.body["error"] == "Invalid webhook payload"

    @pytest.mark.parametrize("payload", [None, [], {"data": {}}, {"type": "", "data": {}}, {"type": "order.paid", "data": "x"}])
    async def test_bad_envelope(self, session_factory, payload) -> None:
        result = await process_polar_webhook(payload, session_factory)
        assert result.status_code == 500
        assert result.body["error"] == "Webhook processing error"


# ---------------------------------------------------------------------------
# Transaction behaviour
# ---------------------------------------------------------------------------


class TestAtomicity:
    async def test_failed_user_update_rolls_back_subscription(self, session_factory, user_factory) -> None:
        await user_factory(id="u1", email="a@x.com", customer_id="cus_old")

        with patch(
            "app.billing.webhooks.link_customer_id",
            new_callable=AsyncMock,
            side_effect=RuntimeError("constraint violated"),
        ):
            result = await process_polar_webhook(_order_paid(), session_factory)

        assert result.status_code == 500
        assert result.body["error"] == "Database error"
        assert "constraint violated" in result.body["details"]
        assert await _subscriptions(session_factory) == []
        assert (await _user(session_factory, "u1")).customer_id == "cus_old"

    async def test_timeout_rolls_back(self, session_factory, user_factory) -> None:
        await user_factory(id="u1", email="a@x.com")

        async def slow_handler(db, event):
            await reconcile_order_paid(db, event)
            await asyncio.sleep(10)
            return ReconcileOutcome.APPLIED

        with (
            patch.dict(EVENT_HANDLERS, {"order.paid": slow_handler}),
            patch("app.billing.webhooks.settings.webhook_transaction_timeout_seconds", 0.3),
        ):
            result = await process_polar_webhook(_order_paid(), session_factory)

        assert result.status_code == 500
        assert result.body == {"error": "Database error", "details": "Transaction timed out"}
        assert await _subscriptions(session_factory) == []
        assert (await _user(session_factory, "u1")).customer_id is None


    async def test_rollback_failure_still_reports_error(self, session_factory, user_factory) -> None:
        await user_factory(id="u1", email="a@x.com")

        with (
            patch(
                "app.billing.webhooks.link_customer_id",
                new_callable=AsyncMock,
                side_effect=RuntimeError("statement cancelled"),
            ),
            patch(
                "sqlalchemy.ext.asyncio.AsyncSession.rollback",
                new_callable=AsyncMock,
                side_effect=RuntimeError("connection lost"),
            ) as rollback,
        ):
            result = await process_polar_webhook(_order_paid(), session_factory)

        rollback.assert_awaited_once()
        assert result.status_code == 500
        assert result.body["error"] == "Database error"
        assert "statement cancelled" in result.body["details"]


# ---------------------------------------------------------------------------
# reconcile_order_paid directly
# ---------------------------------------------------------------------------


class TestReconcileOrderPaid:
    async def test_uses_given_clock(self, db_session, user_factory) -> None:
        await user_factory(id="u1", email="a@x.com")
        now = datetime(2029, 5, 1, 8, 30)
        event = OrderPaidEvent.model_validate(_order_paid(subscription={"id": "sub_5"})["data"])

        outcome = await reconcile_order_paid(db_session, event, now=now)

        assert outcome is ReconcileOutcome.APPLIED
        sub = await db_session.get(Subscription, "sub_5")
        assert sub.created_at == now
        assert sub.current_period_end == now + DEFAULTS.period
        await db_session.rollback()

    async def test_unresolved_returns_outcome(self, db_session) -> None:
        event = OrderPaidEvent.model_validate(_order_paid()["data"])
        assert await reconcile_order_paid(db_session, event) is ReconcileOutcome.UNRESOLVED_USER
