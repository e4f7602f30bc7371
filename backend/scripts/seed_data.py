"""Seed the database with a demo learner and a mirrored course subscription.

The subscription row mimics what an ``order.paid`` webhook would write, so
``/api/billing/subscriptions`` has something to show locally. Page access is
still decided by Polar's customer state, not by this row.

Run inside Docker:
    docker compose exec backend python -m scripts.seed_data
"""

import asyncio
import sys
from pathlib import Path

# Add backend to path so imports work when run as a script
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from sqlalchemy import delete, select

from app.auth.passwords import hash_password
from app.database import async_session_factory, engine
from app.models.subscription import Subscription
from app.models.user import User
from app.services.subscription_service import DEFAULTS, utcnow

# ---------------------------------------------------------------------------
# Seed data definitions
# ---------------------------------------------------------------------------

DEMO_USER = {
    "email": "demo@strathlearn.dev",
    "password": "demo1234",
    "name": "Demo Learner",
}

DEMO_CUSTOMER_ID = "cus_demo"

DEMO_SUBSCRIPTION = {
    "id": "sub_demo",
    "product_id": "prod_demo_course",
    "amount": 1500,
    "currency": "usd",
}


async def seed() -> None:
    """Create the demo learner and their subscription.

    Idempotent: an existing demo user is deleted (with subscriptions) and
    re-created.
    """
    async with async_session_factory() as session:
        result = await session.execute(select(User).where(User.email == DEMO_USER["email"]))
        existing_user = result.scalar_one_or_none()

        if existing_user is not None:
            print(f"Demo user '{DEMO_USER['email']}' already exists. Deleting and re-seeding...")
            await session.execute(delete(Subscription).where(Subscription.user_id == existing_user.id))
            await session.execute(delete(User).where(User.id == existing_user.id))
            await session.flush()

        # ------------------------------------------------------------------
        # 1. Create demo user
        # ------------------------------------------------------------------
        user = User(
            email=DEMO_USER["email"],
            hashed_password=hash_password(DEMO_USER["password"]),
            name=DEMO_USER["name"],
            auth_provider="local",
            is_active=True,
            customer_id=DEMO_CUSTOMER_ID,
        )
        session.add(user)
        await session.flush()
        print(f"Created demo user: {user.email} (id={user.id})")

        # ------------------------------------------------------------------
        # 2. Create mirrored subscription
        # ------------------------------------------------------------------
        now = utcnow()
        subscription = Subscription(
            user_id=user.id,
            status=DEFAULTS.status,
            interval=DEFAULTS.interval,
            current_period_end=now + DEFAULTS.period,
            cancel_at_period_end=DEFAULTS.cancel_at_period_end,
            created_at=now,
            updated_at=now,
            **DEMO_SUBSCRIPTION,
        )
        session.add(subscription)
        await session.commit()
        print(f"Created subscription {subscription.id} (ends {subscription.current_period_end:%Y-%m-%d})")

    await engine.dispose()
    print(f"Done. Log in at /api/auth/login with {DEMO_USER['email']} / {DEMO_USER['password']}")


if __name__ == "__main__":
    asyncio.run(seed())
