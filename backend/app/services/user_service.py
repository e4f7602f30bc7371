"""User service — lookups and account creation shared by auth and billing."""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.billing.polar_client import POLAR_ERRORS, create_customer
from app.config import settings
from app.models.user import User

logger = logging.getLogger(__name__)


async def get_user_by_id(db: AsyncSession, user_id: str) -> User | None:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def get_user_by_customer_id(db: AsyncSession, customer_id: str) -> User | None:
    result = await db.execute(select(User).where(User.customer_id == customer_id))
    return result.scalars().first()


async def create_user(
    db: AsyncSession,
    *,
    email: str,
    name: str,
    hashed_password: str | None = None,
    auth_provider: str = "local",
    auth_provider_id: str | None = None,
    image: str | None = None,
    email_verified: bool = False,
) -> User:
    """Insert a new user and flush so the generated ID is available."""
    user = User(
        email=email,
        name=name,
        hashed_password=hashed_password,
        auth_provider=auth_provider,
        auth_provider_id=auth_provider_id,
        image=image,
        email_verified=email_verified,
    )
    db.add(user)
    await db.flush()
    logger.info("Created %s user %s (%s)", auth_provider, user.id, email)
    return user


async def find_or_create_oauth_user(
    db: AsyncSession,
    *,
    email: str,
    name: str,
    image: str | None,
    email_verified: bool,
    provider: str,
    provider_id: str,
) -> tuple[User, bool]:
    """Look up a user by email; create if missing, refresh OAuth fields if found.

    Returns:
        ``(user, created)``.
    """
    user = await get_user_by_email(db, email)
    if user is None:
        user = await create_user(
            db,
            email=email,
            name=name,
            auth_provider=provider,
            auth_provider_id=provider_id,
            image=image,
            email_verified=email_verified,
        )
        return user, True

    user.auth_provider = provider
    user.auth_provider_id = provider_id
    if image:
        user.image = image
    if email_verified:
        user.email_verified = True
    await db.flush()
    return user, False


async def link_customer_id(db: AsyncSession, user: User, customer_id: str) -> bool:
    """Point the user at a Polar customer ID.

    Returns:
        True if the stored value changed.
    """
    if user.customer_id == customer_id:
        return False
    previous = user.customer_id
    user.customer_id = customer_id
    await db.flush()
    logger.info(
        "Linked user %s to Polar customer %s (was %s)",
        user.id,
        customer_id,
        previous,
    )
    return True


async def ensure_polar_customer(db: AsyncSession, user: User) -> str | None:
    """Create the user's Polar customer at signup when none is linked yet.

    A Polar outage must not block account creation: failures are logged and
    the link is left to the first ``order.paid`` webhook.
    """
    if user.customer_id:
        return user.customer_id
    if not (settings.polar_create_customer_on_signup and settings.polar_access_token):
        return None
    try:
        customer = await create_customer(email=user.email, name=user.name or user.email, user_id=user.id)
    except POLAR_ERRORS as exc:
        logger.warning("Could not create Polar customer for user %s: %s", user.id, exc)
        return None
    await link_customer_id(db, user, customer.id)
    return customer.id
