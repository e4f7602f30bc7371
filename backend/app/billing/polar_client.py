"""Async Polar API wrapper for StrathLearn."""

import logging

import httpx
from polar_sdk import Polar, models

from app.config import settings

logger = logging.getLogger(__name__)

# Raised by polar_sdk for API errors, plus transport failures underneath it
POLAR_ERRORS = (models.SDKError, models.HTTPValidationError, httpx.HTTPError)


def get_polar_client() -> Polar:
    """Create a Polar client for the configured server (sandbox or production)."""
    return Polar(
        access_token=settings.polar_access_token,
        server=settings.polar_server,
    )


def get_product_id(slug: str) -> str | None:
    """Map a checkout slug (e.g. ``course``) to its configured Polar product ID."""
    return settings.polar_products.get(slug) or None


async def create_customer(email: str, name: str, user_id: str):
    """Create a Polar customer whose external ID is the local user ID."""
    client = get_polar_client()
    logger.info("Creating Polar customer for user %s (%s)", user_id, email)
    customer = await client.customers.create_async(
        request={
            "email": email,
            "name": name,
            "external_id": user_id,
        }
    )
    logger.info("Created Polar customer %s for user %s", customer.id, user_id)
    return customer


async def get_customer_state(user_id: str):
    """Fetch the customer state (including active subscriptions) by external ID."""
    client = get_polar_client()
    return await client.customers.get_state_external_async(external_id=user_id)


async def has_active_subscription(user_id: str) -> bool:
    """Return True if Polar reports at least one active subscription for the user.

    Errors from Polar propagate; callers choose their own failure policy.
    """
    state = await get_customer_state(user_id)
    active = state.active_subscriptions or []
    return any(sub.status == "active" for sub in active)


async def create_checkout(
    product_id: str,
    success_url: str,
    user_id: str,
    customer_email: str,
):
    """Create a Polar checkout session tied to the local user."""
    client = get_polar_client()
    logger.info("Creating checkout for user %s, product %s", user_id, product_id)
    return await client.checkouts.create_async(
        request={
            "products": [product_id],
            "success_url": success_url,
            "external_customer_id": user_id,
            "customer_email": customer_email,
        }
    )


async def create_customer_portal_session(user_id: str):
    """Create a Polar customer session whose portal URL lets the user self-serve."""
    client = get_polar_client()
    logger.info("Creating customer portal session for user %s", user_id)
    return await client.customer_sessions.create_async(
        request={"external_customer_id": user_id}
    )
