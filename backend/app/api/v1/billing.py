"""Billing endpoints — Polar checkout and portal redirects, local subscription view."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_active_user, get_db
from app.billing.polar_client import (
    POLAR_ERRORS,
    create_checkout,
    create_customer_portal_session,
    get_product_id,
)
from app.config import settings
from app.models.user import User
from app.schemas.billing import SubscriptionListResponse, SubscriptionResponse
from app.services.subscription_service import list_user_subscriptions

logger = logging.getLogger(__name__)

router = APIRouter(tags=["billing"])


@router.get("/api/auth/checkout/{slug}")
async def checkout(
    slug: str,
    current_user: User = Depends(get_current_active_user),
) -> RedirectResponse:
    """Start a Polar checkout for the product configured under ``slug``."""
    product_id = get_product_id(slug)
    if product_id is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown checkout product: {slug}",
        )

    success_url = f"{settings.frontend_url}/success?checkout_id={{CHECKOUT_ID}}"
    try:
        session = await create_checkout(
            product_id=product_id,
            success_url=success_url,
            user_id=current_user.id,
            customer_email=current_user.email,
        )
    except POLAR_ERRORS as e:
        logger.error("Polar checkout error for user %s: %s", current_user.id, e)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Could not create checkout session",
        ) from e

    return RedirectResponse(url=session.url, status_code=status.HTTP_303_SEE_OTHER)


@router.get("/api/auth/portal")
async def customer_portal(
    current_user: User = Depends(get_current_active_user),
) -> RedirectResponse:
    """Redirect to the Polar customer portal (payment methods, cancellation, invoices)."""
    try:
        session = await create_customer_portal_session(current_user.id)
    except POLAR_ERRORS as e:
        logger.error("Polar portal error for user %s: %s", current_user.id, e)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Could not open customer portal",
        ) from e

    return RedirectResponse(url=session.customer_portal_url, status_code=status.HTTP_303_SEE_OTHER)


@router.get("/api/billing/subscriptions", response_model=SubscriptionListResponse)
async def list_subscriptions(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> SubscriptionListResponse:
    """Subscriptions mirrored from Polar webhooks for the current user."""
    subscriptions = await list_user_subscriptions(db, current_user.id)
    return SubscriptionListResponse(
        customer_id=current_user.customer_id,
        subscriptions=[SubscriptionResponse.model_validate(s) for s in subscriptions],
    )
