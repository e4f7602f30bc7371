"""Polar webhook endpoint — verifies, decodes and hands off to the reconciler."""

import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.api.deps import get_session_factory
from app.billing.signature import WebhookVerificationError, verify_polar_signature
from app.billing.webhooks import process_polar_webhook

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhook", tags=["webhooks"])


@router.post("/polar")
async def polar_webhook(
    request: Request,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> JSONResponse:
    """Receive a Polar event and reconcile it into the local tables."""
    # Raw bytes are required for signature verification
    payload = await request.body()

    try:
        verify_polar_signature(payload, request.headers)
    except WebhookVerificationError as e:
        logger.warning("Polar webhook signature verification failed: %s", e)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid signature",
        ) from e

    try:
        data = json.loads(payload)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.warning("Polar webhook body is not JSON")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Error processing webhook", "details": str(e)},
        )

    result = await process_polar_webhook(data, session_factory)
    return JSONResponse(status_code=result.status_code, content=result.body)
