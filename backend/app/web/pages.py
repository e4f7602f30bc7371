"""Server-rendered pages — landing, challenge editor, checkout success.

Templates autoescape, so challenge text, program output and judge errors are
rendered as text, never markup.
"""

import logging
from pathlib import Path

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_challenge_store, get_db, get_judge, get_optional_user
from app.api.v1.challenges import all_passed
from app.challenges.store import ChallengeStore
from app.config import settings
from app.judge.judge0 import Judge0Runner
from app.models.user import User
from app.services.submission_service import record_submission

logger = logging.getLogger(__name__)

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))

router = APIRouter(tags=["pages"], include_in_schema=False)


def _editor_context(store: ChallengeStore, challenge_id: str | None) -> dict:
    """Selector entries plus the requested challenge (None if the ID is unknown)."""
    selected_id = challenge_id or store.default_id(settings.default_challenge_id)
    return {
        "summaries": list(store.summaries().values()),
        "challenge": store.get(selected_id) if selected_id else None,
        "requested_id": challenge_id,
        "code": None,
        "results": None,
        "success": False,
    }


@router.get("/", response_class=HTMLResponse)
async def index(request: Request) -> HTMLResponse:
    return templates.TemplateResponse(
        request,
        "index.html",
        {"app_name": settings.app_name, "checkout_path": settings.checkout_path},
    )


@router.get("/challenge", response_class=HTMLResponse)
async def challenge_page(
    request: Request,
    id: str | None = None,
    store: ChallengeStore = Depends(get_challenge_store),
) -> HTMLResponse:
    """Editor page for one challenge, with the selector listing all of them."""
    context = _editor_context(store, id)
    status_code = 404 if context["challenge"] is None else 200
    return templates.TemplateResponse(request, "challenge.html", context, status_code=status_code)


@router.post("/challenge/submit", response_class=HTMLResponse)
async def submit_page(
    request: Request,
    challenge_id: str = Form(...),
    code: str = Form(...),
    store: ChallengeStore = Depends(get_challenge_store),
    judge: Judge0Runner = Depends(get_judge),
    db: AsyncSession = Depends(get_db),
    user: User | None = Depends(get_optional_user),
) -> HTMLResponse:
    """Judge the posted code and re-render the editor with per-test results."""
    context = _editor_context(store, challenge_id)
    challenge = context["challenge"]
    if challenge is None:
        return templates.TemplateResponse(request, "challenge.html", context, status_code=404)

    results = await judge.run_tests(code, challenge)
    if user is not None:
        await record_submission(
            db,
            user_id=user.id,
            challenge_id=challenge.id,
            code=code,
            language_id=judge.language_id,
            results=results,
        )
    context.update(code=code, results=results, success=all_passed(results))
    return templates.TemplateResponse(request, "challenge.html", context)


@router.get("/success", response_class=HTMLResponse)
async def checkout_success(
    request: Request,
    checkout_id: str | None = None,
    customer_session_token: str | None = None,
) -> HTMLResponse:
    """Landing page after Polar checkout; access follows once the webhook lands."""
    if customer_session_token:
        logger.info("Returned from Polar with a customer session token")
    return templates.TemplateResponse(request, "success.html", {"checkout_id": checkout_id})
