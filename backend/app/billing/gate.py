"""Session/subscription gate — decides per request whether to serve or redirect.

States::

    Unauthenticated --login--> Authenticated (unchecked)
        --Polar lookup--> Subscribed   -> allowed
                       -> Unsubscribed -> redirect to checkout
                       -> lookup error -> redirect to checkout (fail closed)
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response

from app.auth.cookies import access_token_from_request
from app.auth.jwt import user_id_from_access_token
from app.billing.polar_client import has_active_subscription
from app.config import settings

logger = logging.getLogger(__name__)

SubscriptionLookup = Callable[[str], Awaitable[bool]]


@dataclass(frozen=True)
class GateDecision:
    """``redirect_to`` is None when the request may proceed."""

    redirect_to: str | None = None
    reason: str = "allowed"

    @property
    def allowed(self) -> bool:
        return self.redirect_to is None


def is_public_path(path: str, prefixes: list[str] | None = None) -> bool:
    """True for paths that bypass the gate (auth, API, webhooks, success page)."""
    prefixes = settings.public_path_prefixes if prefixes is None else prefixes
    return any(path.startswith(prefix) for prefix in prefixes)


async def evaluate_request(
    path: str,
    user_id: str | None,
    lookup: SubscriptionLookup,
    checkout_path: str | None = None,
) -> GateDecision:
    """Classify a request given the resolved user (None if no valid session)."""
    checkout_path = checkout_path or settings.checkout_path

    if is_public_path(path):
        return GateDecision(reason="public")

    if user_id is None:
        if path == "/":
            return GateDecision(reason="anonymous-root")
        return GateDecision(redirect_to="/", reason="unauthenticated")

    try:
        subscribed = await lookup(user_id)
    except Exception:
        logger.exception("Subscription lookup failed for user %s; treating as unsubscribed", user_id)
        return GateDecision(redirect_to=checkout_path, reason="lookup-error")

    if not subscribed:
        return GateDecision(redirect_to=checkout_path, reason="unsubscribed")
    return GateDecision(reason="subscribed")


class SubscriptionGateMiddleware(BaseHTTPMiddleware):
    """Starlette adapter around :func:`evaluate_request`."""

    def __init__(self, app, lookup: SubscriptionLookup | None = None) -> None:
        super().__init__(app)
        self._lookup = lookup

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        if is_public_path(path):
            return await call_next(request)

        user_id = user_id_from_access_token(access_token_from_request(request))
        # Resolved at call time so tests can patch the module attribute.
        lookup = self._lookup or has_active_subscription
        decision = await evaluate_request(path, user_id, lookup)

        if not decision.allowed:
            logger.info("Gate redirect %s -> %s (%s)", path, decision.redirect_to, decision.reason)
            return RedirectResponse(url=decision.redirect_to, status_code=303)
        return await call_next(request)
