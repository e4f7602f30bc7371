"""StrathLearn — FastAPI application entry point."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.sessions import SessionMiddleware

from app.api.v1.auth import router as auth_router
from app.api.v1.billing import router as billing_router
from app.api.v1.challenges import router as challenges_router
from app.api.v1.profile import router as profile_router
from app.api.v1.webhooks import router as webhooks_router
from app.billing.gate import SubscriptionGateMiddleware
from app.challenges.store import get_challenge_store
from app.config import settings
from app.web.pages import router as pages_router

# Configure root logger so all app.* loggers output to stderr.
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler for startup and shutdown events."""
    # Startup: load challenges eagerly so bad files show up in the boot log
    store = get_challenge_store()
    logger.info("Loaded %d challenge(s)", len(store))
    yield
    # Shutdown: dispose engine connections
    from app.database import engine

    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Code-challenge editor with Polar-backed course subscriptions.",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Middleware: added in reverse execution order (last added runs first on request).
# The gate sits innermost so CORS headers are present on its redirects too.
app.add_middleware(SubscriptionGateMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(SessionMiddleware, secret_key=settings.jwt_secret_key)

# Routers
app.include_router(auth_router)
app.include_router(billing_router)
app.include_router(challenges_router)
app.include_router(profile_router)
app.include_router(webhooks_router)
app.include_router(pages_router)


@app.get("/health", tags=["health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy", "service": settings.app_name}
