"""Auth API router — register, login, refresh, signout, me, GitHub OAuth."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import RedirectResponse
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.cookies import clear_auth_cookies, set_auth_cookies
from app.auth.dependencies import get_current_active_user
from app.auth.jwt import REFRESH_COOKIE, create_token_pair, decode_token
from app.auth.oauth import get_github_user_info, oauth
from app.auth.passwords import hash_password, verify_password
from app.config import settings
from app.database import get_db
from app.models.user import User
from app.schemas.auth import (
    AuthResponse,
    LoginRequest,
    MessageResponse,
    RefreshRequest,
    RegisterRequest,
    TokenResponse,
    UserResponse,
)
from app.services.user_service import (
    create_user,
    ensure_polar_customer,
    find_or_create_oauth_user,
    get_user_by_email,
    get_user_by_id,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _refresh_error(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


# ---------------------------------------------------------------------------
# POST /register
# ---------------------------------------------------------------------------


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(
    body: RegisterRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
) -> AuthResponse:
    """Register a new user with email and password."""
    if await get_user_by_email(db, body.email) is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already registered",
        )

    user = await create_user(
        db,
        email=body.email,
        name=body.name,
        hashed_password=hash_password(body.password),
    )
    await ensure_polar_customer(db, user)
    await db.refresh(user)

    tokens = create_token_pair(user.id)
    set_auth_cookies(response, tokens)

    return AuthResponse(
        user=UserResponse.model_validate(user),
        tokens=TokenResponse(**tokens),
    )


# ---------------------------------------------------------------------------
# POST /login
# ---------------------------------------------------------------------------


@router.post("/login", response_model=AuthResponse)
async def login(
    body: LoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
) -> AuthResponse:
    """Authenticate with email and password."""
    user = await get_user_by_email(db, body.email)

    # Reject: not found, OAuth-only account (no password), or wrong password
    if user is None or user.hashed_password is None or not verify_password(body.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is inactive",
        )

    tokens = create_token_pair(user.id)
    set_auth_cookies(response, tokens)

    return AuthResponse(
        user=UserResponse.model_validate(user),
        tokens=TokenResponse(**tokens),
    )


# ---------------------------------------------------------------------------
# POST /refresh
# ---------------------------------------------------------------------------


@router.post("/refresh", response_model=TokenResponse)
async def refresh(
    request: Request,
    response: Response,
    body: RefreshRequest | None = None,
    db: AsyncSession = Depends(get_db),
) -> TokenResponse:
    """Exchange a refresh token (body or cookie) for a new token pair."""
    refresh_token = (body.refresh_token if body else None) or request.cookies.get(REFRESH_COOKIE)
    if not refresh_token:
        raise _refresh_error("Missing refresh token")

    try:
        payload = decode_token(refresh_token)
    except JWTError:
        raise _refresh_error("Invalid or expired refresh token") from None

    if payload.get("type") != "refresh":
        raise _refresh_error("Invalid token type")

    user_id = payload.get("sub")
    if not user_id:
        raise _refresh_error("Invalid token payload")

    user = await get_user_by_id(db, user_id)
    if user is None or not user.is_active:
        raise _refresh_error("User not found or inactive")

    tokens = create_token_pair(user.id)
    set_auth_cookies(response, tokens)
    return TokenResponse(**tokens)


# ---------------------------------------------------------------------------
# POST /signout, GET /me
# ---------------------------------------------------------------------------


@router.post("/signout", response_model=MessageResponse)
async def signout(response: Response) -> MessageResponse:
    """Drop the session cookies. Tokens already issued stay valid until expiry."""
    clear_auth_cookies(response)
    return MessageResponse(message="Signed out")


@router.get("/me", response_model=UserResponse)
async def me(current_user: User = Depends(get_current_active_user)) -> UserResponse:
    """Return the currently authenticated user's profile."""
    return UserResponse.model_validate(current_user)


# ---------------------------------------------------------------------------
# GitHub OAuth
# ---------------------------------------------------------------------------


@router.get("/github")
async def github_login(request: Request) -> RedirectResponse:
    """Redirect to GitHub's OAuth consent screen."""
    return await oauth.github.authorize_redirect(request, settings.github_redirect_uri)  # type: ignore[return-value]


@router.get("/github/callback")
async def github_callback(request: Request, db: AsyncSession = Depends(get_db)) -> RedirectResponse:
    """Handle the GitHub callback: find or create the user, set cookies, go to the editor."""
    try:
        token = await oauth.github.authorize_access_token(request)
    except Exception as exc:
        logger.warning("GitHub OAuth callback failed: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="GitHub authentication failed. Please try again.",
        ) from None

    user_info = await get_github_user_info(oauth.github, token)
    if not user_info["email"]:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="GitHub account has no verified email address.",
        )

    user, created = await find_or_create_oauth_user(
        db,
        email=user_info["email"],
        name=user_info["name"],
        image=user_info.get("image"),
        email_verified=user_info["email_verified"],
        provider="github",
        provider_id=user_info["provider_id"],
    )
    if created:
        await ensure_polar_customer(db, user)

    redirect = RedirectResponse(url=f"{settings.frontend_url}/challenge", status_code=status.HTTP_303_SEE_OTHER)
    set_auth_cookies(redirect, create_token_pair(user.id))
    return redirect
