"""Session cookies holding the JWT pair for browser clients."""

from starlette.requests import Request
from starlette.responses import Response

from app.auth.jwt import ACCESS_COOKIE, REFRESH_COOKIE
from app.config import settings


def set_auth_cookies(response: Response, tokens: dict[str, str]) -> None:
    """Attach the access and refresh tokens as httponly cookies."""
    response.set_cookie(
        ACCESS_COOKIE,
        tokens["access_token"],
        max_age=settings.jwt_access_token_expire_minutes * 60,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
    )
    response.set_cookie(
        REFRESH_COOKIE,
        tokens["refresh_token"],
        max_age=settings.jwt_refresh_token_expire_days * 24 * 3600,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
        path="/api/auth",
    )


def clear_auth_cookies(response: Response) -> None:
    response.delete_cookie(ACCESS_COOKIE)
    response.delete_cookie(REFRESH_COOKIE, path="/api/auth")


def access_token_from_request(request: Request) -> str | None:
    """Read the access token from ``Authorization: Bearer`` or the session cookie."""
    header = request.headers.get("authorization", "")
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials.strip()
    return request.cookies.get(ACCESS_COOKIE)
