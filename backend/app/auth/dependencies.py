"""FastAPI authentication dependencies for route protection."""

from fastapi import Depends, HTTPException, Request, status
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.cookies import access_token_from_request
from app.auth.jwt import decode_token
from app.database import get_db
from app.models.user import User
from app.services.user_service import get_user_by_id


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the caller from the Bearer header or ``access_token`` cookie.

    Raises:
        HTTPException 401: If the token is missing, invalid, expired, of the
            wrong type, or the user no longer exists.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    token = access_token_from_request(request)
    if not token:
        raise credentials_exception

    try:
        payload = decode_token(token)
    except JWTError:
        raise credentials_exception from None

    # Only accept access tokens, not refresh tokens
    if payload.get("type") != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token type",
            headers={"WWW-Authenticate": "Bearer"},
        )

    sub: str | None = payload.get("sub")
    if not sub:
        raise credentials_exception

    user = await get_user_by_id(db, sub)
    if user is None:
        raise credentials_exception

    return user


async def get_current_active_user(
    user: User = Depends(get_current_user),
) -> User:
    """Return the current user only if their account is active.

    Raises:
        HTTPException 403: If the user account is inactive or banned.
    """
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is inactive",
        )
    return user


async def get_optional_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> User | None:
    """Return the active caller, or None for anonymous or unusable credentials.

    For routes that work for everyone but do more for signed-in learners.
    """
    token = access_token_from_request(request)
    if not token:
        return None
    try:
        payload = decode_token(token)
    except JWTError:
        return None
    sub = payload.get("sub")
    if payload.get("type") != "access" or not sub:
        return None
    user = await get_user_by_id(db, sub)
    if user is None or not user.is_active:
        return None
    return user
