"""FastAPI dependencies for authentication."""

from __future__ import annotations

from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from bookstore.auth.jwt_handler import verify_token
from bookstore.database import get_db
from bookstore.errors import Unauthorized
from bookstore.models.user import User

# auto_error=False: a missing header is a 401 from us, not Starlette's 403
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the bearer token to an active user account."""
    if credentials is None:
        raise Unauthorized("No token, authorization denied")

    payload = verify_token(credentials.credentials)
    if payload is None or payload.get("type") != "access":
        raise Unauthorized()

    try:
        user_id = int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise Unauthorized()

    user = await db.get(User, user_id)
    if user is None or not user.is_active:
        raise Unauthorized()
    return user
