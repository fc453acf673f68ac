"""Auth routes: register, login, refresh and current profile."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bookstore.auth.dependencies import get_current_user
from bookstore.auth.jwt_handler import create_access_token, create_refresh_token, verify_token
from bookstore.auth.password import hash_password, verify_password
from bookstore.config import get_settings
from bookstore.database import get_db
from bookstore.errors import AccountDeactivated, Conflict, Unauthorized
from bookstore.models.user import User, UserRole
from bookstore.schemas.user import TokenRefresh, TokenResponse, UserLogin, UserRegister, UserResponse

logger = structlog.get_logger()
router = APIRouter(prefix="/auth", tags=["Authentication"])


def _issue_tokens(user: User) -> TokenResponse:
    return TokenResponse(
        access_token=create_access_token(user.id, user.role.value),
        refresh_token=create_refresh_token(user.id),
    )


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(data: UserRegister, db: AsyncSession = Depends(get_db)):
    """Register a new user and return JWT tokens."""
    email = data.email.lower()
    result = await db.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none():
        raise Conflict("Email already registered")

    result = await db.execute(select(User).where(User.username == data.username))
    if result.scalar_one_or_none():
        raise Conflict("Username already taken")

    role = UserRole.ADMIN if email in get_settings().admin_email_list else UserRole.USER
    user = User(
        email=email,
        username=data.username,
        hashed_password=hash_password(data.password),
        role=role,
    )
    db.add(user)
    await db.flush()

    logger.info("user_registered", user_id=user.id, username=user.username, role=role.value)
    return _issue_tokens(user)


@router.post("/login", response_model=TokenResponse)
async def login(data: UserLogin, db: AsyncSession = Depends(get_db)):
    """Authenticate user and return JWT tokens."""
    result = await db.execute(select(User).where(User.email == data.email.lower()))
    user = result.scalar_one_or_none()

    if not user or not verify_password(data.password, user.hashed_password):
        raise Unauthorized("Invalid credentials")

    if not user.is_active:
        raise AccountDeactivated()

    logger.info("user_login", user_id=user.id)
    return _issue_tokens(user)


@router.post("/refresh", response_model=TokenResponse)
async def refresh_tokens(data: TokenRefresh, db: AsyncSession = Depends(get_db)):
    """Exchange a refresh token for a fresh token pair."""
    payload = verify_token(data.refresh_token)
    if payload is None or payload.get("type") != "refresh":
        raise Unauthorized("Invalid refresh token")

    user = await db.get(User, int(payload["sub"]))
    if not user or not user.is_active:
        raise Unauthorized("User not found or inactive")

    return _issue_tokens(user)


@router.get("/me", response_model=UserResponse)
async def me(current_user: User = Depends(get_current_user)):
    return UserResponse.model_validate(current_user)
