"""JWT token creation and verification."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from bookstore.config import get_settings


def _encode(payload: dict) -> str:
    settings = get_settings()
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def create_access_token(user_id: int, role: str) -> str:
    now = datetime.now(timezone.utc)
    return _encode(
        {
            "sub": str(user_id),
            "role": role,
            "type": "access",
            "exp": now + timedelta(minutes=get_settings().access_token_expire_minutes),
            "iat": now,
            "jti": str(uuid.uuid4()),
        }
    )


def create_refresh_token(user_id: int) -> str:
    now = datetime.now(timezone.utc)
    return _encode(
        {
            "sub": str(user_id),
            "type": "refresh",
            "exp": now + timedelta(days=get_settings().refresh_token_expire_days),
            "iat": now,
            "jti": str(uuid.uuid4()),
        }
    )


def verify_token(token: str) -> dict | None:
    """Verify and decode a JWT token. Returns payload or None."""
    settings = get_settings()
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None
