"""
Redis-backed sliding window rate limiter (application level).

- per-IP limit for every request, including anonymous catalog browsing
- additional per-user limit when a valid access token is presented

Uses Redis sorted sets for precise sliding window counting. When Redis is
unreachable the limiter fails open.
"""

from __future__ import annotations

import time

import redis.asyncio as redis
import structlog
from fastapi import Request, status
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse, Response

from bookstore.auth.jwt_handler import verify_token
from bookstore.config import get_settings

logger = structlog.get_logger()

EXEMPT_PATHS = frozenset({"/health", "/live", "/ready", "/metrics"})

_redis_client: redis.Redis | None = None


async def get_redis() -> redis.Redis:
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(get_settings().redis_dsn, decode_responses=True)
    return _redis_client


async def close_redis() -> None:
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None


def _too_many(detail: str, retry_after: int) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={"detail": detail, "retry_after": retry_after},
        headers={"Retry-After": str(retry_after)},
    )


class RateLimiterMiddleware(BaseHTTPMiddleware):
    def __init__(self, app):
        super().__init__(app)
        settings = get_settings()
        self.per_user_limit = settings.rate_limit_per_user
        self.per_ip_limit = settings.rate_limit_per_ip
        self.window_seconds = settings.rate_limit_window_seconds

    async def _check_rate_limit(self, key: str, limit: int) -> tuple[bool, int]:
        """Returns (allowed, remaining) for the window ending now."""
        try:
            r = await get_redis()
            now = time.time()
            pipe = r.pipeline()
            pipe.zremrangebyscore(key, 0, now - self.window_seconds)
            pipe.zcard(key)
            pipe.zadd(key, {f"{now}": now})
            pipe.expire(key, self.window_seconds + 1)
            current_count = (await pipe.execute())[1]
        except (redis.RedisError, OSError):
            logger.warning("rate_limiter_redis_error", key=key)
            return True, limit

        if current_count >= limit:
            return False, 0
        return True, max(limit - current_count - 1, 0)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path in EXEMPT_PATHS:
            return await call_next(request)

        client_ip = request.headers.get("X-Real-IP", request.client.host if request.client else "unknown")
        ip_allowed, ip_remaining = await self._check_rate_limit(f"ratelimit:ip:{client_ip}", self.per_ip_limit)
        if not ip_allowed:
            logger.info("rate_limited", scope="ip", client_ip=client_ip)
            return _too_many("Too many requests from this IP", self.window_seconds)

        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            payload = verify_token(auth_header.split(" ", 1)[1])
            if payload and payload.get("type") == "access":
                user_key = f"ratelimit:user:{payload['sub']}"
                user_allowed, _ = await self._check_rate_limit(user_key, self.per_user_limit)
                if not user_allowed:
                    logger.info("rate_limited", scope="user", user_id=payload["sub"])
                    return _too_many("Too many requests, user rate limit exceeded", self.window_seconds)

        response = await call_next(request)
        response.headers["X-RateLimit-Remaining-IP"] = str(ip_remaining)
        return response
