"""
FastAPI application: the main entrypoint for the bookstore catalog service.

Features:
- CORS restrictions
- Redis rate limiting middleware
- Prometheus metrics endpoint
- Structured JSON logging
- Catalog errors mapped to HTTP responses
- Health / readiness / liveness probes
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import Any, Iterable

import pydantic
import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest
from sqlalchemy import text

from bookstore.config import get_settings
from bookstore.errors import CatalogError, InternalError
from bookstore.logging_config import setup_logging
from bookstore.metrics import REQUEST_COUNT, REQUEST_LATENCY
from bookstore.middleware.rate_limiter import RateLimiterMiddleware, close_redis, get_redis
from bookstore.routers import auth, books

settings = get_settings()
setup_logging(settings.log_level, settings.log_format)
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and graceful shutdown."""
    logger.info("bookstore_starting", environment=settings.environment)

    # Run DB table creation on first start (dev convenience)
    if settings.environment == "development":
        from bookstore.database import Base, engine
        # Import all models so Base.metadata has them registered
        from bookstore.models import book, review, user  # noqa: F401

        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("database_tables_created")

    yield

    logger.info("bookstore_shutting_down")
    await close_redis()
    from bookstore.database import engine

    await engine.dispose()


app = FastAPI(
    title="Bookstore Catalog",
    description="Book catalog with listings, search, cover images and reader reviews",
    version="1.0.0",
    root_path="/api",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# ── CORS ──
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Rate Limiting ──
if settings.rate_limit_enabled:
    app.add_middleware(RateLimiterMiddleware)


# ── Request metrics middleware ──
@app.middleware("http")
async def metrics_middleware(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    duration = time.time() - start

    # Route template keeps label cardinality bounded (/books/{book_id})
    route = request.scope.get("route")
    endpoint = getattr(route, "path", request.url.path)
    REQUEST_COUNT.labels(
        method=request.method,
        endpoint=endpoint,
        status=response.status_code,
    ).inc()
    REQUEST_LATENCY.labels(
        method=request.method,
        endpoint=endpoint,
    ).observe(duration)

    return response


# ── Error handling ──
def _error_list(errors: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    return [
        {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in errors
    ]


@app.exception_handler(CatalogError)
async def catalog_error_handler(request: Request, exc: CatalogError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message}, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"detail": "Validation failed", "errors": _error_list(exc.errors())},
    )


@app.exception_handler(pydantic.ValidationError)
async def model_validation_handler(request: Request, exc: pydantic.ValidationError):
    return JSONResponse(
        status_code=400,
        content={"detail": "Validation failed", "errors": _error_list(exc.errors(include_url=False))},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("unhandled_error", method=request.method, path=request.url.path)
    error = InternalError()
    return JSONResponse(status_code=error.status_code, content={"detail": error.message})


# ── Routers ──
app.include_router(auth.router)
app.include_router(books.router)


# ── Health / Readiness / Liveness ──
@app.get("/health", tags=["Health"])
async def health():
    return {"status": "healthy", "service": "bookstore"}


@app.get("/ready", tags=["Health"])
async def readiness():
    """Readiness probe: checks DB and Redis connectivity."""
    checks = {}
    try:
        from bookstore.database import engine
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception:
        checks["database"] = "error"

    if settings.rate_limit_enabled:
        try:
            r = await get_redis()
            await r.ping()
            checks["redis"] = "ok"
        except Exception:
            checks["redis"] = "error"

    all_ok = all(v == "ok" for v in checks.values())
    return JSONResponse(
        status_code=200 if all_ok else 503,
        content={"status": "ready" if all_ok else "not_ready", "checks": checks},
    )


@app.get("/live", tags=["Health"])
async def liveness():
    return {"status": "alive"}


# ── Prometheus metrics endpoint ──
@app.get("/metrics", tags=["Monitoring"])
async def metrics():
    from starlette.responses import Response
    return Response(content=generate_latest(), media_type="text/plain")
