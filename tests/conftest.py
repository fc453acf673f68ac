"""Shared test configuration and fixtures."""

from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path

import pytest
import pytest_asyncio

# Ensure the project root is on sys.path so `bookstore` resolves without installing
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Settings are cached on first import, so the test environment goes in first
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-testing")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("ADMIN_EMAILS", "root@example.com")
os.environ.setdefault("MEDIA_ROOT", tempfile.mkdtemp(prefix="bookstore-media-"))
os.environ.setdefault("LOG_FORMAT", "console")

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402

from bookstore.auth.jwt_handler import create_access_token  # noqa: E402
from bookstore.database import Base, engine_options  # noqa: E402
from bookstore.models import book, review  # noqa: E402,F401
from bookstore.models.user import User, UserRole  # noqa: E402
from bookstore.services.media import CoverImageManager, LocalMediaStorage  # noqa: E402

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def db_engine():
    """A fresh in-memory database per test."""
    engine = create_async_engine(TEST_DATABASE_URL, **engine_options(TEST_DATABASE_URL))
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def media_root(tmp_path) -> Path:
    root = tmp_path / "covers"
    root.mkdir()
    return root


@pytest.fixture
def cover_manager(media_root) -> CoverImageManager:
    return CoverImageManager(LocalMediaStorage(media_root), url_prefix="/uploads/books")


@pytest.fixture
def make_user(db_session):
    """Factory for persisted users; passwords are irrelevant to catalog tests."""

    async def _make_user(username: str, role: UserRole = UserRole.USER, is_active: bool = True) -> User:
        user = User(
            email=f"{username}@example.com",
            username=username,
            hashed_password="unused",
            role=role,
            is_active=is_active,
        )
        db_session.add(user)
        await db_session.commit()
        return user

    return _make_user


@pytest.fixture
def auth_headers():
    def _auth_headers(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user.id, user.role.value)}"}

    return _auth_headers


@pytest_asyncio.fixture
async def client(session_factory, cover_manager):
    """HTTP client against the app, wired to the per-test database and media root."""
    from httpx import ASGITransport, AsyncClient

    from bookstore.database import get_db
    from bookstore.main import app
    from bookstore.services.media import get_cover_manager

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cover_manager] = lambda: cover_manager

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
