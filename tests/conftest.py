"""
Top-level pytest configuration.

Provides:
  - A fresh in-memory SQLite database (aiosqlite) per test with all tables created.
  - A StorageService writing under the test's tmp_path.
  - A ServiceContainer wired to both, with a TokenIdentityProvider.
  - An async_client fixture wired to a FastAPI app built around that container.
  - Identities and bearer-token headers for two users.
"""

from __future__ import annotations

import os
from typing import AsyncGenerator

# ---------------------------------------------------------------------------
# Environment must be set BEFORE any cv_tracker module is imported so that
# pydantic-settings picks up the test values.
# ---------------------------------------------------------------------------
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("JWT_SECRET", "test-secret-key-that-is-long-enough-32c")
os.environ.setdefault("DATABASE_URL_OVERRIDE", "sqlite+aiosqlite:///:memory:")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from cv_tracker.core import security
from cv_tracker.core.config import Settings
from cv_tracker.core.container import ServiceContainer
from cv_tracker.core.database import create_session_factory, create_tables
from cv_tracker.schemas.identity import Identity
from cv_tracker.services.identity_service import TokenIdentityProvider
from cv_tracker.services.storage_service import StorageService

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
TEST_JWT_SECRET = os.environ["JWT_SECRET"]


# ---------------------------------------------------------------------------
# Database: one in-memory engine per test (StaticPool so every session sees
# the same connection and therefore the same data).
# ---------------------------------------------------------------------------
@pytest_asyncio.fixture
async def engine():
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await create_tables(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(engine)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------
@pytest.fixture(autouse=True)
def clear_token_blacklist():
    """Signed-out tokens are kept in a process-wide set; start every test empty."""
    security._token_blacklist.clear()
    yield
    security._token_blacklist.clear()


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        app_env="test",
        jwt_secret=TEST_JWT_SECRET,
        database_url_override=TEST_DATABASE_URL,
        media_root=str(tmp_path / "media"),
        media_base_url="/media",
        storage_timeout_seconds=5.0,
        upload_progress_step=50,
        upload_progress_interval=0.001,
    )


@pytest.fixture
def storage(test_settings) -> StorageService:
    return StorageService(
        root=test_settings.media_root,
        base_url=test_settings.media_base_url,
        timeout=test_settings.storage_timeout_seconds,
    )


@pytest.fixture
def identity_provider() -> TokenIdentityProvider:
    return TokenIdentityProvider(TEST_JWT_SECRET)


@pytest_asyncio.fixture
async def container(test_settings, engine, session_factory, storage, identity_provider):
    service_container = ServiceContainer(
        test_settings,
        engine,
        session_factory,
        storage,
        identity_provider,
    )
    yield service_container


@pytest.fixture
def application_service(container):
    return container.application_service


# ---------------------------------------------------------------------------
# Identities
# ---------------------------------------------------------------------------
@pytest.fixture
def identity() -> Identity:
    return Identity(id="user-alice", email="alice@example.com", display_name="Alice Applicant")


@pytest.fixture
def other_identity() -> Identity:
    return Identity(id="user-bob", email="bob@example.com", display_name="Bob Builder")


@pytest.fixture
def auth_headers(identity_provider, identity) -> dict:
    token = identity_provider.issue_token(identity)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def other_auth_headers(identity_provider, other_identity) -> dict:
    token = identity_provider.issue_token(other_identity)
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------
@pytest_asyncio.fixture
async def async_client(container) -> AsyncGenerator[AsyncClient, None]:
    """
    Provide an httpx AsyncClient backed by a FastAPI app around the test container.

    ASGITransport does not run the lifespan, so tables come from the engine
    fixture and the container is never rebuilt from settings.
    """
    from cv_tracker.main import create_app

    app = create_app(container)
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://testserver",
    ) as client:
        yield client
