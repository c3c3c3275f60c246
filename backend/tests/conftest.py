"""
mdnotes Backend - Test Configuration (conftest.py)
====================================================

What:  Shared pytest fixtures for the entire test suite.
How:   Every test gets its own SQLite file database (aiosqlite) built from
       the ORM metadata, and the real NoteRepository / SessionStore bound to
       it. API tests drive the FastAPI app through httpx's ASGITransport
       without running the lifespan.

Fixture Hierarchy:
    Function-scoped:
    ├── settings:        Settings pointed at the per-test SQLite file
    ├── engine:          AsyncEngine with the schema created
    ├── session_factory: async_sessionmaker bound to `engine`
    ├── note_repository: NoteRepository(session_factory)
    ├── session_store:   SessionStore(session_factory)
    ├── app:             create_app(settings) with storage bound
    ├── test_client:     anonymous HTTPX AsyncClient
    └── auth_client:     HTTPX AsyncClient holding a valid session cookie
"""

import os
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Set before any mdnotes import so stray Settings() calls never reach a real DB
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./mdnotes_test.db")
os.environ.setdefault("APP_PASSWORD", "test-password")
os.environ["LOG_LEVEL"] = "WARNING"

from mdnotes.config import Settings  # noqa: E402
from mdnotes.database import Base, build_engine, build_session_factory  # noqa: E402
from mdnotes.main import bind_storage, create_app  # noqa: E402
from mdnotes.services.note_repository import NoteRepository  # noqa: E402
from mdnotes.services.session_store import SessionStore  # noqa: E402

TEST_PASSWORD = "correct horse battery staple"
COOKIE_NAME = "notes_session"


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'notes.db'}",
        app_password=TEST_PASSWORD,
        session_cookie_name=COOKIE_NAME,
        log_level="WARNING",
    )


@pytest_asyncio.fixture
async def engine(settings):
    """SQLite engine with the notes and sessions tables created."""
    engine = build_engine(settings)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def note_repository(session_factory) -> NoteRepository:
    return NoteRepository(session_factory)


@pytest.fixture
def session_store(session_factory) -> SessionStore:
    return SessionStore(session_factory)


@pytest.fixture
def app(settings, engine):
    """
    The FastAPI app with storage bound directly.

    ASGITransport does not run the lifespan, so the migrate-and-connect step
    is replaced by binding the already prepared engine.
    """
    application = create_app(settings)
    bind_storage(application, engine)
    return application


@pytest_asyncio.fixture
async def test_client(app) -> AsyncGenerator[AsyncClient, None]:
    """
    Anonymous HTTP client.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def auth_client(test_client) -> AsyncClient:
    """The same client after a successful login; its cookie jar holds the session."""
    response = await test_client.post("/auth/login", json={"password": TEST_PASSWORD})
    assert response.status_code == 200
    assert test_client.cookies.get(COOKIE_NAME)
    return test_client
