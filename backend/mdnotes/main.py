"""
mdnotes Backend - FastAPI Application Factory
===============================================

What:  Creates and configures the FastAPI application instance.
How:   create_app(settings) returns a configured app; the lifespan opens the
       database, applies migrations and binds the storage components before
       the first request is served.
Who:   `python -m mdnotes`, or `uvicorn mdnotes.main:create_app --factory`.

Application Architecture:
    ┌─────────────────────────────────────────────────────┐
    │                   FastAPI App                       │
    │                                                     │
    │  Middleware Chain:                                  │
    │  ┌──────────┐ ┌──────────┐ ┌──────┐ ┌────────────┐  │
    │  │ Req ID   │→│ Logging  │→│ GZip │→│ CORS (opt) │  │
    │  └──────────┘ └──────────┘ └──────┘ └────────────┘  │
    │                                                     │
    │  Routes:                                            │
    │  /auth/* (open)   /notes/* (session gate)  /health  │
    │                                                     │
    │  Exception Handlers → {"error": message}:           │
    │  Validation→400 │ Auth→401 │ NotFound→404 │ DB→500  │
    └─────────────────────────────────────────────────────┘

Lifecycle:
    Startup:
    1. Configure logging
    2. Build the engine and ping the database (StartupError if unreachable)
    3. Apply pending migrations (MigrationError aborts startup)
    4. Bind NoteRepository / SessionStore to app.state

    Shutdown:
    1. Dispose the engine (close all pooled connections)
"""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine
from starlette.exceptions import HTTPException as StarletteHTTPException

from mdnotes import __version__
from mdnotes.config import Settings, load_settings
from mdnotes.database import build_engine, build_session_factory, dispose_engine
from mdnotes.exceptions import (
    AuthError,
    NotesError,
    NotFoundError,
    StartupError,
    StorageError,
    ValidationError,
)
from mdnotes.middleware.logging import RequestLoggingMiddleware
from mdnotes.middleware.request_id import RequestIDMiddleware, request_id_var
from mdnotes.routes import auth, health, notes
from mdnotes.services.migrator import run_migrations
from mdnotes.services.note_repository import NoteRepository
from mdnotes.services.session_store import SessionStore

logger = logging.getLogger(__name__)

DB_PING_TIMEOUT_SECONDS = 10


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(level: str = "INFO") -> None:
    """
    Configure logging for the entire application.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s, to stdout.
    """
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Storage Bootstrap
# ══════════════════════════════════════════════════════════════════════════

def bind_storage(app: FastAPI, engine: AsyncEngine) -> None:
    """Attach the engine and the components built on it to app.state."""
    session_factory = build_session_factory(engine)
    app.state.engine = engine
    app.state.notes = NoteRepository(session_factory)
    app.state.sessions = SessionStore(session_factory)


async def _ping(engine: AsyncEngine) -> None:
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))


async def open_storage(app: FastAPI, engine: Optional[AsyncEngine] = None) -> AsyncEngine:
    """
    Connect, migrate and bind storage; the startup half of the lifespan.

    Raises:
        StartupError:   database unreachable
        MigrationError: a migration failed (subclass of StartupError)
    """
    settings: Settings = app.state.settings
    engine = engine or build_engine(settings)

    try:
        await asyncio.wait_for(_ping(engine), timeout=DB_PING_TIMEOUT_SECONDS)
    except (SQLAlchemyError, OSError, asyncio.TimeoutError) as e:
        await engine.dispose()
        raise StartupError(message=f"ping db: {e or type(e).__name__}") from e

    try:
        await run_migrations(engine, settings.migrations_dir)
    except StartupError:
        await engine.dispose()
        raise

    bind_storage(app, engine)
    return engine


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings: Settings = app.state.settings
    setup_logging(settings.log_level)
    logger.info("mdnotes backend %s starting up...", __version__)

    try:
        engine = await open_storage(app)
    except StartupError as e:
        logger.critical("Startup failed: %s", e.message)
        raise

    logger.info("Server ready at http://%s:%d", settings.host, settings.port)

    yield

    logger.info("mdnotes backend shutting down...")
    await dispose_engine(engine)
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exceptions to HTTP status codes; every body is {"error": message}.

    Handler hierarchy:
        ValidationError, RequestValidationError → 400
        AuthError                               → 401
        NotFoundError                           → 404
        StorageError                            → 500 (generic message)
        HTTPException (routing: 404/405)        → its own status
        Exception (fallback)                    → 500
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return _error(400, exc.message)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError):
        logger.warning("[%s] Rejected request body: %s", request_id_var.get(""), exc.errors())
        return _error(400, "invalid json body")

    @app.exception_handler(AuthError)
    async def handle_auth_error(request: Request, exc: AuthError):
        return _error(401, exc.message)

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return _error(404, exc.message)

    @app.exception_handler(StorageError)
    async def handle_storage_error(request: Request, exc: StorageError):
        logger.error(
            "[%s] Storage error: %s | Context: %s",
            request_id_var.get(""), exc.message, exc.context,
        )
        return _error(500, exc.message)

    @app.exception_handler(NotesError)
    async def handle_notes_error(request: Request, exc: NotesError):
        logger.error("[%s] Unhandled application error: %s", request_id_var.get(""), exc.message)
        return _error(500, exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc.detail).lower()},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error(
            "[%s] Unexpected error: %s",
            request_id_var.get(""),
            exc,
            exc_info=True,
        )
        return _error(500, "internal server error")


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: explicit settings; loaded from the environment when omitted
                  (raises StartupError if the environment is incomplete)

    Storage is bound by the lifespan. Callers driving the ASGI app without a
    lifespan (tests) call bind_storage() themselves.
    """
    settings = settings or load_settings()

    app = FastAPI(
        title="mdnotes API",
        description="Password-gated personal markdown notes: sessions, notes CRUD, search and tags.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # Middleware executes in REVERSE order of addition
    if settings.cors_origins_list:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins_list,
            allow_credentials=True,
            allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
            allow_headers=["*"],
            expose_headers=["X-Request-ID"],
        )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(auth.router)
    app.include_router(notes.router)
    app.include_router(health.router)

    return app
