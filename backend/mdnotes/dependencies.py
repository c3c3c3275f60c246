"""
mdnotes Backend - Request Dependencies
========================================

What:  FastAPI dependencies that resolve per-app components and enforce the
       session boundary in front of /notes.
How:   Components live on app.state (set by the lifespan or by tests) and are
       looked up per request; nothing is cached between requests.

Session gate:
    require_session reads the configured cookie, asks the SessionStore
    whether it is valid (one store round trip per request, so a logout takes
    effect on the very next call) and returns the token to the handler.
    Missing, unknown and expired tokens all end in the same 401.
"""

from fastapi import Depends, Request

from mdnotes.config import Settings
from mdnotes.exceptions import AuthError
from mdnotes.services.note_repository import NoteRepository
from mdnotes.services.session_store import SessionStore


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_note_repository(request: Request) -> NoteRepository:
    return request.app.state.notes


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.sessions


def session_cookie(request: Request, settings: Settings) -> str:
    """The trimmed session cookie value, or "" when absent."""
    return (request.cookies.get(settings.session_cookie_name) or "").strip()


async def require_session(
    request: Request,
    settings: Settings = Depends(get_app_settings),
    sessions: SessionStore = Depends(get_session_store),
) -> str:
    """
    Gate for every /notes route.

    Returns:
        The validated session token.

    Raises:
        AuthError:    no cookie, or the token is unknown/expired (→ 401)
        StorageError: the lookup failed (→ 500)
    """
    token = session_cookie(request, settings)
    if not token:
        raise AuthError()
    if not await sessions.validate(token):
        raise AuthError()
    return token
