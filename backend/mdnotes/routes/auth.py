"""
mdnotes Backend - Authentication Route Handlers
=================================================

What:  POST /auth/login, POST /auth/logout, GET /auth/session.
How:   Password check against the configured shared secret (constant time),
       then session issue/revoke/validate through the SessionStore. The
       session token travels only in an httpOnly, SameSite=Lax cookie.
Who:   Called by the login page and the app shell of the frontend.

None of these routes sit behind the session gate.
"""

import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, Request, Response

from mdnotes.config import Settings
from mdnotes.dependencies import get_app_settings, get_session_store, session_cookie
from mdnotes.exceptions import AuthError, StorageError
from mdnotes.schemas.auth import LoginRequest, OkResponse, SessionStatusResponse
from mdnotes.schemas.note import ErrorResponse
from mdnotes.services.session_store import IssuedSession, SessionStore, verify_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


# ── Cookie helpers ────────────────────────────────────────────────────────

def set_session_cookie(response: Response, settings: Settings, issued: IssuedSession) -> None:
    response.set_cookie(
        key=settings.session_cookie_name,
        value=issued.token,
        max_age=settings.session_ttl_seconds,
        expires=issued.expires_at,
        path="/",
        domain=settings.session_cookie_domain,
        secure=settings.session_cookie_secure,
        httponly=True,
        samesite="lax",
    )


def clear_session_cookie(response: Response, settings: Settings) -> None:
    response.delete_cookie(
        key=settings.session_cookie_name,
        path="/",
        domain=settings.session_cookie_domain,
        secure=settings.session_cookie_secure,
        httponly=True,
        samesite="lax",
    )


# ── Routes ────────────────────────────────────────────────────────────────

@router.post(
    "/login",
    response_model=OkResponse,
    responses={
        400: {"description": "Malformed JSON body", "model": ErrorResponse},
        401: {"description": "Wrong password", "model": ErrorResponse},
        500: {"description": "Session could not be stored", "model": ErrorResponse},
    },
    summary="Exchange the shared password for a session cookie",
)
async def login(
    body: LoginRequest,
    response: Response,
    settings: Settings = Depends(get_app_settings),
    sessions: SessionStore = Depends(get_session_store),
) -> OkResponse:
    if not verify_password(body.password, settings.app_password):
        logger.warning("Login rejected: invalid password")
        raise AuthError(message="invalid password")

    issued = await sessions.issue(timedelta(hours=settings.session_ttl_hours))
    set_session_cookie(response, settings, issued)
    logger.info("Login accepted; session expires at %s", issued.expires_at.isoformat())
    return OkResponse()


@router.post(
    "/logout",
    response_model=OkResponse,
    summary="Revoke the current session and clear its cookie",
)
async def logout(
    request: Request,
    response: Response,
    settings: Settings = Depends(get_app_settings),
    sessions: SessionStore = Depends(get_session_store),
) -> OkResponse:
    """
    Always succeeds. A revoke that fails in storage is logged; the cookie is
    cleared either way and the row is left to expire.
    """
    token = session_cookie(request, settings)
    if token:
        try:
            await sessions.revoke(token)
        except StorageError as e:
            logger.warning("Logout could not revoke session: %s", e.message)
    clear_session_cookie(response, settings)
    return OkResponse()


@router.get(
    "/session",
    response_model=SessionStatusResponse,
    responses={500: {"description": "Session lookup failed", "model": ErrorResponse}},
    summary="Report whether the caller holds a valid session",
)
async def session_status(
    request: Request,
    response: Response,
    settings: Settings = Depends(get_app_settings),
    sessions: SessionStore = Depends(get_session_store),
) -> SessionStatusResponse:
    token = session_cookie(request, settings)
    if not token:
        return SessionStatusResponse(authenticated=False)

    if not await sessions.validate(token):
        clear_session_cookie(response, settings)
        return SessionStatusResponse(authenticated=False)

    return SessionStatusResponse(authenticated=True)
