"""
mdnotes Backend - Session Store
=================================

What:  Issues, validates and revokes opaque bearer tokens backed by the
       `sessions` table, and checks the shared instance password.
How:   Tokens are 32 bytes from the OS CSPRNG, URL-safe base64 encoded.
       Validity is computed at read time (`expires_at > now`); there is no
       background sweep, expired rows simply stop validating.
Who:   Used by the auth routes and by the session gate in front of /notes.
"""

import hmac
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mdnotes.database import utc_now
from mdnotes.exceptions import StorageError
from mdnotes.models.session import AuthSession

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32


@dataclass(frozen=True)
class IssuedSession:
    token: str
    expires_at: datetime


def generate_token() -> str:
    return secrets.token_urlsafe(TOKEN_BYTES)


def verify_password(candidate: str, expected: str) -> bool:
    """Constant-time comparison against the configured shared secret."""
    return hmac.compare_digest(candidate.encode("utf-8"), expected.encode("utf-8"))


class SessionStore:
    """
    Persistence for login sessions.

    Args:
        session_factory: async_sessionmaker bound to the application engine
        clock:           source of "now"; injectable so expiry is testable
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Callable[[], datetime] = utc_now,
    ):
        self._sessions = session_factory
        self._clock = clock

    async def issue(self, ttl: timedelta) -> IssuedSession:
        """
        Create a new session valid for `ttl`.

        Raises:
            StorageError: the session row could not be written
        """
        now = self._clock()
        issued = IssuedSession(token=generate_token(), expires_at=now + ttl)
        try:
            async with self._sessions() as db, db.begin():
                db.add(
                    AuthSession(
                        token=issued.token,
                        created_at=now,
                        expires_at=issued.expires_at,
                    )
                )
        except SQLAlchemyError as e:
            logger.error("Could not persist session: %s", e)
            raise StorageError(
                message="failed to create session",
                context={"error_type": type(e).__name__},
            ) from e
        return issued

    async def validate(self, token: str) -> bool:
        """
        True iff a session with this token exists and has not expired.

        Unknown and expired tokens both return False.

        Raises:
            StorageError: the lookup itself failed
        """
        if not token:
            return False
        try:
            async with self._sessions() as db:
                found = await db.scalar(
                    select(AuthSession.id).where(
                        AuthSession.token == token,
                        AuthSession.expires_at > self._clock(),
                    )
                )
        except SQLAlchemyError as e:
            logger.error("Session lookup failed: %s", e)
            raise StorageError(context={"error_type": type(e).__name__}) from e
        return found is not None

    async def revoke(self, token: str) -> None:
        """Delete the session with this token; unknown tokens are a no-op."""
        if not token:
            return
        try:
            async with self._sessions() as db, db.begin():
                await db.execute(delete(AuthSession).where(AuthSession.token == token))
        except SQLAlchemyError as e:
            logger.error("Session revoke failed: %s", e)
            raise StorageError(context={"error_type": type(e).__name__}) from e
