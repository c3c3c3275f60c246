"""
mdnotes Backend - Session SQLAlchemy Model
============================================

What:  ORM model for the `sessions` table (login grants).
Who:   Used exclusively by SessionStore.

Only `token` ever leaves the server. `expires_at` is fixed at issuance and
never extended; expired rows stay until revoked, they are simply no longer
valid.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Index, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from mdnotes.database import Base, utc_now


class AuthSession(Base):
    """A bearer-token session created by a successful login."""

    __tablename__ = "sessions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(), primary_key=True, default=uuid.uuid4)

    token: Mapped[str] = mapped_column(Text, nullable=False, unique=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )

    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("idx_sessions_expires_at", "expires_at"),
    )

    def __repr__(self) -> str:
        # token deliberately omitted
        return f"<AuthSession(id={self.id}, expires_at='{self.expires_at}')>"
