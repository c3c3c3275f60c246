"""
mdnotes Backend - Note SQLAlchemy Model
=========================================

What:  ORM model representing the `notes` table.
How:   Mirrors migrations/001_init.sql using portable column types so the
       same queries run on PostgreSQL and on the SQLite test database.
Who:   Used exclusively by NoteRepository.

Table Design:
    - id: UUID generated by the application at insert time
    - tags: text[] on PostgreSQL, JSON array on SQLite; stored normalized
      (lowercase, unique, first-seen order)
    - content: stored verbatim, no length limit
    - created_at / updated_at: UTC, timezone aware; updated_at refreshed on
      every mutating write

    Index on updated_at DESC backs the only list ordering the API offers.
"""

import uuid
from datetime import datetime
from typing import List

from sqlalchemy import ARRAY, JSON, Boolean, DateTime, Index, Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from mdnotes.database import Base, utc_now

# text[] where the backend has arrays; a JSON list everywhere else
TagArray = ARRAY(Text).with_variant(JSON(), "sqlite")


class Note(Base):
    """
    A markdown note.

    Lifecycle:
        1. Created by POST /notes; id and both timestamps assigned server-side
        2. Updated in place by PUT /notes/{id} or POST /notes/{id}/favorite
           (last write wins, no version column)
        3. Hard-deleted by DELETE /notes/{id}
    """

    __tablename__ = "notes"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=uuid.uuid4,
    )

    title: Mapped[str] = mapped_column(Text, nullable=False)

    content: Mapped[str] = mapped_column(Text, nullable=False, default="")

    tags: Mapped[List[str]] = mapped_column(
        TagArray,
        nullable=False,
        default=list,
    )

    is_favorite: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )

    __table_args__ = (
        Index("idx_notes_updated_at_desc", updated_at.desc()),
    )

    def __repr__(self) -> str:
        return (
            f"<Note(id={self.id}, title='{self.title}', "
            f"updated_at='{self.updated_at}')>"
        )
