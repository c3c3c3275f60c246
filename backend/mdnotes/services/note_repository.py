"""
mdnotes Backend - Notes Repository
====================================

What:  Filtered/paginated listing and single-row writes for the Notes entity.
How:   Each call opens its own AsyncSession from the injected factory; every
       write is a single INSERT/UPDATE ... RETURNING or DELETE statement in
       its own transaction. Titles and tags are normalized before writing.
Who:   Called by the /notes route handlers.

Listing:
    WHERE  (query = '' OR title ILIKE %query% OR content ILIKE %query%)
      AND  (tag = ''   OR tag = ANY(tags))
      AND  (favorite IS NULL OR is_favorite = favorite)
    ORDER BY updated_at DESC, id DESC
    LIMIT :limit OFFSET (:page - 1) * :limit

    The total is a COUNT(*) over the same predicate, so it never depends on
    page or limit.

Error Handling:
    NotFoundError propagates as-is. SQLAlchemy errors are logged and
    re-raised as StorageError, which the API maps to a generic 500.
"""

import logging
from typing import Iterable, List, Optional
from uuid import UUID, uuid4

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mdnotes.database import utc_now
from mdnotes.exceptions import NotFoundError, StorageError
from mdnotes.models.note import Note
from mdnotes.schemas.note import NoteFilter, NoteListResponse, NoteResponse

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Untitled"
MAX_TAG_LENGTH = 32
DEFAULT_PAGE = 1
DEFAULT_LIMIT = 30
MAX_LIMIT = 100

# OFFSET is a signed 64-bit value in both PostgreSQL and SQLite
MAX_OFFSET = 2**63 - 1
MAX_PAGE = MAX_OFFSET // MAX_LIMIT + 1


# ── Normalization ─────────────────────────────────────────────────────────

def normalize_title(title: Optional[str]) -> str:
    """Trim; blank or whitespace-only titles become 'Untitled'."""
    cleaned = (title or "").strip()
    return cleaned or DEFAULT_TITLE


def normalize_tags(tags: Optional[Iterable[str]]) -> List[str]:
    """
    Lowercase, trim, truncate to 32 characters, drop empties and duplicates.

    First occurrence wins, so ["A", "a", " a "] becomes ["a"].
    """
    seen = set()
    clean: List[str] = []
    for raw in tags or []:
        tag = raw.strip().lower()
        if not tag:
            continue
        tag = tag[:MAX_TAG_LENGTH]
        if tag in seen:
            continue
        seen.add(tag)
        clean.append(tag)
    return clean


def clamp_page(page: Optional[int]) -> int:
    """1 when missing or non-positive; capped so the row offset fits a bigint."""
    if page is None or page <= 0:
        return DEFAULT_PAGE
    return min(page, MAX_PAGE)


def clamp_limit(limit: Optional[int]) -> int:
    if limit is None or limit <= 0:
        return DEFAULT_LIMIT
    return min(limit, MAX_LIMIT)


class NoteRepository:
    """
    Persistence and query logic for notes.

    Responsibilities:
        - list(): filtered, paginated listing with matching total
        - get(): single note by id
        - create() / update() / set_favorite(): normalized single-row writes
        - delete(): hard delete
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._sessions = session_factory

    # ── Queries ───────────────────────────────────────────────────────────

    async def list(
        self,
        filters: Optional[NoteFilter] = None,
        page: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> NoteListResponse:
        """
        One page of notes matching `filters`, most recently updated first.

        Args:
            filters: substring query, exact tag, favorite flag (all optional)
            page:    1-based page; values <= 0 fall back to 1
            limit:   page size; <= 0 falls back to 30, capped at 100

        Returns:
            NoteListResponse with the page slice, the clamped page/limit and
            the total number of matching notes.
        """
        filters = filters or NoteFilter()
        page = clamp_page(page)
        limit = clamp_limit(limit)

        try:
            async with self._sessions() as db:
                conditions = self._conditions(db, filters)

                total = await db.scalar(
                    select(func.count()).select_from(Note).where(*conditions)
                )

                result = await db.scalars(
                    select(Note)
                    .where(*conditions)
                    .order_by(Note.updated_at.desc(), Note.id.desc())
                    .limit(limit)
                    .offset((page - 1) * limit)
                )
                notes = list(result.all())
        except SQLAlchemyError as e:
            logger.error("Database error listing notes: %s", e, exc_info=True)
            raise StorageError(context={"error_type": type(e).__name__}) from e

        return NoteListResponse(
            items=[NoteResponse.model_validate(note) for note in notes],
            page=page,
            limit=limit,
            total=total or 0,
        )

    async def get(self, note_id: UUID) -> NoteResponse:
        """
        Raises:
            NotFoundError: no note has this id
            StorageError:  the query failed
        """
        try:
            async with self._sessions() as db:
                note = await db.scalar(select(Note).where(Note.id == note_id))
        except SQLAlchemyError as e:
            logger.error("Database error fetching note %s: %s", note_id, e)
            raise StorageError(context={"note_id": str(note_id)}) from e

        if note is None:
            raise NotFoundError(resource="note", resource_id=str(note_id))
        return NoteResponse.model_validate(note)

    # ── Writes ────────────────────────────────────────────────────────────

    async def create(
        self,
        title: Optional[str],
        content: Optional[str],
        tags: Optional[Iterable[str]],
        is_favorite: bool = False,
    ) -> NoteResponse:
        """Insert a note; the server assigns the id and both timestamps."""
        now = utc_now()
        stmt = (
            insert(Note)
            .values(
                id=uuid4(),
                title=normalize_title(title),
                content=content or "",
                tags=normalize_tags(tags),
                is_favorite=bool(is_favorite),
                created_at=now,
                updated_at=now,
            )
            .returning(Note)
        )
        note = await self._write_returning(stmt, action="create")
        logger.info("Created note %s", note.id)
        return NoteResponse.model_validate(note)

    async def update(
        self,
        note_id: UUID,
        title: Optional[str],
        content: Optional[str],
        tags: Optional[Iterable[str]],
        is_favorite: bool = False,
    ) -> NoteResponse:
        """
        Replace every editable field and refresh updated_at.

        Content is stored exactly as submitted. Last write wins.

        Raises:
            NotFoundError: no note has this id
        """
        stmt = (
            update(Note)
            .where(Note.id == note_id)
            .values(
                title=normalize_title(title),
                content=content or "",
                tags=normalize_tags(tags),
                is_favorite=bool(is_favorite),
                updated_at=utc_now(),
            )
            .returning(Note)
        )
        note = await self._write_returning(stmt, action="update", note_id=note_id)
        if note is None:
            raise NotFoundError(resource="note", resource_id=str(note_id))
        return NoteResponse.model_validate(note)

    async def set_favorite(self, note_id: UUID, value: bool) -> NoteResponse:
        """
        Set is_favorite and refresh updated_at.

        Raises:
            NotFoundError: no note has this id
        """
        stmt = (
            update(Note)
            .where(Note.id == note_id)
            .values(is_favorite=bool(value), updated_at=utc_now())
            .returning(Note)
        )
        note = await self._write_returning(stmt, action="favorite", note_id=note_id)
        if note is None:
            raise NotFoundError(resource="note", resource_id=str(note_id))
        return NoteResponse.model_validate(note)

    async def delete(self, note_id: UUID) -> None:
        """
        Hard-delete a note.

        Raises:
            NotFoundError: no row was deleted
        """
        try:
            async with self._sessions() as db, db.begin():
                result = await db.execute(
                    delete(Note)
                    .where(Note.id == note_id)
                    .execution_options(synchronize_session=False)
                )
                deleted = result.rowcount
        except SQLAlchemyError as e:
            logger.error("Database error deleting note %s: %s", note_id, e)
            raise StorageError(context={"note_id": str(note_id)}) from e

        if not deleted:
            raise NotFoundError(resource="note", resource_id=str(note_id))
        logger.info("Deleted note %s", note_id)

    # ── Internals ─────────────────────────────────────────────────────────

    async def _write_returning(self, stmt, action: str, note_id: Optional[UUID] = None) -> Optional[Note]:
        try:
            async with self._sessions() as db, db.begin():
                return await db.scalar(stmt)
        except SQLAlchemyError as e:
            logger.error("Database error on note %s (%s): %s", action, note_id, e)
            raise StorageError(
                context={"action": action, "note_id": str(note_id) if note_id else None},
            ) from e

    @staticmethod
    def _conditions(db: AsyncSession, filters: NoteFilter) -> list:
        conditions = []

        if filters.query:
            conditions.append(
                Note.title.icontains(filters.query, autoescape=True)
                | Note.content.icontains(filters.query, autoescape=True)
            )

        if filters.tag:
            conditions.append(_has_tag(db, filters.tag))

        if filters.favorite is not None:
            conditions.append(Note.is_favorite == filters.favorite)

        return conditions


def _has_tag(db: AsyncSession, tag: str):
    """`tag = ANY(tags)` on PostgreSQL; a json_each() membership test on SQLite."""
    if db.get_bind().dialect.name == "sqlite":
        elements = func.json_each(Note.tags).table_valued("value")
        return select(elements.c.value).where(elements.c.value == tag).exists()
    return Note.tags.any(tag)
