"""
mdnotes Backend - Notes Route Handlers
========================================

What:  CRUD, listing and favoriting for /notes.
How:   Parses path/query input explicitly, delegates to NoteRepository,
       returns JSON. Every route requires a valid session (router dependency).
Who:   Called by the notes workspace of the frontend.

Query parameters of GET /notes:
    query     substring matched case-insensitively in title or content
    tag       exact tag the note must carry
    favorite  1/t/true/TRUE/True or 0/f/false/FALSE/False (anything else → 400)
    page      1-based; missing, non-numeric, out of int64 range or <= 0 → 1;
              capped so the row offset fits a bigint
    limit     missing, non-numeric or <= 0 → 30; capped at 100
"""

import logging
import re
from typing import Optional, Type, TypeVar
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Query, Request, Response
from pydantic import BaseModel

from mdnotes.dependencies import get_note_repository, require_session
from mdnotes.exceptions import ValidationError
from mdnotes.schemas.note import (
    ErrorResponse,
    FavoriteRequest,
    NoteFilter,
    NoteListResponse,
    NoteResponse,
    NoteWriteRequest,
)
from mdnotes.services.note_repository import NoteRepository

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/notes",
    tags=["Notes"],
    dependencies=[Depends(require_session)],
    responses={401: {"description": "No valid session", "model": ErrorResponse}},
)

_TRUE_VALUES = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE_VALUES = {"0", "f", "F", "FALSE", "false", "False"}
_INTEGER = re.compile(r"\A[+-]?[0-9]+\Z")
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1

BodyModel = TypeVar("BodyModel", bound=BaseModel)


# ── Input parsing ─────────────────────────────────────────────────────────

def parse_bool(raw: str) -> bool:
    """Strict boolean parsing; raises ValueError for anything unrecognized."""
    if raw in _TRUE_VALUES:
        return True
    if raw in _FALSE_VALUES:
        return False
    raise ValueError(f"invalid boolean {raw!r}")


def parse_int(raw: Optional[str]) -> Optional[int]:
    """
    Signed decimal integer query parameter.

    None when missing, not plain digits (no spaces or underscores) or outside
    the signed 64-bit range.
    """
    if raw is None or not _INTEGER.match(raw):
        return None
    try:
        value = int(raw)
    except ValueError:
        # beyond the interpreter's digit limit for str -> int
        return None
    if not _INT64_MIN <= value <= _INT64_MAX:
        return None
    return value


async def json_body_or_zero(request: Request, body: Optional[BodyModel], model: Type[BodyModel]) -> BodyModel:
    """
    A JSON `null` body decodes to the model's zero values; an empty body is
    still malformed.
    """
    if body is not None:
        return body
    if not (await request.body()).strip():
        raise ValidationError(message="invalid json body", field="body")
    return model()


def parse_note_id(raw: str) -> UUID:
    try:
        return UUID(raw.strip())
    except ValueError:
        raise ValidationError(message="invalid id", field="id") from None


# ── Routes ────────────────────────────────────────────────────────────────

@router.get(
    "",
    response_model=NoteListResponse,
    responses={400: {"description": "Invalid favorite flag", "model": ErrorResponse}},
    summary="List notes, most recently updated first",
)
async def list_notes(
    query: Optional[str] = Query(default=None, description="Substring of title or content"),
    tag: Optional[str] = Query(default=None, description="Exact tag"),
    favorite: Optional[str] = Query(default=None, description="true or false"),
    page: Optional[str] = Query(default=None, description="1-based page number"),
    limit: Optional[str] = Query(default=None, description="Items per page (max 100)"),
    notes: NoteRepository = Depends(get_note_repository),
) -> NoteListResponse:
    favorite_flag: Optional[bool] = None
    favorite_raw = (favorite or "").strip()
    if favorite_raw:
        try:
            favorite_flag = parse_bool(favorite_raw)
        except ValueError:
            raise ValidationError(message="favorite must be true or false", field="favorite") from None

    filters = NoteFilter(
        query=(query or "").strip(),
        tag=(tag or "").strip(),
        favorite=favorite_flag,
    )
    return await notes.list(filters, page=parse_int(page), limit=parse_int(limit))


@router.post(
    "",
    status_code=201,
    response_model=NoteResponse,
    responses={
        400: {"description": "Malformed JSON body", "model": ErrorResponse},
        500: {"description": "Storage error", "model": ErrorResponse},
    },
    summary="Create a note",
)
async def create_note(
    request: Request,
    body: Optional[NoteWriteRequest] = Body(default=None),
    notes: NoteRepository = Depends(get_note_repository),
) -> NoteResponse:
    body = await json_body_or_zero(request, body, NoteWriteRequest)
    return await notes.create(
        title=body.title,
        content=body.content,
        tags=body.tags,
        is_favorite=body.is_favorite,
    )


@router.get(
    "/{note_id}",
    response_model=NoteResponse,
    responses={
        400: {"description": "Malformed id", "model": ErrorResponse},
        404: {"description": "Note not found", "model": ErrorResponse},
    },
    summary="Get a single note",
)
async def get_note(
    note_id: str,
    notes: NoteRepository = Depends(get_note_repository),
) -> NoteResponse:
    return await notes.get(parse_note_id(note_id))


@router.put(
    "/{note_id}",
    response_model=NoteResponse,
    responses={
        400: {"description": "Malformed id or body", "model": ErrorResponse},
        404: {"description": "Note not found", "model": ErrorResponse},
    },
    summary="Replace a note's title, content, tags and favorite flag",
)
async def update_note(
    note_id: str,
    request: Request,
    body: Optional[NoteWriteRequest] = Body(default=None),
    notes: NoteRepository = Depends(get_note_repository),
) -> NoteResponse:
    body = await json_body_or_zero(request, body, NoteWriteRequest)
    return await notes.update(
        parse_note_id(note_id),
        title=body.title,
        content=body.content,
        tags=body.tags,
        is_favorite=body.is_favorite,
    )


@router.delete(
    "/{note_id}",
    status_code=204,
    response_class=Response,
    responses={
        400: {"description": "Malformed id", "model": ErrorResponse},
        404: {"description": "Note not found", "model": ErrorResponse},
    },
    summary="Delete a note permanently",
)
async def delete_note(
    note_id: str,
    notes: NoteRepository = Depends(get_note_repository),
) -> Response:
    await notes.delete(parse_note_id(note_id))
    return Response(status_code=204)


@router.post(
    "/{note_id}/favorite",
    response_model=NoteResponse,
    responses={
        400: {"description": "Malformed id or body", "model": ErrorResponse},
        404: {"description": "Note not found", "model": ErrorResponse},
    },
    summary="Set or clear the favorite flag",
)
async def favorite_note(
    note_id: str,
    request: Request,
    body: Optional[FavoriteRequest] = Body(default=None),
    notes: NoteRepository = Depends(get_note_repository),
) -> NoteResponse:
    body = await json_body_or_zero(request, body, FavoriteRequest)
    return await notes.set_favorite(parse_note_id(note_id), body.value)
