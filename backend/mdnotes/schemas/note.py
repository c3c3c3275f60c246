"""
mdnotes Backend - Note Request/Response Schemas
=================================================

What:  Pydantic models defining the wire contract of the /notes resource.
How:   FastAPI validates request bodies against the *Request models and
       serializes responses through the *Response models.
Who:   Route handlers and NoteRepository (which returns response models).

Missing request fields take zero values (empty title/content, no tags, not
a favorite) so partial bodies behave like the JSON decoders of other
clients. Normalization of title and tags happens in the repository, not here.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, StrictBool, field_validator


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class NoteWriteRequest(BaseModel):
    """Body of POST /notes and PUT /notes/{id}."""
    title: str = Field(default="", description="Blank titles are stored as 'Untitled'")
    content: str = Field(default="", description="Markdown, stored verbatim")
    tags: List[str] = Field(default_factory=list, description="Normalized server-side")
    is_favorite: StrictBool = Field(default=False, description="JSON true or false only")

    @field_validator("title", "content", mode="before")
    @classmethod
    def null_is_empty_string(cls, v):
        return "" if v is None else v

    @field_validator("tags", mode="before")
    @classmethod
    def null_is_no_tags(cls, v):
        return [] if v is None else v

    @field_validator("is_favorite", mode="before")
    @classmethod
    def null_is_false(cls, v):
        return False if v is None else v


class FavoriteRequest(BaseModel):
    """Body of POST /notes/{id}/favorite."""
    value: StrictBool = Field(default=False, description="JSON true or false only")

    @field_validator("value", mode="before")
    @classmethod
    def null_is_false(cls, v):
        return False if v is None else v


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class NoteResponse(BaseModel):
    """Full representation of a note."""
    id: uuid.UUID = Field(description="Server-generated note identifier")
    title: str
    content: str
    tags: List[str]
    is_favorite: bool
    created_at: datetime = Field(description="Creation time (UTC)")
    updated_at: datetime = Field(description="Last mutating write (UTC)")

    model_config = {"from_attributes": True}


class NoteListResponse(BaseModel):
    """
    One page of GET /notes.

    `page` and `limit` echo the values actually used after clamping; `total`
    counts every note matching the filters, independent of paging.
    """
    items: List[NoteResponse]
    page: int
    limit: int
    total: int


class NoteFilter(BaseModel):
    """Parsed GET /notes filters. Empty strings mean "do not filter"."""
    query: str = ""
    tag: str = ""
    favorite: Optional[bool] = None


# ══════════════════════════════════════════════════════════════════════════
# Error Response Model
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(BaseModel):
    """Every error body: {"error": "<message>"}."""
    error: str = Field(description="Human-readable error description")
