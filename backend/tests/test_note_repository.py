"""
mdnotes Backend - Note Repository Tests
=========================================

What:  Normalization helpers and NoteRepository against a real SQLite file.

What we test:
    ✅ Title and tag normalization, page/limit clamping
    ✅ Create → get round trip; server-assigned id and timestamps
    ✅ Ordering by updated_at DESC, with updates moving a note to the front
    ✅ Query / tag / favorite filters, combined with AND
    ✅ total independent of page and limit
    ✅ NotFoundError for update / favorite / delete of unknown ids
"""

import asyncio
from uuid import uuid4

import pytest

from mdnotes.exceptions import NotFoundError
from mdnotes.schemas.note import NoteFilter
from mdnotes.services.note_repository import (
    clamp_limit,
    clamp_page,
    normalize_tags,
    normalize_title,
)


class TestNormalization:
    def test_blank_titles_become_untitled(self):
        assert normalize_title("") == "Untitled"
        assert normalize_title("   \t") == "Untitled"
        assert normalize_title(None) == "Untitled"

    def test_title_is_trimmed(self):
        assert normalize_title("  Groceries  ") == "Groceries"

    def test_tags_are_lowercased_deduplicated_in_first_seen_order(self):
        assert normalize_tags(["Go", " go ", "", "DB"]) == ["go", "db"]
        assert normalize_tags(["A", "a", " a "]) == ["a"]

    def test_tags_are_truncated_to_32_characters(self):
        long_tag = "x" * 40
        assert normalize_tags([long_tag]) == ["x" * 32]

    def test_truncation_can_create_duplicates_that_are_dropped(self):
        assert normalize_tags(["y" * 33, "Y" * 32]) == ["y" * 32]

    def test_missing_tags_become_empty_list(self):
        assert normalize_tags(None) == []
        assert normalize_tags(["  ", ""]) == []

    def test_page_and_limit_clamping(self):
        assert clamp_page(None) == 1
        assert clamp_page(0) == 1
        assert clamp_page(-3) == 1
        assert clamp_page(4) == 4
        assert (clamp_page(10**30) - 1) * 100 <= 2**63 - 1
        assert clamp_limit(None) == 30
        assert clamp_limit(0) == 30
        assert clamp_limit(-1) == 30
        assert clamp_limit(7) == 7
        assert clamp_limit(500) == 100


class TestCreateAndGet:
    @pytest.mark.asyncio
    async def test_create_normalizes_and_assigns_server_fields(self, note_repository):
        note = await note_repository.create(
            title="  ",
            content="# Hello\n\nworld  ",
            tags=["Go", " go ", "", "DB"],
            is_favorite=False,
        )

        assert note.id is not None
        assert note.title == "Untitled"
        assert note.content == "# Hello\n\nworld  "
        assert note.tags == ["go", "db"]
        assert note.is_favorite is False
        assert note.created_at == note.updated_at

    @pytest.mark.asyncio
    async def test_get_returns_what_create_returned(self, note_repository):
        created = await note_repository.create("Plan", "body", ["work"], True)

        fetched = await note_repository.get(created.id)

        assert fetched.id == created.id
        assert fetched.title == "Plan"
        assert fetched.content == "body"
        assert fetched.tags == ["work"]
        assert fetched.is_favorite is True

    @pytest.mark.asyncio
    async def test_get_unknown_id_raises_not_found(self, note_repository):
        with pytest.raises(NotFoundError) as exc_info:
            await note_repository.get(uuid4())
        assert exc_info.value.message == "note not found"


class TestUpdateFavoriteDelete:
    @pytest.mark.asyncio
    async def test_update_replaces_fields_and_refreshes_updated_at(self, note_repository):
        created = await note_repository.create("Old", "old body", ["a"], False)
        await asyncio.sleep(0.01)

        updated = await note_repository.update(
            created.id, title=" New ", content="new body", tags=["B", "b"], is_favorite=True
        )

        assert updated.id == created.id
        assert updated.title == "New"
        assert updated.content == "new body"
        assert updated.tags == ["b"]
        assert updated.is_favorite is True
        assert updated.created_at == created.created_at
        assert updated.updated_at > created.updated_at

    @pytest.mark.asyncio
    async def test_set_favorite_touches_only_the_flag(self, note_repository):
        created = await note_repository.create("Keep", "content", ["x"], False)

        favored = await note_repository.set_favorite(created.id, True)

        assert favored.is_favorite is True
        assert favored.title == "Keep"
        assert favored.content == "content"
        assert favored.tags == ["x"]

        unfavored = await note_repository.set_favorite(created.id, False)
        assert unfavored.is_favorite is False

    @pytest.mark.asyncio
    async def test_writes_to_unknown_ids_raise_not_found(self, note_repository):
        missing = uuid4()
        with pytest.raises(NotFoundError):
            await note_repository.update(missing, "t", "c", [], False)
        with pytest.raises(NotFoundError):
            await note_repository.set_favorite(missing, True)
        with pytest.raises(NotFoundError):
            await note_repository.delete(missing)

    @pytest.mark.asyncio
    async def test_delete_removes_the_note(self, note_repository):
        created = await note_repository.create("Gone soon", "", [], False)

        await note_repository.delete(created.id)

        with pytest.raises(NotFoundError):
            await note_repository.get(created.id)
        with pytest.raises(NotFoundError):
            await note_repository.delete(created.id)


class TestList:
    @pytest.mark.asyncio
    async def test_empty_store(self, note_repository):
        page = await note_repository.list()

        assert page.items == []
        assert page.total == 0
        assert page.page == 1
        assert page.limit == 30

    @pytest.mark.asyncio
    async def test_most_recently_updated_first(self, note_repository):
        first = await note_repository.create("first", "", [], False)
        await asyncio.sleep(0.01)
        second = await note_repository.create("second", "", [], False)

        page = await note_repository.list()
        assert [n.id for n in page.items] == [second.id, first.id]

        await asyncio.sleep(0.01)
        await note_repository.update(first.id, "first", "edited", [], False)

        page = await note_repository.list()
        assert [n.id for n in page.items] == [first.id, second.id]

    @pytest.mark.asyncio
    async def test_total_is_independent_of_paging(self, note_repository):
        for i in range(5):
            await note_repository.create(f"note {i}", "", [], False)

        page_one = await note_repository.list(page=1, limit=2)
        page_three = await note_repository.list(page=3, limit=2)
        beyond = await note_repository.list(page=10, limit=2)

        assert len(page_one.items) == 2
        assert len(page_three.items) == 1
        assert beyond.items == []
        assert page_one.total == page_three.total == beyond.total == 5

    @pytest.mark.asyncio
    async def test_pages_do_not_overlap(self, note_repository):
        for i in range(4):
            await note_repository.create(f"note {i}", "", [], False)

        first = await note_repository.list(page=1, limit=2)
        second = await note_repository.list(page=2, limit=2)

        ids = [n.id for n in first.items] + [n.id for n in second.items]
        assert len(set(ids)) == 4

    @pytest.mark.asyncio
    async def test_out_of_range_paging_is_clamped(self, note_repository):
        page = await note_repository.list(page=0, limit=1000)

        assert page.page == 1
        assert page.limit == 100

    @pytest.mark.asyncio
    async def test_query_matches_title_or_content_case_insensitively(self, note_repository):
        in_title = await note_repository.create("Meeting NOTES", "", [], False)
        in_content = await note_repository.create("Other", "see the notes below", [], False)
        await note_repository.create("Unrelated", "nothing here", [], False)

        page = await note_repository.list(NoteFilter(query="notes"))

        assert {n.id for n in page.items} == {in_title.id, in_content.id}
        assert page.total == 2

    @pytest.mark.asyncio
    async def test_query_wildcards_are_literal(self, note_repository):
        literal = await note_repository.create("100% done", "", [], False)
        await note_repository.create("100 done", "", [], False)

        page = await note_repository.list(NoteFilter(query="100%"))

        assert [n.id for n in page.items] == [literal.id]

    @pytest.mark.asyncio
    async def test_tag_filter_is_exact_membership(self, note_repository):
        tagged = await note_repository.create("a", "", ["db", "go"], False)
        await note_repository.create("b", "", ["dbx"], False)
        await note_repository.create("c", "", [], False)

        page = await note_repository.list(NoteFilter(tag="db"))

        assert [n.id for n in page.items] == [tagged.id]
        assert page.total == 1

    @pytest.mark.asyncio
    async def test_favorite_filter(self, note_repository):
        fav = await note_repository.create("fav", "", [], True)
        plain = await note_repository.create("plain", "", [], False)

        favorites = await note_repository.list(NoteFilter(favorite=True))
        others = await note_repository.list(NoteFilter(favorite=False))

        assert [n.id for n in favorites.items] == [fav.id]
        assert [n.id for n in others.items] == [plain.id]

    @pytest.mark.asyncio
    async def test_filters_combine_with_and(self, note_repository):
        match = await note_repository.create("Go tips", "", ["go"], True)
        await note_repository.create("Go tricks", "", ["go"], False)
        await note_repository.create("Go misc", "", ["misc"], True)

        page = await note_repository.list(NoteFilter(query="go", tag="go", favorite=True))

        assert [n.id for n in page.items] == [match.id]
        assert page.total == 1
