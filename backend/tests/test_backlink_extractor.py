"""
Backlink Extraction Tests
=========================

Key behaviours:
1. Both marker syntaxes are recognised, in document order
2. Resolution: id, then url, then normalized title (first page wins)
3. Self-references and unresolvable targets are dropped
4. One backlink per (source, target), context from the first mention
5. Re-extraction replaces the edge set and is idempotent
"""

import pytest

from models.domain.page import Page
from services.backlink_extractor import (
    BacklinkExtractor,
    PageLookup,
    build_backlinks,
    extract_context,
    extract_references,
    normalize_title,
)
from services.errors import PageNotFoundError
from tests.fakes import InMemoryPageRepository, RecordingBus
from utils.id_generator import generate_backlink_id


# ============================================================================
# TEST: MARKER SCANNING
# ============================================================================

class TestExtractReferences:

    def test_wiki_and_markdown_markers(self):
        refs = extract_references("See [[Page B]] and [the C page](pc1).")
        assert [r.target for r in refs] == ["Page B", "pc1"]
        assert refs[1].label == "the C page"

    def test_wiki_alias(self):
        refs = extract_references("[[Page B|bee]]")
        assert refs[0].target == "Page B"
        assert refs[0].label == "bee"

    def test_positions_cover_marker(self):
        content = "See [[Page B]] now"
        ref = extract_references(content)[0]
        assert content[ref.start:ref.end] == "[[Page B]]"

    @pytest.mark.parametrize("content", [None, "", "plain text", "[[ ]]", "[[unclosed", "[x]( spaced )"])
    def test_no_references(self, content):
        assert extract_references(content) == []


class TestNormalizeTitle:

    def test_case_and_whitespace(self):
        assert normalize_title("  Page   B ") == normalize_title("page b")

    def test_none(self):
        assert normalize_title(None) == ""


class TestExtractContext:

    def test_short_content_untruncated(self):
        content = "See [[Page B]] for details"
        assert extract_context(content, 4, 14, chars=50) == content

    def test_truncated_both_sides(self):
        content = "x" * 100 + "[[T]]" + "y" * 100
        context = extract_context(content, 100, 105, chars=10)
        assert context == "..." + "x" * 10 + "[[T]]" + "y" * 10 + "..."

    def test_whitespace_collapsed(self):
        content = "line one\n\n[[T]]\tend"
        assert extract_context(content, 10, 15) == "line one [[T]] end"


# ============================================================================
# TEST: RESOLUTION
# ============================================================================

class TestPageLookup:

    @pytest.fixture
    def pages(self):
        return [
            Page(id="p1", title="Roadmap", database_id="d1", url="https://notes.example/p1"),
            Page(id="p2", title="roadmap", database_id="d1"),
            Page(id="p3", title="Ideas", database_id="d1"),
        ]

    def test_resolve_by_id(self, pages):
        assert PageLookup(pages).resolve("p3").id == "p3"

    def test_resolve_by_url(self, pages):
        assert PageLookup(pages).resolve("https://notes.example/p1").id == "p1"

    def test_resolve_by_title_case_insensitive(self, pages):
        assert PageLookup(pages).resolve("  IDEAS ").id == "p3"

    def test_ambiguous_title_first_page_wins(self, pages):
        lookup = PageLookup(pages)
        assert lookup.resolve("ROADMAP").id == "p1"
        assert "roadmap" in lookup.ambiguous_titles

    def test_id_beats_title(self):
        pages = [
            Page(id="p1", title="p2", database_id="d1"),
            Page(id="p2", title="Other", database_id="d1"),
        ]
        assert PageLookup(pages).resolve("p2").id == "p2"

    def test_unknown_target(self, pages):
        assert PageLookup(pages).resolve("Missing") is None


class TestBuildBacklinks:

    def test_single_reference(self, sample_pages):
        page_a = sample_pages[0]
        backlinks = build_backlinks(page_a, PageLookup(sample_pages))

        assert len(backlinks) == 1
        backlink = backlinks[0]
        assert backlink.source_page_id == "pa1"
        assert backlink.source_page_title == "Page A"
        assert backlink.target_page_id == "pb1"
        assert "[[Page B]]" in backlink.context
        assert backlink.id == generate_backlink_id("pa1", "pb1")

    def test_self_reference_dropped(self):
        page = Page(id="p1", title="Me", database_id="d1", content="I am [[Me]] and [x](p1)")
        assert build_backlinks(page, PageLookup([page])) == []

    def test_unresolvable_dropped(self, sample_pages):
        page = Page(id="px", title="X", database_id="d1", content="[[Nowhere]] then [[Page C]]")
        backlinks = build_backlinks(page, PageLookup(sample_pages + [page]))
        assert [b.target_page_id for b in backlinks] == ["pc1"]

    def test_duplicate_mentions_collapse_to_first(self, sample_pages):
        page = Page(id="px", title="X", database_id="d1", content="first [[Page B]] ... second [[pb1]]")
        backlinks = build_backlinks(page, PageLookup(sample_pages + [page]))

        assert len(backlinks) == 1
        assert backlinks[0].context.startswith("first")

    def test_empty_content(self, sample_pages):
        assert build_backlinks(sample_pages[2], PageLookup(sample_pages)) == []


# ============================================================================
# TEST: EXTRACTOR SERVICE
# ============================================================================

class TestBacklinkExtractor:

    @pytest.fixture
    def bus(self):
        return RecordingBus()

    @pytest.fixture
    def extractor(self, page_repo, bus):
        return BacklinkExtractor(page_repo, bus, context_chars=50)

    @pytest.mark.asyncio
    async def test_extract_for_page_stores_and_publishes(self, extractor, page_repo, bus):
        backlinks = await extractor.extract_for_page("pa1")

        assert [b.target_page_id for b in backlinks] == ["pb1"]
        assert await page_repo.find_backlinks_by_target("pb1") == backlinks
        assert bus.names == ["backlinks.extracted"]
        assert bus.published[0].target_page_ids == ("pb1",)
        assert bus.published[0].database_id == "d1"

    @pytest.mark.asyncio
    async def test_extraction_is_idempotent(self, extractor, page_repo):
        await extractor.extract_for_page("pa1")
        first = dict(page_repo.backlinks)
        await extractor.extract_for_page("pa1")

        assert set(page_repo.backlinks) == set(first)
        assert [b.id for b in page_repo.backlinks.values()] == [b.id for b in first.values()]

    @pytest.mark.asyncio
    async def test_removed_reference_removes_edge(self, extractor, page_repo):
        await extractor.extract_for_page("pa1")
        page_repo.pages["pa1"].content = "No more links"

        assert await extractor.extract_for_page("pa1") == []
        assert page_repo.backlinks == {}

    @pytest.mark.asyncio
    async def test_missing_page_raises(self, extractor):
        with pytest.raises(PageNotFoundError):
            await extractor.extract_for_page("nope")

    @pytest.mark.asyncio
    async def test_resolution_scoped_to_database(self, bus):
        repo = InMemoryPageRepository([
            Page(id="p1", title="Source", database_id="d1", content="[[Elsewhere]]"),
            Page(id="p2", title="Elsewhere", database_id="d2"),
        ])
        extractor = BacklinkExtractor(repo, bus)

        assert await extractor.extract_for_page("p1") == []

    @pytest.mark.asyncio
    async def test_extract_for_database_publishes_after_writes(self, page_repo):
        seen_counts = []

        class CheckingBus(RecordingBus):
            async def publish(self, event):
                seen_counts.append(len(page_repo.replace_calls))
                await super().publish(event)

        page_repo.pages["pc1"].content = "Back to [[Page A]]"
        extractor = BacklinkExtractor(page_repo, CheckingBus())

        total = await extractor.extract_for_database("d1")

        assert total == 2
        assert page_repo.replace_calls == ["pa1", "pb1", "pc1"]
        assert seen_counts == [3, 3, 3, 3]

    @pytest.mark.asyncio
    async def test_extract_for_database_closes_with_one_run_event(self, page_repo, bus):
        extractor = BacklinkExtractor(page_repo, bus)

        total = await extractor.extract_for_database("d1")

        assert bus.names == [
            "backlinks.extracted", "backlinks.extracted", "backlinks.extracted", "database.extracted",
        ]
        assert all(event.batched for event in bus.published[:3])
        run = bus.published[-1]
        assert run.database_id == "d1"
        assert run.source_page_ids == ("pa1", "pb1", "pc1")
        assert run.backlink_count == total == 1

    @pytest.mark.asyncio
    async def test_extract_for_page_is_not_batched(self, page_repo, bus):
        await BacklinkExtractor(page_repo, bus).extract_for_page("pa1")

        assert bus.names == ["backlinks.extracted"]
        assert bus.published[0].batched is False
