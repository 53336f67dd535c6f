"""
Graph Assembly Tests
====================

Every page is a node, every in-set backlink is an edge, and the cache-aside
read never waits for the repopulate.
"""

from functools import partial
from unittest.mock import AsyncMock, MagicMock

import pytest

from models.api.graph import GraphView
from models.domain.backlink import Backlink
from models.domain.page import Page, PageProperty
from services.graph_assembler import GraphService, assemble_graph, page_to_node
from services.handlers import GraphCacheHandler


def backlink(source, target, context=None):
    return Backlink(source_page_id=source, source_page_title=source.upper(), target_page_id=target, context=context)


# ============================================================================
# TEST: PURE ASSEMBLY
# ============================================================================

class TestAssembleGraph:

    def test_isolated_pages_are_nodes(self, sample_pages):
        graph = assemble_graph("d1", sample_pages, [])
        assert graph.node_ids() == ["pa1", "pb1", "pc1"]
        assert graph.edges == []

    def test_edges_from_backlinks(self, sample_pages):
        graph = assemble_graph("d1", sample_pages, [backlink("pa1", "pb1", "See [[Page B]]")])

        assert len(graph.edges) == 1
        edge = graph.edges[0]
        assert (edge.source, edge.target) == ("pa1", "pb1")
        assert edge.label == "See [[Page B]]"
        assert edge.type == "reference"

    def test_dangling_edges_dropped(self, sample_pages):
        graph = assemble_graph("d1", sample_pages, [backlink("pa1", "gone"), backlink("other", "pb1")])
        assert graph.edges == []

    def test_duplicate_backlinks_collapse(self, sample_pages):
        graph = assemble_graph("d1", sample_pages, [backlink("pa1", "pb1"), backlink("pa1", "pb1")])
        assert len(graph.edges) == 1

    def test_rebuild_is_stable(self, sample_pages):
        links = [backlink("pa1", "pb1")]
        first = assemble_graph("d1", sample_pages, links)
        second = assemble_graph("d1", sample_pages, [backlink("pa1", "pb1")])

        assert first.node_ids() == second.node_ids()
        assert [e.id for e in first.edges] == [e.id for e in second.edges]

    def test_node_carries_properties(self):
        page = Page(
            id="p1", title="", database_id="d1",
            properties=[PageProperty(id="s", name="Status", type="select", value="Done")],
        )
        node = page_to_node(page)
        assert node.label == "p1"
        assert node.properties == {"Status": "Done"}


# ============================================================================
# TEST: CACHE-ASIDE READ
# ============================================================================

class TestGraphService:

    @pytest.mark.asyncio
    async def test_miss_builds_and_schedules(self, page_repo):
        cache_sync = MagicMock()
        cache_sync.get_cached_graph = AsyncMock(return_value=None)
        cache_sync.graph_generation.return_value = 3

        graph = await GraphService(page_repo, cache_sync).get_graph("d1")

        assert graph.node_ids() == ["pa1", "pb1", "pc1"]
        cache_sync.schedule_graph_repopulate.assert_called_once_with("d1", graph, generation=3)

    @pytest.mark.asyncio
    async def test_hit_skips_repository(self):
        cached = GraphView(database_id="d1")
        cache_sync = MagicMock()
        cache_sync.get_cached_graph = AsyncMock(return_value=cached)
        page_repo = AsyncMock()

        assert await GraphService(page_repo, cache_sync).get_graph("d1") is cached
        page_repo.find_pages_by_database.assert_not_awaited()
        cache_sync.schedule_graph_repopulate.assert_not_called()

    @pytest.mark.asyncio
    async def test_refresh_writes_through(self, page_repo, cache_sync):
        graph = await GraphService(page_repo, cache_sync).refresh_graph("d1")
        assert await cache_sync.get_cached_graph("d1") == graph

    @pytest.mark.asyncio
    async def test_miss_populates_cache_via_bus(self, page_repo, cache_sync, event_bus, background):
        event_bus.register(partial(GraphCacheHandler, cache_sync))

        graph = await GraphService(page_repo, cache_sync).get_graph("d1")
        await background.drain(timeout=1)

        assert await cache_sync.get_cached_graph("d1") == graph
