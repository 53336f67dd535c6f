"""
Graph assembly - joins pages and backlinks into a GraphView

Read path for a database graph (cache-aside):
1. CacheSyncService lookup by database id
2. On miss: load pages + backlinks, assemble, return immediately
3. Schedule a background repopulate so the next read hits the cache

Assembly rules:
- every page becomes exactly one node (isolated pages included)
- every backlink with both endpoints in the page set becomes one edge
- node id = page id, edge id = backlink id (stable across rebuilds)
"""
import logging
from typing import Iterable, List

from models.api.graph import GraphEdge, GraphNode, GraphView
from models.domain.backlink import Backlink
from models.domain.page import Page
from services.cache_sync import CacheSyncService

logger = logging.getLogger(__name__)


def page_to_node(page: Page) -> GraphNode:
    return GraphNode(
        id=page.id,
        label=page.title or page.id,
        type="page",
        properties={prop.name: prop.value for prop in page.properties},
    )


def backlink_to_edge(backlink: Backlink) -> GraphEdge:
    return GraphEdge(
        id=backlink.id,
        source=backlink.source_page_id,
        target=backlink.target_page_id,
        label=backlink.context,
        type="reference",
    )


def assemble_graph(database_id: str, pages: Iterable[Page], backlinks: Iterable[Backlink]) -> GraphView:
    """
    Build the node/edge view for a database.

    Edges pointing outside the page set are dropped so the view never
    contains dangling edges.
    """
    nodes: List[GraphNode] = []
    seen = set()
    for page in pages:
        if page.id in seen:
            continue
        seen.add(page.id)
        nodes.append(page_to_node(page))

    edges: List[GraphEdge] = []
    edge_ids = set()
    dropped = 0
    for backlink in backlinks:
        if backlink.source_page_id not in seen or backlink.target_page_id not in seen:
            dropped += 1
            continue
        if backlink.id in edge_ids:
            continue
        edge_ids.add(backlink.id)
        edges.append(backlink_to_edge(backlink))

    if dropped:
        logger.debug(f"Database {database_id}: dropped {dropped} edge(s) leaving the page set")

    return GraphView(database_id=database_id, nodes=nodes, edges=edges)


class GraphService:
    """Cache-aside access to database graphs"""

    def __init__(self, page_repo, cache_sync: CacheSyncService):
        self.page_repo = page_repo
        self.cache_sync = cache_sync

    async def build_graph(self, database_id: str) -> GraphView:
        """Assemble from authoritative records (no cache involved)"""
        pages = await self.page_repo.find_pages_by_database(database_id)
        backlinks = await self.page_repo.find_backlinks_by_database(database_id)
        return assemble_graph(database_id, pages, backlinks)

    async def get_graph(self, database_id: str) -> GraphView:
        """
        Graph for a database, from cache when possible.

        A miss (or unreadable cache) falls back to the repository and
        schedules a background repopulate; the caller never waits on it.
        The repopulate is dropped if the graph is invalidated meanwhile.
        """
        cached = await self.cache_sync.get_cached_graph(database_id)
        if cached is not None:
            logger.debug(f"Graph cache hit for database {database_id}")
            return cached

        generation = self.cache_sync.graph_generation(database_id)
        graph = await self.build_graph(database_id)
        logger.info(
            f"Assembled graph for database {database_id}: "
            f"{len(graph.nodes)} nodes, {len(graph.edges)} edges"
        )
        self.cache_sync.schedule_graph_repopulate(database_id, graph, generation=generation)
        return graph

    async def refresh_graph(self, database_id: str) -> GraphView:
        """Rebuild and write the cached graph now (used by change handlers)"""
        generation = self.cache_sync.graph_generation(database_id)
        graph = await self.build_graph(database_id)
        await self.cache_sync.store_graph(database_id, graph, generation=generation)
        return graph
