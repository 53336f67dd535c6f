"""
Change notification handlers

One handler = one side effect. Handlers are wired from HANDLER_TABLE, in
order, by register_handlers(); adding a reaction means adding a row, never
touching the producer or other handlers.

    databases.fetched    → DatabaseCacheHandler       (write user database list)
    graph.assembled      → GraphCacheHandler          (write graph view)
    page.updated         → GraphInvalidationHandler   (drop stale graph)
                         → BacklinkExtractionHandler  (re-extract backlinks)
    page.deleted         → GraphInvalidationHandler   (drop stale graph)
    backlinks.extracted  → GraphRefreshHandler        (rebuild + cache graph, unless batched)
    database.extracted   → GraphRefreshHandler        (rebuild + cache graph once per run)

A handler may publish other events but never the one it is handling.
"""
import logging
from functools import partial

from models.domain.events import (
    BacklinksExtractedEvent,
    DatabaseExtractedEvent,
    DatabasesFetchedEvent,
    GraphAssembledEvent,
    PageDeletedEvent,
    PageUpdatedEvent,
)
from services.backlink_extractor import BacklinkExtractor
from services.cache_sync import CacheSyncService, databases_cache_key, graph_cache_key, to_cached_databases
from services.event_bus import EventBus, EventHandler
from services.graph_assembler import GraphService

logger = logging.getLogger(__name__)


class DatabaseCacheHandler(EventHandler):
    """Writes a freshly fetched database list to the user's cache entry"""

    event_name = DatabasesFetchedEvent.EVENT_NAME

    def __init__(self, cache_sync: CacheSyncService):
        self.cache_sync = cache_sync

    async def handle(self, event: DatabasesFetchedEvent) -> None:
        key = event.cache_key or databases_cache_key(event.user_id)
        logger.info(f"Caching {len(event.databases)} databases for user {event.user_id} with key {key}")

        if await self.cache_sync.store_at(key, to_cached_databases(event.databases), generation=event.generation):
            logger.info(f"Successfully cached databases for user {event.user_id}")


class GraphCacheHandler(EventHandler):
    """Writes a graph assembled on a cache miss"""

    event_name = GraphAssembledEvent.EVENT_NAME

    def __init__(self, cache_sync: CacheSyncService):
        self.cache_sync = cache_sync

    async def handle(self, event: GraphAssembledEvent) -> None:
        key = event.cache_key or graph_cache_key(event.database_id)
        await self.cache_sync.store_at(key, event.graph, generation=event.generation)


class GraphInvalidationHandler(EventHandler):
    """Drops cached graphs touched by a page change (both databases on a move)"""

    event_name = PageUpdatedEvent.EVENT_NAME

    def __init__(self, cache_sync: CacheSyncService):
        self.cache_sync = cache_sync

    async def handle(self, event) -> None:
        database_ids = [event.database_id]
        previous = getattr(event, 'previous_database_id', None)
        if previous and previous != event.database_id:
            database_ids.append(previous)

        for database_id in database_ids:
            await self.cache_sync.invalidate_graph(database_id)
        logger.debug(f"{event.event_name} for page {event.page_id}: invalidated graphs {database_ids}")


class BacklinkExtractionHandler(EventHandler):
    """
    Re-extracts backlinks after a page change.

    - content changed → the page's own outgoing edges
    - page created, title changed or page moved → every page of the affected
      database(s), since other pages may now (or no longer) resolve to it
    - properties only → nothing to do
    """

    event_name = PageUpdatedEvent.EVENT_NAME

    def __init__(self, extractor: BacklinkExtractor):
        self.extractor = extractor

    async def handle(self, event: PageUpdatedEvent) -> None:
        changes = set(event.changes)

        if changes & {'created', 'title', 'database_id'}:
            await self.extractor.extract_for_database(event.database_id)
            if event.previous_database_id and event.previous_database_id != event.database_id:
                await self.extractor.extract_for_database(event.previous_database_id)
        elif 'content' in changes or not changes:
            await self.extractor.extract_for_page(event.page_id)
        else:
            logger.debug(f"Page {event.page_id} changed {sorted(changes)}; backlinks unaffected")


class GraphRefreshHandler(EventHandler):
    """
    Rebuilds and caches the graph once backlinks are replaced.

    A database-wide run refreshes once on its DatabaseExtractedEvent; the
    batched per-page events before it are skipped.
    """

    event_name = BacklinksExtractedEvent.EVENT_NAME

    def __init__(self, graph_service: GraphService):
        self.graph_service = graph_service

    async def handle(self, event) -> None:
        if getattr(event, 'batched', False):
            return

        graph = await self.graph_service.refresh_graph(event.database_id)
        logger.debug(
            f"Refreshed graph for database {event.database_id} after {event.event_name}: "
            f"{len(graph.nodes)} nodes, {len(graph.edges)} edges"
        )


# Registration order is delivery order
HANDLER_TABLE = (
    (DatabaseCacheHandler, DatabasesFetchedEvent.EVENT_NAME),
    (GraphCacheHandler, GraphAssembledEvent.EVENT_NAME),
    (GraphInvalidationHandler, PageUpdatedEvent.EVENT_NAME),
    (BacklinkExtractionHandler, PageUpdatedEvent.EVENT_NAME),
    (GraphInvalidationHandler, PageDeletedEvent.EVENT_NAME),
    (GraphRefreshHandler, BacklinksExtractedEvent.EVENT_NAME),
    (GraphRefreshHandler, DatabaseExtractedEvent.EVENT_NAME),
)


def register_handlers(
    event_bus: EventBus,
    cache_sync: CacheSyncService,
    extractor: BacklinkExtractor,
    graph_service: GraphService
) -> int:
    """
    Register every row of HANDLER_TABLE on the bus.

    Returns:
        Number of registrations
    """
    dependencies = {
        DatabaseCacheHandler: {'cache_sync': cache_sync},
        GraphCacheHandler: {'cache_sync': cache_sync},
        GraphInvalidationHandler: {'cache_sync': cache_sync},
        BacklinkExtractionHandler: {'extractor': extractor},
        GraphRefreshHandler: {'graph_service': graph_service},
    }

    for handler_cls, event_name in HANDLER_TABLE:
        event_bus.register(partial(handler_cls, **dependencies[handler_cls]), event_name)

    logger.info(f"Registered {len(HANDLER_TABLE)} event handlers")
    return len(HANDLER_TABLE)
