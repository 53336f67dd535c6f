"""
Application wiring for the graph sync pipeline

One EventBus per process, created here at startup and passed explicitly to
every component that publishes or subscribes. shutdown() tears it down.

Usage:
    container = await create_container()
    try:
        graph = await container.graph_service.get_graph(database_id)
    finally:
        await container.shutdown()
"""
import logging
from dataclasses import dataclass
from typing import Optional

from config.database import PostgresConfig, create_cache_store, create_postgres_pool
from config.settings import Settings, get_settings
from repositories.database_repository import DatabaseRepository
from repositories.page_repository import PageRepository
from services.background import BackgroundTasks
from services.backlink_extractor import BacklinkExtractor
from services.cache_store import MemoryCacheStore
from services.cache_sync import CacheSyncService
from services.database_service import DatabaseService
from services.event_bus import EventBus
from services.graph_assembler import GraphService
from services.handlers import register_handlers
from services.page_service import PageService

logger = logging.getLogger(__name__)


@dataclass
class GraphSyncContainer:
    """Everything a process needs, built once"""
    settings: Settings
    event_bus: EventBus
    background: BackgroundTasks
    cache_store: object
    page_repo: object
    database_repo: object
    cache_sync: CacheSyncService
    extractor: BacklinkExtractor
    graph_service: GraphService
    page_service: PageService
    database_service: DatabaseService
    db_pool: Optional[object] = None
    drain_timeout: float = 10.0

    async def shutdown(self):
        """Drain background work, then release connections"""
        await self.background.drain(timeout=self.drain_timeout)
        self.event_bus.clear()

        try:
            await self.cache_store.close()
        except Exception as e:
            logger.warning(f"Error closing cache store: {e}")

        if self.db_pool is not None:
            await self.db_pool.close()
        logger.info("Graph sync container shut down")


def build_container(
    settings: Settings,
    page_repo,
    database_repo,
    cache_store,
    db_pool=None
) -> GraphSyncContainer:
    """
    Wire services and register handlers over already-created stores.

    Registration errors (MissingHandlerMetadataError) propagate: a process
    with a misconfigured handler must not start.
    """
    event_bus = EventBus()
    background = BackgroundTasks()

    cache_sync = CacheSyncService(cache_store, event_bus, background, ttl_seconds=settings.cache_ttl_seconds)
    extractor = BacklinkExtractor(page_repo, event_bus, context_chars=settings.backlink_context_chars)
    graph_service = GraphService(page_repo, cache_sync)

    register_handlers(event_bus, cache_sync, extractor, graph_service)

    return GraphSyncContainer(
        settings=settings,
        event_bus=event_bus,
        background=background,
        cache_store=cache_store,
        page_repo=page_repo,
        database_repo=database_repo,
        cache_sync=cache_sync,
        extractor=extractor,
        graph_service=graph_service,
        page_service=PageService(page_repo, database_repo, event_bus),
        database_service=DatabaseService(database_repo, cache_sync),
        db_pool=db_pool,
    )


async def create_container(settings: Optional[Settings] = None) -> GraphSyncContainer:
    """Connect to PostgreSQL and the cache, then wire everything"""
    settings = settings or get_settings()

    db_pool = await create_postgres_pool(PostgresConfig.from_settings(settings))

    if settings.cache_backend == "memory":
        cache_store = MemoryCacheStore(default_ttl=settings.cache_ttl_seconds)
    else:
        cache_store = await create_cache_store(settings.redis_url)

    container = build_container(
        settings,
        page_repo=PageRepository(db_pool),
        database_repo=DatabaseRepository(db_pool),
        cache_store=cache_store,
        db_pool=db_pool,
    )
    logger.info(
        f"Graph sync ready (cache={settings.cache_backend}, ttl={settings.cache_ttl_seconds}s, "
        f"events={container.event_bus.registered_events()})"
    )
    return container
