"""
Cache Synchronization Service - cache-aside reads and event-driven writes

Read path:
    get_cached_graph(database_id) / get_cached_databases(user_id)
    → single lookup by a key derived from the owner id
    → None on miss, store failure, or malformed payload (never raises)

Write path:
    schedule_*_repopulate() publishes a "fetched/assembled" event from a
    background task and returns immediately; the subscribed handler calls
    store_*() to write the value with a TTL.

Generations:
    Every invalidation bumps the key's generation. A scheduled repopulate
    carries the generation read before its snapshot was built, and the write
    is skipped if the key was invalidated since. A snapshot taken before a
    change is never written after it.

Every entry carries a TTL (default 1 hour), so a lost event heals itself
within one TTL.
"""
import logging
from typing import Dict, Iterable, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from models.api.graph import CachedDatabase, CachedDatabasesList, GraphView
from models.domain.database import Database
from models.domain.events import DatabasesFetchedEvent, GraphAssembledEvent
from services.background import BackgroundTasks
from services.event_bus import EventBus

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL_SECONDS = 3600

ModelT = TypeVar('ModelT', bound=BaseModel)


def graph_cache_key(database_id: str) -> str:
    """Redis key for a database's graph view"""
    return f"database:{database_id}:graph"


def databases_cache_key(user_id: str) -> str:
    """Redis key for a user's database list"""
    return f"user:{user_id}:databases"


def to_cached_databases(databases: Iterable[Database]) -> CachedDatabasesList:
    return CachedDatabasesList(databases=[
        CachedDatabase(id=db.id, title=db.title, url=db.url, icon=db.icon)
        for db in databases
    ])


class CacheSyncService:
    """
    Owns every cached view. Other components treat cached values as
    disposable and go through this service to read, write or invalidate.

    Generations are tracked per process, matching the single-process bus.
    """

    def __init__(
        self,
        cache_store,
        event_bus: EventBus,
        background: BackgroundTasks,
        ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS
    ):
        self.cache_store = cache_store
        self.event_bus = event_bus
        self.background = background
        self.ttl_seconds = ttl_seconds
        self._generations: Dict[str, int] = {}

    # =========================================================================
    # GENERATIONS
    # =========================================================================

    def generation(self, key: str) -> int:
        return self._generations.get(key, 0)

    def graph_generation(self, database_id: str) -> int:
        """Read before building a graph snapshot meant for the cache"""
        return self.generation(graph_cache_key(database_id))

    def databases_generation(self, user_id: str) -> int:
        return self.generation(databases_cache_key(user_id))

    # =========================================================================
    # READ OPERATIONS
    # =========================================================================

    async def get_cached_graph(self, database_id: str) -> Optional[GraphView]:
        """Cached graph view for a database, or None"""
        return await self._get_cached(graph_cache_key(database_id), GraphView)

    async def get_cached_databases(self, user_id: str) -> Optional[CachedDatabasesList]:
        """Cached database list for a user, or None"""
        return await self._get_cached(databases_cache_key(user_id), CachedDatabasesList)

    async def _get_cached(self, key: str, model: Type[ModelT]) -> Optional[ModelT]:
        try:
            raw = await self.cache_store.get(key)
        except Exception as e:
            logger.error(f"Cache read failed for {key}: {e}", exc_info=True)
            return None

        if raw is None:
            logger.debug(f"Cache miss: {key}")
            return None

        try:
            return model.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Discarding malformed cache entry {key}: {e.error_count()} error(s)")
            return None

    # =========================================================================
    # SCHEDULED REPOPULATION (fire-and-forget)
    # =========================================================================

    def schedule_graph_repopulate(self, database_id: str, graph: GraphView, generation: Optional[int] = None):
        """
        Publish a GraphAssembledEvent in the background.

        Returns without waiting for the cache write. Pass the generation
        read before building `graph`; defaults to the current one.
        """
        key = graph_cache_key(database_id)
        event = GraphAssembledEvent(
            database_id=database_id,
            graph=graph,
            cache_key=key,
            generation=self.generation(key) if generation is None else generation,
        )
        logger.debug(f"Scheduling graph cache repopulate for database {database_id}")
        return self._submit(event, f"repopulate:{key}")

    def schedule_databases_repopulate(
        self,
        user_id: str,
        databases: Iterable[Database],
        generation: Optional[int] = None
    ):
        """Publish a DatabasesFetchedEvent in the background."""
        key = databases_cache_key(user_id)
        event = DatabasesFetchedEvent(
            user_id=user_id,
            databases=tuple(databases),
            cache_key=key,
            generation=self.generation(key) if generation is None else generation,
        )
        logger.debug(f"Scheduling database list repopulate for user {user_id} with key {key}")
        return self._submit(event, f"repopulate:{key}")

    def _submit(self, event, name: str):
        try:
            return self.background.submit(self.event_bus.publish(event), name=name)
        except Exception as e:
            logger.error(f"Failed to schedule {event.event_name}: {e}", exc_info=True)
            return None

    # =========================================================================
    # WRITE / INVALIDATE (used by handlers)
    # =========================================================================

    async def store_graph(self, database_id: str, graph: GraphView, generation: Optional[int] = None) -> bool:
        return await self.store_at(graph_cache_key(database_id), graph, generation=generation)

    async def store_databases(self, user_id: str, databases: CachedDatabasesList) -> bool:
        return await self._store(databases_cache_key(user_id), databases)

    async def store_at(self, key: str, value: BaseModel, generation: Optional[int] = None) -> bool:
        """
        Write a view under a key carried by an event.

        With a generation, the write only happens if the key has not been
        invalidated since that generation was read.
        """
        if generation is not None and generation != self.generation(key):
            logger.debug(
                f"Skipping stale write to {key} "
                f"(snapshot generation {generation}, current {self.generation(key)})"
            )
            return False
        return await self._store(key, value)

    async def _store(self, key: str, value: BaseModel) -> bool:
        try:
            await self.cache_store.set(key, value.model_dump_json(), self.ttl_seconds)
        except Exception as e:
            logger.error(f"Cache write failed for {key}: {e}", exc_info=True)
            return False
        logger.debug(f"Cached {key} (ttl={self.ttl_seconds}s)")
        return True

    async def invalidate_graph(self, database_id: str) -> bool:
        return await self._invalidate(graph_cache_key(database_id))

    async def invalidate_databases(self, user_id: str) -> bool:
        return await self._invalidate(databases_cache_key(user_id))

    async def _invalidate(self, key: str) -> bool:
        # Bumped even if the delete fails, so pending snapshots are still dropped
        self._generations[key] = self.generation(key) + 1
        try:
            await self.cache_store.delete(key)
        except Exception as e:
            logger.error(f"Cache invalidation failed for {key}: {e}", exc_info=True)
            return False
        logger.debug(f"Invalidated {key}")
        return True
