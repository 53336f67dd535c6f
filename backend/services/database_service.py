"""
Database Service - cache-aside database lists per user
"""
import logging
from typing import List

from models.api.graph import CachedDatabasesList
from models.domain.database import Database
from services.cache_sync import CacheSyncService, to_cached_databases
from services.errors import DatabaseNotEmptyError, DatabaseNotFoundError
from utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)


class DatabaseService:
    """
    Serves a user's databases from the cache, falling back to the
    repository and repopulating in the background on a miss.
    """

    def __init__(self, database_repo, cache_sync: CacheSyncService):
        self.database_repo = database_repo
        self.cache_sync = cache_sync

    async def list_databases(self, user_id: str) -> CachedDatabasesList:
        cached = await self.cache_sync.get_cached_databases(user_id)
        if cached is not None:
            logger.debug(f"Database list cache hit for user {user_id}")
            return cached

        generation = self.cache_sync.databases_generation(user_id)
        databases = await self.database_repo.find_by_owner(user_id)
        self.cache_sync.schedule_databases_repopulate(user_id, databases, generation=generation)
        return to_cached_databases(databases)

    async def sync_databases(self, user_id: str, databases: List[Database]) -> List[Database]:
        """
        Store databases fetched from the source for a user.

        The cache write is scheduled, not awaited.
        """
        synced_at = utcnow()
        saved = []
        for database in databases:
            if database.owner_id != user_id:
                raise ValueError(f"Database {database.id} is owned by {database.owner_id}, not {user_id}")
            database.mark_synced(synced_at)
            saved.append(await self.database_repo.save(database))

        logger.info(f"Synced {len(saved)} databases for user {user_id}")
        self.cache_sync.schedule_databases_repopulate(user_id, saved)
        return saved

    async def delete_database(self, database_id: str) -> None:
        """
        Delete an empty database.

        Raises:
            DatabaseNotFoundError: If it doesn't exist
            DatabaseNotEmptyError: If pages are still assigned to it
        """
        database = await self.database_repo.get_by_id(database_id)
        if database is None:
            raise DatabaseNotFoundError(database_id)

        page_count = await self.database_repo.count_pages(database_id)
        if page_count:
            raise DatabaseNotEmptyError(database_id, page_count)

        await self.database_repo.delete(database_id)
        await self.cache_sync.invalidate_databases(database.owner_id)
        await self.cache_sync.invalidate_graph(database_id)
