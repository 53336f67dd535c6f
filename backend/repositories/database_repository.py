"""
Database Repository - PostgreSQL storage for source databases

Storage: PostgreSQL (databases table). page_ids are read from the pages
table in the same stable order PageRepository uses.
"""
import logging
from typing import List, Optional

import asyncpg

from models.domain.database import Database
from utils.datetime_utils import to_datetime

logger = logging.getLogger(__name__)


class DatabaseRepository:
    """Repository for Database domain model"""

    def __init__(self, db_pool: asyncpg.Pool):
        self.db_pool = db_pool

    # =========================================================================
    # READ OPERATIONS
    # =========================================================================

    async def get_by_id(self, database_id: str) -> Optional[Database]:
        async with self.db_pool.acquire() as conn:
            row = await conn.fetchrow("""
                SELECT d.id, d.title, d.owner_id, d.url, d.description, d.icon,
                       d.last_synced_at, d.created_at, d.updated_at,
                       COALESCE(
                           ARRAY(SELECT p.id FROM pages p
                                 WHERE p.database_id = d.id
                                 ORDER BY p.created_at, p.id),
                           '{}'
                       ) AS page_ids
                FROM databases d
                WHERE d.id = $1
            """, database_id)

        return self._row_to_database(row) if row else None

    async def find_by_owner(self, owner_id: str) -> List[Database]:
        """Databases owned by a user, most recently synced first"""
        async with self.db_pool.acquire() as conn:
            rows = await conn.fetch("""
                SELECT d.id, d.title, d.owner_id, d.url, d.description, d.icon,
                       d.last_synced_at, d.created_at, d.updated_at,
                       COALESCE(
                           ARRAY(SELECT p.id FROM pages p
                                 WHERE p.database_id = d.id
                                 ORDER BY p.created_at, p.id),
                           '{}'
                       ) AS page_ids
                FROM databases d
                WHERE d.owner_id = $1
                ORDER BY d.last_synced_at DESC NULLS LAST, d.title
            """, owner_id)

        return [self._row_to_database(row) for row in rows]

    async def count_pages(self, database_id: str) -> int:
        async with self.db_pool.acquire() as conn:
            return await conn.fetchval("""
                SELECT COUNT(*) FROM pages WHERE database_id = $1
            """, database_id)

    # =========================================================================
    # WRITE OPERATIONS
    # =========================================================================

    async def save(self, database: Database) -> Database:
        """Insert or update a database (page membership lives on pages)"""
        async with self.db_pool.acquire() as conn:
            row = await conn.fetchrow("""
                INSERT INTO databases (
                    id, title, owner_id, url, description, icon,
                    last_synced_at, created_at, updated_at
                )
                VALUES ($1, $2, $3, $4, $5, $6, $7, COALESCE($8, NOW()), NOW())
                ON CONFLICT (id) DO UPDATE SET
                    title = EXCLUDED.title,
                    owner_id = EXCLUDED.owner_id,
                    url = EXCLUDED.url,
                    description = EXCLUDED.description,
                    icon = EXCLUDED.icon,
                    last_synced_at = EXCLUDED.last_synced_at,
                    updated_at = NOW()
                RETURNING created_at, updated_at
            """,
                database.id,
                database.title,
                database.owner_id,
                database.url,
                database.description,
                database.icon,
                database.last_synced_at,
                database.created_at
            )

        database.created_at = row['created_at']
        database.updated_at = row['updated_at']
        return database

    # =========================================================================
    # DELETE OPERATION
    # =========================================================================

    async def delete(self, database_id: str) -> bool:
        """
        Delete a database row.

        Pages are never deleted implicitly; the pages.database_id foreign
        key (ON DELETE RESTRICT) rejects the delete while pages remain.
        Callers check count_pages() first.
        """
        async with self.db_pool.acquire() as conn:
            result = await conn.execute("""
                DELETE FROM databases WHERE id = $1
            """, database_id)

        rows_deleted = int(result.split()[-1])
        if rows_deleted > 0:
            logger.info(f"Deleted database {database_id}")
            return True
        return False

    @staticmethod
    def _row_to_database(row) -> Database:
        return Database(
            id=row['id'],
            title=row['title'],
            owner_id=row['owner_id'],
            url=row['url'],
            description=row['description'],
            icon=row['icon'],
            page_ids=list(row['page_ids'] or []),
            last_synced_at=to_datetime(row['last_synced_at']),
            created_at=to_datetime(row['created_at']),
            updated_at=to_datetime(row['updated_at'])
        )
