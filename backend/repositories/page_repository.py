"""
Page Repository - PostgreSQL storage for pages and their backlinks

Storage strategy:
- pages: content, title, properties (JSONB), owning database
- backlinks: one row per (source_page_id, target_page_id), unique

Backlink writes are replace-based: all rows of a source page are deleted
and the new set inserted in one transaction, so stored edges always match
the page's current content.
"""
import json
import logging
from typing import List, Optional, Sequence

import asyncpg

from models.domain.backlink import Backlink
from models.domain.page import Page, PageProperty
from utils.datetime_utils import to_datetime

logger = logging.getLogger(__name__)


class PageRepository:
    """
    Repository for Page and Backlink domain models

    Consumers work with domain models; SQL stays here.
    """

    def __init__(self, db_pool: asyncpg.Pool):
        self.db_pool = db_pool

    # =========================================================================
    # READ OPERATIONS
    # =========================================================================

    async def get_by_id(self, page_id: str, with_backlinks: bool = False) -> Optional[Page]:
        """
        Retrieve page by ID.

        Args:
            page_id: Source-system page id
            with_backlinks: Also load the backlinks pointing at this page

        Returns:
            Page model or None
        """
        async with self.db_pool.acquire() as conn:
            row = await conn.fetchrow("""
                SELECT id, database_id, title, url, content, properties,
                       created_at, updated_at
                FROM pages
                WHERE id = $1
            """, page_id)

            if not row:
                return None

        page = self._row_to_page(row)
        if with_backlinks:
            page.backlinks = await self.find_backlinks_by_target(page_id)
        return page

    async def find_pages_by_database(self, database_id: str) -> List[Page]:
        """
        All pages of a database in stable order (created_at, id).

        The order matters: title resolution picks the first match.
        """
        async with self.db_pool.acquire() as conn:
            rows = await conn.fetch("""
                SELECT id, database_id, title, url, content, properties,
                       created_at, updated_at
                FROM pages
                WHERE database_id = $1
                ORDER BY created_at, id
            """, database_id)

        return [self._row_to_page(row) for row in rows]

    async def find_backlinks_by_source(self, page_id: str) -> List[Backlink]:
        """Outgoing edges of a page"""
        async with self.db_pool.acquire() as conn:
            rows = await conn.fetch("""
                SELECT id, source_page_id, source_page_title, target_page_id,
                       context, created_at
                FROM backlinks
                WHERE source_page_id = $1
                ORDER BY target_page_id
            """, page_id)

        return [self._row_to_backlink(row) for row in rows]

    async def find_backlinks_by_target(self, page_id: str) -> List[Backlink]:
        """Incoming edges of a page"""
        async with self.db_pool.acquire() as conn:
            rows = await conn.fetch("""
                SELECT id, source_page_id, source_page_title, target_page_id,
                       context, created_at
                FROM backlinks
                WHERE target_page_id = $1
                ORDER BY source_page_id
            """, page_id)

        return [self._row_to_backlink(row) for row in rows]

    async def find_backlinks_by_database(self, database_id: str) -> List[Backlink]:
        """Edges whose source page belongs to the database (single query for graph assembly)"""
        async with self.db_pool.acquire() as conn:
            rows = await conn.fetch("""
                SELECT b.id, b.source_page_id, b.source_page_title, b.target_page_id,
                       b.context, b.created_at
                FROM backlinks b
                JOIN pages p ON p.id = b.source_page_id
                WHERE p.database_id = $1
                ORDER BY b.source_page_id, b.target_page_id
            """, database_id)

        return [self._row_to_backlink(row) for row in rows]

    # =========================================================================
    # WRITE OPERATIONS
    # =========================================================================

    async def save(self, page: Page) -> Page:
        """
        Insert or update a page (backlinks are written separately).

        Returns:
            Page with database timestamps
        """
        async with self.db_pool.acquire() as conn:
            row = await conn.fetchrow("""
                INSERT INTO pages (
                    id, database_id, title, url, content, properties,
                    created_at, updated_at
                )
                VALUES ($1, $2, $3, $4, $5, $6::jsonb,
                        COALESCE($7, NOW()), COALESCE($8, NOW()))
                ON CONFLICT (id) DO UPDATE SET
                    database_id = EXCLUDED.database_id,
                    title = EXCLUDED.title,
                    url = EXCLUDED.url,
                    content = EXCLUDED.content,
                    properties = EXCLUDED.properties,
                    updated_at = EXCLUDED.updated_at
                RETURNING created_at, updated_at
            """,
                page.id,
                page.database_id,
                page.title,
                page.url,
                page.content,
                json.dumps([p.to_dict() for p in page.properties], default=str),
                page.created_at,
                page.updated_at
            )

        page.created_at = row['created_at']
        page.updated_at = row['updated_at']
        logger.debug(f"Saved page {page.id} (database {page.database_id})")
        return page

    async def replace_backlinks_for_source(self, page_id: str, backlinks: Sequence[Backlink]) -> int:
        """
        Replace every stored edge of a source page with a new set.

        Delete + insert run in one transaction. Duplicate pairs in the input
        are ignored by the unique constraint.

        Returns:
            Number of backlinks inserted
        """
        foreign = [b for b in backlinks if b.source_page_id != page_id]
        if foreign:
            raise ValueError(f"Backlinks for {page_id} include other sources: {[b.id for b in foreign]}")

        async with self.db_pool.acquire() as conn:
            async with conn.transaction():
                deleted = await conn.execute("""
                    DELETE FROM backlinks WHERE source_page_id = $1
                """, page_id)

                inserted = 0
                for backlink in backlinks:
                    result = await conn.execute("""
                        INSERT INTO backlinks (
                            id, source_page_id, source_page_title, target_page_id,
                            context, created_at
                        )
                        VALUES ($1, $2, $3, $4, $5, $6)
                        ON CONFLICT (source_page_id, target_page_id) DO NOTHING
                    """,
                        backlink.id,
                        backlink.source_page_id,
                        backlink.source_page_title,
                        backlink.target_page_id,
                        backlink.context,
                        backlink.created_at
                    )
                    inserted += int(result.split()[-1])

        logger.debug(
            f"Replaced backlinks for {page_id}: removed {int(deleted.split()[-1])}, inserted {inserted}"
        )
        return inserted

    # =========================================================================
    # DELETE OPERATION
    # =========================================================================

    async def delete_page(self, page_id: str) -> bool:
        """
        Delete a page and every backlink where it is source or target.

        Returns:
            True if the page existed
        """
        async with self.db_pool.acquire() as conn:
            async with conn.transaction():
                await conn.execute("""
                    DELETE FROM backlinks
                    WHERE source_page_id = $1 OR target_page_id = $1
                """, page_id)

                result = await conn.execute("""
                    DELETE FROM pages WHERE id = $1
                """, page_id)

        rows_deleted = int(result.split()[-1])
        if rows_deleted > 0:
            logger.info(f"Deleted page {page_id} with its backlinks")
            return True
        return False

    # =========================================================================
    # ROW MAPPING
    # =========================================================================

    @staticmethod
    def _row_to_page(row) -> Page:
        properties = row['properties'] or []
        if isinstance(properties, str):
            properties = json.loads(properties)

        return Page(
            id=row['id'],
            database_id=row['database_id'],
            title=row['title'] or '',
            url=row['url'],
            content=row['content'],
            properties=[
                PageProperty(id=p['id'], name=p['name'], type=p['type'], value=p.get('value'))
                for p in properties
            ],
            created_at=to_datetime(row['created_at']),
            updated_at=to_datetime(row['updated_at'])
        )

    @staticmethod
    def _row_to_backlink(row) -> Backlink:
        return Backlink(
            id=row['id'],
            source_page_id=row['source_page_id'],
            source_page_title=row['source_page_title'] or '',
            target_page_id=row['target_page_id'],
            context=row['context'],
            created_at=to_datetime(row['created_at'])
        )
