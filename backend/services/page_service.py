"""
Page Service - persistence of synced pages plus change notification

The external sync process hands fetched pages to this service. After each
write the page's pending domain events are published, which lets the
handlers invalidate caches and re-extract backlinks.
"""
import logging
from typing import List, Optional

from models.domain.backlink import Backlink
from models.domain.events import PageDeletedEvent, PageUpdatedEvent
from models.domain.page import Page, PageProperty
from services.errors import DatabaseNotFoundError, PageNotFoundError
from services.event_bus import EventBus

logger = logging.getLogger(__name__)


class PageService:
    """Writes pages and publishes their change events"""

    def __init__(self, page_repo, database_repo, event_bus: EventBus):
        self.page_repo = page_repo
        self.database_repo = database_repo
        self.event_bus = event_bus

    # =========================================================================
    # READ OPERATIONS
    # =========================================================================

    async def get_page(self, page_id: str) -> Page:
        page = await self.page_repo.get_by_id(page_id)
        if page is None:
            raise PageNotFoundError(page_id)
        return page

    async def get_page_with_backlinks(self, page_id: str) -> Page:
        """Page with the backlinks pointing at it"""
        page = await self.page_repo.get_by_id(page_id, with_backlinks=True)
        if page is None:
            raise PageNotFoundError(page_id)
        return page

    async def get_outgoing_backlinks(self, page_id: str) -> List[Backlink]:
        return await self.page_repo.find_backlinks_by_source(page_id)

    # =========================================================================
    # WRITE OPERATIONS
    # =========================================================================

    async def save_page(self, page: Page) -> Page:
        """
        Persist a page handed over by sync.

        New pages get a PageUpdatedEvent with changes=('created',) so the
        rest of their database can resolve references to them. Existing
        pages are diffed against the stored copy; a move re-extracts the
        whole database, so it covers any content change made with it.
        """
        existing = await self.page_repo.get_by_id(page.id)
        if existing is None:
            page.domain_events.append(PageUpdatedEvent(
                page_id=page.id,
                database_id=page.database_id,
                changes=('created',),
            ))
        elif existing.database_id == page.database_id:
            changes = tuple(
                field for field in ('title', 'content', 'properties')
                if getattr(page, field) != getattr(existing, field)
            )
            if changes:
                page.domain_events.append(PageUpdatedEvent(
                    page_id=page.id,
                    database_id=page.database_id,
                    changes=changes,
                ))
                logger.info(f"Resynced page {page.id}: {', '.join(changes)}")
        else:
            page.domain_events.append(PageUpdatedEvent(
                page_id=page.id,
                database_id=page.database_id,
                changes=('database_id',),
                previous_database_id=existing.database_id,
            ))

        saved = await self.page_repo.save(page)
        await self._publish_pending(saved)
        return saved

    async def update_page(
        self,
        page_id: str,
        title: Optional[str] = None,
        content: Optional[str] = None,
        properties: Optional[List[PageProperty]] = None
    ) -> List[str]:
        """
        Apply synced changes to an existing page.

        Returns:
            Names of changed fields (nothing is written or published if empty)
        """
        page = await self.get_page(page_id)
        changes = page.update(title=title, content=content, properties=properties)
        if not changes:
            logger.debug(f"Page {page_id} unchanged")
            return changes

        await self.page_repo.save(page)
        logger.info(f"Updated page {page_id}: {', '.join(changes)}")
        await self._publish_pending(page)
        return changes

    async def move_page(self, page_id: str, database_id: str) -> Page:
        """
        Reassign a page to another database.

        Raises:
            PageNotFoundError: If the page doesn't exist
            DatabaseNotFoundError: If the target database doesn't exist
        """
        page = await self.get_page(page_id)
        if await self.database_repo.get_by_id(database_id) is None:
            raise DatabaseNotFoundError(database_id)

        if page.move_to(database_id):
            await self.page_repo.save(page)
            logger.info(f"Moved page {page_id} to database {database_id}")
            await self._publish_pending(page)
        return page

    # =========================================================================
    # DELETE OPERATION
    # =========================================================================

    async def delete_page(self, page_id: str) -> bool:
        """
        Delete a page. Backlinks where it is source or target go with it.

        Returns:
            False if the page didn't exist
        """
        page = await self.page_repo.get_by_id(page_id)
        if page is None:
            return False

        if not await self.page_repo.delete_page(page_id):
            return False

        await self.event_bus.publish(PageDeletedEvent(page_id=page_id, database_id=page.database_id))
        return True

    async def _publish_pending(self, page: Page):
        events = page.pull_events()
        if events:
            await self.event_bus.publish_all(events)
