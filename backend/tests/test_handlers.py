"""
Change Notification Handler Tests
=================================

Each handler performs one side effect. The registration table wires them in
order, and no handler publishes the event it is handling.
"""

from unittest.mock import ANY, AsyncMock, MagicMock

import pytest

from models.api.graph import GraphView
from models.domain.database import Database
from models.domain.events import (
    BacklinksExtractedEvent,
    DatabaseExtractedEvent,
    DatabasesFetchedEvent,
    GraphAssembledEvent,
    PageDeletedEvent,
    PageUpdatedEvent,
)
from services.backlink_extractor import BacklinkExtractor
from services.cache_sync import CacheSyncService
from services.event_bus import EventBus
from services.graph_assembler import GraphService
from services.handlers import (
    HANDLER_TABLE,
    BacklinkExtractionHandler,
    DatabaseCacheHandler,
    GraphCacheHandler,
    GraphInvalidationHandler,
    GraphRefreshHandler,
    register_handlers,
)


@pytest.fixture
def cache_sync_mock():
    return AsyncMock(spec=CacheSyncService)


@pytest.fixture
def extractor_mock():
    return AsyncMock(spec=BacklinkExtractor)


# ============================================================================
# TEST: CACHE WRITERS
# ============================================================================

class TestDatabaseCacheHandler:

    @pytest.mark.asyncio
    async def test_writes_list_under_event_key(self, cache_sync_mock):
        event = DatabasesFetchedEvent(
            user_id="u1",
            databases=(Database(id="d1", title="Notes", owner_id="u1"),),
            cache_key="user:u1:databases",
        )
        await DatabaseCacheHandler(cache_sync_mock).handle(event)

        cache_sync_mock.store_at.assert_awaited_once_with("user:u1:databases", ANY, generation=None)
        cached = cache_sync_mock.store_at.await_args.args[1]
        assert [db.id for db in cached.databases] == ["d1"]

    @pytest.mark.asyncio
    async def test_derives_key_when_missing(self, cache_sync_mock):
        await DatabaseCacheHandler(cache_sync_mock).handle(DatabasesFetchedEvent(user_id="u9"))
        cache_sync_mock.store_at.assert_awaited_once_with("user:u9:databases", ANY, generation=None)


class TestGraphCacheHandler:

    @pytest.mark.asyncio
    async def test_writes_graph(self, cache_sync_mock):
        graph = GraphView(database_id="d1")
        event = GraphAssembledEvent(database_id="d1", graph=graph, cache_key="database:d1:graph")

        await GraphCacheHandler(cache_sync_mock).handle(event)

        cache_sync_mock.store_at.assert_awaited_once_with("database:d1:graph", graph, generation=None)

    @pytest.mark.asyncio
    async def test_forwards_snapshot_generation(self, cache_sync_mock):
        graph = GraphView(database_id="d1")
        event = GraphAssembledEvent(
            database_id="d1", graph=graph, cache_key="database:d1:graph", generation=4,
        )

        await GraphCacheHandler(cache_sync_mock).handle(event)

        cache_sync_mock.store_at.assert_awaited_once_with("database:d1:graph", graph, generation=4)


class TestGraphInvalidationHandler:

    @pytest.mark.asyncio
    async def test_invalidates_database_graph(self, cache_sync_mock):
        await GraphInvalidationHandler(cache_sync_mock).handle(
            PageDeletedEvent(page_id="p1", database_id="d1")
        )
        cache_sync_mock.invalidate_graph.assert_awaited_once_with("d1")

    @pytest.mark.asyncio
    async def test_move_invalidates_both_databases(self, cache_sync_mock):
        await GraphInvalidationHandler(cache_sync_mock).handle(PageUpdatedEvent(
            page_id="p1", database_id="d2", changes=("database_id",), previous_database_id="d1",
        ))
        assert [c.args[0] for c in cache_sync_mock.invalidate_graph.await_args_list] == ["d2", "d1"]


# ============================================================================
# TEST: RE-EXTRACTION
# ============================================================================

class TestBacklinkExtractionHandler:

    @pytest.mark.asyncio
    async def test_content_change_extracts_page(self, extractor_mock):
        await BacklinkExtractionHandler(extractor_mock).handle(
            PageUpdatedEvent(page_id="p1", database_id="d1", changes=("content",))
        )
        extractor_mock.extract_for_page.assert_awaited_once_with("p1")
        extractor_mock.extract_for_database.assert_not_awaited()

    @pytest.mark.parametrize("change", ["title", "created"])
    @pytest.mark.asyncio
    async def test_resolution_change_extracts_database(self, extractor_mock, change):
        await BacklinkExtractionHandler(extractor_mock).handle(
            PageUpdatedEvent(page_id="p1", database_id="d1", changes=(change,))
        )
        extractor_mock.extract_for_database.assert_awaited_once_with("d1")
        extractor_mock.extract_for_page.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_move_extracts_both_databases(self, extractor_mock):
        await BacklinkExtractionHandler(extractor_mock).handle(PageUpdatedEvent(
            page_id="p1", database_id="d2", changes=("database_id",), previous_database_id="d1",
        ))
        assert [c.args[0] for c in extractor_mock.extract_for_database.await_args_list] == ["d2", "d1"]

    @pytest.mark.asyncio
    async def test_properties_only_is_skipped(self, extractor_mock):
        await BacklinkExtractionHandler(extractor_mock).handle(
            PageUpdatedEvent(page_id="p1", database_id="d1", changes=("properties",))
        )
        extractor_mock.extract_for_page.assert_not_awaited()
        extractor_mock.extract_for_database.assert_not_awaited()


class TestGraphRefreshHandler:

    @pytest.mark.asyncio
    async def test_refreshes_database_graph(self):
        graph_service = AsyncMock(spec=GraphService)
        graph_service.refresh_graph.return_value = GraphView(database_id="d1")

        await GraphRefreshHandler(graph_service).handle(
            BacklinksExtractedEvent(source_page_id="p1", database_id="d1")
        )
        graph_service.refresh_graph.assert_awaited_once_with("d1")

    @pytest.mark.asyncio
    async def test_batched_events_wait_for_database_run(self):
        graph_service = AsyncMock(spec=GraphService)
        graph_service.refresh_graph.return_value = GraphView(database_id="d1")
        handler = GraphRefreshHandler(graph_service)

        for page_id in ("p1", "p2", "p3"):
            await handler.handle(
                BacklinksExtractedEvent(source_page_id=page_id, database_id="d1", batched=True)
            )
        graph_service.refresh_graph.assert_not_awaited()

        await handler.handle(
            DatabaseExtractedEvent(database_id="d1", source_page_ids=("p1", "p2", "p3"))
        )
        graph_service.refresh_graph.assert_awaited_once_with("d1")


# ============================================================================
# TEST: REGISTRATION TABLE
# ============================================================================

class TestRegistrationTable:

    def test_register_handlers_wires_table_in_order(self, cache_sync_mock, extractor_mock):
        bus = EventBus()
        count = register_handlers(bus, cache_sync_mock, extractor_mock, MagicMock())

        assert count == len(HANDLER_TABLE)
        assert bus.handler_count("databases.fetched") == 1
        assert bus.handler_count("graph.assembled") == 1
        assert bus.handler_count("page.updated") == 2
        assert bus.handler_count("page.deleted") == 1
        assert bus.handler_count("backlinks.extracted") == 1
        assert bus.handler_count("database.extracted") == 1
        assert [name for name, _ in bus._handlers["page.updated"]] == [
            "GraphInvalidationHandler", "BacklinkExtractionHandler",
        ]

    @pytest.mark.asyncio
    async def test_no_handler_publishes_its_own_event(self, page_repo, cache_store, background):
        """Drive every event through a fully wired bus and check for re-entry."""
        bus = EventBus()
        cache_sync = CacheSyncService(cache_store, bus, background)
        extractor = BacklinkExtractor(page_repo, bus)
        register_handlers(bus, cache_sync, extractor, GraphService(page_repo, cache_sync))

        stack = []
        reentered = []
        original_publish = bus.publish

        async def tracking_publish(event):
            if event.event_name in stack:
                reentered.append(event.event_name)
            stack.append(event.event_name)
            try:
                await original_publish(event)
            finally:
                stack.pop()

        bus.publish = tracking_publish

        await bus.publish(DatabasesFetchedEvent(user_id="u1", cache_key="user:u1:databases"))
        await bus.publish(GraphAssembledEvent(database_id="d1", graph=GraphView(database_id="d1")))
        await bus.publish(PageUpdatedEvent(page_id="pa1", database_id="d1", changes=("content",)))
        await bus.publish(PageUpdatedEvent(page_id="pa1", database_id="d1", changes=("created",)))
        await bus.publish(PageDeletedEvent(page_id="pc1", database_id="d1"))
        await bus.publish(BacklinksExtractedEvent(source_page_id="pa1", database_id="d1"))
        await bus.publish(DatabaseExtractedEvent(database_id="d1", source_page_ids=("pa1", "pb1")))
        await background.drain(timeout=1)

        assert reentered == []
