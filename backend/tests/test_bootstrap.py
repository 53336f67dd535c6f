"""
Container wiring tests
"""

from unittest.mock import AsyncMock, patch

import pytest

import bootstrap
from services.cache_store import MemoryCacheStore
from services.handlers import HANDLER_TABLE


@pytest.mark.asyncio
async def test_create_container_with_memory_cache(settings):
    pool = AsyncMock()
    with patch.object(bootstrap, "create_postgres_pool", new=AsyncMock(return_value=pool)):
        container = await bootstrap.create_container(settings)

    assert isinstance(container.cache_store, MemoryCacheStore)
    assert sum(container.event_bus.handler_count(e) for e in container.event_bus.registered_events()) == len(HANDLER_TABLE)
    assert container.extractor.context_chars == settings.backlink_context_chars

    await container.shutdown()

    pool.close.assert_awaited_once()
    assert container.event_bus.registered_events() == []


@pytest.mark.asyncio
async def test_create_container_with_redis_cache(settings):
    settings.cache_backend = "redis"
    store = AsyncMock()
    with patch.object(bootstrap, "create_postgres_pool", new=AsyncMock(return_value=AsyncMock())), \
            patch.object(bootstrap, "create_cache_store", new=AsyncMock(return_value=store)) as create_store:
        container = await bootstrap.create_container(settings)

    create_store.assert_awaited_once_with(settings.redis_url)
    assert container.cache_store is store

    await container.shutdown()
    store.close.assert_awaited_once()
