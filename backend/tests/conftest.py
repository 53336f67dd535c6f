"""
Pytest configuration for graph sync tests.

Fixtures wire the real services over in-memory repositories and a
MemoryCacheStore, so tests exercise the same code paths as production
without PostgreSQL or Redis.
"""

import pytest
import pytest_asyncio

from config.settings import Settings
from models.domain.database import Database
from models.domain.page import Page
from services.background import BackgroundTasks
from services.cache_store import MemoryCacheStore
from services.cache_sync import CacheSyncService
from services.event_bus import EventBus
from tests.fakes import InMemoryDatabaseRepository, InMemoryPageRepository


def pytest_configure(config):
    """Configure pytest with asyncio marker."""
    config.addinivalue_line(
        "markers", "asyncio: mark test as an async test."
    )


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        cache_backend="memory",
        cache_ttl_seconds=3600,
        postgres_password="test",
    )


@pytest.fixture
def sample_pages():
    """Three pages of database d1; only pa1 references another page."""
    return [
        Page(id="pa1", title="Page A", database_id="d1", content="See [[Page B]] for details"),
        Page(id="pb1", title="Page B", database_id="d1", content="Nothing to see here"),
        Page(id="pc1", title="Page C", database_id="d1", content=None),
    ]


@pytest.fixture
def page_repo(sample_pages) -> InMemoryPageRepository:
    return InMemoryPageRepository(sample_pages)


@pytest.fixture
def database_repo(page_repo) -> InMemoryDatabaseRepository:
    return InMemoryDatabaseRepository(page_repo, [
        Database(id="d1", title="Notes", owner_id="u1"),
        Database(id="d2", title="Archive", owner_id="u1"),
    ])


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def cache_store() -> MemoryCacheStore:
    return MemoryCacheStore()


@pytest_asyncio.fixture
async def background():
    tasks = BackgroundTasks()
    yield tasks
    await tasks.drain(timeout=1)


@pytest.fixture
def cache_sync(cache_store, event_bus, background) -> CacheSyncService:
    return CacheSyncService(cache_store, event_bus, background, ttl_seconds=3600)
