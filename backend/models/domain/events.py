"""
Domain events published on the in-process EventBus.

Each event is an immutable record of {event_name, occurred_on, payload}.
Delivery is in-memory and best-effort: events are not persisted or retried.

Event names:
- databases.fetched    → a user's database list was fetched from the source
- graph.assembled      → a graph view was computed on a cache miss
- page.updated         → page title/content/properties/database changed
- page.deleted         → page removed (backlinks already cascaded)
- backlinks.extracted  → backlink records for a source page were replaced
- database.extracted   → every page of a database was re-extracted in one run
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import ClassVar, Optional, Tuple

from models.api.graph import GraphView
from utils.datetime_utils import utcnow


class DomainEvent:
    """Base for domain events. Subclasses are frozen dataclasses."""

    EVENT_NAME: ClassVar[str] = ''

    @property
    def event_name(self) -> str:
        return self.EVENT_NAME

    def payload(self) -> dict:
        return {}

    def to_dict(self) -> dict:
        return {
            'event_name': self.event_name,
            'occurred_on': self.occurred_on.isoformat(),
            'payload': self.payload(),
        }


@dataclass(frozen=True)
class DatabasesFetchedEvent(DomainEvent):
    """Fresh database list for a user, to be written to the cache"""
    EVENT_NAME: ClassVar[str] = 'databases.fetched'

    user_id: str
    databases: Tuple = ()
    cache_key: str = ''
    # Cache generation the snapshot was taken at (None: write unconditionally)
    generation: Optional[int] = None
    occurred_on: datetime = field(default_factory=utcnow)

    def payload(self) -> dict:
        return {
            'user_id': self.user_id,
            'database_ids': [db.id for db in self.databases],
            'cache_key': self.cache_key,
            'generation': self.generation,
        }


@dataclass(frozen=True)
class GraphAssembledEvent(DomainEvent):
    """Graph view computed from authoritative records, to be cached"""
    EVENT_NAME: ClassVar[str] = 'graph.assembled'

    database_id: str
    graph: GraphView
    cache_key: str = ''
    generation: Optional[int] = None
    occurred_on: datetime = field(default_factory=utcnow)

    def payload(self) -> dict:
        return {
            'database_id': self.database_id,
            'cache_key': self.cache_key,
            'generation': self.generation,
            'node_count': len(self.graph.nodes),
            'edge_count': len(self.graph.edges),
        }


@dataclass(frozen=True)
class PageUpdatedEvent(DomainEvent):
    EVENT_NAME: ClassVar[str] = 'page.updated'

    page_id: str
    database_id: str
    changes: Tuple[str, ...] = ()
    # Set when the page moved between databases
    previous_database_id: Optional[str] = None
    occurred_on: datetime = field(default_factory=utcnow)

    def payload(self) -> dict:
        return {
            'page_id': self.page_id,
            'database_id': self.database_id,
            'changes': list(self.changes),
            'previous_database_id': self.previous_database_id,
        }


@dataclass(frozen=True)
class PageDeletedEvent(DomainEvent):
    EVENT_NAME: ClassVar[str] = 'page.deleted'

    page_id: str
    database_id: str
    occurred_on: datetime = field(default_factory=utcnow)

    def payload(self) -> dict:
        return {'page_id': self.page_id, 'database_id': self.database_id}


@dataclass(frozen=True)
class BacklinksExtractedEvent(DomainEvent):
    """Stored backlinks of source_page_id now match its current content"""
    EVENT_NAME: ClassVar[str] = 'backlinks.extracted'

    source_page_id: str
    database_id: str
    target_page_ids: Tuple[str, ...] = ()
    # Part of a database-wide run; a DatabaseExtractedEvent follows it
    batched: bool = False
    occurred_on: datetime = field(default_factory=utcnow)

    def payload(self) -> dict:
        return {
            'source_page_id': self.source_page_id,
            'database_id': self.database_id,
            'target_page_ids': list(self.target_page_ids),
            'batched': self.batched,
        }


@dataclass(frozen=True)
class DatabaseExtractedEvent(DomainEvent):
    """Stored backlinks of every page in database_id match current content"""
    EVENT_NAME: ClassVar[str] = 'database.extracted'

    database_id: str
    source_page_ids: Tuple[str, ...] = ()
    backlink_count: int = 0
    occurred_on: datetime = field(default_factory=utcnow)

    def payload(self) -> dict:
        return {
            'database_id': self.database_id,
            'source_page_ids': list(self.source_page_ids),
            'backlink_count': self.backlink_count,
        }
