"""
Page domain model
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Optional

from models.domain.backlink import Backlink
from models.domain.events import DomainEvent, PageUpdatedEvent
from utils.datetime_utils import utcnow


@dataclass(frozen=True)
class PageProperty:
    """Structured property copied from the source page (select, date, ...)"""
    id: str
    name: str
    type: str
    value: Any = None

    def to_dict(self) -> dict:
        return {'id': self.id, 'name': self.name, 'type': self.type, 'value': self.value}


@dataclass
class Page:
    """
    Page domain model - storage-agnostic representation

    Storage: PostgreSQL (pages table), backlinks in their own table.

    The id is the source-system id. `backlinks` holds the edges pointing AT
    this page and is only populated when loaded with backlinks.
    """
    id: str
    title: str
    database_id: str
    url: Optional[str] = None
    content: Optional[str] = None
    properties: List[PageProperty] = field(default_factory=list)
    backlinks: List[Backlink] = field(default_factory=list)

    # Timestamps
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # Pending domain events, drained by PageService after persistence
    domain_events: List[DomainEvent] = field(default_factory=list, repr=False, compare=False)

    def __post_init__(self):
        if not self.id:
            raise ValueError("Page requires a source-system id")
        if not self.database_id:
            raise ValueError(f"Page {self.id} must belong to a database")

    def update(
        self,
        title: Optional[str] = None,
        content: Optional[str] = None,
        properties: Optional[List[PageProperty]] = None,
        updated_at: Optional[datetime] = None,
    ) -> List[str]:
        """
        Apply changes from a sync and record a PageUpdatedEvent.

        Returns:
            Names of the fields that actually changed (empty if none)
        """
        changes = []
        if title is not None and title != self.title:
            self.title = title
            changes.append('title')
        if content is not None and content != self.content:
            self.content = content
            changes.append('content')
        if properties is not None and list(properties) != self.properties:
            self.properties = list(properties)
            changes.append('properties')

        if changes:
            self.updated_at = updated_at or utcnow()
            self.domain_events.append(PageUpdatedEvent(
                page_id=self.id,
                database_id=self.database_id,
                changes=tuple(changes),
            ))
        return changes

    def move_to(self, database_id: str, updated_at: Optional[datetime] = None) -> bool:
        """Reassign the page to another database. Returns False if unchanged."""
        if database_id == self.database_id:
            return False
        previous = self.database_id
        self.database_id = database_id
        self.updated_at = updated_at or utcnow()
        self.domain_events.append(PageUpdatedEvent(
            page_id=self.id,
            database_id=database_id,
            changes=('database_id',),
            previous_database_id=previous,
        ))
        return True

    def pull_events(self) -> List[DomainEvent]:
        """Return and clear pending domain events"""
        events, self.domain_events = self.domain_events, []
        return events
