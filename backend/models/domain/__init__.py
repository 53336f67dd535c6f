"""
Domain Models - Storage-agnostic data structures

These models represent the core domain entities independent of storage layer.
Services and handlers operate on these models, not raw database rows.

Graph Pipeline Models:
- Page: source page with content and properties (graph node)
- Database: source collection grouping pages
- Backlink: reference from one page's content to another (graph edge)
- Events: immutable change notifications published on the EventBus
"""

from .backlink import Backlink
from .database import Database
from .events import (
    DomainEvent,
    DatabasesFetchedEvent,
    GraphAssembledEvent,
    PageUpdatedEvent,
    PageDeletedEvent,
    BacklinksExtractedEvent,
    DatabaseExtractedEvent,
)
from .page import Page, PageProperty

__all__ = [
    # Core entities
    'Page',
    'PageProperty',
    'Database',
    'Backlink',

    # Events
    'DomainEvent',
    'DatabasesFetchedEvent',
    'GraphAssembledEvent',
    'PageUpdatedEvent',
    'PageDeletedEvent',
    'BacklinksExtractedEvent',
    'DatabaseExtractedEvent',
]
