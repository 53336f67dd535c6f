"""
Repository Pattern - Storage abstraction layer

Repositories hide storage details (PostgreSQL) from business logic.
Consumers work with domain models, not storage-specific types.

Storage:
- PageRepository: pages + backlinks (replace-based writes, cascading deletes)
- DatabaseRepository: source databases (no implicit cascade to pages)
"""
from .page_repository import PageRepository
from .database_repository import DatabaseRepository

__all__ = [
    'PageRepository',
    'DatabaseRepository',
]
