"""
Database domain model
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


@dataclass
class Database:
    """
    Database domain model - a source-system collection of pages

    Storage: PostgreSQL (databases table)

    Written by sync only. The graph engine reads it but never mutates it.
    """
    id: str
    title: str
    owner_id: str
    url: Optional[str] = None
    description: Optional[str] = None
    icon: Optional[str] = None
    page_ids: List[str] = field(default_factory=list)

    # Timestamps
    last_synced_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def page_count(self) -> int:
        return len(self.page_ids)
