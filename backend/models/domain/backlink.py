"""
Backlink domain model
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from utils.datetime_utils import utcnow
from utils.id_generator import generate_backlink_id


@dataclass(frozen=True)
class Backlink:
    """
    Directed edge: source page content references target page.

    (source_page_id, target_page_id) is unique, and the id is derived from
    that pair so re-extraction reproduces the same id.

    ID format: bl_xxxxxxxxxxxxx (16 chars)
    """
    source_page_id: str
    source_page_title: str
    target_page_id: str
    context: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    id: str = ''

    def __post_init__(self):
        if not self.id:
            object.__setattr__(self, 'id', generate_backlink_id(self.source_page_id, self.target_page_id))

    @property
    def pair(self) -> tuple:
        return (self.source_page_id, self.target_page_id)

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'source_page_id': self.source_page_id,
            'source_page_title': self.source_page_title,
            'target_page_id': self.target_page_id,
            'context': self.context,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
