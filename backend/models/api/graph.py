"""
Pydantic models for cached read views

GraphView and CachedDatabasesList are derived artifacts stored in Redis.
They are never authoritative and can always be rebuilt from pages/backlinks.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from utils.datetime_utils import utcnow


class NodePosition(BaseModel):
    """Layout position (only set when placed by a client)"""
    x: float
    y: float


class GraphNode(BaseModel):
    """One node per page. id is the page id."""
    id: str
    label: str
    type: str = "page"
    properties: Dict[str, Any] = Field(default_factory=dict)
    position: Optional[NodePosition] = None


class GraphEdge(BaseModel):
    """One edge per backlink. id is the backlink id."""
    id: str
    source: str
    target: str
    label: Optional[str] = None
    type: str = "reference"


class GraphView(BaseModel):
    """Node/edge view of a database's pages and backlinks"""
    database_id: str
    nodes: List[GraphNode] = Field(default_factory=list)
    edges: List[GraphEdge] = Field(default_factory=list)
    generated_at: datetime = Field(default_factory=utcnow)

    def node_ids(self) -> List[str]:
        return [node.id for node in self.nodes]


class CachedDatabase(BaseModel):
    """Lightweight database info stored in the per-user cache entry"""
    id: str
    title: str
    url: Optional[str] = None
    icon: Optional[str] = None
    cached_at: datetime = Field(default_factory=utcnow)


class CachedDatabasesList(BaseModel):
    """Collection of cached databases for a user"""
    databases: List[CachedDatabase] = Field(default_factory=list)
    cached_at: datetime = Field(default_factory=utcnow)
