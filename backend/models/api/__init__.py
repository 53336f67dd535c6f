"""
Pydantic read models (cached views)
"""
from .graph import (
    NodePosition,
    GraphNode,
    GraphEdge,
    GraphView,
    CachedDatabase,
    CachedDatabasesList,
)

__all__ = [
    'NodePosition',
    'GraphNode',
    'GraphEdge',
    'GraphView',
    'CachedDatabase',
    'CachedDatabasesList',
]
