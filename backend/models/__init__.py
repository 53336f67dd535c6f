"""
Models - Storage-agnostic data structures

Architecture:
- Domain models (models.domain) are pure Python objects (dataclasses)
- Cached read views (models.api) are pydantic models serialized to Redis
- Storage details (PostgreSQL) are abstracted via repositories
- Business logic operates on these models, not database rows
"""
