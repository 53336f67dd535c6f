"""
Database Configuration
======================

Centralized connection configuration for workers and services.
Handles PostgreSQL and Redis connections with proper env var handling.
"""
import os
from typing import Optional
from dataclasses import dataclass


@dataclass
class PostgresConfig:
    """PostgreSQL connection configuration."""
    host: str
    port: int
    user: str
    password: str
    database: str
    min_size: int = 2
    max_size: int = 10

    @classmethod
    def from_env(cls, min_size: int = 2, max_size: int = 10) -> 'PostgresConfig':
        """Create config from environment variables."""
        host = os.getenv('POSTGRES_HOST')
        if not host:
            raise ValueError("POSTGRES_HOST environment variable is required")

        return cls(
            host=host,
            port=int(os.getenv('POSTGRES_PORT', '5432')),
            user=os.getenv('POSTGRES_USER', 'graph_user'),
            password=os.getenv('POSTGRES_PASSWORD', ''),
            database=os.getenv('POSTGRES_DB', 'backlinks'),
            min_size=min_size,
            max_size=max_size,
        )

    @classmethod
    def from_settings(cls, settings) -> 'PostgresConfig':
        """Create config from a Settings instance."""
        return cls(
            host=settings.postgres_host,
            port=settings.postgres_port,
            user=settings.postgres_user,
            password=settings.postgres_password,
            database=settings.postgres_db,
            min_size=settings.postgres_pool_min,
            max_size=settings.postgres_pool_max,
        )

    def to_asyncpg_kwargs(self) -> dict:
        """Convert to asyncpg.create_pool kwargs."""
        return {
            'host': self.host,
            'port': self.port,
            'user': self.user,
            'password': self.password,
            'database': self.database,
            'min_size': self.min_size,
            'max_size': self.max_size,
        }


@dataclass
class RedisConfig:
    """Redis connection configuration."""
    url: str

    @classmethod
    def from_env(cls) -> 'RedisConfig':
        """Create config from environment variables."""
        url = os.getenv('REDIS_URL')
        if not url:
            raise ValueError("REDIS_URL environment variable is required")

        return cls(url=url)


def get_postgres_config(min_size: int = 2, max_size: int = 10) -> PostgresConfig:
    """Get PostgreSQL configuration from environment."""
    return PostgresConfig.from_env(min_size=min_size, max_size=max_size)


def get_redis_config() -> RedisConfig:
    """Get Redis configuration from environment."""
    return RedisConfig.from_env()


async def create_postgres_pool(config: Optional[PostgresConfig] = None):
    """Create PostgreSQL connection pool (from environment unless config given)."""
    import asyncpg
    config = config or get_postgres_config()
    return await asyncpg.create_pool(**config.to_asyncpg_kwargs())


async def create_cache_store(redis_url: Optional[str] = None):
    """Create and connect the Redis cache store."""
    from services.cache_store import RedisCacheStore
    store = RedisCacheStore(redis_url or get_redis_config().url)
    await store.connect()
    return store


async def create_job_queue(redis_url: Optional[str] = None):
    """Create and connect Redis job queue."""
    from services.job_queue import JobQueue
    queue = JobQueue(redis_url or get_redis_config().url)
    await queue.connect()
    return queue
