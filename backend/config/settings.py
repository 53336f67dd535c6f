from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Environment variables can come from:
    - docker-compose.yml environment section
    - .env file
    - System environment

    Variable names match docker-compose conventions:
    - POSTGRES_HOST, POSTGRES_PORT, etc. (for database)
    - REDIS_URL (for cache and job queue)
    - CACHE_TTL_SECONDS, BACKLINK_CONTEXT_CHARS (for the graph pipeline)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",  # Ignore extra env vars
    )

    # Environment
    environment: str = "development"
    log_level: str = "INFO"

    # PostgreSQL (from docker-compose)
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "graph_user"
    postgres_password: str = "graph_pass"
    postgres_db: str = "backlinks"
    postgres_pool_min: int = 2
    postgres_pool_max: int = 10
    database_url: Optional[str] = Field(default=None, validate_default=True)

    # Redis
    redis_url: str = "redis://localhost:6379"

    # Graph cache ("redis" or "memory")
    cache_backend: str = "redis"
    cache_ttl_seconds: int = 3600

    # Backlink extraction
    backlink_context_chars: int = 50

    # Job queue feeding the graph worker
    graph_queue_name: str = "queue:graph:extract"

    @field_validator('cache_ttl_seconds', 'backlink_context_chars')
    @classmethod
    def must_be_positive(cls, v):
        if v <= 0:
            raise ValueError("must be a positive integer")
        return v

    @field_validator('database_url', mode='before')
    @classmethod
    def construct_database_url(cls, v, info):
        """Construct database URL from components if not explicitly set"""
        if v:
            return v

        data = info.data
        host = data.get('postgres_host', 'localhost')
        port = data.get('postgres_port', 5432)
        user = data.get('postgres_user', 'graph_user')
        password = data.get('postgres_password', 'graph_pass')
        db = data.get('postgres_db', 'backlinks')

        return f"postgresql://{user}:{password}@{host}:{port}/{db}"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
