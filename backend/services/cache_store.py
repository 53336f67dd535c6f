"""
Cache store adapters

Thin async key/value interface consumed by CacheSyncService:
    get(key) -> str | None
    set(key, value, ttl_seconds)
    delete(key)
    exists(key) -> bool

RedisCacheStore is the production store. MemoryCacheStore keeps the same
contract in-process (single-node development, tests).

Stores raise on infrastructure failure; CacheSyncService decides how to
degrade.
"""
import time
import logging
from typing import Dict, Optional, Tuple

import redis.asyncio as redis

logger = logging.getLogger(__name__)


class RedisCacheStore:
    """
    Redis-backed cache store

    Values are strings (callers serialize). TTLs use SET ... EX so expiry is
    enforced by Redis itself.
    """

    def __init__(self, redis_url: str):
        self.redis = None
        self.redis_url = redis_url

    async def connect(self):
        """Initialize Redis connection"""
        self.redis = await redis.from_url(self.redis_url, decode_responses=True)
        logger.info(f"Cache store connected: {self.redis_url}")

    async def close(self):
        """Close Redis connection"""
        if self.redis:
            await self.redis.close()
            logger.info("Cache store disconnected")

    async def get(self, key: str) -> Optional[str]:
        """Returns None if the key doesn't exist or has expired"""
        return await self.redis.get(key)

    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = None):
        if ttl_seconds:
            await self.redis.set(key, value, ex=ttl_seconds)
        else:
            await self.redis.set(key, value)

    async def delete(self, key: str):
        await self.redis.delete(key)

    async def exists(self, key: str) -> bool:
        return await self.redis.exists(key) == 1

    async def expire(self, key: str, ttl_seconds: int):
        await self.redis.expire(key, ttl_seconds)


class MemoryCacheStore:
    """In-process cache store with TTL, same contract as RedisCacheStore"""

    def __init__(self, default_ttl: Optional[int] = None):
        self.cache: Dict[str, Tuple[str, Optional[float]]] = {}
        self.default_ttl = default_ttl

    async def connect(self):
        pass

    async def close(self):
        self.cache.clear()

    def _live_entry(self, key: str) -> Optional[Tuple[str, Optional[float]]]:
        entry = self.cache.get(key)
        if entry is None:
            return None
        value, expiry = entry
        if expiry is not None and time.monotonic() >= expiry:
            # Clean up expired entry
            del self.cache[key]
            return None
        return entry

    async def get(self, key: str) -> Optional[str]:
        entry = self._live_entry(key)
        return entry[0] if entry else None

    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = None):
        ttl = ttl_seconds or self.default_ttl
        expiry = time.monotonic() + ttl if ttl else None
        self.cache[key] = (value, expiry)

    async def delete(self, key: str):
        self.cache.pop(key, None)

    async def exists(self, key: str) -> bool:
        return self._live_entry(key) is not None

    async def expire(self, key: str, ttl_seconds: int):
        entry = self._live_entry(key)
        if entry:
            self.cache[key] = (entry[0], time.monotonic() + ttl_seconds)

    def cleanup_expired(self):
        """Remove all expired entries"""
        now = time.monotonic()
        expired_keys = [k for k, (_, expiry) in self.cache.items() if expiry is not None and now >= expiry]
        for key in expired_keys:
            del self.cache[key]
