"""
Redis-based job queue feeding the graph worker

Uses LPUSH/BRPOP for efficient queue consumption

Jobs on 'queue:graph:extract':
- {'page_id': '...'}      → re-extract one page's backlinks
- {'database_id': '...'}  → re-extract every page of a database
"""
import json
import redis.asyncio as redis
from typing import Optional

from utils.datetime_utils import utcnow

GRAPH_QUEUE = 'queue:graph:extract'


class JobQueue:
    """
    Redis-based job queue

    Each job is consumed by exactly ONE worker (round-robin via BRPOP)
    """

    def __init__(self, redis_url: str):
        self.redis = None
        self.redis_url = redis_url

    async def connect(self):
        """Initialize Redis connection"""
        self.redis = await redis.from_url(self.redis_url, decode_responses=True)

    async def close(self):
        """Close Redis connection"""
        if self.redis:
            await self.redis.close()

    async def enqueue(self, queue_name: str, job: dict):
        """
        Add job to queue

        Example:
            await queue.enqueue('queue:graph:extract', {'page_id': '...'})
        """
        await self.redis.lpush(queue_name, json.dumps(job))

    async def dequeue(self, queue_name: str, timeout: int = 5) -> Optional[dict]:
        """
        Blocking pop from queue (BRPOP)

        Returns None on timeout
        """
        result = await self.redis.brpop(queue_name, timeout=timeout)
        if result:
            # result is a tuple: (queue_name, job_json)
            return json.loads(result[1])
        return None

    async def enqueue_page_extraction(self, page_id: str, queue_name: str = GRAPH_QUEUE):
        await self.enqueue(queue_name, {'page_id': page_id, 'timestamp': utcnow().isoformat()})

    async def enqueue_database_extraction(self, database_id: str, queue_name: str = GRAPH_QUEUE):
        await self.enqueue(queue_name, {'database_id': database_id, 'timestamp': utcnow().isoformat()})
