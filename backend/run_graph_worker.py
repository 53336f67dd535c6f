#!/usr/bin/env python3
"""
Run Graph Worker - backlink extraction + graph cache refresh

Listens to queue:graph:extract for pages/databases to re-extract.
"""
import os
from pathlib import Path

# Load .env from project root (one level up from backend/)
from dotenv import load_dotenv
env_path = Path(__file__).parent.parent / '.env'
load_dotenv(env_path)

import asyncio
import logging

from bootstrap import create_container
from config.database import create_job_queue
from workers.graph_worker import GraphWorker


async def run_graph_worker():
    container = await create_container()
    job_queue = await create_job_queue(container.settings.redis_url)

    worker = GraphWorker(
        job_queue,
        container.extractor,
        queue_name=container.settings.graph_queue_name,
        worker_name=os.getenv('WORKER_NAME', 'graph-worker'),
    )

    try:
        await worker.start()
    finally:
        await job_queue.close()
        await container.shutdown()


def main():
    logging.basicConfig(
        level=os.getenv('LOG_LEVEL', 'INFO'),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    print("🕸️  Starting Graph Worker...")
    print("   Pipeline: Extraction → Backlinks → Graph cache")
    print("   Press Ctrl+C to stop\n")

    asyncio.run(run_graph_worker())


if __name__ == "__main__":
    main()
