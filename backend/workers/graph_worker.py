"""
Graph Worker - consumes extraction jobs from Redis

The external sync process enqueues jobs after it writes fetched pages:
    {'page_id': ...}      → BacklinkExtractor.extract_for_page
    {'database_id': ...}  → BacklinkExtractor.extract_for_database

Extraction publishes BacklinksExtractedEvent, so the registered handlers
refresh the cached graph without the worker knowing about them.
"""
import asyncio
import signal
import logging

from services.backlink_extractor import BacklinkExtractor
from services.errors import PageNotFoundError
from services.job_queue import GRAPH_QUEUE, JobQueue

logger = logging.getLogger(__name__)


class GraphWorker:
    """
    Queue consumer for backlink extraction

    - Signal handling (graceful shutdown)
    - BRPOP consumption with a short timeout so shutdown is noticed
    - Per-job failure boundary: one bad job never stops the loop
    """

    def __init__(
        self,
        job_queue: JobQueue,
        extractor: BacklinkExtractor,
        queue_name: str = GRAPH_QUEUE,
        worker_name: str = 'graph-worker'
    ):
        self.job_queue = job_queue
        self.extractor = extractor
        self.queue_name = queue_name
        self.worker_name = worker_name
        self.running = False
        self.jobs_processed = 0
        self.jobs_failed = 0

    async def start(self):
        """Main worker loop"""
        self._setup_signal_handlers()

        self.running = True
        logger.info(f"[{self.worker_name}] Started, listening on {self.queue_name}")

        while self.running:
            try:
                job = await self.job_queue.dequeue(self.queue_name, timeout=5)
                if job:
                    await self.run_job(job)

            except asyncio.CancelledError:
                logger.info(f"[{self.worker_name}] Received cancellation signal")
                break
            except Exception as e:
                logger.error(f"[{self.worker_name}] Worker loop error: {e}", exc_info=True)
                await asyncio.sleep(1)

        logger.info(
            f"[{self.worker_name}] Shutting down. "
            f"Processed: {self.jobs_processed}, Failed: {self.jobs_failed}"
        )

    def stop(self):
        self.running = False

    async def run_job(self, job: dict) -> bool:
        """
        Process one job inside its own failure boundary.

        Returns:
            True if the job succeeded
        """
        logger.debug(f"[{self.worker_name}] Received job: {job}")
        try:
            await self.process(job)
        except PageNotFoundError as e:
            # Page deleted between enqueue and processing
            self.jobs_failed += 1
            logger.warning(f"[{self.worker_name}] Skipping job {job}: {e}")
            return False
        except Exception as e:
            self.jobs_failed += 1
            logger.error(f"[{self.worker_name}] Job failed: {job}: {e}", exc_info=True)
            return False

        self.jobs_processed += 1
        return True

    async def process(self, job: dict):
        if job.get('page_id'):
            backlinks = await self.extractor.extract_for_page(job['page_id'])
            logger.info(f"[{self.worker_name}] Page {job['page_id']}: {len(backlinks)} backlinks")
        elif job.get('database_id'):
            total = await self.extractor.extract_for_database(job['database_id'])
            logger.info(f"[{self.worker_name}] Database {job['database_id']}: {total} backlinks")
        else:
            raise ValueError(f"Job has neither page_id nor database_id: {job}")

    def _setup_signal_handlers(self):
        """Setup graceful shutdown on SIGTERM/SIGINT"""
        def shutdown_handler(signum, frame):
            logger.info(f"[{self.worker_name}] Received signal {signum}, shutting down...")
            self.running = False

        signal.signal(signal.SIGTERM, shutdown_handler)
        signal.signal(signal.SIGINT, shutdown_handler)
