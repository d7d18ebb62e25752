"""
Queue Worker — Pops jobs from a DiskQueue and drives the handler.

Flow per job:
  pop ──▶ resolve body ──▶ handler(job) ──ok──▶ job.delete()  (message + blob)
                 │               │
                 └─────error─────┘
                         │
            attempts < max_attempts ──▶ job.release(backoff)   (blob kept)
            attempts ≥ max_attempts ──▶ dead-letter queue, message deleted,
                                        blob kept so the DLQ copy still resolves

For horizontal scaling run several workers against the same queue; the
transport's visibility lease keeps one job on one worker at a time.
"""
from __future__ import annotations

import asyncio
import structlog
from typing import Any, Awaitable, Callable, Optional

from job_queue.disk_job import DiskJob
from job_queue.disk_queue import DiskQueue

logger = structlog.get_logger()

JobHandler = Callable[[DiskJob], Awaitable[Any]]


class DiskQueueWorker:
    """
    Usage:
        worker = DiskQueueWorker(queue, handler, dead_letter_queue="default-dlq")
        await worker.run()                   # blocks until stop()
        processed = await worker.run_once()  # single pop, for cron-style drains
    """

    def __init__(
        self,
        queue: DiskQueue,
        handler: JobHandler,
        queue_name: Optional[str] = None,
        max_attempts: int = 3,
        backoff_seconds: int = 30,
        dead_letter_queue: Optional[str] = None,
    ):
        self.queue = queue
        self.handler = handler
        self.queue_name = queue_name
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.dead_letter_queue = dead_letter_queue
        self._running = False

    async def run_once(self) -> bool:
        """Process at most one job. Returns False when the queue was empty."""
        job = await self.queue.pop(self.queue_name)
        if job is None:
            return False

        logger.info("processing_job",
                    job_id=job.job_id,
                    job=job.name,
                    attempt=job.attempts(),
                    queue=job.queue_name)
        try:
            await job.resolve()
            await self.handler(job)
        except Exception as e:
            logger.error("job_handler_error",
                         job_id=job.job_id,
                         attempt=job.attempts(),
                         error=str(e))
            await self._handle_failure(job)
            return True

        await job.delete()
        return True

    async def _handle_failure(self, job: DiskJob):
        if job.attempts() >= self.max_attempts and self.dead_letter_queue:
            # The raw body is moved as-is: a pointer keeps pointing at its blob.
            await self.queue.transport.send(self.dead_letter_queue, job.message.body)
            await self.queue.transport.delete(job.queue_name, job.receipt_handle)
            job.deleted = True
            logger.warning("job_moved_to_dlq",
                           job_id=job.job_id,
                           attempts=job.attempts(),
                           dead_letter_queue=self.dead_letter_queue)
            return

        # exponential backoff, capped at the SQS visibility maximum (12h)
        backoff = min(self.backoff_seconds * (2 ** max(job.attempts() - 1, 0)), 43200)
        await job.release(backoff)

    async def run(self, poll_interval: float = 1.0):
        """Consume until stop() is called. Sleeps only when the queue is empty."""
        self._running = True
        logger.info("worker_started", queue=self.queue.get_queue(self.queue_name))
        while self._running:
            try:
                processed = await self.run_once()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("worker_error", error=str(e))
                processed = False
            if not processed:
                await asyncio.sleep(poll_interval)
        logger.info("worker_stopped")

    def stop(self):
        self._running = False
