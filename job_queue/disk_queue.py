"""
DiskQueue — Queue facade that offloads large bodies to a blob store.

Producers and consumers use it like any queue:

    queue = DiskQueue(transport, policy, blob_store_factory=factory)
    await queue.push("SendInvoice", {"invoice_id": 42})
    job = await queue.pop()
    if job:
        data = await job.payload()      # fetched from the blob store if offloaded
        ...
        await job.delete()              # removes the message and its blob

The blob store is bound lazily: a factory passed at construction is only
invoked the first time a body is offloaded, resolved or cleaned up.
"""
from __future__ import annotations

import json
import uuid
import structlog
from datetime import timedelta
from typing import Any, Callable, Optional, Union

from job_queue.disk_job import DiskJob
from job_queue.offload import EncodedBody, OffloadCodec, delay_seconds
from job_queue.transport_base import QueueTransport, TransportError
from models.schemas import ClearResult, OffloadPolicy, QueueDepth
from storage.blob_base import BlobStore, StorageError

logger = structlog.get_logger()


class DiskQueue:

    def __init__(
        self,
        transport: QueueTransport,
        policy: OffloadPolicy,
        default_queue: str = "default",
        blob_store: Optional[BlobStore] = None,
        blob_store_factory: Optional[Callable[[], BlobStore]] = None,
    ):
        if blob_store is None and blob_store_factory is None:
            raise ValueError("DiskQueue needs a blob_store or a blob_store_factory")
        self.transport = transport
        self.policy = policy
        self.default_queue = default_queue
        self._blob_store = blob_store
        self._blob_store_factory = blob_store_factory
        self.codec = OffloadCodec(policy, lambda: self.blob_store)

    @property
    def blob_store(self) -> BlobStore:
        if self._blob_store is None:
            try:
                self._blob_store = self._blob_store_factory()
            except Exception as e:
                raise StorageError(f"Blob store unavailable: {e}", self.policy.store_identifier) from e
            logger.debug("blob_store_bound", store=self.policy.store_identifier)
        return self._blob_store

    def get_queue(self, queue: Optional[str] = None) -> str:
        return queue or self.default_queue

    # ── Producing ─────────────────────────────────────────

    @staticmethod
    def create_payload(job: str, data: Any = None) -> str:
        """Standard envelope: {"uuid", "job", "data"}; the uuid doubles as object key."""
        return json.dumps(
            {"uuid": str(uuid.uuid4()), "job": job, "data": data},
            separators=(",", ":"), ensure_ascii=False,
        )

    async def push(self, job: str, data: Any = None, queue: Optional[str] = None) -> str:
        return await self.push_raw(self.create_payload(job, data), queue)

    async def push_raw(self, payload: str, queue: Optional[str] = None,
                       delay: Union[int, float, timedelta] = 0) -> str:
        """Offload if needed, then exactly one send. A failed blob write raises
        before anything reaches the queue."""
        destination = self.get_queue(queue)
        encoded: EncodedBody = await self.codec.encode(payload)
        message_id = await self.transport.send(destination, encoded.body, delay_seconds(delay))
        logger.info("job_pushed",
                    queue=destination,
                    message_id=message_id,
                    offloaded=encoded.offloaded,
                    pointer=encoded.pointer,
                    delay=delay_seconds(delay))
        return message_id

    async def later(self, delay: Union[int, float, timedelta], job: str, data: Any = None,
                    queue: Optional[str] = None) -> str:
        return await self.push_raw(self.create_payload(job, data), queue, delay)

    async def later_raw(self, delay: Union[int, float, timedelta], payload: str,
                        queue: Optional[str] = None) -> str:
        return await self.push_raw(payload, queue, delay)

    # ── Consuming ─────────────────────────────────────────

    async def pop(self, queue: Optional[str] = None) -> Optional[DiskJob]:
        """One receive attempt. The body is not resolved until first accessed."""
        destination = self.get_queue(queue)
        messages = await self.transport.receive(destination, max_messages=1)
        if not messages:
            return None
        return DiskJob(self, messages[0], destination)

    # ── Maintenance ───────────────────────────────────────

    async def depth(self, queue: Optional[str] = None) -> QueueDepth:
        return await self.transport.get_queue_depth(self.get_queue(queue))

    async def size(self, queue: Optional[str] = None) -> int:
        return (await self.depth(queue)).total

    async def clear(self, queue: Optional[str] = None) -> ClearResult:
        """Delete every offloaded object under the prefix, then purge the queue.
        Both always run; storage and depth-read failures are reported, not raised."""
        destination = self.get_queue(queue)
        result = ClearResult(queue=destination, prefix=self.policy.key_prefix)

        try:
            await self.blob_store.delete_prefix(self.policy.store_identifier, self.policy.key_prefix)
        except StorageError as e:
            result.blobs_cleared = False
            result.cleanup_error = str(e)
            logger.warning("prefix_cleanup_failed",
                           queue=destination,
                           prefix=self.policy.key_prefix,
                           error=str(e))

        try:
            result.messages = (await self.transport.get_queue_depth(destination)).total
        except TransportError as e:
            result.messages = None
            logger.warning("queue_depth_unavailable", queue=destination, error=str(e))

        await self.transport.purge(destination)
        logger.info("queue_cleared",
                    queue=destination,
                    messages=result.messages,
                    blobs_cleared=result.blobs_cleared)
        return result
