"""
DiskJob — A popped queue message whose body may live in the blob store.

Lifecycle:
  pop()      → DiskJob wraps the raw QueueMessage, nothing fetched yet
  resolve()  → on first body access a pointer body is fetched and cached
  delete()   → queue message removed, then (cleanup on) the blob, best-effort
  release()  → message made visible again; the blob is kept for the retry
"""
from __future__ import annotations

import json
import structlog
from datetime import timedelta
from typing import TYPE_CHECKING, Any, Optional, Union

from job_queue.offload import delay_seconds, parse_envelope
from models.schemas import Envelope, PointerEnvelope, QueueMessage
from storage.blob_base import StorageDeleteError, StorageError

if TYPE_CHECKING:
    from job_queue.disk_queue import DiskQueue

logger = structlog.get_logger()


class DiskJob:

    def __init__(self, queue: DiskQueue, message: QueueMessage, queue_name: str):
        self._queue = queue
        self.message = message
        self.queue_name = queue_name

        self._envelope: Optional[Envelope] = None
        self._resolved_body: Optional[str] = None
        self.offloaded = False
        self.pointer: Optional[str] = None    # resolved blob key, kept for delete()
        self.cleanup_error: Optional[StorageDeleteError] = None
        self.deleted = False
        self.released = False

    def __repr__(self) -> str:
        return f"<DiskJob id={self.job_id} queue={self.queue_name} offloaded={self.offloaded}>"

    # ── Raw message accessors ─────────────────────────────

    @property
    def job_id(self) -> str:
        return self.message.message_id

    @property
    def receipt_handle(self) -> str:
        return self.message.receipt_handle

    def attempts(self) -> int:
        return self.message.approx_receive_count

    @property
    def envelope(self) -> Envelope:
        """Direct or pointer, decided once from the raw queue body."""
        if self._envelope is None:
            self._envelope = parse_envelope(self.message.body)
        return self._envelope

    @property
    def name(self) -> Optional[Any]:
        """The job field, read from the pointer when offloaded so no fetch is needed."""
        envelope = self.envelope
        if isinstance(envelope, PointerEnvelope):
            return envelope.job
        try:
            data = json.loads(envelope.body)
        except ValueError:
            return None
        return data.get("job") if isinstance(data, dict) else None

    # ── Body resolution ───────────────────────────────────

    @property
    def is_resolved(self) -> bool:
        return self._resolved_body is not None

    async def resolve(self) -> str:
        """Fetch the offloaded body on first call. Read errors propagate and
        the message stays on the queue for redelivery."""
        if self._resolved_body is not None:
            return self._resolved_body

        envelope = self.envelope
        if isinstance(envelope, PointerEnvelope):
            store = self._queue.policy.store_identifier
            data = await self._queue.blob_store.read(store, envelope.pointer)
            self._resolved_body = data.decode("utf-8")
            self.offloaded = True
            self.pointer = envelope.pointer
            logger.debug("payload_resolved", job_id=self.job_id, key=envelope.pointer)
        else:
            self._resolved_body = envelope.body
        return self._resolved_body

    async def get_raw_body(self) -> str:
        return await self.resolve()

    async def payload(self) -> Any:
        return json.loads(await self.resolve())

    # ── Acknowledgement ───────────────────────────────────

    async def delete(self) -> Optional[StorageDeleteError]:
        """Acknowledge the job. Transport errors propagate; a failed blob
        cleanup is logged and returned, the queue delete stands."""
        await self._queue.transport.delete(self.queue_name, self.receipt_handle)
        self.deleted = True
        logger.info("job_deleted", job_id=self.job_id, queue=self.queue_name)

        # An unresolved job can still name its blob: the pointer is in the raw body.
        envelope = self.envelope
        key = self.pointer or (envelope.pointer if isinstance(envelope, PointerEnvelope) else None)
        if key is None or not self._queue.policy.cleanup_on_delete:
            return None

        store = self._queue.policy.store_identifier
        try:
            await self._queue.blob_store.delete_object(store, key)
        except StorageError as e:
            error = e if isinstance(e, StorageDeleteError) else StorageDeleteError(str(e), store, key)
            self.cleanup_error = error
            logger.warning("blob_cleanup_failed", job_id=self.job_id, key=key, error=str(e))
            return error
        logger.debug("blob_cleaned_up", job_id=self.job_id, key=key)
        return None

    async def release(self, delay: Union[int, float, timedelta] = 0) -> None:
        """Put the job back on the queue. The blob is never touched here."""
        await self._queue.transport.release(self.queue_name, self.receipt_handle, delay_seconds(delay))
        self.released = True
        logger.info("job_released", job_id=self.job_id, queue=self.queue_name, delay=delay_seconds(delay))
