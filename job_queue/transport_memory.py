"""
InMemoryQueueTransport — Development/test transport.

Mimics the SQS lifecycle closely enough for local runs:
  - delayed messages become visible after their delay
  - received messages are invisible for `visibility_timeout` seconds,
    then reappear unless deleted
  - every receive issues a fresh receipt handle

Single-process only; all data lost on restart.
"""
from __future__ import annotations

import time
import uuid
import structlog
from dataclasses import dataclass, field
from typing import Callable, Optional

from job_queue.transport_base import QueueTransport
from models.schemas import QueueDepth, QueueMessage

logger = structlog.get_logger()


@dataclass
class _Stored:
    message_id: str
    body: str
    visible_at: float
    receive_count: int = 0
    receipt_handle: str = ""
    in_flight: bool = False
    sent_at: float = field(default_factory=time.time)


class InMemoryQueueTransport(QueueTransport):

    def __init__(self, visibility_timeout: int = 30, clock: Callable[[], float] = time.time):
        self.visibility_timeout = visibility_timeout
        self._clock = clock
        self._queues: dict[str, list[_Stored]] = {}

    def _get_queue(self, name: str) -> list[_Stored]:
        if name not in self._queues:
            self._queues[name] = []
        return self._queues[name]

    async def send(self, destination: str, body: str, delay_seconds: int = 0) -> str:
        message_id = str(uuid.uuid4())
        now = self._clock()
        self._get_queue(destination).append(
            _Stored(message_id=message_id, body=body, visible_at=now + max(delay_seconds, 0), sent_at=now)
        )
        logger.debug("inmemory_message_sent", queue=destination,
                     message_id=message_id, delay=delay_seconds)
        return message_id

    async def receive(self, destination: str, max_messages: int = 1) -> list[QueueMessage]:
        now = self._clock()
        received = []
        for stored in self._get_queue(destination):
            if len(received) >= max_messages:
                break
            if stored.visible_at > now:
                continue
            stored.in_flight = True
            stored.receive_count += 1
            stored.receipt_handle = uuid.uuid4().hex
            stored.visible_at = now + self.visibility_timeout
            received.append(QueueMessage(
                body=stored.body,
                receipt_handle=stored.receipt_handle,
                message_id=stored.message_id,
                approx_receive_count=stored.receive_count,
                attributes={"SentTimestamp": str(int(stored.sent_at * 1000))},
            ))
        return received

    def _find(self, destination: str, receipt_handle: str) -> Optional[_Stored]:
        for stored in self._get_queue(destination):
            if stored.receipt_handle == receipt_handle:
                return stored
        return None

    async def delete(self, destination: str, receipt_handle: str) -> None:
        stored = self._find(destination, receipt_handle)
        if stored is not None:
            self._get_queue(destination).remove(stored)

    async def release(self, destination: str, receipt_handle: str, delay_seconds: int = 0) -> None:
        stored = self._find(destination, receipt_handle)
        if stored is not None:
            stored.in_flight = False
            stored.visible_at = self._clock() + max(delay_seconds, 0)

    async def purge(self, destination: str) -> None:
        self._queues[destination] = []
        logger.info("inmemory_queue_purged", queue=destination)

    async def get_queue_depth(self, destination: str) -> QueueDepth:
        now = self._clock()
        depth = QueueDepth()
        for stored in self._get_queue(destination):
            if stored.visible_at <= now:
                depth.visible += 1
            elif stored.in_flight:
                depth.in_flight += 1
            else:
                depth.delayed += 1
        return depth
