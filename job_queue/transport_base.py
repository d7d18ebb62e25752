"""
Queue Transport — Abstract interface the offloading queue sits on top of.

Implementations:
  - InMemoryQueueTransport (asyncio, single process)
  - RedisQueueTransport    (lists + sorted sets, production without AWS)
  - SqsQueueTransport      (Amazon SQS via boto3)

A transport only moves opaque string bodies; it knows nothing about
offloading or pointers.
"""
from __future__ import annotations

from abc import ABC, abstractmethod

from models.schemas import QueueDepth, QueueMessage


class TransportError(Exception):
    """A queue send/receive/delete/purge call failed. Never retried here."""

    def __init__(self, message: str, destination: str = "", operation: str = ""):
        self.destination = destination
        self.operation = operation
        super().__init__(message)


class QueueTransport(ABC):
    """Interface that all queue transports must implement."""

    @abstractmethod
    async def send(self, destination: str, body: str, delay_seconds: int = 0) -> str:
        """Enqueue a body and return the transport's message id."""
        ...

    @abstractmethod
    async def receive(self, destination: str, max_messages: int = 1) -> list[QueueMessage]:
        """Single non-blocking attempt. Returns [] when nothing is visible."""
        ...

    @abstractmethod
    async def delete(self, destination: str, receipt_handle: str) -> None:
        ...

    @abstractmethod
    async def release(self, destination: str, receipt_handle: str, delay_seconds: int = 0) -> None:
        """Make a received message visible again after `delay_seconds`."""
        ...

    @abstractmethod
    async def purge(self, destination: str) -> None:
        ...

    @abstractmethod
    async def get_queue_depth(self, destination: str) -> QueueDepth:
        ...

    async def close(self) -> None:
        """Release connections. No-op by default."""
