"""
Core data models for the offloading queue.
These are the universal types shared by the codec, the facade and the backends.
"""
from __future__ import annotations

from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


# SQS rejects bodies above 256 KiB; leave headroom for attributes.
MAX_QUEUE_BODY_BYTES = 250_000

# Envelope field used as the object key when present.
IDENTIFIER_FIELD = "uuid"


# ──────────────────────────────────────────────────────────────
#  Policy
# ──────────────────────────────────────────────────────────────

class OffloadPolicy(BaseModel):
    """How (and whether) a queue offloads message bodies to the blob store."""
    model_config = ConfigDict(frozen=True)

    always_store: bool = False
    cleanup_on_delete: bool = True
    store_identifier: str                     # blob store "disk" / bucket alias
    key_prefix: str                           # namespaces every object of this queue
    size_threshold_bytes: int = MAX_QUEUE_BODY_BYTES

    @field_validator("key_prefix")
    @classmethod
    def _normalize_prefix(cls, value: str) -> str:
        value = value.strip("/")
        if not value:
            raise ValueError("key_prefix must be a non-empty path segment")
        return value

    @field_validator("size_threshold_bytes")
    @classmethod
    def _positive_threshold(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("size_threshold_bytes must be positive")
        return value


# ──────────────────────────────────────────────────────────────
#  Envelopes — decided once at parse time
# ──────────────────────────────────────────────────────────────

class DirectEnvelope(BaseModel):
    """The real message body, carried on the queue as-is."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["direct"] = "direct"
    body: str


class PointerEnvelope(BaseModel):
    """Substitute body referencing an offloaded object."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["pointer"] = "pointer"
    pointer: str                              # "{prefix}/{key}.json"
    job: Optional[Any] = None                 # routing metadata, readable without a fetch

    def to_wire(self) -> dict[str, Any]:
        wire: dict[str, Any] = {"pointer": self.pointer}
        if self.job is not None:
            wire["job"] = self.job
        return wire


Envelope = Union[DirectEnvelope, PointerEnvelope]


# ──────────────────────────────────────────────────────────────
#  Transport-side types
# ──────────────────────────────────────────────────────────────

class QueueMessage(BaseModel):
    """A raw message as handed back by a queue transport."""
    body: str
    receipt_handle: str
    message_id: str
    approx_receive_count: int = 1
    attributes: dict[str, Any] = Field(default_factory=dict)


class QueueDepth(BaseModel):
    """Approximate message counts, for diagnostics only."""
    visible: int = 0
    delayed: int = 0
    in_flight: int = 0

    @property
    def total(self) -> int:
        return self.visible + self.delayed + self.in_flight


class ClearResult(BaseModel):
    """Outcome of clearing a queue and its offloaded objects."""
    queue: str
    prefix: str
    messages: Optional[int] = 0               # depth before the purge; None if unreadable
    blobs_cleared: bool = True
    cleanup_error: Optional[str] = None
