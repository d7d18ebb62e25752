"""
Offload Codec — Decides when a message body goes to the blob store and what
travels on the queue instead.

    envelope ──should_offload?──no──▶ queue gets the envelope unchanged
                    │
                   yes
                    ▼
         compute_object_key(envelope)     "uuid" field, else sha256(envelope)
                    │
                    ▼
         blob write  {prefix}/{key}.json  ← original bytes, verbatim
                    │
                    ▼
         queue gets  {"pointer":"{prefix}/{key}.json","job":"<job>"}

The blob write happens before anything is sent, so a failed write aborts the
push and no pointer can ever reference a missing object.
"""
from __future__ import annotations

import hashlib
import json
import math
import structlog
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Callable, Optional, Union

from models.schemas import (
    IDENTIFIER_FIELD,
    DirectEnvelope, Envelope, OffloadPolicy, PointerEnvelope,
)
from storage.blob_base import BlobStore, StorageError

logger = structlog.get_logger()


class MalformedEnvelope(ValueError):
    """The envelope is not a JSON object. Never escapes this module."""


def _decode_object(raw: str) -> dict[str, Any]:
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise MalformedEnvelope(str(e)) from e
    if not isinstance(data, dict):
        raise MalformedEnvelope(f"Expected a JSON object, got {type(data).__name__}")
    return data


def _dumps(data: dict[str, Any]) -> str:
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False)


# ──────────────────────────────────────────────────────────────
#  Pure functions
# ──────────────────────────────────────────────────────────────

def body_size(envelope: str) -> int:
    return len(envelope.encode("utf-8"))


def should_offload(envelope: str, policy: OffloadPolicy) -> bool:
    return policy.always_store or body_size(envelope) > policy.size_threshold_bytes


def content_digest(envelope: str) -> str:
    return hashlib.sha256(envelope.encode("utf-8")).hexdigest()


def delay_seconds(delay: Union[int, float, timedelta]) -> int:
    """Whole seconds for a transport delay. Fractions round up, negatives become 0."""
    if isinstance(delay, timedelta):
        delay = delay.total_seconds()
    return max(math.ceil(delay), 0)


def compute_object_key(envelope: str) -> str:
    """The envelope's uuid if it has one, otherwise a digest of its exact bytes."""
    try:
        identifier = _decode_object(envelope).get(IDENTIFIER_FIELD)
    except MalformedEnvelope:
        identifier = None
    if isinstance(identifier, str) and identifier:
        return identifier
    return content_digest(envelope)


def pointer_path(object_key: str, policy: OffloadPolicy) -> str:
    return f"{policy.key_prefix}/{object_key}.json"


def build_pointer_envelope(object_key: str, policy: OffloadPolicy, original: str) -> PointerEnvelope:
    try:
        job = _decode_object(original).get("job")
    except MalformedEnvelope:
        job = None
    return PointerEnvelope(pointer=pointer_path(object_key, policy), job=job)


def serialize_pointer(pointer: PointerEnvelope) -> str:
    return _dumps(pointer.to_wire())


def parse_envelope(raw: str) -> Envelope:
    """Classify a queue body once: pointer if it carries a non-empty "pointer"."""
    try:
        data = _decode_object(raw)
    except MalformedEnvelope:
        return DirectEnvelope(body=raw)
    pointer = data.get("pointer")
    if isinstance(pointer, str) and pointer:
        return PointerEnvelope(pointer=pointer, job=data.get("job"))
    return DirectEnvelope(body=raw)


# ──────────────────────────────────────────────────────────────
#  Codec (the one side effect: the blob write)
# ──────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class EncodedBody:
    body: str                                 # what goes on the queue
    offloaded: bool = False
    object_key: Optional[str] = None
    pointer: Optional[str] = None             # full blob path when offloaded


class OffloadCodec:
    """Applies an OffloadPolicy to outgoing bodies.

    `blob_store` is a zero-arg accessor, only called when a body is actually
    offloaded.
    """

    def __init__(self, policy: OffloadPolicy, blob_store: Callable[[], BlobStore]):
        self.policy = policy
        self._blob_store = blob_store

    async def encode(self, envelope: str) -> EncodedBody:
        if not should_offload(envelope, self.policy):
            return EncodedBody(body=envelope)

        object_key = compute_object_key(envelope)
        pointer = build_pointer_envelope(object_key, self.policy, envelope)
        try:
            await self._blob_store().write(self.policy.store_identifier, pointer.pointer, envelope)
        except StorageError as e:
            logger.error("payload_offload_failed",
                         store=self.policy.store_identifier,
                         key=pointer.pointer,
                         error=str(e))
            raise

        logger.info("payload_offloaded",
                    store=self.policy.store_identifier,
                    key=pointer.pointer,
                    size=body_size(envelope),
                    forced=self.policy.always_store)
        return EncodedBody(
            body=serialize_pointer(pointer),
            offloaded=True,
            object_key=object_key,
            pointer=pointer.pointer,
        )
