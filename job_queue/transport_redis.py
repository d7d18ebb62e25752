"""
RedisQueueTransport — Queue transport backed by Redis lists + sorted sets.

Key layout per destination (namespace "offload" by default):
  offload:{queue}            LIST   ready message ids (FIFO)
  offload:{queue}:delayed    ZSET   id → time the message becomes visible
  offload:{queue}:reserved   ZSET   id → time the visibility lease expires
  offload:{queue}:messages   HASH   id → JSON {body, receive_count, sent_at}
  offload:{queue}:receipts   HASH   id → current receipt handle

Receipt handles are "{message_id}:{nonce}"; a new nonce is issued on every
receive, so releasing with a stale handle is a no-op.
"""
from __future__ import annotations

import json
import time
import uuid
import structlog
from typing import Any, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from job_queue.transport_base import QueueTransport, TransportError
from models.schemas import QueueDepth, QueueMessage

logger = structlog.get_logger()


class RedisQueueTransport(QueueTransport):

    def __init__(self, redis_url: str = "redis://localhost:6379", namespace: str = "offload",
                 visibility_timeout: int = 30, client: Any = None):
        self._redis_url = redis_url
        self._namespace = namespace
        self.visibility_timeout = visibility_timeout
        self._redis = client

    def _client(self):
        if self._redis is None:
            self._redis = aioredis.from_url(
                self._redis_url,
                decode_responses=True,
                max_connections=20,
            )
            logger.info("redis_transport_connected", url=self._redis_url)
        return self._redis

    async def close(self):
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    def _key(self, destination: str, suffix: str = "") -> str:
        base = f"{self._namespace}:{destination}"
        return f"{base}:{suffix}" if suffix else base

    # ── QueueTransport interface ──────────────────────────

    async def send(self, destination: str, body: str, delay_seconds: int = 0) -> str:
        message_id = str(uuid.uuid4())
        record = json.dumps({"body": body, "receive_count": 0, "sent_at": time.time()})
        try:
            pipe = self._client().pipeline()
            pipe.hset(self._key(destination, "messages"), message_id, record)
            if delay_seconds > 0:
                pipe.zadd(self._key(destination, "delayed"), {message_id: time.time() + delay_seconds})
            else:
                pipe.rpush(self._key(destination), message_id)
            await pipe.execute()
        except RedisError as e:
            raise TransportError(f"Redis send failed: {e}", destination, "send") from e
        return message_id

    async def receive(self, destination: str, max_messages: int = 1) -> list[QueueMessage]:
        r = self._client()
        try:
            await self._migrate(destination, "delayed")
            await self._migrate(destination, "reserved")

            received = []
            while len(received) < max_messages:
                message_id = await r.lpop(self._key(destination))
                if message_id is None:
                    break
                message = await self._reserve(destination, message_id)
                if message is not None:
                    received.append(message)
            return received
        except RedisError as e:
            raise TransportError(f"Redis receive failed: {e}", destination, "receive") from e

    async def _migrate(self, destination: str, source: str):
        """Move ids whose score has passed from a sorted set back onto the ready list."""
        r = self._client()
        zkey = self._key(destination, source)
        due = await r.zrangebyscore(zkey, "-inf", time.time())
        for message_id in due:
            # zrem wins for exactly one consumer
            if await r.zrem(zkey, message_id):
                if source == "reserved":
                    await r.hdel(self._key(destination, "receipts"), message_id)
                await r.rpush(self._key(destination), message_id)

    async def _reserve(self, destination: str, message_id: str) -> Optional[QueueMessage]:
        r = self._client()
        raw = await r.hget(self._key(destination, "messages"), message_id)
        if raw is None:
            return None  # deleted while queued
        record = json.loads(raw)
        record["receive_count"] = int(record.get("receive_count", 0)) + 1
        handle = f"{message_id}:{uuid.uuid4().hex}"

        pipe = r.pipeline()
        pipe.hset(self._key(destination, "messages"), message_id, json.dumps(record))
        pipe.hset(self._key(destination, "receipts"), message_id, handle)
        pipe.zadd(self._key(destination, "reserved"), {message_id: time.time() + self.visibility_timeout})
        await pipe.execute()

        return QueueMessage(
            body=record["body"],
            receipt_handle=handle,
            message_id=message_id,
            approx_receive_count=record["receive_count"],
            attributes={"SentTimestamp": str(int(record.get("sent_at", 0) * 1000))},
        )

    async def delete(self, destination: str, receipt_handle: str) -> None:
        message_id = receipt_handle.split(":", 1)[0]
        try:
            pipe = self._client().pipeline()
            pipe.zrem(self._key(destination, "reserved"), message_id)
            pipe.zrem(self._key(destination, "delayed"), message_id)
            pipe.lrem(self._key(destination), 0, message_id)
            pipe.hdel(self._key(destination, "receipts"), message_id)
            pipe.hdel(self._key(destination, "messages"), message_id)
            await pipe.execute()
        except RedisError as e:
            raise TransportError(f"Redis delete failed: {e}", destination, "delete") from e

    async def release(self, destination: str, receipt_handle: str, delay_seconds: int = 0) -> None:
        message_id = receipt_handle.split(":", 1)[0]
        r = self._client()
        try:
            current = await r.hget(self._key(destination, "receipts"), message_id)
            if current != receipt_handle:
                logger.debug("redis_release_stale_handle", queue=destination, message_id=message_id)
                return
            pipe = r.pipeline()
            pipe.zrem(self._key(destination, "reserved"), message_id)
            pipe.hdel(self._key(destination, "receipts"), message_id)
            if delay_seconds > 0:
                pipe.zadd(self._key(destination, "delayed"), {message_id: time.time() + delay_seconds})
            else:
                pipe.rpush(self._key(destination), message_id)
            await pipe.execute()
        except RedisError as e:
            raise TransportError(f"Redis release failed: {e}", destination, "release") from e

    async def purge(self, destination: str) -> None:
        keys = [self._key(destination)] + [
            self._key(destination, s) for s in ("delayed", "reserved", "messages", "receipts")
        ]
        try:
            await self._client().delete(*keys)
        except RedisError as e:
            raise TransportError(f"Redis purge failed: {e}", destination, "purge") from e
        logger.info("redis_queue_purged", queue=destination)

    async def get_queue_depth(self, destination: str) -> QueueDepth:
        try:
            pipe = self._client().pipeline()
            pipe.llen(self._key(destination))
            pipe.zcard(self._key(destination, "delayed"))
            pipe.zcard(self._key(destination, "reserved"))
            visible, delayed, in_flight = await pipe.execute()
        except RedisError as e:
            raise TransportError(f"Redis depth query failed: {e}", destination, "depth") from e
        return QueueDepth(visible=visible, delayed=delayed, in_flight=in_flight)
