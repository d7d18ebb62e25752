"""
SqsQueueTransport — Amazon SQS via boto3.

Destinations are queue names resolved against `prefix`
("https://sqs.us-east-1.amazonaws.com/123456789012" + "/" + name);
a destination that already is a URL is used unchanged.
"""
from __future__ import annotations

import asyncio
import structlog
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from job_queue.transport_base import QueueTransport, TransportError
from models.schemas import QueueDepth, QueueMessage

logger = structlog.get_logger()

MAX_DELAY_SECONDS = 900  # SQS hard limit


class SqsQueueTransport(QueueTransport):

    def __init__(self, client: Any = None, prefix: str = "", region: str = "us-east-1",
                 endpoint_url: str = "", wait_time_seconds: int = 0):
        if client is None:
            from utils.aws_client import create_aws_client
            client = create_aws_client("sqs", region=region, endpoint_url=endpoint_url)
        self._client = client
        self._prefix = prefix.rstrip("/")
        self.wait_time_seconds = wait_time_seconds

    def queue_url(self, destination: str) -> str:
        if destination.startswith(("https://", "http://")):
            return destination
        return f"{self._prefix}/{destination}"

    async def _call(self, operation: str, destination: str, **params) -> Any:
        try:
            return await asyncio.to_thread(getattr(self._client, operation), **params)
        except (BotoCoreError, ClientError) as e:
            logger.error("sqs_call_failed", operation=operation, queue=destination, error=str(e))
            raise TransportError(f"SQS {operation} failed: {e}", destination, operation) from e

    # ── QueueTransport interface ──────────────────────────

    async def send(self, destination: str, body: str, delay_seconds: int = 0) -> str:
        params: dict[str, Any] = {"QueueUrl": self.queue_url(destination), "MessageBody": body}
        if delay_seconds > 0:
            params["DelaySeconds"] = min(delay_seconds, MAX_DELAY_SECONDS)
        resp = await self._call("send_message", destination, **params)
        return (resp or {}).get("MessageId", "")

    async def receive(self, destination: str, max_messages: int = 1) -> list[QueueMessage]:
        resp = await self._call(
            "receive_message", destination,
            QueueUrl=self.queue_url(destination),
            MaxNumberOfMessages=max(1, min(max_messages, 10)),
            WaitTimeSeconds=self.wait_time_seconds,
            AttributeNames=["ApproximateReceiveCount", "SentTimestamp"],
        )
        messages = []
        for raw in (resp or {}).get("Messages") or []:
            attributes = raw.get("Attributes") or {}
            messages.append(QueueMessage(
                body=raw["Body"],
                receipt_handle=raw["ReceiptHandle"],
                message_id=raw["MessageId"],
                approx_receive_count=int(attributes.get("ApproximateReceiveCount", 1)),
                attributes=attributes,
            ))
        return messages

    async def delete(self, destination: str, receipt_handle: str) -> None:
        await self._call("delete_message", destination,
                         QueueUrl=self.queue_url(destination), ReceiptHandle=receipt_handle)

    async def release(self, destination: str, receipt_handle: str, delay_seconds: int = 0) -> None:
        await self._call("change_message_visibility", destination,
                         QueueUrl=self.queue_url(destination), ReceiptHandle=receipt_handle,
                         VisibilityTimeout=max(delay_seconds, 0))

    async def purge(self, destination: str) -> None:
        await self._call("purge_queue", destination, QueueUrl=self.queue_url(destination))
        logger.info("sqs_queue_purged", queue=destination)

    async def get_queue_depth(self, destination: str) -> QueueDepth:
        resp = await self._call(
            "get_queue_attributes", destination,
            QueueUrl=self.queue_url(destination),
            AttributeNames=[
                "ApproximateNumberOfMessages",
                "ApproximateNumberOfMessagesDelayed",
                "ApproximateNumberOfMessagesNotVisible",
            ],
        )
        attrs = (resp or {}).get("Attributes") or {}
        return QueueDepth(
            visible=int(attrs.get("ApproximateNumberOfMessages", 0)),
            delayed=int(attrs.get("ApproximateNumberOfMessagesDelayed", 0)),
            in_flight=int(attrs.get("ApproximateNumberOfMessagesNotVisible", 0)),
        )
