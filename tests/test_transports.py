"""
Tests for the queue transports.

Covers:
  - InMemoryQueueTransport (visibility, delays, receipt handles)
  - SqsQueueTransport (mocked boto3 client)
  - RedisQueueTransport (mocked redis.asyncio client)
  - Transport factory
"""
import json
import pytest

from unittest.mock import AsyncMock, MagicMock, patch

from botocore.exceptions import ClientError
from redis.exceptions import ConnectionError as RedisConnectionError

from job_queue.transport_base import TransportError


# ──────────────────────────────────────────────────────────────
#  InMemoryQueueTransport
# ──────────────────────────────────────────────────────────────

class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestInMemoryQueueTransport:
    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def transport(self, clock):
        from job_queue.transport_memory import InMemoryQueueTransport
        return InMemoryQueueTransport(visibility_timeout=30, clock=clock)

    @pytest.mark.asyncio
    async def test_send_and_receive(self, transport):
        message_id = await transport.send("q", "hello")
        [message] = await transport.receive("q")
        assert message.body == "hello"
        assert message.message_id == message_id
        assert message.approx_receive_count == 1
        assert message.receipt_handle

    @pytest.mark.asyncio
    async def test_receive_respects_max_messages(self, transport):
        for i in range(3):
            await transport.send("q", f"m{i}")
        assert [m.body for m in await transport.receive("q", max_messages=2)] == ["m0", "m1"]

    @pytest.mark.asyncio
    async def test_received_message_is_invisible(self, transport):
        await transport.send("q", "hello")
        await transport.receive("q")
        assert await transport.receive("q") == []

    @pytest.mark.asyncio
    async def test_visibility_timeout_redelivers(self, transport, clock):
        await transport.send("q", "hello")
        first = (await transport.receive("q"))[0]
        clock.now += 31
        second = (await transport.receive("q"))[0]
        assert second.approx_receive_count == 2
        assert second.receipt_handle != first.receipt_handle

    @pytest.mark.asyncio
    async def test_delay(self, transport, clock):
        await transport.send("q", "later", delay_seconds=10)
        assert await transport.receive("q") == []
        assert (await transport.get_queue_depth("q")).delayed == 1
        clock.now += 10
        assert len(await transport.receive("q")) == 1

    @pytest.mark.asyncio
    async def test_delete(self, transport):
        await transport.send("q", "hello")
        [message] = await transport.receive("q")
        await transport.delete("q", message.receipt_handle)
        assert (await transport.get_queue_depth("q")).total == 0

    @pytest.mark.asyncio
    async def test_release(self, transport):
        await transport.send("q", "hello")
        [message] = await transport.receive("q")
        await transport.release("q", message.receipt_handle)
        assert len(await transport.receive("q")) == 1

    @pytest.mark.asyncio
    async def test_depth_and_purge(self, transport):
        await transport.send("q", "a")
        await transport.send("q", "b")
        await transport.send("q", "c", delay_seconds=60)
        await transport.receive("q")
        depth = await transport.get_queue_depth("q")
        assert (depth.visible, depth.delayed, depth.in_flight) == (1, 1, 1)
        await transport.purge("q")
        assert (await transport.get_queue_depth("q")).total == 0

    @pytest.mark.asyncio
    async def test_queues_are_isolated(self, transport):
        await transport.send("a", "x")
        assert await transport.receive("b") == []


# ──────────────────────────────────────────────────────────────
#  SqsQueueTransport
# ──────────────────────────────────────────────────────────────

class TestSqsQueueTransport:
    @pytest.fixture
    def transport(self, sqs_client):
        from job_queue.transport_sqs import SqsQueueTransport
        return SqsQueueTransport(client=sqs_client, prefix="https://sqs.us-east-1.amazonaws.com/123456789012/")

    def test_queue_url(self, transport):
        assert transport.queue_url("jobs") == "https://sqs.us-east-1.amazonaws.com/123456789012/jobs"
        assert transport.queue_url("https://elsewhere/q") == "https://elsewhere/q"

    @pytest.mark.asyncio
    async def test_send_caps_delay(self, transport, sqs_client):
        await transport.send("jobs", "body", delay_seconds=5000)
        assert sqs_client.send_message.call_args.kwargs["DelaySeconds"] == 900

    @pytest.mark.asyncio
    async def test_receive_maps_messages(self, transport, sqs_client):
        sqs_client.receive_message.return_value = {"Messages": [{
            "Body": "b", "ReceiptHandle": "rh", "MessageId": "m1",
            "Attributes": {"ApproximateReceiveCount": "4"},
        }]}
        [message] = await transport.receive("jobs")
        assert (message.body, message.receipt_handle, message.message_id) == ("b", "rh", "m1")
        assert message.approx_receive_count == 4
        assert sqs_client.receive_message.call_args.kwargs["WaitTimeSeconds"] == 0

    @pytest.mark.asyncio
    async def test_delete(self, transport, sqs_client):
        await transport.delete("jobs", "rh")
        sqs_client.delete_message.assert_called_once_with(
            QueueUrl="https://sqs.us-east-1.amazonaws.com/123456789012/jobs", ReceiptHandle="rh",
        )

    @pytest.mark.asyncio
    async def test_release_changes_visibility(self, transport, sqs_client):
        await transport.release("jobs", "rh", delay_seconds=30)
        assert sqs_client.change_message_visibility.call_args.kwargs["VisibilityTimeout"] == 30

    @pytest.mark.asyncio
    async def test_client_error_becomes_transport_error(self, transport, sqs_client):
        sqs_client.purge_queue.side_effect = ClientError(
            {"Error": {"Code": "PurgeQueueInProgress", "Message": "wait"}}, "PurgeQueue",
        )
        with pytest.raises(TransportError) as exc:
            await transport.purge("jobs")
        assert exc.value.operation == "purge_queue"
        assert exc.value.destination == "jobs"


# ──────────────────────────────────────────────────────────────
#  RedisQueueTransport
# ──────────────────────────────────────────────────────────────

class TestRedisQueueTransport:
    @pytest.fixture
    def pipe(self):
        pipe = MagicMock()
        pipe.execute = AsyncMock(return_value=[])
        return pipe

    @pytest.fixture
    def client(self, pipe):
        client = MagicMock()
        client.pipeline.return_value = pipe
        client.zrangebyscore = AsyncMock(return_value=[])
        client.lpop = AsyncMock(return_value=None)
        client.hget = AsyncMock(return_value=None)
        client.delete = AsyncMock()
        return client

    @pytest.fixture
    def transport(self, client):
        from job_queue.transport_redis import RedisQueueTransport
        return RedisQueueTransport(client=client, namespace="offload", visibility_timeout=30)

    @pytest.mark.asyncio
    async def test_send_pushes_to_ready_list(self, transport, pipe):
        message_id = await transport.send("default", "body")
        pipe.rpush.assert_called_once_with("offload:default", message_id)
        pipe.zadd.assert_not_called()
        record = json.loads(pipe.hset.call_args.args[2])
        assert record["body"] == "body"

    @pytest.mark.asyncio
    async def test_delayed_send_goes_to_sorted_set(self, transport, pipe):
        await transport.send("default", "body", delay_seconds=10)
        assert pipe.zadd.call_args.args[0] == "offload:default:delayed"
        pipe.rpush.assert_not_called()

    @pytest.mark.asyncio
    async def test_receive_reserves_message(self, transport, client, pipe):
        client.lpop.side_effect = ["m1", None]
        client.hget.return_value = json.dumps({"body": "hello", "receive_count": 0, "sent_at": 1.0})

        [message] = await transport.receive("default")

        assert message.body == "hello"
        assert message.message_id == "m1"
        assert message.receipt_handle.startswith("m1:")
        assert message.approx_receive_count == 1
        assert pipe.zadd.call_args.args[0] == "offload:default:reserved"

    @pytest.mark.asyncio
    async def test_receive_empty(self, transport):
        assert await transport.receive("default") == []

    @pytest.mark.asyncio
    async def test_release_ignores_stale_handle(self, transport, client):
        client.hget.return_value = "m1:newer"
        await transport.release("default", "m1:older")
        client.pipeline.assert_not_called()

    @pytest.mark.asyncio
    async def test_release_current_handle(self, transport, client, pipe):
        client.hget.return_value = "m1:abc"
        await transport.release("default", "m1:abc")
        pipe.rpush.assert_called_once_with("offload:default", "m1")

    @pytest.mark.asyncio
    async def test_depth(self, transport, pipe):
        pipe.execute.return_value = [2, 1, 3]
        depth = await transport.get_queue_depth("default")
        assert (depth.visible, depth.delayed, depth.in_flight) == (2, 1, 3)

    @pytest.mark.asyncio
    async def test_purge_deletes_all_keys(self, transport, client):
        await transport.purge("default")
        keys = client.delete.await_args.args
        assert "offload:default" in keys
        assert "offload:default:messages" in keys

    @pytest.mark.asyncio
    async def test_close_releases_client(self, transport, client):
        client.aclose = AsyncMock()
        await transport.close()
        client.aclose.assert_awaited_once()
        await transport.close()
        client.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_redis_error_becomes_transport_error(self, transport, pipe):
        pipe.execute.side_effect = RedisConnectionError("refused")
        with pytest.raises(TransportError):
            await transport.send("default", "body")


# ──────────────────────────────────────────────────────────────
#  Factory
# ──────────────────────────────────────────────────────────────

class TestTransportFactory:
    def test_memory_default(self):
        from job_queue.transport_factory import create_transport
        from job_queue.transport_memory import InMemoryQueueTransport
        assert isinstance(create_transport({}), InMemoryQueueTransport)

    def test_redis(self):
        from job_queue.transport_factory import create_transport
        from job_queue.transport_redis import RedisQueueTransport
        transport = create_transport({"backend": "redis", "redis_url": "redis://custom:6380"})
        assert isinstance(transport, RedisQueueTransport)

    def test_sqs(self):
        from job_queue.transport_factory import create_transport
        from job_queue.transport_sqs import SqsQueueTransport
        with patch("utils.aws_client.boto3.client"):
            transport = create_transport({"backend": "sqs", "sqs_prefix": "https://sqs/1"})
        assert isinstance(transport, SqsQueueTransport)
        assert transport.queue_url("jobs") == "https://sqs/1/jobs"

    def test_unknown(self):
        from job_queue.transport_factory import create_transport
        with pytest.raises(ValueError):
            create_transport({"backend": "kafka"})
