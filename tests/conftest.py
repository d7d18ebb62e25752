"""Shared test fixtures for the offloading queue."""
import json
import pytest

from unittest.mock import AsyncMock, MagicMock

from job_queue.disk_queue import DiskQueue
from job_queue.transport_memory import InMemoryQueueTransport
from job_queue.transport_sqs import SqsQueueTransport
from models.schemas import OffloadPolicy
from storage.blob_base import BlobStore
from storage.blob_memory import InMemoryBlobStore


MESSAGE_ID = "e3cd03ee-59a3-4ad8-b0aa-ee2e3808ac81"
RECEIPT_HANDLE = "0NNAq8PwvXuWv5gMtS9DJ8qEdyiUwbAjpp45w2m6M4SJ1Y+PxCh7R930NRB8ylSacEmoSnW18bgd4nK"


def make_policy(**overrides) -> OffloadPolicy:
    options = {
        "always_store": False,
        "cleanup_on_delete": True,
        "store_identifier": "s3",
        "key_prefix": "prefix",
    }
    options.update(overrides)
    return OffloadPolicy(**options)


@pytest.fixture
def payload() -> str:
    return json.dumps({"job": "foo", "data": ["data"], "uuid": MESSAGE_ID}, separators=(",", ":"))


@pytest.fixture
def pointer_payload() -> str:
    return json.dumps({"pointer": f"prefix/{MESSAGE_ID}.json", "job": "foo"}, separators=(",", ":"))


@pytest.fixture
def large_payload() -> str:
    return json.dumps({"job": "foo", "data": ["x" * 300_000], "uuid": MESSAGE_ID}, separators=(",", ":"))


@pytest.fixture
def policy() -> OffloadPolicy:
    return make_policy()


@pytest.fixture
def blob_store() -> InMemoryBlobStore:
    return InMemoryBlobStore()


@pytest.fixture
def mock_blob_store() -> AsyncMock:
    """Records every storage call; reads return nothing unless configured."""
    return AsyncMock(spec=BlobStore)


@pytest.fixture
def transport() -> InMemoryQueueTransport:
    return InMemoryQueueTransport(visibility_timeout=30)


@pytest.fixture
def sqs_client() -> MagicMock:
    client = MagicMock()
    client.send_message.return_value = {"MessageId": MESSAGE_ID}
    client.receive_message.return_value = {}
    client.get_queue_attributes.return_value = {"Attributes": {}}
    return client


@pytest.fixture
def sqs_transport(sqs_client) -> SqsQueueTransport:
    # Empty prefix: the queue URL for "default" is "/default".
    return SqsQueueTransport(client=sqs_client, prefix="")


@pytest.fixture
def disk_queue(transport, blob_store, policy) -> DiskQueue:
    return DiskQueue(transport, policy, blob_store=blob_store)
