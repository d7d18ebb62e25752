"""
Job Queue — Offloading queue facade over pluggable transports.

Large (or, by policy, all) message bodies are written to a blob store and
replaced on the wire by a small pointer:
- DiskQueue pushes, pops and clears, applying the OffloadCodec
- DiskJob resolves pointers lazily and cleans up blobs on delete
- Transports: in-memory (dev), Redis, Amazon SQS
"""
from job_queue.transport_base import QueueTransport, TransportError
from job_queue.offload import OffloadCodec, EncodedBody
from job_queue.disk_job import DiskJob
from job_queue.disk_queue import DiskQueue
from job_queue.worker import DiskQueueWorker
from job_queue.transport_factory import create_transport

__all__ = [
    "QueueTransport", "TransportError",
    "OffloadCodec", "EncodedBody",
    "DiskJob", "DiskQueue", "DiskQueueWorker",
    "create_transport",
]
