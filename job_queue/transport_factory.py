"""
Transport Factory — Pick the queue transport from configuration.

Configuration in settings.yaml:
    queue:
      backend: "sqs"          # "memory" | "redis" | "sqs"
      redis_url: "redis://localhost:6379"
      namespace: "offload"
      visibility_timeout: 30
      sqs_prefix: "https://sqs.us-east-1.amazonaws.com/123456789012"
      sqs_region: "us-east-1"
"""
from __future__ import annotations

import structlog
from typing import Any, Union

from job_queue.transport_base import QueueTransport

logger = structlog.get_logger()


def create_transport(config: Union[dict, Any] = None) -> QueueTransport:
    """Factory: create the appropriate queue transport."""
    if config is None:
        config = {}
    elif not isinstance(config, dict):
        config = dict(vars(config))
    backend = config.get("backend", "memory")

    if backend == "redis":
        from job_queue.transport_redis import RedisQueueTransport
        transport = RedisQueueTransport(
            redis_url=config.get("redis_url", "redis://localhost:6379"),
            namespace=config.get("namespace", "offload"),
            visibility_timeout=config.get("visibility_timeout", 30),
        )
    elif backend == "sqs":
        from job_queue.transport_sqs import SqsQueueTransport
        transport = SqsQueueTransport(
            prefix=config.get("sqs_prefix", ""),
            region=config.get("sqs_region", "us-east-1"),
            endpoint_url=config.get("sqs_endpoint_url", ""),
            wait_time_seconds=config.get("wait_time_seconds", 0),
        )
    elif backend == "memory":
        from job_queue.transport_memory import InMemoryQueueTransport
        transport = InMemoryQueueTransport(visibility_timeout=config.get("visibility_timeout", 30))
    else:
        raise ValueError(f"Unknown queue backend: {backend}")

    logger.info("queue_transport_created", backend=backend)
    return transport
