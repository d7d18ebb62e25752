"""
DiskQueue Factory — Wire transport, blob store and policy from Settings.

Usage:
    from job_queue.queue_factory import create_disk_queue, get_disk_queue
    queue = create_disk_queue(load_settings("config/settings.yaml"))
    queue = get_disk_queue()          # shared instance built from get_settings()
"""
from __future__ import annotations

import structlog
from typing import Optional

from config.settings import Settings, get_settings
from job_queue.disk_queue import DiskQueue
from job_queue.transport_factory import create_transport
from storage.blob_factory import blob_store_factory

logger = structlog.get_logger()

_instance: Optional[DiskQueue] = None


def create_disk_queue(settings: Settings = None) -> DiskQueue:
    """Build a new DiskQueue. The blob store is created on first use."""
    settings = settings or get_settings()
    queue = DiskQueue(
        transport=create_transport(settings.queue),
        policy=settings.offload.to_policy(),
        default_queue=settings.queue.name,
        blob_store_factory=blob_store_factory(settings.storage),
    )
    logger.info("disk_queue_created",
                queue=settings.queue.name,
                transport=settings.queue.backend,
                storage=settings.storage.backend,
                always_store=settings.offload.always_store)
    return queue


def get_disk_queue() -> DiskQueue:
    """Return the shared instance, creating it from get_settings() if needed."""
    global _instance
    if _instance is None:
        _instance = create_disk_queue()
    return _instance


def reset_disk_queue() -> None:
    """Reset the shared instance (for testing)."""
    global _instance
    _instance = None
