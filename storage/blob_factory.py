"""
Blob Store Factory — Create the right offload storage backend from configuration.

Configuration in settings.yaml:
    storage:
      #   "memory"  — In-memory dicts (development, testing)
      #   "file"    — Files under file_dir (single host)
      #   "s3"      — Amazon S3 / S3-compatible endpoint
      backend: "s3"
      file_dir: "./data/blobs"
      s3_region: "us-east-1"
      s3_endpoint_url: ""
      buckets:
        s3: "my-queue-payloads"

Usage:
    from storage.blob_factory import create_blob_store, blob_store_factory
    store = create_blob_store(config)          # build now
    factory = blob_store_factory(config)       # build on first offload
"""
from __future__ import annotations

import structlog
from typing import Any, Callable, Union

from storage.blob_base import BlobStore

logger = structlog.get_logger()


def _as_dict(config: Any) -> dict[str, Any]:
    if config is None:
        return {}
    if isinstance(config, dict):
        return config
    return dict(vars(config))


def create_blob_store(config: Union[dict, Any] = None) -> BlobStore:
    """
    Factory: create a blob store backend.

    Args:
        config: dict (or StorageConfig) with keys:
            backend: "memory" | "file" | "s3"  (default: "memory")
            file_dir: str (for file backend, default: "./data/blobs")
            s3_region, s3_endpoint_url, buckets (for s3 backend)
    """
    config = _as_dict(config)
    backend = config.get("backend", "memory")

    if backend == "s3":
        from storage.blob_s3 import S3BlobStore
        store = S3BlobStore(
            buckets=config.get("buckets") or {},
            region=config.get("s3_region", "us-east-1"),
            endpoint_url=config.get("s3_endpoint_url", ""),
        )
        logger.info("blob_store_created", backend="s3")

    elif backend == "file":
        from storage.blob_file import FileBlobStore
        root_dir = config.get("file_dir", "./data/blobs")
        store = FileBlobStore(root_dir=root_dir)
        logger.info("blob_store_created", backend="file", root_dir=root_dir)

    elif backend == "memory":
        from storage.blob_memory import InMemoryBlobStore
        store = InMemoryBlobStore()
        logger.info("blob_store_created", backend="memory")

    else:
        raise ValueError(f"Unknown storage backend: {backend}")

    return store


def blob_store_factory(config: Union[dict, Any] = None) -> Callable[[], BlobStore]:
    """Zero-arg callable for DiskQueue(blob_store_factory=...), so clients
    are only built once something is actually offloaded."""
    def _factory() -> BlobStore:
        return create_blob_store(config)
    return _factory
