"""
Storage layer — Where offloaded message bodies live.

Backends:
  - In-memory (dict-based, for development/testing)
  - File (local disk)
  - S3 (boto3)

Quick start:
  from storage import create_blob_store
  store = create_blob_store({"backend": "memory"})
  await store.write("s3", "prefix/abc.json", b"{...}")
"""
from storage.blob_base import (
    BlobStore,
    StorageError, StorageWriteError, StorageReadError,
    BlobNotFoundError, StorageDeleteError, InvalidKeyError,
)
from storage.blob_memory import InMemoryBlobStore
from storage.blob_file import FileBlobStore
from storage.blob_factory import create_blob_store, blob_store_factory

__all__ = [
    # Interface
    "BlobStore",
    # Errors
    "StorageError", "StorageWriteError", "StorageReadError",
    "BlobNotFoundError", "StorageDeleteError", "InvalidKeyError",
    # Backends (S3BlobStore is imported lazily: storage.blob_s3)
    "InMemoryBlobStore", "FileBlobStore",
    # Factory
    "create_blob_store", "blob_store_factory",
]
