"""
Abstract Blob Store — Interface for every offload storage backend.

Implementations:
  - InMemoryBlobStore (dict-based, single-process, no persistence)
  - FileBlobStore     (files on local disk)
  - S3BlobStore       (Amazon S3 via boto3)

Objects are addressed by (store, key): `store` is the disk/bucket alias an
OffloadPolicy names, `key` is a "/"-separated path such as
"prefix/<uuid>.json".
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Union


# ══════════════════════════════════════════════════════════════
#  ERRORS
# ══════════════════════════════════════════════════════════════

class StorageError(Exception):
    """Base exception for all blob store operations."""

    def __init__(self, message: str, store: str = "", key: str = ""):
        self.store = store
        self.key = key
        super().__init__(message)


class StorageWriteError(StorageError):
    """An object could not be written. Offloading pushes must abort."""


class StorageReadError(StorageError):
    """An object could not be read back."""


class BlobNotFoundError(StorageReadError):
    def __init__(self, store: str = "", key: str = ""):
        super().__init__(f"Blob not found: {store}:{key}", store, key)


class StorageDeleteError(StorageError):
    """Cleanup failed. Callers downgrade this to a warning."""


class InvalidKeyError(StorageError, ValueError):
    """The key resolves outside its store."""


# ══════════════════════════════════════════════════════════════
#  INTERFACE
# ══════════════════════════════════════════════════════════════

class BlobStore(ABC):
    """Interface that all blob store backends must implement."""

    @abstractmethod
    async def write(self, store: str, key: str, data: Union[bytes, str]) -> None:
        ...

    @abstractmethod
    async def read(self, store: str, key: str) -> bytes:
        """Return the object's bytes, raising BlobNotFoundError if absent."""
        ...

    @abstractmethod
    async def delete_object(self, store: str, key: str) -> None:
        ...

    @abstractmethod
    async def delete_prefix(self, store: str, prefix: str) -> None:
        """Delete every object under `prefix/`. Missing prefixes are not an error."""
        ...


def to_bytes(data: Union[bytes, str]) -> bytes:
    return data.encode("utf-8") if isinstance(data, str) else data


def prefix_path(prefix: str) -> str:
    """'a/b' and 'a/b/' both become 'a/b/' so 'a/bc' never matches."""
    return prefix.strip("/") + "/"
