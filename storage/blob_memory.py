"""
InMemoryBlobStore — Dict-backed blob store for development and testing.

Features:
  - Zero dependencies
  - Full interface compatibility with S3BlobStore
  - All data lost on process restart
"""
from __future__ import annotations

import structlog
from typing import Union

from storage.blob_base import BlobStore, BlobNotFoundError, prefix_path, to_bytes

logger = structlog.get_logger()


class InMemoryBlobStore(BlobStore):
    """Objects keyed by (store, key)."""

    def __init__(self):
        self._objects: dict[tuple[str, str], bytes] = {}
        logger.info("inmemory_blob_store_initialized")

    async def write(self, store: str, key: str, data: Union[bytes, str]) -> None:
        self._objects[(store, key)] = to_bytes(data)

    async def read(self, store: str, key: str) -> bytes:
        try:
            return self._objects[(store, key)]
        except KeyError:
            raise BlobNotFoundError(store, key) from None

    async def delete_object(self, store: str, key: str) -> None:
        self._objects.pop((store, key), None)

    async def delete_prefix(self, store: str, prefix: str) -> None:
        root = prefix_path(prefix)
        doomed = [k for k in self._objects if k[0] == store and k[1].startswith(root)]
        for k in doomed:
            del self._objects[k]
        logger.debug("inmemory_prefix_deleted", store=store, prefix=prefix, objects=len(doomed))

    # ── Inspection helpers (tests, CLI) ───────────────────

    def exists(self, store: str, key: str) -> bool:
        return (store, key) in self._objects

    def keys(self, store: str) -> list[str]:
        return sorted(k for s, k in self._objects if s == store)
