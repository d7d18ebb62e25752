"""
FileBlobStore — Local-disk blob store with persistence across restarts.

Data layout:
  {root_dir}/
    {store}/
      {prefix}/
        <key>.json

Features:
  - Survives process restarts (unlike InMemoryBlobStore)
  - No external dependencies (no S3, no credentials)
  - Writes go to a per-writer temp file and are renamed into place

Best for: single-host deployments, demos, integration tests.
"""
from __future__ import annotations

import asyncio
import shutil
import structlog
import uuid
from pathlib import Path
from typing import Union

from storage.blob_base import (
    BlobStore, BlobNotFoundError, InvalidKeyError,
    StorageDeleteError, StorageReadError, StorageWriteError,
    to_bytes,
)

logger = structlog.get_logger()


class FileBlobStore(BlobStore):
    """Each store identifier is a sub-directory of root_dir."""

    def __init__(self, root_dir: str = "./data/blobs"):
        self._root = Path(root_dir)
        self._root.mkdir(parents=True, exist_ok=True)
        logger.info("file_blob_store_initialized", root_dir=str(self._root))

    def _path(self, store: str, key: str) -> Path:
        base = (self._root / store).resolve()
        path = (base / key.lstrip("/")).resolve()
        if base != path and base not in path.parents:
            raise InvalidKeyError(f"Key escapes store directory: {key}", store, key)
        return path

    # ── Blocking helpers, run in a worker thread ──────────

    def _write_sync(self, path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        # one temp file per writer; concurrent writes of a key end last-writer-wins
        tmp_path = path.with_name(f"{path.name}.{uuid.uuid4().hex}.tmp")
        try:
            tmp_path.write_bytes(data)
            tmp_path.replace(path)
        except OSError:
            tmp_path.unlink(missing_ok=True)
            raise

    def _delete_prefix_sync(self, path: Path) -> None:
        if path.is_dir():
            shutil.rmtree(path)

    # ── BlobStore interface ───────────────────────────────

    async def write(self, store: str, key: str, data: Union[bytes, str]) -> None:
        path = self._path(store, key)
        try:
            await asyncio.to_thread(self._write_sync, path, to_bytes(data))
        except OSError as e:
            raise StorageWriteError(f"Failed to write {path}: {e}", store, key) from e

    async def read(self, store: str, key: str) -> bytes:
        path = self._path(store, key)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError:
            raise BlobNotFoundError(store, key) from None
        except OSError as e:
            raise StorageReadError(f"Failed to read {path}: {e}", store, key) from e

    async def delete_object(self, store: str, key: str) -> None:
        path = self._path(store, key)
        try:
            await asyncio.to_thread(path.unlink, True)
        except OSError as e:
            raise StorageDeleteError(f"Failed to delete {path}: {e}", store, key) from e

    async def delete_prefix(self, store: str, prefix: str) -> None:
        path = self._path(store, prefix.strip("/"))
        try:
            await asyncio.to_thread(self._delete_prefix_sync, path)
        except OSError as e:
            raise StorageDeleteError(f"Failed to delete {path}: {e}", store, prefix) from e
        logger.debug("file_prefix_deleted", store=store, prefix=prefix)
