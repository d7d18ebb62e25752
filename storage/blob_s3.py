"""
S3BlobStore — Amazon S3 (or any S3-compatible endpoint) via boto3.

The store identifier an OffloadPolicy names is treated as a bucket alias:
`buckets={"s3": "my-company-queue-payloads"}` maps the "s3" disk to a real
bucket; identifiers without a mapping are used as the bucket name.

boto3 is blocking, so every call runs in a worker thread.
"""
from __future__ import annotations

import asyncio
import structlog
from typing import Any, Optional, Union

from botocore.exceptions import BotoCoreError, ClientError

from storage.blob_base import (
    BlobStore, BlobNotFoundError,
    StorageDeleteError, StorageReadError, StorageWriteError,
    prefix_path, to_bytes,
)

logger = structlog.get_logger()

_NOT_FOUND_CODES = {"NoSuchKey", "404", "NotFound"}
_DELETE_BATCH = 1000  # S3 DeleteObjects limit


class S3BlobStore(BlobStore):

    def __init__(self, client: Any = None, buckets: Optional[dict[str, str]] = None,
                 region: str = "us-east-1", endpoint_url: str = ""):
        if client is None:
            from utils.aws_client import create_aws_client
            client = create_aws_client("s3", region=region, endpoint_url=endpoint_url)
        self._client = client
        self._buckets = dict(buckets or {})

    def bucket_for(self, store: str) -> str:
        return self._buckets.get(store, store)

    async def write(self, store: str, key: str, data: Union[bytes, str]) -> None:
        bucket = self.bucket_for(store)
        try:
            await asyncio.to_thread(
                self._client.put_object,
                Bucket=bucket, Key=key, Body=to_bytes(data),
                ContentType="application/json",
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageWriteError(f"S3 put_object failed for s3://{bucket}/{key}: {e}", store, key) from e

    async def read(self, store: str, key: str) -> bytes:
        bucket = self.bucket_for(store)
        try:
            resp = await asyncio.to_thread(self._client.get_object, Bucket=bucket, Key=key)
            return await asyncio.to_thread(resp["Body"].read)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code in _NOT_FOUND_CODES:
                raise BlobNotFoundError(store, key) from e
            raise StorageReadError(f"S3 get_object failed for s3://{bucket}/{key}: {e}", store, key) from e
        except BotoCoreError as e:
            raise StorageReadError(f"S3 get_object failed for s3://{bucket}/{key}: {e}", store, key) from e

    async def delete_object(self, store: str, key: str) -> None:
        bucket = self.bucket_for(store)
        try:
            await asyncio.to_thread(self._client.delete_object, Bucket=bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            raise StorageDeleteError(f"S3 delete_object failed for s3://{bucket}/{key}: {e}", store, key) from e

    async def delete_prefix(self, store: str, prefix: str) -> None:
        bucket = self.bucket_for(store)
        try:
            deleted = await asyncio.to_thread(self._delete_prefix_sync, bucket, prefix_path(prefix))
        except (BotoCoreError, ClientError) as e:
            raise StorageDeleteError(f"S3 prefix delete failed for s3://{bucket}/{prefix}: {e}", store, prefix) from e
        logger.info("s3_prefix_deleted", bucket=bucket, prefix=prefix, objects=deleted)

    def _delete_prefix_sync(self, bucket: str, prefix: str) -> int:
        paginator = self._client.get_paginator("list_objects_v2")
        batch: list[dict[str, str]] = []
        deleted = 0
        for page in paginator.paginate(Bucket=bucket, Prefix=prefix):
            for obj in page.get("Contents", []):
                batch.append({"Key": obj["Key"]})
                if len(batch) == _DELETE_BATCH:
                    deleted += self._delete_batch(bucket, batch)
                    batch = []
        if batch:
            deleted += self._delete_batch(bucket, batch)
        return deleted

    def _delete_batch(self, bucket: str, batch: list[dict[str, str]]) -> int:
        resp = self._client.delete_objects(Bucket=bucket, Delete={"Objects": batch, "Quiet": True})
        errors = resp.get("Errors") or []
        if errors:
            first = errors[0]
            raise StorageDeleteError(
                f"S3 delete_objects reported {len(errors)} failures, first: "
                f"{first.get('Key')} {first.get('Code')}",
                bucket, first.get("Key", ""),
            )
        return len(batch)
