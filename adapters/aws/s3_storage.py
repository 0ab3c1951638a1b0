"""
AWS Blob Store — S3.

One bucket per container. Bucket names are derived from container ids with
to_bucket_name(); object keys are the file paths unchanged.
"""

import asyncio
import logging
import re
from typing import Callable, Optional, TypeVar, Union

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from adapters.aws.errors import UNAVAILABLE_CODES, error_code, translate_error
from buildshelf.errors.exceptions import (
    BackendUnavailable,
    BuildShelfError,
    ContainerAlreadyExists,
    ContainerNotFound,
    FileNotFound,
    Unhandled,
)
from buildshelf.interfaces.blob_store import BlobStore, guess_mime_type
from buildshelf.interfaces.document_store import resolve_signal
from buildshelf.models.signal import CancelSignal, run_cancellable
from buildshelf.models.storage import FileContent, StoredFile

logger = logging.getLogger("buildshelf.aws")

T = TypeVar("T")

DELETE_BATCH_SIZE = 1000  # S3 DeleteObjects limit
_INVALID_BUCKET_CHARS = re.compile(r"[^a-z0-9-]+")
_MISSING_BUCKET_CODES = ("NoSuchBucket", "404", "NotFound")
_MISSING_KEY_CODES = ("NoSuchKey", "404", "NotFound")


def to_bucket_name(container_id: str) -> str:
    """Map a container id onto S3 bucket naming rules (lowercase [a-z0-9-], 3-63 chars)."""
    name = _INVALID_BUCKET_CHARS.sub("-", container_id.lower())[:63].strip("-")
    return name.ljust(3, "0")


class S3Storage(BlobStore):
    """S3-backed blob store (bucket per container)."""

    def __init__(
        self,
        region: str = "us-east-1",
        endpoint_url: Optional[str] = None,
        client=None,
    ):
        self.region = region
        self.client = client or boto3.client("s3", region_name=region, endpoint_url=endpoint_url)

    async def _run(self, fn: Callable[[], T], signal: Optional[CancelSignal], operation: str) -> T:
        try:
            return await run_cancellable(asyncio.to_thread(fn), resolve_signal(signal))
        except BuildShelfError:
            raise
        except (ClientError, BotoCoreError) as e:
            raise translate_error(e, operation) from e

    def _list_keys(self, bucket: str, container_id: str, prefix: str = "") -> list[str]:
        keys: list[str] = []
        kwargs = {"Bucket": bucket, "Prefix": prefix}
        while True:
            try:
                response = self.client.list_objects_v2(**kwargs)
            except ClientError as e:
                if error_code(e) in _MISSING_BUCKET_CODES:
                    raise ContainerNotFound(container_id)
                raise
            keys.extend(obj["Key"] for obj in response.get("Contents", []))
            if not response.get("IsTruncated"):
                return keys
            kwargs["ContinuationToken"] = response["NextContinuationToken"]

    def _delete_keys(self, bucket: str, container_id: str, keys: list[str]) -> None:
        for start in range(0, len(keys), DELETE_BATCH_SIZE):
            batch = keys[start:start + DELETE_BATCH_SIZE]
            try:
                response = self.client.delete_objects(
                    Bucket=bucket,
                    Delete={"Objects": [{"Key": key} for key in batch], "Quiet": True},
                )
            except ClientError as e:
                if error_code(e) in _MISSING_BUCKET_CODES:
                    raise ContainerNotFound(container_id)
                raise
            # Quiet mode still reports per-key failures
            errors = (response or {}).get("Errors") or []
            if errors:
                failed = ", ".join(f"{err.get('Key')} ({err.get('Code')})" for err in errors)
                codes = {err.get("Code") for err in errors}
                message = f"Failed to delete {len(errors)} objects from {bucket}: {failed}"
                if codes <= UNAVAILABLE_CODES:
                    raise BackendUnavailable(message)
                raise Unhandled(message)

    # --- Containers ---

    async def create_container(self, container_id: str, *, signal: Optional[CancelSignal] = None) -> None:
        bucket = to_bucket_name(container_id)

        def op():
            kwargs: dict = {"Bucket": bucket}
            if self.region and self.region != "us-east-1":
                kwargs["CreateBucketConfiguration"] = {"LocationConstraint": self.region}
            try:
                self.client.create_bucket(**kwargs)
            except ClientError as e:
                if error_code(e) in ("BucketAlreadyOwnedByYou", "BucketAlreadyExists"):
                    raise ContainerAlreadyExists(container_id)
                raise

        await self._run(op, signal, f"create_container({container_id})")
        logger.info(f"Created bucket {bucket}")

    async def delete_container(self, container_id: str, *, signal: Optional[CancelSignal] = None) -> None:
        bucket = to_bucket_name(container_id)

        def op():
            # Buckets must be empty before deletion
            self._delete_keys(bucket, container_id, self._list_keys(bucket, container_id))
            try:
                self.client.delete_bucket(Bucket=bucket)
            except ClientError as e:
                if error_code(e) in _MISSING_BUCKET_CODES:
                    raise ContainerNotFound(container_id)
                raise

        await self._run(op, signal, f"delete_container({container_id})")
        logger.info(f"Deleted bucket {bucket}")

    async def has_container(self, container_id: str, *, signal: Optional[CancelSignal] = None) -> bool:
        def op():
            try:
                self.client.head_bucket(Bucket=to_bucket_name(container_id))
                return True
            except ClientError as e:
                if error_code(e) in _MISSING_BUCKET_CODES:
                    return False
                raise

        return await self._run(op, signal, f"has_container({container_id})")

    async def list_containers(self, *, signal: Optional[CancelSignal] = None) -> list[str]:
        def op():
            response = self.client.list_buckets()
            return [bucket["Name"] for bucket in response.get("Buckets", [])]

        return await self._run(op, signal, "list_containers")

    # --- Files ---

    async def upload_file(
        self,
        container_id: str,
        content: FileContent,
        *,
        destination_path: str,
        mime_type: Optional[str] = None,
        signal: Optional[CancelSignal] = None,
    ) -> None:
        bucket = to_bucket_name(container_id)
        body = await StoredFile(path=destination_path, content=content).read()
        content_type = mime_type or guess_mime_type(destination_path)

        def op():
            try:
                self.client.put_object(Bucket=bucket, Key=destination_path, Body=body, ContentType=content_type)
            except ClientError as e:
                if error_code(e) in _MISSING_BUCKET_CODES:
                    raise ContainerNotFound(container_id)
                raise

        await self._run(op, signal, f"upload_file({container_id}, {destination_path})")

    async def download_file(
        self, container_id: str, path: str, *, signal: Optional[CancelSignal] = None
    ) -> StoredFile:
        bucket = to_bucket_name(container_id)

        def op():
            try:
                response = self.client.get_object(Bucket=bucket, Key=path)
            except ClientError as e:
                code = error_code(e)
                if code == "NoSuchBucket":
                    raise ContainerNotFound(container_id)
                if code in _MISSING_KEY_CODES:
                    raise FileNotFound(container_id, path)
                raise
            return response["Body"].read(), response.get("ContentType") or ""

        content, content_type = await self._run(op, signal, f"download_file({container_id}, {path})")
        return StoredFile(path=path, content=content, mime_type=content_type or guess_mime_type(path))

    async def has_file(self, container_id: str, path: str, *, signal: Optional[CancelSignal] = None) -> bool:
        def op():
            try:
                self.client.head_object(Bucket=to_bucket_name(container_id), Key=path)
                return True
            except ClientError as e:
                if error_code(e) in _MISSING_KEY_CODES or error_code(e) == "NoSuchBucket":
                    return False
                raise

        return await self._run(op, signal, f"has_file({container_id}, {path})")

    async def delete_file(self, container_id: str, path: str, *, signal: Optional[CancelSignal] = None) -> None:
        # S3 DeleteObject succeeds for missing keys, not for missing buckets
        def op():
            try:
                self.client.delete_object(Bucket=to_bucket_name(container_id), Key=path)
            except ClientError as e:
                if error_code(e) not in _MISSING_BUCKET_CODES:
                    raise

        await self._run(op, signal, f"delete_file({container_id}, {path})")

    async def delete_files(
        self,
        container_id: str,
        prefix_or_paths: Union[str, list[str]],
        *,
        signal: Optional[CancelSignal] = None,
    ) -> None:
        bucket = to_bucket_name(container_id)

        def op():
            try:
                if isinstance(prefix_or_paths, str):
                    keys = self._list_keys(bucket, container_id, prefix_or_paths)
                else:
                    keys = list(prefix_or_paths)
                if keys:
                    self._delete_keys(bucket, container_id, keys)
            except ContainerNotFound:
                return 0
            return len(keys)

        deleted = await self._run(op, signal, f"delete_files({container_id})")
        logger.debug(f"Deleted {deleted} objects from {bucket}")
