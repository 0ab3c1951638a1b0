"""
Azure Blob Store — Blob Storage.

One blob container per container id. Container names are derived with
to_container_name(); blob names are the file paths unchanged.
"""

import asyncio
import logging
import re
from typing import Callable, Optional, TypeVar, Union

from azure.core.exceptions import AzureError, ResourceExistsError, ResourceNotFoundError
from azure.storage.blob import BlobServiceClient, ContentSettings

from adapters.azure.errors import error_code, translate_error
from buildshelf.errors.exceptions import (
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

logger = logging.getLogger("buildshelf.azure")

T = TypeVar("T")

DELETE_BATCH_SIZE = 256  # Blob batch limit
_INVALID_CONTAINER_CHARS = re.compile(r"[^a-z0-9-]+")
_REPEATED_HYPHENS = re.compile(r"-{2,}")


def to_container_name(container_id: str) -> str:
    """Map a container id onto blob container naming rules (lowercase [a-z0-9-], no '--', 3-63 chars)."""
    name = _INVALID_CONTAINER_CHARS.sub("-", container_id.lower())
    name = _REPEATED_HYPHENS.sub("-", name).strip("-")[:63].strip("-")
    return name.ljust(3, "0")


class AzureBlobStorage(BlobStore):
    """Blob Storage-backed blob store (blob container per container)."""

    def __init__(self, connection_string: Optional[str] = None, client=None):
        self.client = client or BlobServiceClient.from_connection_string(connection_string)

    async def _run(self, fn: Callable[[], T], signal: Optional[CancelSignal], operation: str) -> T:
        try:
            return await run_cancellable(asyncio.to_thread(fn), resolve_signal(signal))
        except BuildShelfError:
            raise
        except AzureError as e:
            raise translate_error(e, operation) from e

    # --- Containers ---

    async def create_container(self, container_id: str, *, signal: Optional[CancelSignal] = None) -> None:
        name = to_container_name(container_id)

        def op():
            try:
                self.client.create_container(name)
            except ResourceExistsError:
                raise ContainerAlreadyExists(container_id)

        await self._run(op, signal, f"create_container({container_id})")
        logger.info(f"Created blob container {name}")

    async def delete_container(self, container_id: str, *, signal: Optional[CancelSignal] = None) -> None:
        name = to_container_name(container_id)

        def op():
            try:
                self.client.delete_container(name)
            except ResourceNotFoundError:
                raise ContainerNotFound(container_id)

        await self._run(op, signal, f"delete_container({container_id})")
        logger.info(f"Deleted blob container {name}")

    async def has_container(self, container_id: str, *, signal: Optional[CancelSignal] = None) -> bool:
        return await self._run(
            lambda: self.client.get_container_client(to_container_name(container_id)).exists(),
            signal,
            f"has_container({container_id})",
        )

    async def list_containers(self, *, signal: Optional[CancelSignal] = None) -> list[str]:
        return await self._run(
            lambda: [container.name for container in self.client.list_containers()],
            signal,
            "list_containers",
        )

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
        blob = self.client.get_blob_client(container=to_container_name(container_id), blob=destination_path)
        body = await StoredFile(path=destination_path, content=content).read()
        settings = ContentSettings(content_type=mime_type or guess_mime_type(destination_path))

        def op():
            try:
                blob.upload_blob(body, overwrite=True, content_settings=settings)
            except ResourceNotFoundError:
                raise ContainerNotFound(container_id)

        await self._run(op, signal, f"upload_file({container_id}, {destination_path})")

    async def download_file(
        self, container_id: str, path: str, *, signal: Optional[CancelSignal] = None
    ) -> StoredFile:
        blob = self.client.get_blob_client(container=to_container_name(container_id), blob=path)

        def op():
            try:
                downloader = blob.download_blob()
            except ResourceNotFoundError as e:
                if error_code(e) == "ContainerNotFound":
                    raise ContainerNotFound(container_id)
                raise FileNotFound(container_id, path)
            content_type = downloader.properties.content_settings.content_type or ""
            return downloader.readall(), content_type

        content, content_type = await self._run(op, signal, f"download_file({container_id}, {path})")
        return StoredFile(path=path, content=content, mime_type=content_type or guess_mime_type(path))

    async def has_file(self, container_id: str, path: str, *, signal: Optional[CancelSignal] = None) -> bool:
        # exists() is False for a missing container too
        return await self._run(
            lambda: self.client.get_blob_client(container=to_container_name(container_id), blob=path).exists(),
            signal,
            f"has_file({container_id}, {path})",
        )

    async def delete_file(self, container_id: str, path: str, *, signal: Optional[CancelSignal] = None) -> None:
        blob = self.client.get_blob_client(container=to_container_name(container_id), blob=path)

        def op():
            try:
                blob.delete_blob()
            except ResourceNotFoundError:
                pass

        await self._run(op, signal, f"delete_file({container_id}, {path})")

    async def delete_files(
        self,
        container_id: str,
        prefix_or_paths: Union[str, list[str]],
        *,
        signal: Optional[CancelSignal] = None,
    ) -> None:
        name = to_container_name(container_id)
        container = self.client.get_container_client(name)

        def op():
            failed = []
            try:
                if isinstance(prefix_or_paths, str):
                    names = [blob.name for blob in container.list_blobs(name_starts_with=prefix_or_paths)]
                else:
                    names = list(prefix_or_paths)
                for start in range(0, len(names), DELETE_BATCH_SIZE):
                    batch = names[start:start + DELETE_BATCH_SIZE]
                    responses = container.delete_blobs(*batch, raise_on_any_failure=False)
                    # 404 per blob is an empty match, not a failure
                    for blob_name, response in zip(batch, responses):
                        if response.status_code not in (200, 202, 404):
                            failed.append(f"{blob_name} ({response.status_code})")
            except ResourceNotFoundError:
                return 0
            if failed:
                raise Unhandled(f"Failed to delete {len(failed)} blobs from {name}: {', '.join(failed)}")
            return len(names)

        deleted = await self._run(op, signal, f"delete_files({container_id})")
        logger.debug(f"Deleted {deleted} blobs from {name}")
