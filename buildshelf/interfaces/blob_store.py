"""
Blob Store Interface

Cloud-agnostic abstraction for object/file storage.
Implementations: FileSystemStorage (local), S3Storage (AWS).

Paths are POSIX-style and relative to their container ("<buildId>/index.html").
"""

import asyncio
import mimetypes
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Union

from buildshelf.models.signal import CancelSignal
from buildshelf.models.storage import FileContent, StoredFile

UPLOAD_CONCURRENCY = 20
DEFAULT_MIME_TYPE = "application/octet-stream"


def guess_mime_type(path: str) -> str:
    mime_type, _ = mimetypes.guess_type(path)
    return mime_type or DEFAULT_MIME_TYPE


class BlobStore(ABC):
    """
    Abstract base class for blob/object storage.

    Every operation accepts an optional keyword-only `signal`. When omitted,
    the active request's signal is used (if any).
    """

    async def init(self) -> None:
        """Start-up hook. Called once by Service.init()."""
        return None

    # --- Containers ---

    @abstractmethod
    async def create_container(self, container_id: str, *, signal: Optional[CancelSignal] = None) -> None:
        """
        Raises:
            ContainerAlreadyExists: If the container exists
        """
        ...

    @abstractmethod
    async def delete_container(self, container_id: str, *, signal: Optional[CancelSignal] = None) -> None:
        """
        Delete a container and every file in it.

        Raises:
            ContainerNotFound: If the container doesn't exist
        """
        ...

    @abstractmethod
    async def has_container(self, container_id: str, *, signal: Optional[CancelSignal] = None) -> bool:
        ...

    @abstractmethod
    async def list_containers(self, *, signal: Optional[CancelSignal] = None) -> list[str]:
        ...

    # --- Files ---

    @abstractmethod
    async def upload_file(
        self,
        container_id: str,
        content: FileContent,
        *,
        destination_path: str,
        mime_type: Optional[str] = None,
        signal: Optional[CancelSignal] = None,
    ) -> None:
        """
        Store a file, overwriting any existing file at the same path.

        Args:
            container_id: Target container
            content: bytes, str (UTF-8 encoded) or an async byte stream
            destination_path: Path within the container
            mime_type: Content type; guessed from the path when omitted

        Raises:
            ContainerNotFound: If the container doesn't exist
        """
        ...

    @abstractmethod
    async def download_file(
        self, container_id: str, path: str, *, signal: Optional[CancelSignal] = None
    ) -> StoredFile:
        """
        Raises:
            FileNotFound: If the file doesn't exist
        """
        ...

    @abstractmethod
    async def has_file(self, container_id: str, path: str, *, signal: Optional[CancelSignal] = None) -> bool:
        ...

    @abstractmethod
    async def delete_file(self, container_id: str, path: str, *, signal: Optional[CancelSignal] = None) -> None:
        """Delete one file. Deleting a missing file is a no-op."""
        ...

    @abstractmethod
    async def delete_files(
        self,
        container_id: str,
        prefix_or_paths: Union[str, list[str]],
        *,
        signal: Optional[CancelSignal] = None,
    ) -> None:
        """
        Delete many files.

        A string deletes every file whose path starts with it (plain string
        prefix, "abc/" and "abc" differ). A list deletes exactly those paths.
        Nothing matching is a no-op.
        """
        ...

    # --- Bulk helpers ---

    async def upload_files(
        self,
        container_id: str,
        files: list[StoredFile],
        *,
        signal: Optional[CancelSignal] = None,
    ) -> None:
        """Upload many files, at most UPLOAD_CONCURRENCY at a time."""
        semaphore = asyncio.Semaphore(UPLOAD_CONCURRENCY)

        async def upload(file: StoredFile) -> None:
            async with semaphore:
                await self.upload_file(
                    container_id,
                    file.content,
                    destination_path=file.path,
                    mime_type=file.mime_type or None,
                    signal=signal,
                )

        await asyncio.gather(*(upload(f) for f in files))

    async def upload_directory(
        self,
        container_id: str,
        local_path: Union[str, Path],
        destination_prefix: str = "",
        *,
        signal: Optional[CancelSignal] = None,
    ) -> None:
        """Mirror a local directory tree into the container under destination_prefix."""
        root = Path(local_path)
        prefix = destination_prefix.strip("/")
        files = []
        for dirpath, _, filenames in os.walk(root):
            for name in sorted(filenames):
                full = Path(dirpath) / name
                relative = full.relative_to(root).as_posix()
                destination = f"{prefix}/{relative}" if prefix else relative
                files.append(StoredFile(path=destination, content=full.read_bytes()))
        await self.upload_files(container_id, files, signal=signal)
