"""
Local Blob Store — directory tree.

For local development. No S3 dependency.
Each container is a directory under the storage root; each file is a file
at its POSIX path inside it. MIME types are not persisted: they are guessed
from the file name on download.
"""

import asyncio
import logging
import os
import posixpath
import shutil
from pathlib import Path
from typing import Callable, Optional, TypeVar, Union

from buildshelf.errors.exceptions import (
    BackendUnavailable,
    ContainerAlreadyExists,
    ContainerNotFound,
    FileNotFound,
)
from buildshelf.interfaces.blob_store import BlobStore, guess_mime_type
from buildshelf.interfaces.document_store import resolve_signal
from buildshelf.models.signal import CancelSignal, run_cancellable
from buildshelf.models.storage import FileContent, StoredFile

logger = logging.getLogger("buildshelf.local")

T = TypeVar("T")


def normalize_file_path(path: str) -> str:
    """Container-relative POSIX path. Rejects paths that escape the container."""
    normalized = posixpath.normpath("/" + path.replace("\\", "/")).lstrip("/")
    if not normalized or normalized == ".":
        raise ValueError(f"Invalid file path '{path}'")
    return normalized


class FileSystemStorage(BlobStore):
    """Directory-backed blob store for local development."""

    def __init__(self, root_path: str = "data/storage"):
        self.root = Path(root_path).resolve()

    async def init(self) -> None:
        await asyncio.to_thread(self.root.mkdir, parents=True, exist_ok=True)
        logger.info(f"File storage ready at {self.root}")

    # --- Helpers ---

    def _container_dir(self, container_id: str) -> Path:
        if not container_id or "/" in container_id or "\\" in container_id or container_id in (".", ".."):
            raise ValueError(f"Invalid container id '{container_id}'")
        return self.root / container_id

    def _existing_container_dir(self, container_id: str) -> Path:
        directory = self._container_dir(container_id)
        if not directory.is_dir():
            raise ContainerNotFound(container_id)
        return directory

    def _file_path(self, container_id: str, path: str) -> Path:
        return self._container_dir(container_id) / normalize_file_path(path)

    async def _run(self, fn: Callable[[], T], signal: Optional[CancelSignal]) -> T:
        try:
            return await run_cancellable(asyncio.to_thread(fn), resolve_signal(signal))
        except OSError as e:
            raise BackendUnavailable(f"Local storage error: {e}")

    def _list_files(self, directory: Path) -> list[str]:
        files = []
        for dirpath, _, filenames in os.walk(directory):
            for name in filenames:
                files.append((Path(dirpath) / name).relative_to(directory).as_posix())
        return files

    def _prune_empty_dirs(self, start: Path, stop: Path) -> None:
        """Remove empty parent directories from start up to (not including) stop."""
        current = start
        while current != stop and stop in current.parents:
            try:
                current.rmdir()
            except OSError:
                return
            current = current.parent

    # --- Containers ---

    async def create_container(self, container_id: str, *, signal: Optional[CancelSignal] = None) -> None:
        directory = self._container_dir(container_id)

        def op():
            if directory.exists():
                raise ContainerAlreadyExists(container_id)
            directory.mkdir(parents=True)

        await self._run(op, signal)
        logger.debug(f"Created container {container_id}")

    async def delete_container(self, container_id: str, *, signal: Optional[CancelSignal] = None) -> None:
        def op():
            shutil.rmtree(self._existing_container_dir(container_id))

        await self._run(op, signal)
        logger.debug(f"Deleted container {container_id}")

    async def has_container(self, container_id: str, *, signal: Optional[CancelSignal] = None) -> bool:
        directory = self._container_dir(container_id)
        return await self._run(directory.is_dir, signal)

    async def list_containers(self, *, signal: Optional[CancelSignal] = None) -> list[str]:
        def op():
            if not self.root.is_dir():
                return []
            return [entry.name for entry in self.root.iterdir() if entry.is_dir()]

        return await self._run(op, signal)

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
        target = self._file_path(container_id, destination_path)
        data = await StoredFile(path=destination_path, content=content).read()

        def op():
            self._existing_container_dir(container_id)
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)

        await self._run(op, signal)

    async def download_file(
        self, container_id: str, path: str, *, signal: Optional[CancelSignal] = None
    ) -> StoredFile:
        target = self._file_path(container_id, path)

        def op():
            if not target.is_file():
                raise FileNotFound(container_id, path)
            return target.read_bytes()

        content = await self._run(op, signal)
        return StoredFile(path=path, content=content, mime_type=guess_mime_type(path))

    async def has_file(self, container_id: str, path: str, *, signal: Optional[CancelSignal] = None) -> bool:
        target = self._file_path(container_id, path)
        return await self._run(target.is_file, signal)

    async def delete_file(self, container_id: str, path: str, *, signal: Optional[CancelSignal] = None) -> None:
        directory = self._container_dir(container_id)
        target = self._file_path(container_id, path)

        def op():
            if target.is_file():
                target.unlink()
                self._prune_empty_dirs(target.parent, directory)

        await self._run(op, signal)

    async def delete_files(
        self,
        container_id: str,
        prefix_or_paths: Union[str, list[str]],
        *,
        signal: Optional[CancelSignal] = None,
    ) -> None:
        directory = self._container_dir(container_id)

        def op():
            if not directory.is_dir():
                return 0
            if isinstance(prefix_or_paths, str):
                prefix = prefix_or_paths.lstrip("/")
                paths = [p for p in self._list_files(directory) if p.startswith(prefix)]
            else:
                paths = [normalize_file_path(p) for p in prefix_or_paths]
            deleted = 0
            for relative in paths:
                target = directory / relative
                if target.is_file():
                    target.unlink()
                    self._prune_empty_dirs(target.parent, directory)
                    deleted += 1
            return deleted

        deleted = await self._run(op, signal)
        logger.debug(f"Deleted {deleted} files from {container_id}")
