"""
File model used by BlobStore implementations.
"""

from dataclasses import dataclass
from typing import AsyncIterable, Union

FileContent = Union[bytes, str, AsyncIterable[bytes]]


@dataclass
class StoredFile:
    """A single file inside a container."""

    path: str                 # POSIX path within the container (e.g. "abc123/index.html")
    content: FileContent
    mime_type: str = ""       # Resolved on download when the backend knows it

    async def read(self) -> bytes:
        """Collect the content into bytes (consumes a streamed body)."""
        if isinstance(self.content, bytes):
            return self.content
        if isinstance(self.content, str):
            return self.content.encode("utf-8")
        chunks = []
        async for chunk in self.content:
            chunks.append(chunk)
        return b"".join(chunks)
