"""
BuildShelf Interfaces — Cloud-agnostic contracts.

All application code depends on these interfaces only.
Backend-specific implementations live in adapters/.
"""

from buildshelf.interfaces.document_store import DocumentStore, apply_list_query
from buildshelf.interfaces.blob_store import BlobStore, guess_mime_type

__all__ = [
    "DocumentStore", "apply_list_query",
    "BlobStore", "guess_mime_type",
]
