"""
Document Store Interface

Cloud-agnostic abstraction for collections of JSON-like documents.
Implementations: JsonFileDatabase (local), DynamoDBDatabase (AWS).

Every implementation must behave the same for the same calls: the same
errors for the same absences and collisions, the same list query semantics.
"""

import functools
from abc import ABC, abstractmethod
from typing import Optional

from buildshelf.context import current_signal
from buildshelf.models.query import Document, ListQuery
from buildshelf.models.signal import CancelSignal


class DocumentStore(ABC):
    """
    Abstract base class for document databases.

    Every operation accepts an optional keyword-only `signal`. When omitted,
    the active request's signal is used (if any).
    """

    async def init(self) -> None:
        """Start-up hook. Called once by Service.init()."""
        return None

    # --- Collections ---

    @abstractmethod
    async def create_collection(self, collection_id: str, *, signal: Optional[CancelSignal] = None) -> None:
        """
        Create an empty collection.

        Raises:
            CollectionAlreadyExists: If the collection exists
        """
        ...

    @abstractmethod
    async def list_collections(self, *, signal: Optional[CancelSignal] = None) -> list[str]:
        """Names of all collections, in no particular order."""
        ...

    @abstractmethod
    async def has_collection(self, collection_id: str, *, signal: Optional[CancelSignal] = None) -> bool:
        ...

    @abstractmethod
    async def delete_collection(self, collection_id: str, *, signal: Optional[CancelSignal] = None) -> None:
        """
        Permanently delete a collection and its documents.

        Raises:
            CollectionNotFound: If the collection doesn't exist
        """
        ...

    # --- Documents ---

    @abstractmethod
    async def list_documents(
        self,
        collection_id: str,
        query: Optional[ListQuery] = None,
        *,
        signal: Optional[CancelSignal] = None,
    ) -> list[Document]:
        """
        List documents in a collection.

        Args:
            collection_id: Collection to read
            query: Optional filter / sort / select / limit

        Returns:
            Matching documents (empty list for an empty collection)

        Raises:
            CollectionNotFound: If the collection doesn't exist
            UnsupportedQuery: If the backend can't evaluate a NativeQuery filter
        """
        ...

    @abstractmethod
    async def get_document(
        self, collection_id: str, document_id: str, *, signal: Optional[CancelSignal] = None
    ) -> Document:
        """
        Raises:
            DocumentNotFound: If the document (or its collection) doesn't exist
        """
        ...

    @abstractmethod
    async def create_document(
        self, collection_id: str, document: Document, *, signal: Optional[CancelSignal] = None
    ) -> None:
        """
        Insert a new document. document["id"] is required.

        Raises:
            ValueError: If the document has no string id
            DocumentAlreadyExists: If a document with that id exists
            CollectionNotFound: If the collection doesn't exist
        """
        ...

    @abstractmethod
    async def has_document(
        self, collection_id: str, document_id: str, *, signal: Optional[CancelSignal] = None
    ) -> bool:
        ...

    @abstractmethod
    async def update_document(
        self,
        collection_id: str,
        document_id: str,
        patch: dict,
        *,
        signal: Optional[CancelSignal] = None,
    ) -> None:
        """
        Merge `patch` into an existing document. An "id" key in the patch is ignored.

        Raises:
            DocumentNotFound: If the document doesn't exist
        """
        ...

    @abstractmethod
    async def delete_document(
        self, collection_id: str, document_id: str, *, signal: Optional[CancelSignal] = None
    ) -> None:
        """
        Raises:
            DocumentNotFound: If the document doesn't exist (a second delete fails too)
        """
        ...


# --- Helpers shared by implementations ---


def resolve_signal(signal: Optional[CancelSignal]) -> Optional[CancelSignal]:
    """Explicit signal if given, else the active request's signal."""
    return signal if signal is not None else current_signal()


def require_document_id(document: Document) -> str:
    document_id = document.get("id") if isinstance(document, dict) else None
    if not isinstance(document_id, str) or not document_id:
        raise ValueError("Document must have a non-empty string 'id' field")
    return document_id


def strip_id(patch: dict) -> dict:
    return {k: v for k, v in patch.items() if k != "id"}


def _latest_key(document: Document) -> str:
    return str(document.get("updatedAt") or document.get("createdAt") or "")


def apply_list_query(
    documents: list[Document],
    query: Optional[ListQuery],
    skip_filter: bool = False,
) -> list[Document]:
    """
    Client-side filter -> sort -> select -> limit.

    Args:
        documents: Documents as stored
        query: The list query, or None to return documents unchanged
        skip_filter: True when the backend already applied the filter natively

    Only callable predicates are evaluated here. Callers decide what to do
    with a NativeQuery before calling (push it down or raise UnsupportedQuery).
    """
    if query is None:
        return list(documents)

    result = list(documents)

    if not skip_filter and query.predicate is not None:
        result = [doc for doc in result if query.predicate(doc)]

    if query.sort == "latest":
        result.sort(key=_latest_key, reverse=True)
    elif callable(query.sort):
        result.sort(key=functools.cmp_to_key(query.sort))

    if query.select:
        fields = set(query.select) | {"id"}
        result = [{k: v for k, v in doc.items() if k in fields} for doc in result]

    if query.limit is not None:
        result = result[: query.limit]

    return result
