"""
Local Document Store — JSON file.

For local development. No DynamoDB dependency.
Keeps every collection in memory and rewrites one JSON file on each change:
    {"<collection>": {"<document id>": {...document...}}}

Single writer only: writes are serialised within the process, and a crash
mid-write can leave a truncated file.

Cancellation is checked once the lock is held. An operation that already
started runs to completion: its change is kept even though the caller gets
Cancelled.
"""

import asyncio
import copy
import json
import logging
import threading
from pathlib import Path
from typing import Callable, Optional, TypeVar

from buildshelf.errors.exceptions import (
    BackendUnavailable,
    CollectionAlreadyExists,
    CollectionNotFound,
    DocumentAlreadyExists,
    DocumentNotFound,
    UnsupportedQuery,
)
from buildshelf.interfaces.document_store import (
    DocumentStore,
    apply_list_query,
    require_document_id,
    resolve_signal,
    strip_id,
)
from buildshelf.models.query import Document, ListQuery
from buildshelf.models.signal import CancelSignal, run_cancellable

logger = logging.getLogger("buildshelf.local")

T = TypeVar("T")


class JsonFileDatabase(DocumentStore):
    """JSON-file-backed document store for local development."""

    def __init__(self, db_path: str = "data/db.json"):
        self.db_path = Path(db_path)
        self._db: dict[str, dict[str, Document]] = {}
        self._loaded = False
        self._lock = threading.Lock()

    async def init(self) -> None:
        await asyncio.to_thread(self._locked, self._load)
        logger.info(f"JSON database ready at {self.db_path} ({len(self._db)} collections)")

    # --- File I/O (called with the lock held) ---

    def _load(self) -> None:
        if self._loaded:
            return
        try:
            if self.db_path.exists():
                text = self.db_path.read_text(encoding="utf-8")
                self._db = json.loads(text) if text.strip() else {}
            else:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
                self.db_path.write_text("{}", encoding="utf-8")
                self._db = {}
        except json.JSONDecodeError as e:
            raise BackendUnavailable(f"Database file {self.db_path} is not valid JSON: {e}")
        except OSError as e:
            raise BackendUnavailable(f"Cannot read database file {self.db_path}: {e}")
        self._loaded = True

    def _save(self) -> None:
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self.db_path.write_text(json.dumps(self._db, indent=2, default=str), encoding="utf-8")
        except OSError as e:
            raise BackendUnavailable(f"Cannot write database file {self.db_path}: {e}")

    def _locked(self, fn: Callable[[], T], signal: Optional[CancelSignal] = None) -> T:
        with self._lock:
            # A caller cancelled while waiting for the lock never mutates the file
            if signal is not None:
                signal.raise_if_cancelled()
            self._load()
            return fn()

    async def _run(self, fn: Callable[[], T], signal: Optional[CancelSignal]) -> T:
        signal = resolve_signal(signal)
        return await run_cancellable(asyncio.to_thread(self._locked, fn, signal), signal)

    def _collection(self, collection_id: str) -> dict[str, Document]:
        collection = self._db.get(collection_id)
        if collection is None:
            raise CollectionNotFound(collection_id)
        return collection

    # --- Collections ---

    async def create_collection(self, collection_id: str, *, signal: Optional[CancelSignal] = None) -> None:
        def op():
            if collection_id in self._db:
                raise CollectionAlreadyExists(collection_id)
            self._db[collection_id] = {}
            self._save()

        await self._run(op, signal)
        logger.debug(f"Created collection {collection_id}")

    async def list_collections(self, *, signal: Optional[CancelSignal] = None) -> list[str]:
        return await self._run(lambda: list(self._db), signal)

    async def has_collection(self, collection_id: str, *, signal: Optional[CancelSignal] = None) -> bool:
        return await self._run(lambda: collection_id in self._db, signal)

    async def delete_collection(self, collection_id: str, *, signal: Optional[CancelSignal] = None) -> None:
        def op():
            self._collection(collection_id)
            del self._db[collection_id]
            self._save()

        await self._run(op, signal)
        logger.debug(f"Deleted collection {collection_id}")

    # --- Documents ---

    async def list_documents(
        self,
        collection_id: str,
        query: Optional[ListQuery] = None,
        *,
        signal: Optional[CancelSignal] = None,
    ) -> list[Document]:
        if query is not None and query.native_filter is not None:
            raise UnsupportedQuery(
                "JsonFileDatabase cannot evaluate native filter expressions. Use a callable filter."
            )

        def op():
            return copy.deepcopy(list(self._collection(collection_id).values()))

        documents = await self._run(op, signal)
        return apply_list_query(documents, query)

    async def get_document(
        self, collection_id: str, document_id: str, *, signal: Optional[CancelSignal] = None
    ) -> Document:
        def op():
            document = self._db.get(collection_id, {}).get(document_id)
            if document is None:
                raise DocumentNotFound(collection_id, document_id)
            return copy.deepcopy(document)

        return await self._run(op, signal)

    async def create_document(
        self, collection_id: str, document: Document, *, signal: Optional[CancelSignal] = None
    ) -> None:
        document_id = require_document_id(document)

        def op():
            collection = self._collection(collection_id)
            if document_id in collection:
                raise DocumentAlreadyExists(collection_id, document_id)
            collection[document_id] = copy.deepcopy(document)
            self._save()

        await self._run(op, signal)

    async def has_document(
        self, collection_id: str, document_id: str, *, signal: Optional[CancelSignal] = None
    ) -> bool:
        return await self._run(lambda: document_id in self._db.get(collection_id, {}), signal)

    async def update_document(
        self,
        collection_id: str,
        document_id: str,
        patch: dict,
        *,
        signal: Optional[CancelSignal] = None,
    ) -> None:
        changes = copy.deepcopy(strip_id(patch))

        def op():
            collection = self._db.get(collection_id, {})
            if document_id not in collection:
                raise DocumentNotFound(collection_id, document_id)
            collection[document_id].update(changes)
            self._save()

        await self._run(op, signal)

    async def delete_document(
        self, collection_id: str, document_id: str, *, signal: Optional[CancelSignal] = None
    ) -> None:
        def op():
            collection = self._db.get(collection_id, {})
            if document_id not in collection:
                raise DocumentNotFound(collection_id, document_id)
            del collection[document_id]
            self._save()

        await self._run(op, signal)
