"""
Azure Document Store — Data Tables.

One table per collection:
  Table name:    collection id mapped onto table naming rules
  PartitionKey:  the collection id
  RowKey:        the document id

Table entities only hold flat scalar properties. Lists, mappings and None are
stored as JSON strings, and their names are recorded in the JSON_FIELDS
property so they decode back on read. Updates read the entity, merge the
patch and replace it under an etag condition.

The only native query form is an OData filter string with @parameters:
    NativeQuery("status eq @status", values={"status": "ready"})
"""

import asyncio
import json
import logging
import re
from typing import Callable, Optional, TypeVar

from azure.core import MatchConditions
from azure.core.exceptions import AzureError, ResourceExistsError, ResourceModifiedError, ResourceNotFoundError
from azure.data.tables import EdmType, EntityProperty, TableServiceClient, UpdateMode

from adapters.azure.errors import translate_error
from buildshelf.errors.exceptions import (
    BackendUnavailable,
    BuildShelfError,
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

logger = logging.getLogger("buildshelf.azure")

T = TypeVar("T")

JSON_FIELDS = "BuildShelfJsonFields"
KEY_PROPERTIES = ("PartitionKey", "RowKey")
UPDATE_ATTEMPTS = 3
_VALID_TABLE_NAME = re.compile(r"^[A-Za-z][A-Za-z0-9]{2,62}$")
_INVALID_TABLE_CHARS = re.compile(r"[^A-Za-z0-9]+")
_INT32_MIN, _INT32_MAX = -(2 ** 31), 2 ** 31 - 1


def to_table_name(collection_id: str) -> str:
    """Map a collection id onto table naming rules (alphanumeric, starts with a letter, 3-63 chars)."""
    if _VALID_TABLE_NAME.match(collection_id):
        return collection_id
    name = _INVALID_TABLE_CHARS.sub("", collection_id)
    if not name[:1].isalpha():
        name = "T" + name
    return name[:63].ljust(3, "X")


def to_entity(collection_id: str, document: Document) -> dict:
    entity: dict = {"PartitionKey": collection_id, "RowKey": document["id"]}
    json_fields = []
    for key, value in strip_id(document).items():
        if isinstance(value, (bool, str, float, bytes)):
            entity[key] = value
        elif isinstance(value, int):
            if _INT32_MIN <= value <= _INT32_MAX:
                entity[key] = value
            else:
                entity[key] = EntityProperty(value, EdmType.INT64)
        else:
            entity[key] = json.dumps(value, default=str)
            json_fields.append(key)
    if json_fields:
        entity[JSON_FIELDS] = json.dumps(json_fields)
    return entity


def from_entity(entity: dict) -> Document:
    data = dict(entity)
    json_fields = json.loads(data.pop(JSON_FIELDS, None) or "[]")
    document: Document = {"id": data["RowKey"]}
    for key, value in data.items():
        if key in KEY_PROPERTIES:
            continue
        if isinstance(value, EntityProperty):
            value = value.value
        if key in json_fields:
            value = json.loads(value)
        document[key] = value
    return document


class AzureTableDatabase(DocumentStore):
    """Data Tables-backed document store (table per collection)."""

    def __init__(self, connection_string: Optional[str] = None, client=None):
        self.client = client or TableServiceClient.from_connection_string(connection_string)

    async def _run(self, fn: Callable[[], T], signal: Optional[CancelSignal], operation: str) -> T:
        try:
            return await run_cancellable(asyncio.to_thread(fn), resolve_signal(signal))
        except BuildShelfError:
            raise
        except AzureError as e:
            raise translate_error(e, operation) from e

    def _table(self, collection_id: str):
        return self.client.get_table_client(to_table_name(collection_id))

    def _table_exists(self, table_name: str) -> bool:
        tables = self.client.query_tables("TableName eq @name", parameters={"name": table_name})
        return any(table.name == table_name for table in tables)

    # --- Collections ---

    async def create_collection(self, collection_id: str, *, signal: Optional[CancelSignal] = None) -> None:
        table_name = to_table_name(collection_id)

        def op():
            try:
                self.client.create_table(table_name)
            except ResourceExistsError:
                raise CollectionAlreadyExists(collection_id)

        await self._run(op, signal, f"create_collection({collection_id})")
        logger.info(f"Created table {table_name}")

    async def list_collections(self, *, signal: Optional[CancelSignal] = None) -> list[str]:
        return await self._run(
            lambda: [table.name for table in self.client.list_tables()],
            signal,
            "list_collections",
        )

    async def has_collection(self, collection_id: str, *, signal: Optional[CancelSignal] = None) -> bool:
        return await self._run(
            lambda: self._table_exists(to_table_name(collection_id)),
            signal,
            f"has_collection({collection_id})",
        )

    async def delete_collection(self, collection_id: str, *, signal: Optional[CancelSignal] = None) -> None:
        table_name = to_table_name(collection_id)

        def op():
            # delete_table succeeds for missing tables
            if not self._table_exists(table_name):
                raise CollectionNotFound(collection_id)
            self.client.delete_table(table_name)

        await self._run(op, signal, f"delete_collection({collection_id})")
        logger.info(f"Deleted table {table_name}")

    # --- Documents ---

    async def list_documents(
        self,
        collection_id: str,
        query: Optional[ListQuery] = None,
        *,
        signal: Optional[CancelSignal] = None,
    ) -> list[Document]:
        table = self._table(collection_id)
        native = query.native_filter if query else None
        if native is not None and native.names:
            raise UnsupportedQuery("Data Tables filters take @parameters, not attribute name placeholders")

        # Stop reading early when no client-side step can reorder or drop items
        stop_at = None
        if query and query.limit is not None and query.predicate is None and query.sort is None:
            stop_at = query.limit

        def op():
            if native is not None:
                entities = table.query_entities(native.expression, parameters=native.values or None)
            else:
                entities = table.list_entities()
            items: list[Document] = []
            try:
                for entity in entities:
                    if stop_at is not None and len(items) >= stop_at:
                        break
                    items.append(from_entity(entity))
            except ResourceNotFoundError:
                raise CollectionNotFound(collection_id)
            return items

        documents = await self._run(op, signal, f"list_documents({collection_id})")
        return apply_list_query(documents, query, skip_filter=native is not None)

    async def get_document(
        self, collection_id: str, document_id: str, *, signal: Optional[CancelSignal] = None
    ) -> Document:
        table = self._table(collection_id)

        def op():
            try:
                return from_entity(table.get_entity(collection_id, document_id))
            except ResourceNotFoundError:
                raise DocumentNotFound(collection_id, document_id)

        return await self._run(op, signal, f"get_document({collection_id}, {document_id})")

    async def create_document(
        self, collection_id: str, document: Document, *, signal: Optional[CancelSignal] = None
    ) -> None:
        document_id = require_document_id(document)
        table = self._table(collection_id)
        entity = to_entity(collection_id, document)

        def op():
            try:
                table.create_entity(entity)
            except ResourceExistsError:
                raise DocumentAlreadyExists(collection_id, document_id)
            except ResourceNotFoundError:
                raise CollectionNotFound(collection_id)

        await self._run(op, signal, f"create_document({collection_id}, {document_id})")

    async def has_document(
        self, collection_id: str, document_id: str, *, signal: Optional[CancelSignal] = None
    ) -> bool:
        try:
            await self.get_document(collection_id, document_id, signal=signal)
            return True
        except DocumentNotFound:
            return False

    async def update_document(
        self,
        collection_id: str,
        document_id: str,
        patch: dict,
        *,
        signal: Optional[CancelSignal] = None,
    ) -> None:
        changes = strip_id(patch)
        table = self._table(collection_id)

        def op():
            for _ in range(UPDATE_ATTEMPTS):
                try:
                    current = table.get_entity(collection_id, document_id)
                except ResourceNotFoundError:
                    raise DocumentNotFound(collection_id, document_id)
                if not changes:
                    return
                merged = {**from_entity(current), **changes}
                try:
                    table.update_entity(
                        to_entity(collection_id, merged),
                        mode=UpdateMode.REPLACE,
                        etag=current.metadata["etag"],
                        match_condition=MatchConditions.IfNotModified,
                    )
                    return
                except ResourceNotFoundError:
                    raise DocumentNotFound(collection_id, document_id)
                except ResourceModifiedError:
                    logger.debug(f"Concurrent update on {collection_id}/{document_id}, retrying")
            raise BackendUnavailable(
                f"Document '{document_id}' in '{collection_id}' kept changing during update"
            )

        await self._run(op, signal, f"update_document({collection_id}, {document_id})")

    async def delete_document(
        self, collection_id: str, document_id: str, *, signal: Optional[CancelSignal] = None
    ) -> None:
        table = self._table(collection_id)

        def op():
            # delete_entity succeeds for missing entities
            try:
                current = table.get_entity(collection_id, document_id)
                table.delete_entity(
                    collection_id,
                    document_id,
                    etag=current.metadata["etag"],
                    match_condition=MatchConditions.IfNotModified,
                )
            except ResourceNotFoundError:
                raise DocumentNotFound(collection_id, document_id)

        await self._run(op, signal, f"delete_document({collection_id}, {document_id})")
