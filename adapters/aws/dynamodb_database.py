"""
AWS Document Store — DynamoDB.

One table per collection:
  Table name: collection id mapped onto DynamoDB naming rules
  Key schema: id (HASH, S), on-demand billing
  Items:      the documents themselves

Numbers come back from DynamoDB as Decimal; they are converted to int/float
on read, and floats are converted to Decimal on write.
"""

import asyncio
import logging
import re
from decimal import Decimal
from typing import Any, Callable, Optional, TypeVar

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from adapters.aws.errors import error_code, translate_error
from buildshelf.errors.exceptions import (
    BuildShelfError,
    CollectionAlreadyExists,
    CollectionNotFound,
    DocumentAlreadyExists,
    DocumentNotFound,
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

logger = logging.getLogger("buildshelf.aws")

T = TypeVar("T")

_INVALID_TABLE_CHARS = re.compile(r"[^A-Za-z0-9_.-]+")


def to_table_name(collection_id: str) -> str:
    """Map a collection id onto DynamoDB table naming rules ([A-Za-z0-9_.-], 3-255 chars)."""
    name = _INVALID_TABLE_CHARS.sub("-", collection_id)[:255]
    return name.ljust(3, "_")


def to_dynamo(value: Any) -> Any:
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {k: to_dynamo(v) for k, v in value.items()}
    if isinstance(value, list):
        return [to_dynamo(v) for v in value]
    return value


def from_dynamo(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {k: from_dynamo(v) for k, v in value.items()}
    if isinstance(value, (list, set)):
        return [from_dynamo(v) for v in value]
    return value


class DynamoDBDatabase(DocumentStore):
    """DynamoDB-backed document store (table per collection)."""

    def __init__(
        self,
        region: str = "us-east-1",
        endpoint_url: Optional[str] = None,
        resource=None,
    ):
        self.resource = resource or boto3.resource("dynamodb", region_name=region, endpoint_url=endpoint_url)
        self.client = self.resource.meta.client

    async def _run(self, fn: Callable[[], T], signal: Optional[CancelSignal], operation: str) -> T:
        try:
            return await run_cancellable(asyncio.to_thread(fn), resolve_signal(signal))
        except BuildShelfError:
            raise
        except (ClientError, BotoCoreError) as e:
            raise translate_error(e, operation) from e

    # --- Collections ---

    async def create_collection(self, collection_id: str, *, signal: Optional[CancelSignal] = None) -> None:
        table_name = to_table_name(collection_id)

        def op():
            try:
                self.client.create_table(
                    TableName=table_name,
                    AttributeDefinitions=[{"AttributeName": "id", "AttributeType": "S"}],
                    KeySchema=[{"AttributeName": "id", "KeyType": "HASH"}],
                    BillingMode="PAY_PER_REQUEST",
                )
            except ClientError as e:
                if error_code(e) == "ResourceInUseException":
                    raise CollectionAlreadyExists(collection_id)
                raise
            self.client.get_waiter("table_exists").wait(TableName=table_name)

        await self._run(op, signal, f"create_collection({collection_id})")
        logger.info(f"Created table {table_name}")

    async def list_collections(self, *, signal: Optional[CancelSignal] = None) -> list[str]:
        def op():
            names: list[str] = []
            kwargs: dict = {}
            while True:
                response = self.client.list_tables(**kwargs)
                names.extend(response.get("TableNames", []))
                last = response.get("LastEvaluatedTableName")
                if not last:
                    return names
                kwargs["ExclusiveStartTableName"] = last

        return await self._run(op, signal, "list_collections")

    async def has_collection(self, collection_id: str, *, signal: Optional[CancelSignal] = None) -> bool:
        def op():
            try:
                self.client.describe_table(TableName=to_table_name(collection_id))
                return True
            except ClientError as e:
                if error_code(e) == "ResourceNotFoundException":
                    return False
                raise

        return await self._run(op, signal, f"has_collection({collection_id})")

    async def delete_collection(self, collection_id: str, *, signal: Optional[CancelSignal] = None) -> None:
        table_name = to_table_name(collection_id)

        def op():
            try:
                self.client.delete_table(TableName=table_name)
            except ClientError as e:
                if error_code(e) == "ResourceNotFoundException":
                    raise CollectionNotFound(collection_id)
                raise

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
        table = self.resource.Table(to_table_name(collection_id))
        native = query.native_filter if query else None

        scan_kwargs: dict = {}
        names: dict = {}
        values: dict = {}
        if native is not None:
            scan_kwargs["FilterExpression"] = native.expression
            names.update(native.names)
            values.update(to_dynamo(native.values))
        # Projection only when nothing client-side needs the other fields
        if query and query.select and query.predicate is None and query.sort is None:
            fields = ["id"] + [f for f in query.select if f != "id"]
            placeholders = []
            for i, name in enumerate(fields):
                names[f"#p{i}"] = name
                placeholders.append(f"#p{i}")
            scan_kwargs["ProjectionExpression"] = ", ".join(placeholders)
        if names:
            scan_kwargs["ExpressionAttributeNames"] = names
        if values:
            scan_kwargs["ExpressionAttributeValues"] = values

        # Stop scanning early when no client-side step can reorder or drop items
        stop_at = None
        if query and query.limit is not None and query.predicate is None and query.sort is None:
            stop_at = query.limit

        def op():
            items: list[Document] = []
            kwargs = dict(scan_kwargs)
            while True:
                try:
                    response = table.scan(**kwargs)
                except ClientError as e:
                    if error_code(e) == "ResourceNotFoundException":
                        raise CollectionNotFound(collection_id)
                    raise
                items.extend(from_dynamo(item) for item in response.get("Items", []))
                last_key = response.get("LastEvaluatedKey")
                if not last_key or (stop_at is not None and len(items) >= stop_at):
                    return items
                kwargs["ExclusiveStartKey"] = last_key

        documents = await self._run(op, signal, f"list_documents({collection_id})")
        return apply_list_query(documents, query, skip_filter=native is not None)

    async def get_document(
        self, collection_id: str, document_id: str, *, signal: Optional[CancelSignal] = None
    ) -> Document:
        table = self.resource.Table(to_table_name(collection_id))

        def op():
            try:
                response = table.get_item(Key={"id": document_id})
            except ClientError as e:
                if error_code(e) == "ResourceNotFoundException":
                    raise DocumentNotFound(collection_id, document_id)
                raise
            item = response.get("Item")
            if not item:
                raise DocumentNotFound(collection_id, document_id)
            return from_dynamo(item)

        return await self._run(op, signal, f"get_document({collection_id}, {document_id})")

    async def create_document(
        self, collection_id: str, document: Document, *, signal: Optional[CancelSignal] = None
    ) -> None:
        document_id = require_document_id(document)
        table = self.resource.Table(to_table_name(collection_id))

        def op():
            try:
                table.put_item(
                    Item=to_dynamo(document),
                    ConditionExpression="attribute_not_exists(id)",
                )
            except ClientError as e:
                code = error_code(e)
                if code == "ConditionalCheckFailedException":
                    raise DocumentAlreadyExists(collection_id, document_id)
                if code == "ResourceNotFoundException":
                    raise CollectionNotFound(collection_id)
                raise

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
        if not changes:
            # Nothing to write, but absence must still be reported
            await self.get_document(collection_id, document_id, signal=signal)
            return

        table = self.resource.Table(to_table_name(collection_id))
        names = {}
        values = {}
        assignments = []
        for i, (key, value) in enumerate(changes.items()):
            names[f"#k{i}"] = key
            values[f":v{i}"] = to_dynamo(value)
            assignments.append(f"#k{i} = :v{i}")
        names["#id"] = "id"

        def op():
            try:
                table.update_item(
                    Key={"id": document_id},
                    UpdateExpression="SET " + ", ".join(assignments),
                    ConditionExpression="attribute_exists(#id)",
                    ExpressionAttributeNames=names,
                    ExpressionAttributeValues=values,
                )
            except ClientError as e:
                if error_code(e) in ("ConditionalCheckFailedException", "ResourceNotFoundException"):
                    raise DocumentNotFound(collection_id, document_id)
                raise

        await self._run(op, signal, f"update_document({collection_id}, {document_id})")

    async def delete_document(
        self, collection_id: str, document_id: str, *, signal: Optional[CancelSignal] = None
    ) -> None:
        table = self.resource.Table(to_table_name(collection_id))

        def op():
            try:
                table.delete_item(
                    Key={"id": document_id},
                    ConditionExpression="attribute_exists(#id)",
                    ExpressionAttributeNames={"#id": "id"},
                )
            except ClientError as e:
                if error_code(e) in ("ConditionalCheckFailedException", "ResourceNotFoundException"):
                    raise DocumentNotFound(collection_id, document_id)
                raise

        await self._run(op, signal, f"delete_document({collection_id}, {document_id})")
