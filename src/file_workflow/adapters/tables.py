"""
DynamoDB-backed status table and audit log.

Both tables share the same key schema: a fixed `partition_key` (HASH) and a
`row_key` (RANGE). The status table keeps one item per logical file with an
opaque `version` tag for optimistic concurrency; the audit log is append-only.
"""

import logging
import uuid
from typing import Any, Dict, Iterator, Optional

from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import ClientError

from file_workflow.errors import ConflictError, NotFoundError
from file_workflow.schemas import (
    AUDIT_PARTITION_KEY,
    STATUS_PARTITION_KEY,
    AuditEntry,
    StatusRecord,
    utc_now,
)

logger = logging.getLogger(__name__)

TIMESTAMP_INDEX = "timestamp-index"
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def _new_version() -> str:
    return uuid.uuid4().hex


def _error_code(err: ClientError) -> str:
    return err.response.get("Error", {}).get("Code", "")


class _KeyedTable:
    """Shared create-if-absent logic for a partition/row keyed table."""

    def __init__(self, table_name: str, dynamodb_resource: Any):
        self.table_name = table_name
        self.dynamodb = dynamodb_resource
        self.table = dynamodb_resource.Table(table_name)

    def _table_definition(self) -> Dict[str, Any]:
        return {
            "TableName": self.table_name,
            "KeySchema": [
                {"AttributeName": "partition_key", "KeyType": "HASH"},
                {"AttributeName": "row_key", "KeyType": "RANGE"},
            ],
            "AttributeDefinitions": [
                {"AttributeName": "partition_key", "AttributeType": "S"},
                {"AttributeName": "row_key", "AttributeType": "S"},
            ],
            "BillingMode": "PAY_PER_REQUEST",
        }

    def ensure_table(self) -> None:
        """Create the table if it does not exist yet."""
        try:
            self.dynamodb.create_table(**self._table_definition())
        except ClientError as e:
            if _error_code(e) != "ResourceInUseException":
                raise
            return
        self.table.wait_until_exists()
        logger.info(f"Created DynamoDB table: {self.table_name}")


class StatusTable(_KeyedTable):
    """Current processing status per logical file."""

    def get(self, row_key: str, partition_key: str = STATUS_PARTITION_KEY) -> StatusRecord:
        """Fetch a record with its version tag, raising `NotFoundError` if absent."""
        response = self.table.get_item(
            Key={"partition_key": partition_key, "row_key": row_key},
            ConsistentRead=True,
        )
        item = response.get("Item")
        if item is None:
            raise NotFoundError(f"Status record not found: {row_key}")
        return StatusRecord.model_validate(item)

    def upsert(self, record: StatusRecord) -> StatusRecord:
        """Unconditionally replace the record; the last writer wins."""
        stored = record.model_copy(update={"version": _new_version(), "updated_at": utc_now()})
        self.table.put_item(Item=stored.model_dump(mode="json"))
        logger.info(f"Upserted status {stored.status.value} for {stored.row_key}")
        return stored

    def update_conditional(self, record: StatusRecord, version: Optional[str]) -> StatusRecord:
        """
        Replace the record only if its stored version still equals `version`.

        Raises:
            ConflictError: If another writer changed the record in between.
        """
        stored = record.model_copy(update={"version": _new_version(), "updated_at": utc_now()})
        try:
            self.table.put_item(
                Item=stored.model_dump(mode="json"),
                ConditionExpression=Attr("version").eq(version),
            )
        except ClientError as e:
            if _error_code(e) == "ConditionalCheckFailedException":
                raise ConflictError(
                    f"Status record {record.row_key} was modified concurrently"
                ) from e
            raise
        logger.info(f"Updated status to {stored.status.value} for {stored.row_key}")
        return stored

    def insert(self, record: StatusRecord) -> StatusRecord:
        """
        Create the record, failing if one already exists under the same key.

        Raises:
            ConflictError: If the row already exists.
        """
        stored = record.model_copy(update={"version": _new_version(), "updated_at": utc_now()})
        try:
            self.table.put_item(
                Item=stored.model_dump(mode="json"),
                ConditionExpression=Attr("row_key").not_exists(),
            )
        except ClientError as e:
            if _error_code(e) == "ConditionalCheckFailedException":
                raise ConflictError(f"Status record {record.row_key} already exists") from e
            raise
        logger.info(f"Inserted status {stored.status.value} for {stored.row_key}")
        return stored


class AuditLog(_KeyedTable):
    """
    Append-only log of actions taken on files.

    Entries are keyed by a random id; a local secondary index on `timestamp`
    lets queries walk the partition newest first.
    """

    def _table_definition(self) -> Dict[str, Any]:
        definition = super()._table_definition()
        definition["AttributeDefinitions"].append(
            {"AttributeName": "timestamp", "AttributeType": "S"}
        )
        definition["LocalSecondaryIndexes"] = [
            {
                "IndexName": TIMESTAMP_INDEX,
                "KeySchema": [
                    {"AttributeName": "partition_key", "KeyType": "HASH"},
                    {"AttributeName": "timestamp", "KeyType": "RANGE"},
                ],
                "Projection": {"ProjectionType": "ALL"},
            }
        ]
        return definition

    def append(self, entry: AuditEntry) -> AuditEntry:
        """Store an entry stamped with the current time under the audit partition."""
        stored = entry.model_copy(
            update={"partition_key": AUDIT_PARTITION_KEY, "timestamp": utc_now()}
        )
        item = stored.model_dump(mode="json")
        # Fixed-width timestamps keep the index in chronological order
        item["timestamp"] = stored.timestamp.strftime(TIMESTAMP_FORMAT)
        self.table.put_item(
            Item=item,
            ConditionExpression=Attr("row_key").not_exists(),
        )
        logger.info(f"Audit {stored.action.value} recorded for {stored.blob_name}")
        return stored

    def _query(self, **query_kwargs: Any) -> Iterator[AuditEntry]:
        query_kwargs["KeyConditionExpression"] = Key("partition_key").eq(AUDIT_PARTITION_KEY)
        query_kwargs["IndexName"] = TIMESTAMP_INDEX
        query_kwargs["ScanIndexForward"] = False
        while True:
            response = self.table.query(**query_kwargs)
            for item in response.get("Items", []):
                yield AuditEntry.model_validate(item)
            last_key: Optional[Dict[str, Any]] = response.get("LastEvaluatedKey")
            if not last_key:
                return
            query_kwargs["ExclusiveStartKey"] = last_key

    def query_by_blob_name(self, blob_name: str) -> Iterator[AuditEntry]:
        """Entries whose stored blob path equals `blob_name`, newest first, filtered by the store."""
        return self._query(FilterExpression=Attr("blob_name").eq(blob_name))

    def query_partition(self) -> Iterator[AuditEntry]:
        """Every entry in the audit partition, newest first."""
        return self._query()
