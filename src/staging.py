"""Staging store for per-run execution items."""

from decimal import Decimal
from typing import Any, Iterator

from boto3.dynamodb.conditions import Key
from botocore.exceptions import BotoCoreError, ClientError

from .errors import NotFoundError, ValidationError, storage_error
from .logging_config import create_execution_logger
from .models import EXECUTION_ITEM_KIND, BatchOutcome, ExecutionItem, ItemIdentifier

# BatchWriteItem accepts at most 25 requests
BATCH_WRITE_LIMIT = 25

PARTITION_KEY = "PK"
SORT_KEY = "SK"
TYPE_ATTRIBUTE = "_TYPE"
TTL_ATTRIBUTE = "TTL"

_STRING_ATTRIBUTES = ("title", "description", "link", "summary", "pub_date")


def chunked(items: list, size: int = BATCH_WRITE_LIMIT) -> Iterator[list]:
    """Yield consecutive slices of at most ``size`` items."""
    for start in range(0, len(items), size):
        yield items[start : start + size]


def encode_execution_item(item: ExecutionItem) -> dict[str, Any]:
    """Build the table row for an execution item, omitting absent fields."""
    row: dict[str, Any] = {
        PARTITION_KEY: item.execution_id,
        SORT_KEY: item.guid,
        TYPE_ATTRIBUTE: EXECUTION_ITEM_KIND,
    }
    for name in _STRING_ATTRIBUTES:
        value = getattr(item, name)
        if value is not None:
            row[name] = value
    if item.ttl is not None:
        row[TTL_ATTRIBUTE] = item.ttl
    return row


def _optional_str(row: dict[str, Any], name: str) -> str | None:
    value = row.get(name)
    return value if isinstance(value, str) else None


def _optional_int(row: dict[str, Any], name: str) -> int | None:
    value = row.get(name)
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, Decimal) and value == value.to_integral_value():
        return int(value)
    return None


def decode_execution_item(
    row: dict[str, Any], execution_id: str, guid: str
) -> ExecutionItem:
    """Turn a loosely typed row into an ExecutionItem.

    Optional attributes that are missing or hold an unexpected type decode
    as ``None``; they never fail the read.
    """
    return ExecutionItem(
        execution_id=execution_id,
        guid=guid,
        title=_optional_str(row, "title"),
        description=_optional_str(row, "description"),
        link=_optional_str(row, "link"),
        summary=_optional_str(row, "summary"),
        ttl=_optional_int(row, TTL_ATTRIBUTE),
        pub_date=_optional_str(row, "pub_date"),
        kind=_optional_str(row, TYPE_ATTRIBUTE) or EXECUTION_ITEM_KIND,
    )


class StagingStore:
    """CRUD and bulk operations over ExecutionItem rows."""

    def __init__(self, dynamodb, table_name: str, execution_id: str | None = None):
        """Bind the store to a DynamoDB resource and table.

        Args:
            dynamodb: boto3 DynamoDB service resource
            table_name: Name of the shared bridge table
            execution_id: Execution ID for logging context
        """
        self.dynamodb = dynamodb
        self.table_name = table_name
        self.table = dynamodb.Table(table_name)
        self.logger = create_execution_logger("staging_store", execution_id)

    @staticmethod
    def _key(identifier: ItemIdentifier) -> dict[str, str]:
        """Primary key of the row for a validated identifier."""
        return {PARTITION_KEY: identifier.execution_id, SORT_KEY: identifier.guid}

    def create_one(self, item: ExecutionItem) -> None:
        """Write a single execution item."""
        key = self._key(item.identifier)
        try:
            self.table.put_item(Item=encode_execution_item(item))
        except (ClientError, BotoCoreError) as e:
            self.logger.error(
                f"Failed to create execution item: {e}", guid=item.guid, error=str(e)
            )
            raise storage_error(e, "create_execution_item", key) from e

        self.logger.debug("Created execution item", guid=item.guid)

    def create_batch(self, items: list[ExecutionItem]) -> BatchOutcome:
        """Write execution items in chunks of 25.

        Stops at the first chunk that reports unprocessed rows. Chunks written
        before it stay written; nothing is retried here. The outcome lists
        that chunk's leftovers and every row that was never sent.

        Returns:
            BatchOutcome with the number of rows written and any leftovers
        """
        requests = [
            {"PutRequest": {"Item": encode_execution_item(item)}} for item in items
        ]
        outcome = self._write_chunks(requests, "create_execution_items")
        self.logger.info(
            "Batch created execution items",
            requested=len(items),
            processed=outcome.processed,
            unprocessed=len(outcome.unprocessed),
        )
        return outcome

    def get_one(self, execution_id: str, guid: str) -> ExecutionItem:
        """Read one execution item.

        Raises:
            NotFoundError: If no row exists for the key
            StorageError: If the read fails
        """
        key = self._key(ItemIdentifier(execution_id, guid))
        try:
            response = self.table.get_item(Key=key)
        except (ClientError, BotoCoreError) as e:
            self.logger.error(
                f"Failed to get execution item: {e}", guid=guid, error=str(e)
            )
            raise storage_error(e, "get_execution_item", key) from e

        row = response.get("Item")
        if row is None:
            raise NotFoundError(
                f"Execution item not found for guid {guid} in run {execution_id}",
                key=key,
            )
        return decode_execution_item(row, execution_id, guid)

    def update_summary(self, execution_id: str, guid: str, summary: str) -> None:
        """Set the summary attribute of an existing execution item.

        Raises:
            StorageError: If the row does not exist or the update fails
        """
        key = self._key(ItemIdentifier(execution_id, guid))
        try:
            self.table.update_item(
                Key=key,
                UpdateExpression="SET #summary = :summary",
                ConditionExpression="attribute_exists(#pk)",
                ExpressionAttributeNames={"#summary": "summary", "#pk": PARTITION_KEY},
                ExpressionAttributeValues={":summary": summary},
            )
        except (ClientError, BotoCoreError) as e:
            self.logger.error(
                f"Failed to update execution item summary: {e}",
                guid=guid,
                error=str(e),
            )
            raise storage_error(e, "update_summary", key) from e

        self.logger.info(
            "Updated execution item summary", guid=guid, summary_length=len(summary)
        )

    def delete_by_run(self, execution_id: str) -> BatchOutcome:
        """Delete every execution item staged under a run identifier.

        Returns:
            BatchOutcome whose ``processed`` is the number of rows removed
        """
        if not execution_id or not execution_id.strip():
            raise ValidationError("execution_id cannot be empty")
        keys = list(self._query_keys(execution_id))
        requests = [{"DeleteRequest": {"Key": key}} for key in keys]
        outcome = self._write_chunks(requests, "delete_by_run")
        self.logger.info(
            "Deleted execution items for run",
            run_id=execution_id,
            found=len(keys),
            processed=outcome.processed,
            unprocessed=len(outcome.unprocessed),
        )
        return outcome

    def _query_keys(self, execution_id: str) -> Iterator[dict[str, str]]:
        """Yield the primary keys of every row in a run, across all pages."""
        query_args: dict[str, Any] = {
            "KeyConditionExpression": Key(PARTITION_KEY).eq(execution_id),
            "ProjectionExpression": "#pk, #sk",
            "ExpressionAttributeNames": {"#pk": PARTITION_KEY, "#sk": SORT_KEY},
        }
        pages = 0
        while True:
            try:
                response = self.table.query(**query_args)
            except (ClientError, BotoCoreError) as e:
                self.logger.error(
                    f"Failed to query execution items: {e}",
                    run_id=execution_id,
                    error=str(e),
                )
                raise storage_error(
                    e, "delete_by_run", {PARTITION_KEY: execution_id}
                ) from e

            pages += 1
            for row in response.get("Items", []):
                yield {PARTITION_KEY: row[PARTITION_KEY], SORT_KEY: row[SORT_KEY]}

            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                break
            query_args["ExclusiveStartKey"] = last_key

        self.logger.debug("Queried run rows", run_id=execution_id, pages=pages)

    def _write_chunks(
        self, requests: list[dict[str, Any]], operation: str
    ) -> BatchOutcome:
        """Send requests in chunks, stopping at the first chunk with leftovers.

        On a stop, ``unprocessed`` holds the chunk's leftovers followed by
        every request of the chunks that were never sent, so that
        ``processed + len(unprocessed) == len(requests)``.
        """
        outcome = BatchOutcome()
        for index, chunk in enumerate(chunked(requests)):
            try:
                response = self.dynamodb.batch_write_item(
                    RequestItems={self.table_name: chunk}
                )
            except (ClientError, BotoCoreError) as e:
                self.logger.error(
                    f"Batch request failed: {e}",
                    operation=operation,
                    chunk=index,
                    processed=outcome.processed,
                    error=str(e),
                )
                raise storage_error(e, operation) from e

            leftovers = response.get("UnprocessedItems", {}).get(self.table_name, [])
            outcome.processed += len(chunk) - len(leftovers)
            if leftovers:
                unsent = requests[(index + 1) * BATCH_WRITE_LIMIT :]
                outcome.unprocessed = list(leftovers) + unsent
                self.logger.warning(
                    "Batch chunk left unprocessed rows, remaining chunks not sent",
                    operation=operation,
                    chunk=index,
                    leftovers=len(leftovers),
                    unsent=len(unsent),
                    processed=outcome.processed,
                )
                break
        return outcome
