"""Deduplication store for RSS Bluesky Bridge."""

from botocore.exceptions import BotoCoreError, ClientError

from .errors import NotFoundError, storage_error
from .logging_config import create_execution_logger
from .models import RECORD_ITEM_KIND, RECORD_KEY_PREFIX, RECORD_SORT_KEY, RecordItem
from .staging import PARTITION_KEY, SORT_KEY, TYPE_ATTRIBUTE


def record_key(guid: str) -> dict[str, str]:
    """Primary key of the record row for a guid."""
    return {PARTITION_KEY: f"{RECORD_KEY_PREFIX}{guid}", SORT_KEY: RECORD_SORT_KEY}


class DedupStore:
    """Handles "already published" markers for feed items using DynamoDB."""

    def __init__(self, dynamodb, table_name: str, execution_id: str | None = None):
        """Initialize the DedupStore.

        Args:
            dynamodb: boto3 DynamoDB service resource
            table_name: Name of the shared bridge table
            execution_id: Execution ID for logging context
        """
        self.table_name = table_name
        self.table = dynamodb.Table(table_name)
        self.logger = create_execution_logger("dedup_store", execution_id)

    def create(self, guid: str) -> None:
        """Mark a guid as processed.

        Overwrites any existing marker; callers rely on the dedup-check stage
        having gated the run.

        Args:
            guid: The feed item guid
        """
        record = RecordItem(guid)
        key = record_key(record.guid)
        try:
            self.table.put_item(Item={**key, TYPE_ATTRIBUTE: RECORD_ITEM_KIND})
        except (ClientError, BotoCoreError) as e:
            self.logger.error(
                f"Error storing record item {guid}: {e}", guid=guid, error=str(e)
            )
            raise storage_error(e, "create_record", key) from e

        self.logger.info("Stored record item", guid=guid)

    def exists(self, guid: str) -> bool:
        """Check whether a guid has already been processed.

        Args:
            guid: The feed item guid

        Returns:
            True if a record row exists, False otherwise
        """
        key = record_key(RecordItem(guid).guid)
        try:
            response = self.table.get_item(
                Key=key,
                ProjectionExpression="#pk",
                ExpressionAttributeNames={"#pk": PARTITION_KEY},
            )
        except (ClientError, BotoCoreError) as e:
            self.logger.error(
                f"Error checking record item {guid}: {e}", guid=guid, error=str(e)
            )
            raise storage_error(e, "record_exists", key) from e

        exists = "Item" in response
        self.logger.debug("Checked record item", guid=guid, exists=exists)
        return exists

    def get(self, guid: str) -> RecordItem:
        """Read the record item for a guid.

        Raises:
            NotFoundError: If the guid was never recorded
        """
        key = record_key(RecordItem(guid).guid)
        try:
            response = self.table.get_item(Key=key)
        except (ClientError, BotoCoreError) as e:
            raise storage_error(e, "get_record", key) from e

        row = response.get("Item")
        if row is None:
            raise NotFoundError(f"Record item not found for guid {guid}", key=key)

        kind = row.get(TYPE_ATTRIBUTE)
        return RecordItem(
            guid=guid, kind=kind if isinstance(kind, str) else RECORD_ITEM_KIND
        )
