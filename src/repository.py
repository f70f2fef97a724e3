"""Repository facade over the shared bridge table."""

import boto3

from .dedup import DedupStore
from .errors import ValidationError
from .logging_config import create_execution_logger
from .models import BatchOutcome, ExecutionItem, RecordItem
from .staging import StagingStore


class DynamoRepository:
    """Single entry point to staging and dedup rows in one DynamoDB table."""

    def __init__(
        self,
        table_name: str,
        aws_region: str = "us-east-1",
        dynamodb=None,
        execution_id: str | None = None,
    ):
        """Bind the repository to a table.

        Args:
            table_name: Name of the DynamoDB table
            aws_region: AWS region used when no resource is supplied
            dynamodb: Optional boto3 DynamoDB service resource to reuse
            execution_id: Execution ID for logging context
        """
        if not table_name or not table_name.strip():
            raise ValidationError("table_name cannot be empty")

        self.table_name = table_name
        self.dynamodb = dynamodb or boto3.resource("dynamodb", region_name=aws_region)
        self.staging = StagingStore(self.dynamodb, table_name, execution_id)
        self.records = DedupStore(self.dynamodb, table_name, execution_id)

        create_execution_logger("repository", execution_id).debug(
            "Repository initialized", table_name=table_name, aws_region=aws_region
        )

    def create_execution_item(self, item: ExecutionItem) -> None:
        self.staging.create_one(item)

    def create_execution_items(self, items: list[ExecutionItem]) -> BatchOutcome:
        return self.staging.create_batch(items)

    def get_execution_item(self, execution_id: str, guid: str) -> ExecutionItem:
        return self.staging.get_one(execution_id, guid)

    def update_summary(self, execution_id: str, guid: str, summary: str) -> None:
        self.staging.update_summary(execution_id, guid, summary)

    def delete_by_run(self, execution_id: str) -> BatchOutcome:
        return self.staging.delete_by_run(execution_id)

    def create_record(self, guid: str) -> None:
        self.records.create(guid)

    def record_exists(self, guid: str) -> bool:
        return self.records.exists(guid)

    def get_record(self, guid: str) -> RecordItem:
        return self.records.get(guid)
