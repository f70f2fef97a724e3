"""Lambda entry points for each RSS Bluesky Bridge pipeline stage.

Every stage is a plain function taking its collaborators explicitly, plus a
thin ``*_handler`` that wires configuration and AWS clients for Lambda. The
state machine threads an ``ItemIdentifier`` between stages, so each stage
returns the identifier merged with its own output fields.
"""

import functools
import os
from datetime import UTC, datetime
from typing import Any, Callable

import boto3

from .bluesky import BlueskyPublisher
from .config import load_config
from .credentials import get_bluesky_credentials
from .errors import UpstreamError, ValidationError
from .logging_config import create_execution_logger, setup_structured_logging
from .models import ExecutionItem, ItemIdentifier
from .repository import DynamoRepository
from .rss import FeedProcessor, format_pub_date
from .summarize import Summarizer
from .text_utils import count_graphemes, truncate_to_word

setup_structured_logging(os.getenv("LOG_LEVEL", "INFO"))

METRICS_NAMESPACE = "RSS-Bluesky-Bridge"


@functools.lru_cache(maxsize=None)
def _dynamodb_resource(aws_region: str):
    """One DynamoDB resource per container and region."""
    return boto3.resource("dynamodb", region_name=aws_region)


def _repository(execution_id: str) -> DynamoRepository:
    config = load_config()
    return DynamoRepository(
        table_name=config.get_table_name(),
        aws_region=config.aws_region,
        dynamodb=_dynamodb_resource(config.aws_region),
        execution_id=execution_id,
    )


def _invocation_id() -> str:
    return f"lambda_{datetime.now(UTC).strftime('%Y%m%d_%H%M%S_%f')}"


def _stage(component: str) -> Callable:
    """Wrap a Lambda handler with start/end logging.

    Failures are logged with context and re-raised so the state machine
    records the error for the item.
    """

    def decorator(handler: Callable) -> Callable:
        @functools.wraps(handler)
        def wrapper(event: dict[str, Any], context: Any) -> dict[str, Any]:
            execution_id = None
            if isinstance(event, dict):
                execution_id = event.get("execution_id") or event.get("id")
            logger = create_execution_logger(component, execution_id or _invocation_id())
            logger.log_execution_start(
                lambda_request_id=getattr(context, "aws_request_id", "unknown"),
                guid=event.get("guid") if isinstance(event, dict) else None,
            )
            try:
                result = handler(event, context)
            except Exception as e:
                logger.error(
                    f"{component} failed: {e}",
                    exc_info=True,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                logger.log_execution_end(success=False, error=str(e))
                raise
            logger.log_execution_end(success=True)
            return result

        return wrapper

    return decorator


# Fetch


def get_rss_items(
    execution_id: str,
    repository: DynamoRepository,
    feed_processor: FeedProcessor,
    feed_url: str,
    max_age_hours: int,
    now: datetime | None = None,
) -> dict[str, Any]:
    """
    Stage recent feed items for a run.

    Returns:
        ``{"item_identifiers": [...]}`` for the state machine's Map state

    Raises:
        UpstreamError: If the feed cannot be fetched or parsed
        PartialWriteError: If a batch chunk left rows unprocessed
    """
    if not execution_id or not str(execution_id).strip():
        raise ValidationError("Execution ID not provided in the event payload")

    now = now or datetime.now(UTC)
    feed_items = feed_processor.fetch_recent_items(feed_url, max_age_hours, now=now)

    execution_items = []
    seen = set()
    for feed_item in feed_items:
        # A feed may repeat a guid; one row per key is staged
        if feed_item.guid in seen:
            continue
        seen.add(feed_item.guid)
        execution_items.append(
            ExecutionItem.new(
                execution_id=execution_id,
                guid=feed_item.guid,
                title=feed_item.title,
                description=feed_item.description,
                link=feed_item.link,
                pub_date=format_pub_date(feed_item.pub_date),
                now=now,
            )
        )

    outcome = repository.create_execution_items(execution_items)
    outcome.raise_for_unprocessed()

    return {
        "item_identifiers": [item.identifier.to_dict() for item in execution_items]
    }


@_stage("get_rss_items")
def get_rss_items_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """Scheduled entry point; the event ``id`` is the run identifier."""
    config = load_config()
    feed_config = config.get_feed_config()
    execution_id = event.get("id") if isinstance(event, dict) else None
    return get_rss_items(
        execution_id=execution_id,
        repository=_repository(execution_id),
        feed_processor=FeedProcessor(
            timeout=feed_config.timeout, execution_id=execution_id
        ),
        feed_url=feed_config.feed_url,
        max_age_hours=feed_config.max_age_hours,
    )


# Dedup check


def check_dedup(
    identifier: ItemIdentifier, repository: DynamoRepository
) -> dict[str, Any]:
    """Decide whether an item still needs to go through the pipeline."""
    exists = repository.record_exists(identifier.guid)
    if exists:
        create_execution_logger(
            "check_dedup", identifier.execution_id
        ).log_item_processing(identifier.guid, "already published, skipping")
    return {**identifier.to_dict(), "should_process": not exists}


@_stage("check_dedup")
def check_dedup_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    identifier = ItemIdentifier.from_event(event)
    return check_dedup(identifier, _repository(identifier.execution_id))


# Summarize


def summarize_item(
    identifier: ItemIdentifier,
    repository: DynamoRepository,
    summarizer: Summarizer | None,
    post_max_graphemes: int,
) -> dict[str, Any]:
    """
    Store a post-sized summary for a staged item.

    A ``None`` summarizer means AI summaries are disabled: the row is left
    without a summary and the publish stage falls back to the description.

    Raises:
        NotFoundError: If the item is not staged
        ValidationError: If the item has no description
        UpstreamError: If Bedrock fails
    """
    logger = create_execution_logger("summarize", identifier.execution_id)
    if summarizer is None:
        logger.info("AI summary disabled, skipping", guid=identifier.guid)
        return identifier.to_dict()

    item = repository.get_execution_item(identifier.execution_id, identifier.guid)
    if not item.description or not item.description.strip():
        raise ValidationError(f"Description not found in item {identifier.guid}")

    summary = summarizer.summarize(item.description, guid=identifier.guid)
    if summary is None:
        logger.info(
            "No summary generated, using description", guid=identifier.guid
        )
        summary = item.description

    truncated = truncate_to_word(summary, post_max_graphemes)
    logger.info(
        "Summary ready",
        guid=identifier.guid,
        graphemes_before=count_graphemes(summary.strip()),
        graphemes_after=count_graphemes(truncated),
    )
    repository.update_summary(identifier.execution_id, identifier.guid, truncated)
    return identifier.to_dict()


@_stage("summarize")
def summarize_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    identifier = ItemIdentifier.from_event(event)
    config = load_config()
    bedrock_config = config.get_bedrock_config()
    summarizer = (
        Summarizer(bedrock_config, execution_id=identifier.execution_id)
        if bedrock_config.enabled
        else None
    )
    return summarize_item(
        identifier,
        _repository(identifier.execution_id),
        summarizer,
        config.post_max_graphemes,
    )


# Publish


def choose_post_text(item: ExecutionItem, max_graphemes: int) -> str:
    """Pick the post body: the stored summary, else the truncated description."""
    if item.summary and item.summary.strip():
        text = item.summary
    elif item.description and item.description.strip():
        text = item.description
    else:
        raise ValidationError(f"Description not found in item {item.guid}")
    return truncate_to_word(text, max_graphemes)


def post_to_bluesky(
    identifier: ItemIdentifier,
    repository: DynamoRepository,
    publisher: BlueskyPublisher,
    max_graphemes: int,
) -> dict[str, Any]:
    """
    Publish a staged item and return the created post URI.

    Raises:
        NotFoundError: If the item is not staged
        ValidationError: If title, link or description is missing
        UpstreamError: If the post cannot be created
    """
    item = repository.get_execution_item(identifier.execution_id, identifier.guid)
    if not item.title:
        raise ValidationError(f"Title not found in item {identifier.guid}")
    if not item.link:
        raise ValidationError(f"Link not found in item {identifier.guid}")
    if not item.description:
        raise ValidationError(f"Description not found in item {identifier.guid}")

    text = choose_post_text(item, max_graphemes)
    try:
        uri = publisher.publish(text, item.title, item.link)
    except UpstreamError as e:
        e.context.setdefault("execution_id", identifier.execution_id)
        e.context.setdefault("guid", identifier.guid)
        raise

    return {**identifier.to_dict(), "uri": uri}


@_stage("post_bluesky")
def post_bluesky_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    identifier = ItemIdentifier.from_event(event)
    config = load_config()
    bluesky_config = config.get_bluesky_config()
    credentials = get_bluesky_credentials(
        bluesky_config.secret_name, config.aws_region, identifier.execution_id
    )
    publisher = BlueskyPublisher(
        bluesky_config, credentials, execution_id=identifier.execution_id
    )
    return post_to_bluesky(
        identifier,
        _repository(identifier.execution_id),
        publisher,
        bluesky_config.max_graphemes,
    )


# Record


def record_item(
    identifier: ItemIdentifier, repository: DynamoRepository
) -> dict[str, Any]:
    """Mark the item's guid as published."""
    repository.create_record(identifier.guid)
    create_execution_logger(
        "update_record", identifier.execution_id
    ).log_item_processing(identifier.guid, "recorded")
    return identifier.to_dict()


@_stage("update_record")
def update_record_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    identifier = ItemIdentifier.from_event(event)
    return record_item(identifier, _repository(identifier.execution_id))


# Error check


def error_check(processed_items: list[dict[str, Any]]) -> dict[str, Any]:
    """Summarize per-item results of the Map state."""
    error_count = sum(
        1
        for item in processed_items
        if isinstance(item, dict) and item.get("error") is not None
    )
    return {
        "has_errors": error_count > 0,
        "error_count": error_count,
        "total_items": len(processed_items),
    }


@_stage("error_check")
def error_check_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    processed_items = event.get("processed_items") if isinstance(event, dict) else None
    if not isinstance(processed_items, list):
        raise ValidationError("processed_items must be a list")
    result = error_check(processed_items)
    execution_id = event.get("execution_id") or _invocation_id()
    create_execution_logger("error_check", execution_id).log_metrics(result)
    send_cloudwatch_metrics(result, load_config().aws_region, execution_id)
    return result


def send_cloudwatch_metrics(
    result: dict[str, Any], aws_region: str, execution_id: str
) -> None:
    """
    Send run-level metrics to CloudWatch.

    Metrics are best effort: a failure is logged and does not fail the run.

    Args:
        result: Output of ``error_check``
        aws_region: AWS region for CloudWatch client
        execution_id: Execution ID for logging context
    """
    metrics_logger = create_execution_logger("cloudwatch_metrics", execution_id)
    status = "Failure" if result["has_errors"] else "Success"
    metric_data = [
        {
            "MetricName": "ItemsProcessed",
            "Value": result["total_items"],
            "Unit": "Count",
        },
        {
            "MetricName": "ItemErrors",
            "Value": result["error_count"],
            "Unit": "Count",
        },
        {
            "MetricName": "ExecutionSuccess",
            "Value": 0 if result["has_errors"] else 1,
            "Unit": "Count",
            "Dimensions": [{"Name": "Status", "Value": status}],
        },
    ]

    try:
        cloudwatch = boto3.client("cloudwatch", region_name=aws_region)
        cloudwatch.put_metric_data(Namespace=METRICS_NAMESPACE, MetricData=metric_data)
        metrics_logger.info(
            "Successfully sent metrics to CloudWatch",
            metrics_sent=len(metric_data),
            namespace=METRICS_NAMESPACE,
        )
    except Exception as e:
        metrics_logger.error(f"Failed to send CloudWatch metrics: {e}", error=str(e))


# Cleanup


def cleanup_run(execution_id: str, repository: DynamoRepository) -> dict[str, Any]:
    """
    Remove every staged row of a run.

    Raises:
        PartialWriteError: If a delete chunk left rows behind
    """
    outcome = repository.delete_by_run(execution_id)
    outcome.raise_for_unprocessed()
    return {"execution_id": execution_id, "deleted_count": outcome.processed}


@_stage("cleanup")
def cleanup_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    execution_id = event.get("execution_id") if isinstance(event, dict) else None
    if not execution_id or not str(execution_id).strip():
        raise ValidationError("execution_id cannot be empty")
    return cleanup_run(execution_id, _repository(execution_id))
