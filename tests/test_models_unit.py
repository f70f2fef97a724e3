"""Unit tests for data models."""

from datetime import UTC, datetime, timedelta

import pytest

from src.errors import PartialWriteError, ValidationError
from src.models import (
    EXECUTION_ITEM_KIND,
    RECORD_ITEM_KIND,
    BatchOutcome,
    ExecutionItem,
    ItemIdentifier,
    RecordItem,
)


class TestItemIdentifierUnit:
    """Unit tests for ItemIdentifier."""

    def test_round_trips_through_stage_payload(self):
        identifier = ItemIdentifier.from_event(
            {"execution_id": "run-1", "guid": "g1", "should_process": True}
        )
        assert identifier == ItemIdentifier("run-1", "g1")
        assert identifier.to_dict() == {"execution_id": "run-1", "guid": "g1"}

    @pytest.mark.parametrize(
        "event",
        [
            {"execution_id": "", "guid": "g1"},
            {"execution_id": "run-1", "guid": "   "},
            {"execution_id": "run-1"},
            {"guid": "g1"},
            {"execution_id": 42, "guid": "g1"},
        ],
    )
    def test_blank_or_missing_keys_are_rejected(self, event):
        with pytest.raises(ValidationError):
            ItemIdentifier.from_event(event)

    def test_non_object_payload_is_rejected(self):
        with pytest.raises(ValidationError):
            ItemIdentifier.from_event(["run-1", "g1"])

    def test_identifier_is_immutable(self):
        identifier = ItemIdentifier("run-1", "g1")
        with pytest.raises(AttributeError):
            identifier.guid = "other"


class TestExecutionItemUnit:
    """Unit tests for ExecutionItem."""

    def test_new_sets_ttl_24_hours_ahead(self):
        now = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)
        item = ExecutionItem.new("run-1", "g1", title="Title", now=now)

        assert item.ttl == int((now + timedelta(hours=24)).timestamp())
        assert item.summary is None
        assert item.kind == EXECUTION_ITEM_KIND
        assert item.identifier == ItemIdentifier("run-1", "g1")

    @pytest.mark.parametrize("execution_id, guid", [("", "g1"), ("run-1", ""), (" ", " ")])
    def test_blank_keys_fail_fast(self, execution_id, guid):
        with pytest.raises(ValidationError):
            ExecutionItem.new(execution_id, guid)


class TestRecordItemUnit:
    """Unit tests for RecordItem."""

    def test_partition_key_is_prefixed(self):
        record = RecordItem("https://example.com/post")
        assert record.partition_key == "guid-https://example.com/post"
        assert record.kind == RECORD_ITEM_KIND

    def test_blank_guid_is_rejected(self):
        with pytest.raises(ValidationError):
            RecordItem("  ")


class TestBatchOutcomeUnit:
    """Unit tests for BatchOutcome."""

    def test_clean_outcome_does_not_raise(self):
        outcome = BatchOutcome(processed=30)
        assert outcome.succeeded
        outcome.raise_for_unprocessed()

    def test_unprocessed_rows_raise_partial_write_error(self):
        leftovers = [{"PutRequest": {"Item": {"PK": "run-1", "SK": "g9"}}}]
        outcome = BatchOutcome(processed=24, unprocessed=leftovers)

        assert not outcome.succeeded
        with pytest.raises(PartialWriteError) as exc_info:
            outcome.raise_for_unprocessed()
        assert exc_info.value.unprocessed == leftovers
        assert exc_info.value.processed == 24
