"""Data models for RSS Bluesky Bridge."""

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from .errors import PartialWriteError, ValidationError

EXECUTION_ITEM_KIND = "ExecutionItem"
RECORD_ITEM_KIND = "RecordItem"

# Record rows live under "guid-<guid>" so they never collide with run ids
RECORD_KEY_PREFIX = "guid-"
RECORD_SORT_KEY = "A"

EXECUTION_ITEM_TTL = timedelta(hours=24)


def _require(value: str | None, name: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} cannot be empty")


@dataclass(frozen=True)
class ItemIdentifier:
    """Addresses one feed item within one pipeline run."""

    execution_id: str
    guid: str

    def __post_init__(self):
        _require(self.execution_id, "execution_id")
        _require(self.guid, "guid")

    @classmethod
    def from_event(cls, event: dict[str, Any]) -> "ItemIdentifier":
        """Build an identifier from a stage input payload."""
        if not isinstance(event, dict):
            raise ValidationError("Stage input must be an object")
        return cls(
            execution_id=event.get("execution_id"), guid=event.get("guid")
        )

    def to_dict(self) -> dict[str, str]:
        return {"execution_id": self.execution_id, "guid": self.guid}


@dataclass
class ExecutionItem:
    """Staging row for one feed item discovered during a run."""

    execution_id: str
    guid: str
    title: str | None = None
    description: str | None = None
    link: str | None = None
    summary: str | None = None
    ttl: int | None = None  # epoch seconds
    pub_date: str | None = None
    kind: str = field(default=EXECUTION_ITEM_KIND)

    def __post_init__(self):
        _require(self.execution_id, "execution_id")
        _require(self.guid, "guid")

    @classmethod
    def new(
        cls,
        execution_id: str,
        guid: str,
        title: str | None = None,
        description: str | None = None,
        link: str | None = None,
        pub_date: str | None = None,
        now: datetime | None = None,
    ) -> "ExecutionItem":
        """Create a fresh staging row expiring 24 hours after ``now``."""
        now = now or datetime.now(UTC)
        return cls(
            execution_id=execution_id,
            guid=guid,
            title=title,
            description=description,
            link=link,
            ttl=int((now + EXECUTION_ITEM_TTL).timestamp()),
            pub_date=pub_date,
        )

    @property
    def identifier(self) -> ItemIdentifier:
        return ItemIdentifier(self.execution_id, self.guid)


@dataclass(frozen=True)
class RecordItem:
    """Permanent marker for a guid that completed the publish stage."""

    guid: str
    kind: str = RECORD_ITEM_KIND

    def __post_init__(self):
        _require(self.guid, "guid")

    @property
    def partition_key(self) -> str:
        return f"{RECORD_KEY_PREFIX}{self.guid}"


@dataclass
class FeedItem:
    """Represents a single normalized RSS feed entry."""

    guid: str
    title: str | None
    description: str | None
    link: str | None
    pub_date: datetime


@dataclass
class BatchOutcome:
    """Result of a chunked bulk write or delete."""

    processed: int = 0
    unprocessed: list[dict[str, Any]] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.unprocessed

    def raise_for_unprocessed(self) -> None:
        """Raise PartialWriteError if any chunk reported leftover rows."""
        if self.unprocessed:
            raise PartialWriteError(self.unprocessed, self.processed)
