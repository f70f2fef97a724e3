"""Feed download and normalization for RSS Bluesky Bridge."""

from datetime import UTC, datetime
from email.utils import format_datetime

import feedparser
import requests
from bs4 import BeautifulSoup
from dateutil import parser as date_parser

from .errors import UpstreamError
from .logging_config import create_execution_logger
from .models import FeedItem

USER_AGENT = "RSS-Bluesky-Bridge/1.0 (+https://bsky.app)"


def html_to_text(markup: str | None) -> str:
    """Strip tags, scripts and styles, collapsing runs of whitespace."""
    if not markup:
        return ""
    if "<" in markup or ">" in markup:
        soup = BeautifulSoup(markup, "html.parser")
        for node in soup(["script", "style"]):
            node.decompose()
        markup = soup.get_text(separator=" ")
    return " ".join(markup.split())


def format_pub_date(published: datetime) -> str:
    """Render a publication date as RFC 2822, the RSS ``pubDate`` format."""
    return format_datetime(published)


def is_recent(item: FeedItem, max_age_hours: int, now: datetime) -> bool:
    """Whether an item's age, truncated to whole hours, fits the window."""
    age_hours = int((now - item.pub_date).total_seconds() // 3600)
    return age_hours <= max_age_hours


class FeedProcessor:
    """Downloads one RSS feed and turns its entries into FeedItems."""

    def __init__(self, timeout: int = 30, execution_id: str | None = None):
        """
        Args:
            timeout: HTTP request timeout in seconds
            execution_id: Execution ID for logging context
        """
        self.timeout = timeout
        self.logger = create_execution_logger("feed_processor", execution_id)
        self.session = requests.Session()
        self.session.headers["User-Agent"] = USER_AGENT

    def fetch_recent_items(
        self, feed_url: str, max_age_hours: int, now: datetime | None = None
    ) -> list[FeedItem]:
        """Fetch a feed and keep the items published within the age window.

        Args:
            feed_url: URL of the RSS feed
            max_age_hours: Maximum item age, in whole hours
            now: Reference time (defaults to current UTC time)

        Raises:
            UpstreamError: If the feed cannot be downloaded or parsed
        """
        now = now or datetime.now(UTC)
        items = self.parse_feed(feed_url)
        recent = [item for item in items if is_recent(item, max_age_hours, now)]
        self.logger.info(
            f"{len(recent)} of {len(items)} items are at most {max_age_hours}h old",
            feed_url=feed_url,
            recent_count=len(recent),
        )
        return recent

    def download(self, feed_url: str) -> bytes:
        """GET the raw feed body.

        Raises:
            UpstreamError: On transport errors or a non-2xx status
        """
        try:
            response = self.session.get(feed_url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            self.logger.error(
                f"Could not download {feed_url}: {e}", feed_url=feed_url, error=str(e)
            )
            raise UpstreamError(
                f"Failed to fetch RSS feed from {feed_url}",
                operation="fetch_feed",
                feed_url=feed_url,
            ) from e
        return response.content

    def parse_feed(self, feed_url: str) -> list[FeedItem]:
        """Download a feed and normalize its usable entries.

        A malformed document is tolerated as long as feedparser recovered
        some entries from it.
        """
        parsed = feedparser.parse(self.download(feed_url))

        problem = getattr(parsed, "bozo_exception", None) if parsed.bozo else None
        if problem is not None and not parsed.entries:
            raise UpstreamError(
                f"Failed to parse RSS feed from {feed_url}: {problem}",
                operation="parse_feed",
                feed_url=feed_url,
            )
        if problem is not None:
            self.logger.warning(
                "Feed is malformed, using recovered entries",
                feed_url=feed_url,
                bozo_exception=str(problem),
            )

        items = [
            item
            for item in map(self.normalize_item, parsed.entries)
            if item is not None
        ]
        self.logger.info(
            "Parsed feed",
            feed_url=feed_url,
            items_count=len(items),
            skipped=len(parsed.entries) - len(items),
        )
        return items

    def normalize_item(self, raw_item) -> FeedItem | None:
        """Map a feedparser entry to a FeedItem.

        Entries need a guid and a parseable publication date to be staged;
        anything else yields None.
        """
        guid = getattr(raw_item, "id", None) or getattr(raw_item, "guid", None)
        if not isinstance(guid, str) or not guid.strip():
            self.logger.debug("Entry has no guid")
            return None
        guid = guid.strip()

        pub_date = self._published_at(raw_item, guid)
        if pub_date is None:
            return None

        body = getattr(raw_item, "summary", None) or getattr(
            raw_item, "description", None
        )
        return FeedItem(
            guid=guid,
            title=getattr(raw_item, "title", None) or None,
            description=html_to_text(body) if isinstance(body, str) else None,
            link=getattr(raw_item, "link", None) or None,
            pub_date=pub_date,
        )

    def _published_at(self, raw_item, guid: str) -> datetime | None:
        raw = getattr(raw_item, "published", None)
        if not raw:
            self.logger.debug("Entry has no publication date", guid=guid)
            return None
        try:
            published = date_parser.parse(raw)
        except (ValueError, TypeError, OverflowError):
            self.logger.warning(
                "Unparseable publication date", guid=guid, published=str(raw)
            )
            return None
        # Feeds that omit the offset are read as UTC
        return published if published.tzinfo else published.replace(tzinfo=UTC)
