"""Bluesky Publisher for RSS Bluesky Bridge."""

import time
from datetime import UTC, datetime
from typing import Any

import requests

from .config import BlueskyConfig
from .credentials import BlueskyCredentials
from .errors import UpstreamError
from .logging_config import create_execution_logger

POST_COLLECTION = "app.bsky.feed.post"
EXTERNAL_EMBED_TYPE = "app.bsky.embed.external"


class BlueskyPublisher:
    """Publishes link posts to Bluesky through the XRPC HTTP API."""

    def __init__(
        self,
        config: BlueskyConfig,
        credentials: BlueskyCredentials,
        execution_id: str | None = None,
    ):
        """Initialize Bluesky publisher with configuration."""
        self.config = config
        self.credentials = credentials
        self.logger = create_execution_logger("bluesky_publisher", execution_id)
        self.base_url = f"{config.service_url}/xrpc"
        self.session = requests.Session()
        self.session.headers.update(
            {
                "Content-Type": "application/json",
                "User-Agent": "RSS-Bluesky-Bridge/1.0",
            }
        )
        self._access_jwt: str | None = None
        self._did: str | None = None

        self.logger.info(
            "BlueskyPublisher initialized",
            service_url=config.service_url,
            retry_attempts=config.retry_attempts,
        )

    def build_record(self, text: str, title: str, link: str) -> dict[str, Any]:
        """
        Build a post record with an external link card.

        Args:
            text: Post body, already within the grapheme budget
            title: Title shown on the link card
            link: URL of the original article

        Returns:
            app.bsky.feed.post record
        """
        return {
            "$type": POST_COLLECTION,
            "text": text,
            "createdAt": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "embed": {
                "$type": EXTERNAL_EMBED_TYPE,
                "external": {"uri": link, "title": title, "description": ""},
            },
        }

    def login(self) -> None:
        """Create a session and keep its access token for later calls."""
        body = self._call(
            "com.atproto.server.createSession",
            {
                "identifier": self.credentials.username,
                "password": self.credentials.password,
            },
            authenticated=False,
        )
        self._access_jwt = body.get("accessJwt")
        self._did = body.get("did")
        if not self._access_jwt or not self._did:
            raise UpstreamError(
                "Bluesky session response missing accessJwt or did",
                operation="login",
            )
        self.logger.info("Logged in to Bluesky", did=self._did)

    def publish(self, text: str, title: str, link: str) -> str:
        """
        Publish a post and return its AT URI.

        Args:
            text: Post body
            title: Article title for the link card
            link: Article URL

        Returns:
            The URI of the created post

        Raises:
            UpstreamError: If login or post creation fails
        """
        if self._access_jwt is None:
            self.login()

        record = self.build_record(text, title, link)
        body = self._call(
            "com.atproto.repo.createRecord",
            {"repo": self._did, "collection": POST_COLLECTION, "record": record},
        )
        uri = body.get("uri")
        if not uri:
            raise UpstreamError(
                "Bluesky createRecord response missing uri",
                operation="publish",
                link=link,
            )

        self.logger.info("Post created successfully", uri=uri, link=link)
        return uri

    def handle_rate_limit(self, retry_count: int) -> None:
        """
        Handle rate limiting with exponential backoff.

        Args:
            retry_count: Current retry attempt number
        """
        backoff_time = self.config.backoff_factor**retry_count
        self.logger.warning(
            f"Rate limited, waiting {backoff_time} seconds before retry {retry_count + 1}",
            retry_count=retry_count,
            backoff_time=backoff_time,
        )
        time.sleep(backoff_time)

    def _call(
        self, method: str, payload: dict[str, Any], authenticated: bool = True
    ) -> dict[str, Any]:
        """
        POST to an XRPC procedure, retrying only on HTTP 429.

        Raises:
            UpstreamError: On transport errors, non-2xx responses, or when
                retries are exhausted
        """
        url = f"{self.base_url}/{method}"
        headers = {}
        if authenticated:
            headers["Authorization"] = f"Bearer {self._access_jwt}"

        for attempt in range(self.config.retry_attempts):
            try:
                self.logger.debug(
                    f"Calling {method} (attempt {attempt + 1})", attempt=attempt + 1
                )
                response = self.session.post(
                    url, json=payload, headers=headers, timeout=30
                )
            except requests.RequestException as e:
                self.logger.error(f"Request error calling {method}: {e}", error=str(e))
                raise UpstreamError(
                    f"Failed to call {method}", operation=method
                ) from e

            if response.status_code == 429:
                self.logger.warning(
                    f"Rate limited by Bluesky API (attempt {attempt + 1})",
                    attempt=attempt + 1,
                    http_code=response.status_code,
                )
                if attempt < self.config.retry_attempts - 1:
                    self.handle_rate_limit(attempt)
                    continue
                break

            if not response.ok:
                self.logger.error(
                    f"HTTP error calling {method}: {response.status_code}",
                    http_code=response.status_code,
                )
                raise UpstreamError(
                    f"{method} returned HTTP {response.status_code}",
                    operation=method,
                    status_code=response.status_code,
                )

            try:
                return response.json()
            except ValueError as e:
                raise UpstreamError(
                    f"{method} returned a non-JSON body", operation=method
                ) from e

        self.logger.error("Max retry attempts reached for rate limiting")
        raise UpstreamError(
            f"{method} still rate limited after {self.config.retry_attempts} attempts",
            operation=method,
            status_code=429,
        )
