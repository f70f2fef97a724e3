"""Configuration management for RSS Bluesky Bridge."""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Mapping

from .errors import ConfigurationError

logger = logging.getLogger("rss_bluesky_bridge.config")

DEFAULT_MAX_AGE_HOURS = 24
DEFAULT_AI_SUMMARY_MAX_GRAPHEMES = 280
DEFAULT_POST_MAX_GRAPHEMES = 300
DEFAULT_BLUESKY_SERVICE_URL = "https://bsky.social"
DEFAULT_AWS_REGION = "us-east-1"


@dataclass(frozen=True)
class FeedConfig:
    """Configuration for the feed fetch stage."""

    feed_url: str
    max_age_hours: int = DEFAULT_MAX_AGE_HOURS
    timeout: int = 30


@dataclass(frozen=True)
class BedrockConfig:
    """Configuration for Amazon Bedrock summarization."""

    enabled: bool = False
    model_id: str = ""
    region: str = DEFAULT_AWS_REGION
    max_graphemes: int = DEFAULT_AI_SUMMARY_MAX_GRAPHEMES
    max_tokens: int = 300


@dataclass(frozen=True)
class BlueskyConfig:
    """Configuration for publishing to Bluesky."""

    secret_name: str
    service_url: str = DEFAULT_BLUESKY_SERVICE_URL
    max_graphemes: int = DEFAULT_POST_MAX_GRAPHEMES
    retry_attempts: int = 3
    backoff_factor: float = 2.0


def _blank(value: str | None) -> bool:
    return value is None or not value.strip()


def _positive_int(environ: Mapping[str, str], name: str, default: int) -> int:
    """Parse a numeric setting, falling back to ``default`` when absent or <= 0."""
    raw = environ.get(name)
    if _blank(raw):
        return default
    try:
        value = int(raw.strip())
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e
    if value <= 0:
        logger.warning(
            f"{name} is {value}, defaulting to {default}",
            extra={"setting": name, "original_value": value, "default": default},
        )
        return default
    return value


@dataclass(frozen=True)
class Config:
    """Environment-derived settings, read once per process."""

    dynamodb_table: str | None
    aws_region: str
    feed_url: str | None
    max_age_hours: int
    enable_ai_summary: bool
    ai_model_id: str | None
    ai_summary_max_graphemes: int
    post_max_graphemes: int
    bluesky_secret_name: str | None
    bluesky_service_url: str
    log_level: str

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Config":
        """Read every setting from the environment.

        Numeric values are validated here; required values are checked by
        the per-stage getters, since each function only receives the
        variables it uses.

        Raises:
            ConfigurationError: If a numeric value cannot be parsed
        """
        environ = os.environ if environ is None else environ
        service_url = environ.get("BLUESKY_SERVICE_URL", "")
        return cls(
            dynamodb_table=environ.get("DYNAMODB_TABLE_NAME"),
            aws_region=environ.get(
                "CURRENT_AWS_REGION",
                environ.get("AWS_DEFAULT_REGION", DEFAULT_AWS_REGION),
            ),
            feed_url=environ.get("FEED_URL"),
            max_age_hours=_positive_int(
                environ, "MAX_AGE_HOURS", DEFAULT_MAX_AGE_HOURS
            ),
            enable_ai_summary=environ.get("ENABLE_AI_SUMMARY", "").strip().lower()
            == "true",
            ai_model_id=environ.get("AI_MODEL_ID"),
            ai_summary_max_graphemes=_positive_int(
                environ, "AI_SUMMARY_MAX_GRAPHEMES", DEFAULT_AI_SUMMARY_MAX_GRAPHEMES
            ),
            post_max_graphemes=_positive_int(
                environ, "POST_MAX_GRAPHEMES", DEFAULT_POST_MAX_GRAPHEMES
            ),
            bluesky_secret_name=environ.get("BLUESKY_CREDENTIALS_SECRET_NAME"),
            bluesky_service_url=service_url.strip().rstrip("/")
            or DEFAULT_BLUESKY_SERVICE_URL,
            log_level=environ.get("LOG_LEVEL", "INFO"),
        )

    def get_table_name(self) -> str:
        """Get the DynamoDB table name."""
        if _blank(self.dynamodb_table):
            raise ConfigurationError("DYNAMODB_TABLE_NAME cannot be empty")
        return self.dynamodb_table.strip()

    def get_feed_config(self) -> FeedConfig:
        """Get feed fetch configuration."""
        if _blank(self.feed_url):
            raise ConfigurationError("FEED_URL is not provided")
        return FeedConfig(
            feed_url=self.feed_url.strip(), max_age_hours=self.max_age_hours
        )

    def get_bedrock_config(self) -> BedrockConfig:
        """Get Bedrock configuration."""
        if self.enable_ai_summary and _blank(self.ai_model_id):
            raise ConfigurationError(
                "AI summary is enabled, but AI_MODEL_ID is missing"
            )
        return BedrockConfig(
            enabled=self.enable_ai_summary,
            model_id=(self.ai_model_id or "").strip(),
            region=self.aws_region,
            max_graphemes=self.ai_summary_max_graphemes,
        )

    def get_bluesky_config(self) -> BlueskyConfig:
        """Get Bluesky configuration."""
        if _blank(self.bluesky_secret_name):
            raise ConfigurationError("BLUESKY_CREDENTIALS_SECRET_NAME cannot be empty")
        return BlueskyConfig(
            secret_name=self.bluesky_secret_name.strip(),
            service_url=self.bluesky_service_url,
            max_graphemes=self.post_max_graphemes,
        )


@lru_cache(maxsize=1)
def load_config() -> Config:
    """Parse the process environment once per container."""
    return Config.from_env()
