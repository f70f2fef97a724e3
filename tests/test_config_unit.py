"""Unit tests for configuration management."""

import os
from unittest.mock import patch

import pytest

from src.config import (
    DEFAULT_AI_SUMMARY_MAX_GRAPHEMES,
    DEFAULT_BLUESKY_SERVICE_URL,
    DEFAULT_MAX_AGE_HOURS,
    DEFAULT_POST_MAX_GRAPHEMES,
    Config,
    load_config,
)
from src.errors import ConfigurationError

FULL_ENV = {
    "DYNAMODB_TABLE_NAME": "bridge-table",
    "FEED_URL": "https://example.com/feed.xml",
    "MAX_AGE_HOURS": "6",
    "ENABLE_AI_SUMMARY": "true",
    "AI_MODEL_ID": "anthropic.claude-3-haiku-20240307-v1:0",
    "AI_SUMMARY_MAX_GRAPHEMES": "200",
    "POST_MAX_GRAPHEMES": "280",
    "BLUESKY_CREDENTIALS_SECRET_NAME": "bluesky/credentials",
    "BLUESKY_SERVICE_URL": "https://pds.example.com/",
    "CURRENT_AWS_REGION": "eu-west-1",
    "LOG_LEVEL": "DEBUG",
}


class TestConfigUnit:
    """Unit tests for Config."""

    def test_reads_every_setting(self):
        config = Config.from_env(FULL_ENV)

        assert config.get_table_name() == "bridge-table"
        assert config.aws_region == "eu-west-1"
        assert config.log_level == "DEBUG"

        feed = config.get_feed_config()
        assert feed.feed_url == "https://example.com/feed.xml"
        assert feed.max_age_hours == 6

        bedrock = config.get_bedrock_config()
        assert bedrock.enabled is True
        assert bedrock.model_id == "anthropic.claude-3-haiku-20240307-v1:0"
        assert bedrock.region == "eu-west-1"
        assert bedrock.max_graphemes == 200

        bluesky = config.get_bluesky_config()
        assert bluesky.secret_name == "bluesky/credentials"
        assert bluesky.service_url == "https://pds.example.com"
        assert bluesky.max_graphemes == 280

    def test_defaults_when_optional_values_are_absent(self):
        config = Config.from_env({})

        assert config.max_age_hours == DEFAULT_MAX_AGE_HOURS
        assert config.ai_summary_max_graphemes == DEFAULT_AI_SUMMARY_MAX_GRAPHEMES
        assert config.post_max_graphemes == DEFAULT_POST_MAX_GRAPHEMES
        assert config.bluesky_service_url == DEFAULT_BLUESKY_SERVICE_URL
        assert config.aws_region == "us-east-1"
        assert config.log_level == "INFO"
        assert config.get_bedrock_config().enabled is False

    def test_falls_back_to_default_region_variable(self):
        config = Config.from_env({"AWS_DEFAULT_REGION": "ap-south-1"})
        assert config.aws_region == "ap-south-1"

    @pytest.mark.parametrize(
        "getter, variable",
        [
            ("get_table_name", "DYNAMODB_TABLE_NAME"),
            ("get_feed_config", "FEED_URL"),
            ("get_bluesky_config", "BLUESKY_CREDENTIALS_SECRET_NAME"),
        ],
    )
    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_missing_required_values_fail(self, getter, variable, value):
        environ = {k: v for k, v in FULL_ENV.items() if k != variable}
        if value is not None:
            environ[variable] = value
        config = Config.from_env(environ)

        with pytest.raises(ConfigurationError, match=variable):
            getattr(config, getter)()

    def test_ai_summary_without_model_fails(self):
        config = Config.from_env({"ENABLE_AI_SUMMARY": "TRUE"})
        with pytest.raises(ConfigurationError, match="AI_MODEL_ID"):
            config.get_bedrock_config()

    @pytest.mark.parametrize("value", ["false", "no", "1", ""])
    def test_ai_summary_enabled_only_by_true(self, value):
        config = Config.from_env({"ENABLE_AI_SUMMARY": value, "AI_MODEL_ID": "m"})
        assert config.get_bedrock_config().enabled is False

    @pytest.mark.parametrize("value", ["0", "-5"])
    def test_non_positive_numbers_use_default(self, value):
        config = Config.from_env({"MAX_AGE_HOURS": value, "POST_MAX_GRAPHEMES": value})
        assert config.max_age_hours == DEFAULT_MAX_AGE_HOURS
        assert config.post_max_graphemes == DEFAULT_POST_MAX_GRAPHEMES

    def test_non_numeric_value_fails(self):
        with pytest.raises(ConfigurationError, match="AI_SUMMARY_MAX_GRAPHEMES"):
            Config.from_env({"AI_SUMMARY_MAX_GRAPHEMES": "lots"})

    def test_load_config_is_cached(self):
        load_config.cache_clear()
        try:
            with patch.dict(os.environ, {"DYNAMODB_TABLE_NAME": "first"}, clear=True):
                first = load_config()
            with patch.dict(os.environ, {"DYNAMODB_TABLE_NAME": "second"}, clear=True):
                second = load_config()
        finally:
            load_config.cache_clear()

        assert first is second
        assert second.get_table_name() == "first"
