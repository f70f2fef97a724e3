"""Unit tests for Bluesky credential retrieval."""

import json

import boto3
import pytest
from moto import mock_aws

from src.credentials import BlueskyCredentials, get_bluesky_credentials
from src.errors import UpstreamError

SECRET_NAME = "bluesky/credentials"
REGION = "us-east-1"


@pytest.fixture
def secretsmanager():
    with mock_aws():
        yield boto3.client("secretsmanager", region_name=REGION)


class TestGetBlueskyCredentialsUnit:
    """Unit tests for get_bluesky_credentials."""

    def test_reads_username_and_password(self, secretsmanager):
        secretsmanager.create_secret(
            Name=SECRET_NAME,
            SecretString=json.dumps(
                {"username": " bridge.bsky.social ", "password": "app-password"}
            ),
        )

        credentials = get_bluesky_credentials(SECRET_NAME, REGION)

        assert credentials == BlueskyCredentials("bridge.bsky.social", "app-password")

    def test_missing_secret_raises_upstream_error(self, secretsmanager):
        with pytest.raises(UpstreamError) as exc_info:
            get_bluesky_credentials("does-not-exist", REGION)

        assert exc_info.value.operation == "get_secret"
        assert exc_info.value.context == {"secret_name": "does-not-exist"}

    @pytest.mark.parametrize(
        "secret_string",
        [
            "not json",
            json.dumps(["username", "password"]),
            json.dumps({"username": "bridge"}),
            json.dumps({"username": "bridge", "password": "   "}),
            json.dumps({"username": 42, "password": "secret"}),
        ],
    )
    def test_malformed_secret_raises_upstream_error(
        self, secretsmanager, secret_string
    ):
        secretsmanager.create_secret(Name=SECRET_NAME, SecretString=secret_string)

        with pytest.raises(UpstreamError):
            get_bluesky_credentials(SECRET_NAME, REGION)

    def test_repr_masks_password(self):
        credentials = BlueskyCredentials("bridge.bsky.social", "app-password")
        assert "app-password" not in repr(credentials)
        assert "bridge.bsky.social" in repr(credentials)
