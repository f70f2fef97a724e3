"""Bluesky credential retrieval from AWS Secrets Manager."""

import json
from dataclasses import dataclass

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .errors import UpstreamError
from .logging_config import create_execution_logger


@dataclass(frozen=True)
class BlueskyCredentials:
    """Login for the publishing account."""

    username: str
    password: str

    def __repr__(self) -> str:
        return f"BlueskyCredentials(username={self.username!r}, password='***')"


def get_bluesky_credentials(
    secret_name: str, aws_region: str, execution_id: str | None = None
) -> BlueskyCredentials:
    """
    Retrieve Bluesky credentials from AWS Secrets Manager.

    The secret must be a JSON object with ``username`` and ``password``
    string fields. Secret values are never logged.

    Args:
        secret_name: Name of the secret in Secrets Manager
        aws_region: AWS region for Secrets Manager client
        execution_id: Execution ID for logging context

    Returns:
        BlueskyCredentials

    Raises:
        UpstreamError: If the secret cannot be read or is malformed
    """
    secrets_logger = create_execution_logger("secrets_manager", execution_id)

    try:
        secrets_logger.info(
            f"Retrieving Bluesky credentials from Secrets Manager: {secret_name}"
        )
        secrets_client = boto3.client("secretsmanager", region_name=aws_region)
        response = secrets_client.get_secret_value(SecretId=secret_name)
    except ClientError as e:
        error_code = e.response.get("Error", {}).get("Code", "Unknown")
        secrets_logger.error(
            f"AWS Secrets Manager error retrieving {secret_name}: {error_code}"
        )
        raise UpstreamError(
            f"Failed to retrieve secret {secret_name}",
            operation="get_secret",
            secret_name=secret_name,
        ) from e
    except BotoCoreError as e:
        secrets_logger.error(
            f"Unexpected error retrieving secret {secret_name}: {type(e).__name__}"
        )
        raise UpstreamError(
            f"Failed to retrieve secret {secret_name}",
            operation="get_secret",
            secret_name=secret_name,
        ) from e

    secret_value = response.get("SecretString")
    if not secret_value or not secret_value.strip():
        raise UpstreamError(
            f"Secret {secret_name} does not contain a string value",
            operation="get_secret",
            secret_name=secret_name,
        )

    try:
        secret_data = json.loads(secret_value)
    except json.JSONDecodeError as e:
        secrets_logger.error(f"Invalid secret format for {secret_name}")
        raise UpstreamError(
            f"Secret {secret_name} is not valid JSON",
            operation="get_secret",
            secret_name=secret_name,
        ) from e

    if not isinstance(secret_data, dict):
        raise UpstreamError(
            f"JSON secret {secret_name} must be an object",
            operation="get_secret",
            secret_name=secret_name,
        )

    fields = {}
    for key in ("username", "password"):
        value = secret_data.get(key)
        if not isinstance(value, str) or not value.strip():
            raise UpstreamError(
                f"{key.capitalize()} not found in secret {secret_name}",
                operation="get_secret",
                secret_name=secret_name,
            )
        fields[key] = value.strip()

    secrets_logger.info("Successfully retrieved Bluesky credentials")
    return BlueskyCredentials(**fields)
