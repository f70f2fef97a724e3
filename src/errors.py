"""Error types for RSS Bluesky Bridge."""

from typing import Any

from botocore.exceptions import BotoCoreError, ClientError


class BridgeError(Exception):
    """Base class for all bridge errors."""


class ValidationError(BridgeError, ValueError):
    """An entity or stage payload violated a required-field invariant."""


class ConfigurationError(BridgeError):
    """A required environment value is missing, blank or malformed."""


class RepositoryError(BridgeError):
    """Base class for data layer failures."""


class NotFoundError(RepositoryError):
    """A point read found no row for the requested key."""

    def __init__(self, message: str, key: dict[str, str] | None = None):
        super().__init__(message)
        self.key = key or {}


class StorageError(RepositoryError):
    """Transport or table level failure on a DynamoDB operation."""

    def __init__(
        self, message: str, operation: str, key: dict[str, str] | None = None
    ):
        super().__init__(message)
        self.operation = operation
        self.key = key or {}


class PartialWriteError(RepositoryError):
    """A bulk write or delete left rows unprocessed."""

    def __init__(self, unprocessed: list[dict[str, Any]], processed: int = 0):
        super().__init__(
            f"{len(unprocessed)} rows were not processed "
            f"({processed} processed before the failing chunk)"
        )
        self.unprocessed = unprocessed
        self.processed = processed


class UpstreamError(BridgeError):
    """Failure in an external collaborator (feed, Bedrock, Bluesky, secrets)."""

    def __init__(self, message: str, operation: str, **context: Any):
        super().__init__(message)
        self.operation = operation
        self.context = context


def storage_error(
    error: Exception, operation: str, key: dict[str, str] | None = None
) -> StorageError:
    """Build a StorageError describing a boto failure.

    Args:
        error: The ClientError or BotoCoreError raised by boto3
        operation: Repository operation name, used in the message
        key: Primary key of the row involved, if any

    Returns:
        StorageError ready to be raised from the original error
    """
    if isinstance(error, ClientError):
        code = error.response.get("Error", {}).get("Code", "Unknown")
        message = f"{operation} failed with {code}"
    elif isinstance(error, BotoCoreError):
        message = f"{operation} failed: {error}"
    else:
        message = f"{operation} failed: {type(error).__name__}"
    return StorageError(message, operation=operation, key=key)
