"""JSON logging with per-run context for RSS Bluesky Bridge."""

import json
import logging
import sys
import time
import uuid
from datetime import UTC, datetime
from typing import Any

LOGGER_NAMESPACE = "rss_bluesky_bridge"

# Attributes every LogRecord carries; anything else came in through ``extra``
_RESERVED_ATTRIBUTES = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", None, None))
) | {"message", "asctime", "taskName"}

_QUIET_LIBRARIES = ("boto3", "botocore", "urllib3")


class StructuredFormatter(logging.Formatter):
    """Renders each record as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        entry.update(
            (name, value)
            for name, value in vars(record).items()
            if name not in _RESERVED_ATTRIBUTES and name not in entry
        )
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ExecutionLogger:
    """Component logger that stamps every entry with the run it belongs to.

    Keyword arguments given to the level methods become top-level JSON
    fields. Names that collide with LogRecord attributes are dropped.
    """

    def __init__(self, execution_id: str, component: str = "main"):
        self.execution_id = execution_id
        self.component = component
        self.logger = logging.getLogger(f"{LOGGER_NAMESPACE}.{component}")
        self._started: float | None = None

    def _emit(self, level: int, message: str, exc_info: bool = False, **fields) -> None:
        context = {"execution_id": self.execution_id, "component": self.component}
        context.update(
            (key, value)
            for key, value in fields.items()
            if key not in _RESERVED_ATTRIBUTES
        )
        self.logger.log(level, message, extra=context, exc_info=exc_info)

    def debug(self, message: str, **fields) -> None:
        self._emit(logging.DEBUG, message, **fields)

    def info(self, message: str, **fields) -> None:
        self._emit(logging.INFO, message, **fields)

    def warning(self, message: str, **fields) -> None:
        self._emit(logging.WARNING, message, **fields)

    def error(self, message: str, exc_info: bool = False, **fields) -> None:
        """Log at ERROR; pass ``exc_info=True`` inside an except block."""
        self._emit(logging.ERROR, message, exc_info=exc_info, **fields)

    def log_execution_start(self, **fields) -> None:
        self._started = time.monotonic()
        self.info(f"Starting {self.component} execution", **fields)

    def log_execution_end(self, success: bool = True, **fields) -> None:
        """Log the end of a stage with its wall-clock duration."""
        duration = None
        if self._started is not None:
            duration = round(time.monotonic() - self._started, 3)
        self.info(
            f"Completed {self.component} execution",
            execution_success=success,
            execution_duration_seconds=duration,
            **fields,
        )

    def log_item_processing(self, guid: str, action: str, success: bool = True) -> None:
        self._emit(
            logging.INFO if success else logging.ERROR,
            f"Item {action}: {guid}",
            guid=guid,
            action=action,
            success=success,
        )

    def log_metrics(self, metrics: dict[str, Any]) -> None:
        self.info("Execution metrics", metrics=metrics)


def setup_structured_logging(log_level: str = "INFO") -> None:
    """Send JSON lines to stdout, where Lambda forwards them to CloudWatch Logs.

    Args:
        log_level: Level name; unknown names fall back to INFO
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredFormatter())

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)
    logging.getLogger(LOGGER_NAMESPACE).setLevel(level)

    # boto logs every request at DEBUG
    for name in _QUIET_LIBRARIES:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def create_execution_logger(
    component: str, execution_id: str | None = None
) -> ExecutionLogger:
    """Build an ExecutionLogger, generating an id when the caller has none."""
    return ExecutionLogger(execution_id or f"exec_{uuid.uuid4().hex[:12]}", component)
