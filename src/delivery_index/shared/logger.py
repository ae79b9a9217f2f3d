"""
Structured Logging for the Delivery Index Services

Every service in this repository (status consumer, chat consumer, event
publisher) logs through the helpers in this module so that one order can be
followed across the whole pipeline by its order id.

LOG RECORD SHAPE (json format):
{
  "timestamp": "2025-01-10T14:30:00.123Z",
  "level": "INFO",
  "service": "delivery-index-consumer",
  "logger": "delivery_index.consumer.consumer",
  "correlation_id": "ORD-20250110-00001",
  "message": "Status event applied",
  "extra": {"status": "delivering", "outcome": "applied", "offset": 42}
}

The text format is meant for local development only:
[2025-01-10 14:30:00] INFO [delivery-index-consumer] Status event applied
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

# Attributes every LogRecord carries; anything else was passed via extra=
_STANDARD_ATTRS = frozenset(
    {
        "name", "msg", "args", "created", "filename", "funcName",
        "levelname", "levelno", "lineno", "module", "msecs",
        "message", "pathname", "process", "processName", "relativeCreated",
        "thread", "threadName", "exc_info", "exc_text", "stack_info",
        "taskName", "correlation_id",
    }
)


# ==============================================================================
# FORMATTERS
# ==============================================================================


class JSONFormatter(logging.Formatter):
    """
    Render a LogRecord as a single-line JSON document.

    The order id travels as ``correlation_id``; every other field passed
    through ``extra=`` is grouped under ``"extra"``.
    """

    def __init__(self, service_name: str = "delivery-index", include_extra: bool = True):
        """
        Args:
            service_name: Value of the "service" field on every record
            include_extra: Whether to emit fields passed via ``extra=``
        """
        super().__init__()
        self.service_name = service_name
        self.include_extra = include_extra

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": self._format_timestamp(record.created),
            "level": record.levelname,
            "service": self.service_name,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if hasattr(record, "correlation_id"):
            log_data["correlation_id"] = record.correlation_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if self.include_extra:
            extra_fields = {
                k: v
                for k, v in record.__dict__.items()
                if k not in _STANDARD_ATTRS and not k.startswith("_")
            }
            if extra_fields:
                log_data["extra"] = extra_fields

        return json.dumps(log_data, default=str)

    @staticmethod
    def _format_timestamp(created: float) -> str:
        """Format a record's creation time as ISO 8601 UTC with milliseconds."""
        dt = datetime.fromtimestamp(created, tz=timezone.utc)
        return dt.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


class PlainTextFormatter(logging.Formatter):
    """Human-readable formatter for local development."""

    def __init__(self, service_name: str = "delivery-index"):
        super().__init__(
            fmt=f"[%(asctime)s] %(levelname)s [{service_name}] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )


# ==============================================================================
# LOGGER SETUP
# ==============================================================================


def setup_logger(
    name: str,
    service_name: str,
    log_level: str = "INFO",
    log_format: str = "json",
) -> logging.Logger:
    """
    Configure a stdout logger for one of the delivery index services.

    Library modules only call ``logging.getLogger(__name__)``; the entry
    points call this once on the package logger (``delivery_index``) so
    every child logger inherits the handler.

    Args:
        name: Logger name
        service_name: Service identifier, e.g. "delivery-index-consumer"
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        log_format: "json" or "text"

    Returns:
        The configured logger

    Example:
        >>> logger = setup_logger("delivery_index", "delivery-index-consumer")
        >>> logger.info("Worker started", extra={"worker_id": 0})
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # Already configured (e.g. setup called twice in one process)
    if logger.handlers:
        return logger

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logger.level)

    if log_format.lower() == "json":
        formatter: logging.Formatter = JSONFormatter(service_name=service_name)
    else:
        formatter = PlainTextFormatter(service_name=service_name)

    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    return logger


# ==============================================================================
# CORRELATION ID ADAPTER
# ==============================================================================


class CorrelationAdapter(logging.LoggerAdapter):
    """
    Logger adapter that stamps ``correlation_id`` on every record.

    Consumers wrap their logger once per event so every line written while
    handling that event carries the order id.

    Example:
        >>> order_logger = CorrelationAdapter(logger, {"correlation_id": "ORD-001"})
        >>> order_logger.info("Status event applied")
    """

    def process(self, msg: str, kwargs: dict) -> tuple:
        extra = kwargs.get("extra", {})

        if "correlation_id" in self.extra:
            extra["correlation_id"] = self.extra["correlation_id"]

        kwargs["extra"] = extra
        return msg, kwargs
