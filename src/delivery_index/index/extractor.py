"""
Attribute Extractor

Turns raw queue messages into typed events. A missing, null or blank
attribute is replaced by a documented default and the substitution is
logged; extraction itself never fails. A malformed event therefore still
reaches the maintainer (and the logs) instead of blocking the queue or
vanishing silently.

Timestamps are carried through as text. Parsing them into sort scores is a
separate step (parse_status_timestamp / parse_chat_timestamp) because an
unparsable timestamp rejects the event, which is the maintainer's decision.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Mapping, Optional

from delivery_index.index.models import ChatEvent, QueueMessage, StatusEvent
from delivery_index.shared.exceptions import InvalidTimestampError

logger = logging.getLogger(__name__)

DEFAULT_ORDER_ID = "defaultOrderId"
DEFAULT_STATUS = "defaultStatus"
DEFAULT_USER_ID = "defaultUserId"
DEFAULT_RIDER_ID = "defaultRiderId"
DEFAULT_ROLE = "defaultRole"

STATUS_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


# ==============================================================================
# TIMESTAMPS
# ==============================================================================


def current_status_timestamp(now: Optional[datetime] = None) -> str:
    """Wall-clock time in the status event format (UTC)."""
    now = now or datetime.now(timezone.utc)
    return now.strftime(STATUS_TIMESTAMP_FORMAT)


def current_chat_timestamp() -> str:
    """Wall-clock time in the chat event format (epoch millis)."""
    return str(int(time.time() * 1000))


def parse_status_timestamp(timestamp: str, order_id: str = "") -> float:
    """
    Convert "YYYY-MM-DD HH:MM:SS" (UTC) to epoch seconds.

    Raises:
        InvalidTimestampError: If the text does not match the format
    """
    try:
        parsed = datetime.strptime(timestamp, STATUS_TIMESTAMP_FORMAT)
    except (TypeError, ValueError) as e:
        raise InvalidTimestampError(timestamp, order_id=order_id) from e
    return parsed.replace(tzinfo=timezone.utc).timestamp()


def parse_chat_timestamp(timestamp: str, order_id: str = "") -> int:
    """
    Convert an epoch-millis string to int.

    Raises:
        InvalidTimestampError: If the text is not an integer
    """
    try:
        return int(timestamp)
    except (TypeError, ValueError) as e:
        raise InvalidTimestampError(timestamp, order_id=order_id) from e


# ==============================================================================
# EXTRACTION
# ==============================================================================


def get_attribute(attributes: Mapping[str, Optional[str]], key: str, default: str) -> str:
    """Value of ``key``, or ``default`` (logged) when missing, None or blank."""
    value = attributes.get(key)
    if value is None or not value.strip():
        logger.warning(
            "Event attribute missing, using default",
            extra={"attribute": key, "default": default},
        )
        return default
    return value


def extract_status_event(message: QueueMessage) -> StatusEvent:
    """Build a StatusEvent from a status-queue message."""
    attributes = message.attributes
    return StatusEvent(
        order_id=get_attribute(attributes, "orderId", DEFAULT_ORDER_ID),
        status=get_attribute(attributes, "status", DEFAULT_STATUS),
        user_id=get_attribute(attributes, "userId", DEFAULT_USER_ID),
        rider_id=get_attribute(attributes, "riderId", DEFAULT_RIDER_ID),
        timestamp=get_attribute(attributes, "timestamp", current_status_timestamp()),
        body=message.body,
    )


def extract_chat_event(message: QueueMessage) -> ChatEvent:
    """Build a ChatEvent from a chat-queue message; the body is the chat text."""
    attributes = message.attributes
    return ChatEvent(
        order_id=get_attribute(attributes, "orderId", DEFAULT_ORDER_ID),
        user_id=get_attribute(attributes, "userId", DEFAULT_USER_ID),
        role=get_attribute(attributes, "role", DEFAULT_ROLE),
        timestamp=get_attribute(attributes, "timestamp", current_chat_timestamp()),
        message=message.body,
    )
