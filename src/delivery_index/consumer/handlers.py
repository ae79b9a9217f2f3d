"""
Event Handlers

Glue between a decoded queue message and the index engine. A handler
extracts the typed event, applies it, and reports what happened; it does not
catch anything. Deciding between skip, retry and commit is the consumer
loop's job.

    StatusEventHandler:  QueueMessage → StatusEvent → OrderIndexMaintainer.apply
    ChatEventHandler:    QueueMessage → ChatEvent → ChatLogMaintainer.append_event
"""

import logging
from enum import Enum

from delivery_index.index.chat import ChatLogMaintainer
from delivery_index.index.extractor import extract_chat_event, extract_status_event
from delivery_index.index.maintainer import ApplyOutcome, OrderIndexMaintainer
from delivery_index.index.models import QueueMessage


class HandlerOutcome(str, Enum):
    """Result of handling one queue message (every value is committed)."""

    APPLIED = "applied"
    STALE = "stale"
    PURGED = "purged"
    APPENDED = "appended"
    SKIPPED = "skipped"
    DUPLICATE = "duplicate"


_APPLY_TO_HANDLER = {
    ApplyOutcome.APPLIED: HandlerOutcome.APPLIED,
    ApplyOutcome.STALE: HandlerOutcome.STALE,
    ApplyOutcome.PURGED: HandlerOutcome.PURGED,
}


class StatusEventHandler:
    """Applies order status events to the order indexes."""

    def __init__(self, maintainer: OrderIndexMaintainer):
        self.maintainer = maintainer

    def __call__(self, message: QueueMessage) -> HandlerOutcome:
        event = extract_status_event(message)
        return _APPLY_TO_HANDLER[self.maintainer.apply(event)]


class ChatEventHandler:
    """Appends chat messages to their conversation logs."""

    def __init__(self, chat_log: ChatLogMaintainer):
        self.chat_log = chat_log
        self.logger = logging.getLogger(__name__)

    def __call__(self, message: QueueMessage) -> HandlerOutcome:
        event = extract_chat_event(message)
        entry = self.chat_log.append_event(event)
        self.logger.debug(
            "Chat message appended",
            extra={"correlation_id": entry.order_id, "role": entry.role, "timestamp": entry.timestamp},
        )
        return HandlerOutcome.APPENDED
