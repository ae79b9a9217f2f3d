"""
Chat Log Maintainer

One append-only log per conversation (the conversation id is the order id),
stored as a list of JSON entries under ``chat:<orderId>``.

- append: tail push + refresh the retention expiry
- read:   whole log → decode (corrupt entries dropped) → keep entries newer
          than the caller's timestamp → sort by timestamp
- purge:  delete the whole log when the owning order terminates

Append order is the queue's delivery order, which the ordering key keeps
per conversation. Reads still sort by timestamp, so a log that interleaves
late-arriving messages is returned in time order.
"""

import logging
from typing import List

from pydantic import ValidationError

from delivery_index.index.extractor import parse_chat_timestamp
from delivery_index.index.models import ChatEntry, ChatEvent
from delivery_index.store.base import IndexStore

CHAT_KEY_PREFIX = "chat:"


def chat_log_key(order_id: str) -> str:
    return f"{CHAT_KEY_PREFIX}{order_id}"


class ChatLogMaintainer:
    """Appends, reads and purges per-conversation chat logs."""

    def __init__(self, store: IndexStore, retention_seconds: int):
        self.store = store
        self.retention_seconds = retention_seconds
        self.logger = logging.getLogger(__name__)

    def append(self, entry: ChatEntry) -> None:
        key = chat_log_key(entry.order_id)
        self.store.list_right_push(key, entry.model_dump_json())
        self.store.expire(key, self.retention_seconds)

    def append_event(self, event: ChatEvent) -> ChatEntry:
        """
        Convert an extracted chat event to an entry and append it.

        Raises:
            InvalidTimestampError: If the event timestamp is not epoch millis
        """
        entry = ChatEntry(
            order_id=event.order_id,
            user_id=event.user_id,
            role=event.role,
            message=event.message,
            timestamp=parse_chat_timestamp(event.timestamp, order_id=event.order_id),
        )
        self.append(entry)
        return entry

    def read(self, order_id: str, since_timestamp: int = 0) -> List[ChatEntry]:
        """Entries with timestamp > since_timestamp, oldest first."""
        entries = []
        for raw in self.store.list_range(chat_log_key(order_id)):
            try:
                entry = ChatEntry.model_validate_json(raw)
            except ValidationError:
                self.logger.warning(
                    "Dropping corrupt chat entry",
                    extra={"correlation_id": order_id, "raw_entry": raw[:200]},
                )
                continue
            if entry.timestamp > since_timestamp:
                entries.append(entry)

        entries.sort(key=lambda e: e.timestamp)
        return entries

    def purge(self, order_id: str) -> None:
        self.store.delete(chat_log_key(order_id))
        self.logger.info("Chat log purged", extra={"correlation_id": order_id})
