"""
Index Data Models

Pydantic models for everything that flows through the index engine:

- QueueMessage:     raw event as read from the queue (body + attributes)
- StatusEvent:      typed order status event produced by the extractor
- ChatEvent:        typed chat event produced by the extractor
- OrderProjection:  denormalized current state of one order
- ChatEntry:        one stored chat message

An order projection is never stored as one record. The repository keeps its
fields in parallel hashes and rebuilds the model on read, so a projection
only exists when status, message body and user id are all present.
"""

from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

# Kafka header carrying the publisher's deduplication key
DEDUPLICATION_HEADER = "deduplication_id"


# ==============================================================================
# QUEUE MESSAGE
# ==============================================================================


class QueueMessage(BaseModel):
    """
    A raw event as delivered by the queue.

    Attributes:
        body: Message payload (status note or chat text)
        attributes: Named string attributes; any of them may be missing or None
        ordering_key: Key that serialized delivery (the order id)
        deduplication_id: Publisher-assigned key for collapsing retried publishes
    """

    body: str = ""
    attributes: Dict[str, Optional[str]] = Field(default_factory=dict)
    ordering_key: Optional[str] = None
    deduplication_id: Optional[str] = None

    @classmethod
    def from_kafka(cls, msg) -> "QueueMessage":
        """
        Decode a confluent_kafka Message.

        Value bytes become the body, headers become attributes (the
        deduplication header is lifted out), the message key is the
        ordering key. Undecodable bytes are replaced rather than rejected;
        the extractor degrades such events instead of failing them.
        """
        value = msg.value()
        key = msg.key()

        attributes: Dict[str, Optional[str]] = {}
        deduplication_id = None
        for name, raw in msg.headers() or []:
            decoded = raw.decode("utf-8", errors="replace") if raw is not None else None
            if name == DEDUPLICATION_HEADER:
                deduplication_id = decoded
            else:
                attributes[name] = decoded

        return cls(
            body=value.decode("utf-8", errors="replace") if value else "",
            attributes=attributes,
            ordering_key=key.decode("utf-8", errors="replace") if key else None,
            deduplication_id=deduplication_id,
        )


# ==============================================================================
# TYPED EVENTS
# ==============================================================================


class StatusEvent(BaseModel):
    """Order status event; timestamp is still the raw "YYYY-MM-DD HH:MM:SS" text."""

    model_config = ConfigDict(frozen=True)

    order_id: str
    status: str
    user_id: str
    rider_id: str
    timestamp: str
    body: str


class ChatEvent(BaseModel):
    """Chat event; timestamp is still the raw epoch-millis text."""

    model_config = ConfigDict(frozen=True)

    order_id: str
    user_id: str
    role: str
    timestamp: str
    message: str


# ==============================================================================
# STORED SHAPES
# ==============================================================================


class OrderProjection(BaseModel):
    """
    Current state of one order, as served to queries.

    rider_id stays None until the order reaches a rider-assigned status.
    """

    model_config = ConfigDict(frozen=True)

    order_id: str
    status: str
    user_id: str
    rider_id: Optional[str] = None
    message_body: str


class ChatEntry(BaseModel):
    """One chat message in a conversation log; timestamp is epoch millis."""

    model_config = ConfigDict(frozen=True)

    order_id: str
    user_id: str
    role: str
    message: str
    timestamp: int
