"""
Kafka Event Publisher

Publishes order status events and chat messages in the shape the index
consumers expect.

MESSAGE LAYOUT:
┌──────────────┬──────────────────────────────────────────────────────────┐
│ key          │ order id (same order → same partition → publish order)   │
│ value        │ message text (status note or chat text), UTF-8           │
│ headers      │ status: orderId, status, userId, riderId, timestamp      │
│              │ chat:   orderId, userId, role, timestamp                 │
│              │ both:   deduplication_id = <orderId>_<publishMillis>     │
└──────────────┴──────────────────────────────────────────────────────────┘

Publishing is fire-and-forget: ``publish_*`` returns False and logs when the
client refuses the message, and never raises. Broker-side delivery results
arrive later through the delivery callback.
"""

import logging
import time
from typing import Callable, Dict, List, Optional, Tuple

from confluent_kafka import KafkaError, KafkaException, Producer

from delivery_index.index.extractor import (
    DEFAULT_RIDER_ID,
    current_chat_timestamp,
    current_status_timestamp,
)
from delivery_index.index.models import DEDUPLICATION_HEADER

Headers = List[Tuple[str, bytes]]


class EventPublisher:
    """
    Kafka producer for order status events and chat messages.

    Attributes:
        status_topic: Topic for status events
        chat_topic: Topic for chat messages
        producer: confluent_kafka.Producer instance
        delivery_callback: Called once per message with (err, msg)
        messages_published: Messages accepted by the client
        publish_failures: Messages the client refused
    """

    def __init__(
        self,
        kafka_config: Dict[str, object],
        status_topic: str,
        chat_topic: str,
        delivery_callback: Optional[Callable] = None,
        producer: Optional[Producer] = None,
    ):
        """
        Args:
            kafka_config: confluent_kafka.Producer configuration
            status_topic: Topic for status events
            chat_topic: Topic for chat messages
            delivery_callback: Optional custom callback for delivery reports
            producer: Pre-built producer (tests)

        Raises:
            KafkaException: If producer initialization fails
        """
        self.status_topic = status_topic
        self.chat_topic = chat_topic
        self.logger = logging.getLogger(__name__)
        self.delivery_callback = delivery_callback or self._default_delivery_callback
        self.messages_published = 0
        self.publish_failures = 0
        self._last_publish_millis = 0

        self.producer = producer or Producer(kafka_config)
        self.logger.info(
            "Kafka producer initialized",
            extra={
                "bootstrap_servers": kafka_config.get("bootstrap.servers"),
                "status_topic": status_topic,
                "chat_topic": chat_topic,
                "idempotence": kafka_config.get("enable.idempotence"),
            },
        )

    @staticmethod
    def deduplication_id(order_id: str, publish_millis: Optional[int] = None) -> str:
        if publish_millis is None:
            publish_millis = int(time.time() * 1000)
        return f"{order_id}_{publish_millis}"

    def _next_publish_millis(self) -> int:
        """Wall-clock millis, bumped so no two publishes share a value."""
        self._last_publish_millis = max(int(time.time() * 1000), self._last_publish_millis + 1)
        return self._last_publish_millis

    def publish_status(
        self,
        order_id: str,
        status: str,
        user_id: str,
        message: str,
        rider_id: Optional[str] = None,
    ) -> bool:
        """
        Publish an order status event.

        Args:
            order_id: Order id (message key)
            status: New status
            user_id: Ordering user
            message: Status note, stored as the order's message body
            rider_id: Assigned rider; defaultRiderId when not known yet

        Returns:
            True if the client accepted the message
        """
        headers = {
            "orderId": order_id,
            "status": status,
            "userId": user_id,
            "riderId": rider_id or DEFAULT_RIDER_ID,
            "timestamp": current_status_timestamp(),
        }
        return self._publish(self.status_topic, order_id, message, headers)

    def publish_chat(self, order_id: str, user_id: str, role: str, message: str) -> bool:
        """
        Publish a chat message into the order's conversation.

        Returns:
            True if the client accepted the message
        """
        headers = {
            "orderId": order_id,
            "userId": user_id,
            "role": role,
            "timestamp": current_chat_timestamp(),
        }
        return self._publish(self.chat_topic, order_id, message, headers)

    def _publish(self, topic: str, order_id: str, body: str, attributes: Dict[str, str]) -> bool:
        kafka_headers: Headers = [(name, value.encode("utf-8")) for name, value in attributes.items()]
        deduplication_id = self.deduplication_id(order_id, self._next_publish_millis())
        kafka_headers.append((DEDUPLICATION_HEADER, deduplication_id.encode("utf-8")))

        try:
            self.producer.produce(
                topic=topic,
                key=order_id.encode("utf-8"),
                value=body.encode("utf-8"),
                headers=kafka_headers,
                on_delivery=self.delivery_callback,
            )
            # Serve delivery callbacks of earlier messages
            self.producer.poll(0)

        except BufferError as e:
            self.publish_failures += 1
            self.logger.error(
                "Producer buffer full",
                extra={
                    "correlation_id": order_id,
                    "topic": topic,
                    "error": str(e),
                    "advice": "Slow down production or flush more often",
                },
            )
            return False

        except KafkaException as e:
            self.publish_failures += 1
            self.logger.error(
                "Kafka error publishing event",
                exc_info=True,
                extra={"correlation_id": order_id, "topic": topic, "error": str(e)},
            )
            return False

        self.messages_published += 1
        self.logger.debug(
            "Event published to Kafka",
            extra={"correlation_id": order_id, "topic": topic, "attributes": attributes},
        )
        return True

    def _default_delivery_callback(self, err: Optional[KafkaError], msg) -> None:
        """Log the broker's verdict on one message (runs inside poll/flush)."""
        order_id = msg.key().decode("utf-8", errors="replace") if msg is not None and msg.key() else None

        if err is not None:
            self.logger.error(
                "Message delivery failed",
                extra={
                    "correlation_id": order_id,
                    "error": err.str(),
                    "error_code": err.code(),
                    "topic": msg.topic() if msg is not None else None,
                },
            )
        else:
            self.logger.debug(
                "Message delivered successfully",
                extra={
                    "correlation_id": order_id,
                    "topic": msg.topic(),
                    "partition": msg.partition(),
                    "offset": msg.offset(),
                },
            )

    def flush(self, timeout: float = 30.0) -> int:
        """
        Wait for pending messages.

        Returns:
            Number of messages still in queue (0 = all delivered)
        """
        remaining = self.producer.flush(timeout)
        if remaining > 0:
            self.logger.warning(
                "Producer flush timeout",
                extra={"remaining_messages": remaining, "timeout": timeout},
            )
        return remaining

    def close(self, timeout: float = 30.0) -> None:
        self.logger.info("Shutting down producer")
        remaining = self.flush(timeout=timeout)
        if remaining > 0:
            self.logger.error(
                f"Producer closed with {remaining} messages undelivered",
                extra={"remaining_messages": remaining},
            )
        self.logger.info(
            "Producer shutdown complete",
            extra={"messages_published": self.messages_published, "publish_failures": self.publish_failures},
        )
