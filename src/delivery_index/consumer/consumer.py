"""
Kafka Event Consumer Implementation

One worker's poll loop: reads events from a single topic, hands each one to
its handler (status or chat), and commits the offset only once the event is
fully processed.

WORKER LIFECYCLE:
┌─────────────────────────────────────────────────────────────────────────┐
│  1. Subscribe to topic → join the topic's consumer group                │
│  2. Poll for a message (blocking with timeout)                          │
│  3. Decode value/key/headers → QueueMessage                             │
│  4. Deduplication marker present?          → commit, skip               │
│  5. Handler: extract → apply                                            │
│  6. Write deduplication marker, commit offset                           │
│  7. Errors: rejected event → commit, skip                               │
│             anything else → seek back, event redelivered                │
│  8. Graceful shutdown (close consumer)                                  │
└─────────────────────────────────────────────────────────────────────────┘

AT-LEAST-ONCE DELIVERY:
- The offset is committed strictly AFTER the store writes
- Crash or store error before commit → the event is delivered again
- Redelivery is harmless: the maintainer drops an already-applied event as
  stale, and the deduplication marker drops a repeated publish

ORDERING:
- Events are keyed by order id, so one order lives on one partition
- A partition belongs to one group member at a time, and each worker handles
  one event completely before polling the next
"""

import logging
import time
from typing import Callable, Optional

from confluent_kafka import Consumer, KafkaError, KafkaException, Message, TopicPartition

from delivery_index.consumer.config import ConsumerConfig
from delivery_index.consumer.handlers import HandlerOutcome
from delivery_index.index.models import QueueMessage
from delivery_index.shared.exceptions import EventRejectedError
from delivery_index.shared.logger import CorrelationAdapter
from delivery_index.store.base import IndexStore

DEDUP_KEY_PREFIX = "dedup:"

# Errors after which the worker cannot make progress
FATAL_KAFKA_ERRORS = frozenset(
    {
        KafkaError._ALL_BROKERS_DOWN,
        KafkaError._AUTHENTICATION,
        KafkaError.TOPIC_AUTHORIZATION_FAILED,
        KafkaError.GROUP_AUTHORIZATION_FAILED,
    }
)

EventHandler = Callable[[QueueMessage], HandlerOutcome]


def dedup_key(topic: str, deduplication_id: str) -> str:
    """Marker key; scoped per topic like a per-queue deduplication window."""
    return f"{DEDUP_KEY_PREFIX}{topic}:{deduplication_id}"


# ==============================================================================
# KAFKA EVENT CONSUMER
# ==============================================================================


class EventConsumer:
    """
    Kafka consumer worker for one topic.

    Attributes:
        config: Consumer configuration
        topic: Topic this worker subscribes to
        group_id: Consumer group shared by all workers of the topic
        handler: Callable turning a QueueMessage into a HandlerOutcome
        store: Index store, used for deduplication markers
        worker_name: Name used in logs and as client id suffix
        consumer: Confluent Kafka consumer instance
        running: Flag for graceful shutdown
        messages_processed: Events handled and committed
        messages_failed: Events left uncommitted for redelivery
        messages_skipped: Rejected or duplicate events committed without effect
    """

    def __init__(
        self,
        config: ConsumerConfig,
        topic: str,
        group_id: str,
        handler: EventHandler,
        store: IndexStore,
        worker_name: str = "worker-0",
        consumer: Optional[Consumer] = None,
    ):
        self.config = config
        self.topic = topic
        self.group_id = group_id
        self.handler = handler
        self.store = store
        self.worker_name = worker_name
        self.logger = logging.getLogger(__name__)

        # Metrics counters
        self.messages_processed = 0
        self.messages_failed = 0
        self.messages_skipped = 0
        self.running = True

        self.consumer = consumer or self._create_consumer()
        self.consumer.subscribe([topic])

        self.logger.info(
            "Event consumer initialized",
            extra={
                "worker": worker_name,
                "topic": topic,
                "group_id": group_id,
                "bootstrap_servers": config.kafka_bootstrap_servers,
            },
        )

    def _create_consumer(self) -> Consumer:
        kafka_config = self.config.get_kafka_config(self.group_id, client_suffix=self.worker_name)
        self.logger.debug("Creating Kafka consumer", extra={"config": kafka_config})
        return Consumer(kafka_config)

    def start(self) -> None:
        """
        Run the poll loop until ``stop`` is called or a fatal Kafka error.

        Per-event failures never leave this loop; they are handled in
        ``process_message``.
        """
        self.logger.info("Starting consumer loop...", extra={"worker": self.worker_name})

        try:
            while self.running:
                msg = self.consumer.poll(timeout=self.config.poll_timeout_seconds)

                if msg is None:
                    continue

                if msg.error():
                    self._handle_kafka_error(msg.error())
                    continue

                self.process_message(msg)

        except Exception:
            self.logger.error("Fatal error in consumer loop", exc_info=True, extra={"worker": self.worker_name})
            raise
        finally:
            self._shutdown()

    def process_message(self, msg: Message) -> Optional[HandlerOutcome]:
        """
        Handle one Kafka message and decide between commit and redelivery.

        Args:
            msg: Kafka message (not an error message)

        Returns:
            The handler outcome for committed events, SKIPPED for rejected
            events, DUPLICATE for repeated publishes, None when the event was
            left for redelivery

        ERROR HANDLING:
        - EventRejectedError (bad timestamp) → log, commit (poison message)
        - Anything else (store down, ...)    → log with traceback, seek back
        """
        start_time = time.time()
        message = QueueMessage.from_kafka(msg)
        order_id = message.ordering_key or "unknown"
        event_logger = CorrelationAdapter(self.logger, {"correlation_id": order_id})

        event_logger.debug(
            "Processing message",
            extra={
                "worker": self.worker_name,
                "partition": msg.partition(),
                "offset": msg.offset(),
                "deduplication_id": message.deduplication_id,
            },
        )

        try:
            if message.deduplication_id and self.store.exists(dedup_key(self.topic, message.deduplication_id)):
                self.messages_skipped += 1
                event_logger.info(
                    "Duplicate publish within deduplication window, skipping",
                    extra={"deduplication_id": message.deduplication_id},
                )
                self._commit(msg)
                return HandlerOutcome.DUPLICATE

            outcome = self.handler(message)

            if message.deduplication_id:
                self.store.mark_if_absent(
                    dedup_key(self.topic, message.deduplication_id), self.config.dedup_window_seconds
                )
            self._commit(msg)

        except EventRejectedError as e:
            self.messages_skipped += 1
            event_logger.error(
                "Event rejected, skipping",
                extra={"error": str(e), "partition": msg.partition(), "offset": msg.offset()},
            )
            self._commit(msg)
            return HandlerOutcome.SKIPPED

        except Exception:
            self.messages_failed += 1
            event_logger.error(
                "Error processing event, will be redelivered",
                exc_info=True,
                extra={"partition": msg.partition(), "offset": msg.offset()},
            )
            self._rewind(msg)
            return None

        self.messages_processed += 1
        event_logger.info(
            "Event processed",
            extra={
                "worker": self.worker_name,
                "outcome": outcome.value,
                "processing_time_ms": round((time.time() - start_time) * 1000, 2),
                "messages_processed": self.messages_processed,
            },
        )
        return outcome

    def _commit(self, msg: Message) -> None:
        self.consumer.commit(message=msg, asynchronous=False)

    def _rewind(self, msg: Message) -> None:
        """Seek back to the failed message so the next poll returns it again."""
        try:
            self.consumer.seek(TopicPartition(msg.topic(), msg.partition(), msg.offset()))
        except KafkaException:
            # Partition revoked meanwhile; the new owner resumes from the last commit
            self.logger.warning(
                "Could not seek back to failed event",
                exc_info=True,
                extra={"partition": msg.partition(), "offset": msg.offset()},
            )

    def _handle_kafka_error(self, error: KafkaError) -> None:
        """
        Handle Kafka-specific errors.

        KAFKA ERROR TYPES:
        - _PARTITION_EOF: Reached end of partition (normal, not an error)
        - _ALL_BROKERS_DOWN, _AUTHENTICATION, authorization failures: fatal
        """
        if error.code() == KafkaError._PARTITION_EOF:
            self.logger.debug("Reached end of partition")
            return

        self.logger.error(
            f"Kafka error: {error.str()}",
            extra={"worker": self.worker_name, "error_code": error.code(), "error_name": error.name()},
        )

        if error.code() in FATAL_KAFKA_ERRORS or error.fatal():
            self.logger.critical("Fatal Kafka error, shutting down", extra={"worker": self.worker_name})
            self.stop()

    def stop(self) -> None:
        """Signal the loop to exit after the current event."""
        self.logger.info("Stopping consumer...", extra={"worker": self.worker_name})
        self.running = False

    def _shutdown(self) -> None:
        self.logger.info(
            "Consumer shutting down",
            extra={
                "worker": self.worker_name,
                "messages_processed": self.messages_processed,
                "messages_failed": self.messages_failed,
                "messages_skipped": self.messages_skipped,
            },
        )

        try:
            self.consumer.close()
            self.logger.info("Kafka consumer closed", extra={"worker": self.worker_name})
        except KafkaException:
            self.logger.error("Error closing Kafka consumer", exc_info=True)
