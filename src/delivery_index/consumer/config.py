"""
Consumer Configuration Module

Settings for the status-event and chat-event consumers: Kafka consumer
settings and worker pool sizes on top of the shared index settings
(store backend, expiry windows, status vocabulary, logging).
"""

from pydantic import Field

from delivery_index.shared.config import IndexSettings


class ConsumerConfig(IndexSettings):
    """
    Consumer service configuration with validation.

    Each worker thread owns one Kafka consumer in the topic's consumer
    group, so Kafka hands every partition (and with it every order id) to
    at most one worker at a time.
    """

    # === KAFKA CONSUMER SETTINGS ===
    kafka_bootstrap_servers: str = Field(
        default="localhost:9092",
        description="Kafka broker addresses",
    )

    kafka_topic_status: str = Field(
        default="order-status-events",
        description="Topic carrying order status events",
    )

    kafka_topic_chat: str = Field(
        default="order-chat-events",
        description="Topic carrying chat messages",
    )

    status_group_id: str = Field(
        default="order-index-maintainers",
        description="Consumer group of the status workers",
    )

    chat_group_id: str = Field(
        default="chat-log-maintainers",
        description="Consumer group of the chat workers",
    )

    consumer_client_id: str = Field(
        default="delivery-index-consumer",
        description="Client id prefix; each worker appends its own suffix",
    )

    consumer_auto_offset_reset: str = Field(
        default="earliest",
        description="Where to start consuming: earliest or latest",
    )

    enable_auto_commit: bool = Field(
        default=False,
        description="Auto-commit offsets (False = commit after each processed event)",
    )

    # === WORKER POOL ===
    status_workers: int = Field(
        default=3,
        ge=1,
        le=32,
        description="Concurrent status-event workers",
    )

    chat_workers: int = Field(
        default=2,
        ge=0,
        le=32,
        description="Concurrent chat-event workers (0 disables chat ingestion)",
    )

    poll_timeout_seconds: float = Field(
        default=1.0,
        gt=0,
        le=30,
        description="Kafka poll timeout per loop iteration",
    )

    def get_kafka_config(self, group_id: str, client_suffix: str = "") -> dict:
        """Kafka consumer configuration for one worker."""
        client_id = self.consumer_client_id
        if client_suffix:
            client_id = f"{client_id}-{client_suffix}"
        return {
            "bootstrap.servers": self.kafka_bootstrap_servers,
            "group.id": group_id,
            "client.id": client_id,
            "auto.offset.reset": self.consumer_auto_offset_reset,
            "enable.auto.commit": self.enable_auto_commit,
        }


def load_config() -> ConsumerConfig:
    """Load and validate consumer configuration."""
    return ConsumerConfig()
