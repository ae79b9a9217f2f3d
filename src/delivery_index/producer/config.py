"""
Producer Configuration Module

Loads the event publisher and lifecycle simulator settings from environment
variables using Pydantic for validation.

CONFIGURATION SOURCES (priority order):
1. Environment variables (highest priority)
2. .env file (loaded by python-dotenv)
3. Default values (fallback)
"""

from confluent_kafka import KafkaException
from confluent_kafka.admin import AdminClient
from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings

# Load .env file if present (local development)
load_dotenv()


class ProducerConfig(BaseSettings):
    """
    Publisher and simulator configuration with validation.

    Attributes:
        kafka_bootstrap_servers: Kafka broker addresses
        kafka_topic_status: Topic for order status events
        kafka_topic_chat: Topic for chat messages
        producer_client_id: Producer identifier
        producer_rate: Order lifecycles started per second
        producer_duration: How long to run (seconds, 0=infinite)
        mock_seed: Seed for reproducible lifecycles
        chat_probability: Chance that a lifecycle step also emits a chat message
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log output format (json or text)

    Example:
        >>> config = ProducerConfig()
        >>> config.kafka_topic_status
        'order-status-events'
    """

    # === KAFKA CONNECTION ===
    kafka_bootstrap_servers: str = Field(
        default="localhost:9092",
        description="Kafka broker addresses (comma-separated for multiple brokers)",
    )

    kafka_topic_status: str = Field(
        default="order-status-events",
        description="Kafka topic for order status events",
    )

    kafka_topic_chat: str = Field(
        default="order-chat-events",
        description="Kafka topic for chat messages",
    )

    # === PRODUCER SETTINGS ===
    producer_client_id: str = Field(
        default="delivery-index-producer",
        description="Producer client identifier (visible in broker logs)",
    )

    producer_rate: int = Field(
        default=5,
        ge=1,
        le=1000,
        description="Order lifecycles started per second (1-1000)",
    )

    producer_duration: int = Field(
        default=60,
        ge=0,
        description="Run duration in seconds (0 = run indefinitely)",
    )

    # === SIMULATOR SETTINGS ===
    mock_seed: int = Field(
        default=42,
        description="Random seed for reproducible lifecycles",
    )

    chat_probability: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
        description="Probability of a chat message after each status step",
    )

    # === LOGGING CONFIGURATION ===
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    log_format: str = Field(
        default="json",
        description="Log output format (json for production, text for development)",
    )

    # === PERFORMANCE TUNING ===
    producer_compression: str = Field(
        default="snappy",
        description="Compression algorithm (none, gzip, snappy, lz4, zstd)",
    )

    producer_linger_ms: int = Field(
        default=10,
        ge=0,
        le=1000,
        description="Time to wait for batching messages (milliseconds)",
    )

    producer_acks: str = Field(
        default="all",
        pattern="^(0|1|all|-1)$",
        description="Acknowledgment level (idempotence requires all)",
    )

    enable_idempotence: bool = Field(
        default=True,
        description="Idempotent producer: broker drops retried duplicates, per-partition order kept",
    )

    class Config:
        """Pydantic configuration."""

        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"

    def get_kafka_config(self) -> dict:
        """
        Kafka producer configuration for confluent_kafka.Producer.

        Returns:
            Dictionary of Kafka producer configuration
        """
        return {
            "bootstrap.servers": self.kafka_bootstrap_servers,
            "client.id": self.producer_client_id,
            "compression.type": self.producer_compression,
            "linger.ms": self.producer_linger_ms,
            "acks": self.producer_acks,
            "enable.idempotence": self.enable_idempotence,
        }

    def display_config(self) -> str:
        """Human-readable configuration summary."""
        return f"""
Delivery Event Producer Configuration
=====================================
Kafka:
  Bootstrap Servers: {self.kafka_bootstrap_servers}
  Status Topic: {self.kafka_topic_status}
  Chat Topic: {self.kafka_topic_chat}
  Client ID: {self.producer_client_id}

Producer Settings:
  Rate: {self.producer_rate} lifecycles/second
  Duration: {self.producer_duration} seconds {'(infinite)' if self.producer_duration == 0 else ''}
  Compression: {self.producer_compression}
  Linger: {self.producer_linger_ms}ms
  Acks: {self.producer_acks}
  Idempotence: {self.enable_idempotence}

Simulator:
  Seed: {self.mock_seed}
  Chat Probability: {self.chat_probability}

Logging:
  Level: {self.log_level}
  Format: {self.log_format}
"""


def load_config() -> ProducerConfig:
    """
    Load and validate producer configuration.

    Raises:
        ValidationError: If configuration is invalid
    """
    return ProducerConfig()


def validate_kafka_connection(config: ProducerConfig, timeout: float = 10.0) -> bool:
    """
    Check that the brokers answer a metadata request.

    Returns:
        True if connection successful, False otherwise
    """
    try:
        admin_client = AdminClient({"bootstrap.servers": config.kafka_bootstrap_servers})
        admin_client.list_topics(timeout=timeout)
        return True
    except KafkaException:
        return False
