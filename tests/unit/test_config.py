"""
Unit Tests for Configuration Classes

Tests Pydantic configuration validation for the shared index settings and
the producer and consumer configs.

TEST STRATEGY:
- Test default values
- Test validation rules (constraints, patterns)
- Test environment variable loading (including JSON list values)
- Test helper methods (get_kafka_config, display_config)
"""

import pytest
from pydantic import ValidationError

from delivery_index.consumer.config import ConsumerConfig
from delivery_index.consumer.config import load_config as load_consumer_config
from delivery_index.producer.config import ProducerConfig
from delivery_index.producer.config import load_config as load_producer_config
from delivery_index.shared.config import ONE_DAY_SECONDS, IndexSettings, load_settings

# ==============================================================================
# SHARED INDEX SETTINGS TESTS
# ==============================================================================


@pytest.mark.unit
def test_index_settings_defaults(monkeypatch):
    """Test IndexSettings default values."""
    monkeypatch.delenv("STORE_BACKEND", raising=False)
    config = IndexSettings()

    assert config.store_backend == "redis"
    assert config.redis_url == "redis://localhost:6379/0"
    assert config.order_ttl_seconds == ONE_DAY_SECONDS
    assert config.chat_retention_seconds == ONE_DAY_SECONDS
    assert config.dedup_window_seconds == 300

    # Status vocabulary
    assert config.terminal_status == "done"
    assert config.rider_assigned_statuses == ["assigned", "delivering", "delivered"]
    assert config.active_delivery_statuses == ["delivering", "delivered"]
    assert config.order_count_statuses == ["pending", "delivering", "delivered"]


@pytest.mark.unit
def test_index_settings_rejects_unknown_backend():
    """Test that store_backend must be redis or memory."""
    with pytest.raises(ValidationError) as exc_info:
        IndexSettings(store_backend="postgres")

    assert "store_backend" in str(exc_info.value)


@pytest.mark.unit
@pytest.mark.parametrize(
    "field,value",
    [
        ("order_ttl_seconds", 0),
        ("chat_retention_seconds", -5),
        ("dedup_window_seconds", 0),
        ("dedup_window_seconds", ONE_DAY_SECONDS + 1),
        ("terminal_status", ""),
    ],
)
def test_index_settings_bounds(field, value):
    with pytest.raises(ValidationError):
        IndexSettings(**{field: value})


@pytest.mark.unit
def test_index_settings_from_env(monkeypatch):
    """Test loading lists and numbers from environment variables."""
    monkeypatch.setenv("STORE_BACKEND", "memory")
    monkeypatch.setenv("ORDER_TTL_SECONDS", "60")
    monkeypatch.setenv("TERMINAL_STATUS", "closed")
    monkeypatch.setenv("RIDER_ASSIGNED_STATUSES", '["picked_up", "delivering"]')

    config = load_settings()

    assert config.store_backend == "memory"
    assert config.order_ttl_seconds == 60
    assert config.terminal_status == "closed"
    assert config.rider_assigned_statuses == ["picked_up", "delivering"]


# ==============================================================================
# CONSUMER CONFIG TESTS
# ==============================================================================


@pytest.mark.unit
def test_consumer_config_defaults():
    """Test ConsumerConfig default values."""
    config = ConsumerConfig()

    assert config.kafka_bootstrap_servers == "localhost:9092"
    assert config.kafka_topic_status == "order-status-events"
    assert config.kafka_topic_chat == "order-chat-events"
    assert config.status_group_id == "order-index-maintainers"
    assert config.chat_group_id == "chat-log-maintainers"
    assert config.consumer_auto_offset_reset == "earliest"
    assert config.enable_auto_commit is False
    assert config.status_workers == 3
    assert config.chat_workers == 2


@pytest.mark.unit
def test_consumer_config_inherits_index_settings():
    """Test that consumer config carries the shared store settings."""
    config = ConsumerConfig(store_backend="memory", dedup_window_seconds=60)

    assert isinstance(config, IndexSettings)
    assert config.store_backend == "memory"
    assert config.dedup_window_seconds == 60


@pytest.mark.unit
def test_consumer_config_get_kafka_config():
    """Test get_kafka_config() per worker."""
    config = ConsumerConfig(kafka_bootstrap_servers="kafka:29092")

    kafka_config = config.get_kafka_config("order-index-maintainers", client_suffix="status-1")

    assert kafka_config == {
        "bootstrap.servers": "kafka:29092",
        "group.id": "order-index-maintainers",
        "client.id": "delivery-index-consumer-status-1",
        "auto.offset.reset": "earliest",
        "enable.auto.commit": False,
    }


@pytest.mark.unit
def test_consumer_config_get_kafka_config_without_suffix():
    config = ConsumerConfig()

    assert config.get_kafka_config("g")["client.id"] == "delivery-index-consumer"


@pytest.mark.unit
def test_consumer_config_worker_bounds():
    """Test that there is at least one status worker; chat may be disabled."""
    assert ConsumerConfig(chat_workers=0).chat_workers == 0

    with pytest.raises(ValidationError):
        ConsumerConfig(status_workers=0)

    with pytest.raises(ValidationError):
        ConsumerConfig(chat_workers=33)


@pytest.mark.unit
def test_consumer_config_from_env(monkeypatch):
    monkeypatch.setenv("KAFKA_TOPIC_STATUS", "env-status")
    monkeypatch.setenv("STATUS_WORKERS", "6")
    monkeypatch.setenv("POLL_TIMEOUT_SECONDS", "0.5")

    config = load_consumer_config()

    assert config.kafka_topic_status == "env-status"
    assert config.status_workers == 6
    assert config.poll_timeout_seconds == 0.5


# ==============================================================================
# PRODUCER CONFIG TESTS
# ==============================================================================


@pytest.mark.unit
def test_producer_config_defaults():
    """Test ProducerConfig default values."""
    config = ProducerConfig()

    assert config.kafka_topic_status == "order-status-events"
    assert config.kafka_topic_chat == "order-chat-events"
    assert config.producer_client_id == "delivery-index-producer"
    assert config.producer_rate == 5
    assert config.producer_duration == 60
    assert config.mock_seed == 42
    assert config.chat_probability == 0.3
    assert config.producer_acks == "all"
    assert config.enable_idempotence is True


@pytest.mark.unit
def test_producer_config_validation():
    """Test rate, duration, acks and chat probability constraints."""
    with pytest.raises(ValidationError) as exc_info:
        ProducerConfig(producer_rate=0)
    assert "producer_rate" in str(exc_info.value)

    with pytest.raises(ValidationError):
        ProducerConfig(producer_duration=-1)

    with pytest.raises(ValidationError):
        ProducerConfig(producer_acks="2")

    with pytest.raises(ValidationError):
        ProducerConfig(chat_probability=1.5)


@pytest.mark.unit
def test_producer_config_get_kafka_config():
    config = ProducerConfig(kafka_bootstrap_servers="kafka:29092", producer_client_id="test-producer")

    kafka_config = config.get_kafka_config()

    assert kafka_config["bootstrap.servers"] == "kafka:29092"
    assert kafka_config["client.id"] == "test-producer"
    assert kafka_config["enable.idempotence"] is True
    assert kafka_config["acks"] == "all"


@pytest.mark.unit
def test_producer_config_from_env(monkeypatch):
    monkeypatch.setenv("KAFKA_BOOTSTRAP_SERVERS", "kafka:29092")
    monkeypatch.setenv("PRODUCER_RATE", "50")
    monkeypatch.setenv("CHAT_PROBABILITY", "0")

    config = load_producer_config()

    assert config.kafka_bootstrap_servers == "kafka:29092"
    assert config.producer_rate == 50
    assert config.chat_probability == 0.0


@pytest.mark.unit
def test_producer_display_config():
    text = ProducerConfig(producer_duration=0).display_config()

    assert "Status Topic: order-status-events" in text
    assert "(infinite)" in text
