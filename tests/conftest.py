"""
Pytest Configuration and Shared Fixtures

Unit tests run the index engine against the in-memory store with a fake
clock, so expiry can be tested by moving time instead of sleeping.
Integration tests use testcontainers to spin up real Redis and Kafka.

FIXTURE SCOPES:
- session: containers (started once, shared by all integration tests)
- function: stores, engine components and factories (fresh per test)
"""

import os
from typing import Dict, Generator, List, Optional, Tuple

import pytest
from testcontainers.kafka import KafkaContainer
from testcontainers.redis import RedisContainer

from delivery_index.index.chat import ChatLogMaintainer
from delivery_index.index.maintainer import OrderIndexMaintainer
from delivery_index.index.models import ChatEvent, QueueMessage, StatusEvent
from delivery_index.index.query import OrderQueryEngine
from delivery_index.index.repository import OrderProjectionRepository
from delivery_index.index.service import IndexService
from delivery_index.shared.config import IndexSettings
from delivery_index.store.memory_store import InMemoryIndexStore

# ==============================================================================
# CLOCK + IN-MEMORY STORE
# ==============================================================================


class FakeClock:
    """Monotonic seconds that only move when a test says so."""

    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_store(clock) -> InMemoryIndexStore:
    return InMemoryIndexStore(clock=clock, record_writes=True)


@pytest.fixture
def index_settings() -> IndexSettings:
    """Default status vocabulary, short expiry windows."""
    return IndexSettings(
        store_backend="memory",
        order_ttl_seconds=3600,
        chat_retention_seconds=3600,
        dedup_window_seconds=300,
    )


# ==============================================================================
# INDEX ENGINE
# ==============================================================================


@pytest.fixture
def repository(memory_store, index_settings) -> OrderProjectionRepository:
    return OrderProjectionRepository(memory_store, index_settings.order_ttl_seconds)


@pytest.fixture
def chat_log(memory_store, index_settings) -> ChatLogMaintainer:
    return ChatLogMaintainer(memory_store, index_settings.chat_retention_seconds)


@pytest.fixture
def service(repository, chat_log, index_settings) -> IndexService:
    return IndexService(repository, chat_log, index_settings)


@pytest.fixture
def maintainer(service) -> OrderIndexMaintainer:
    return service.maintainer()


@pytest.fixture
def query_engine(repository) -> OrderQueryEngine:
    return OrderQueryEngine(repository)


# ==============================================================================
# EVENT FACTORIES
# ==============================================================================


@pytest.fixture
def make_status_event():
    """
    Factory for StatusEvent with sensible defaults.

    Usage:
        event = make_status_event("o1", "assigned", rider_id="r1")
    """

    def _make(
        order_id: str = "ORD-20250110-00001",
        status: str = "placed",
        user_id: str = "USER-00001",
        rider_id: str = "defaultRiderId",
        timestamp: str = "2025-01-10 14:30:00",
        body: str = "Order placed",
    ) -> StatusEvent:
        return StatusEvent(
            order_id=order_id,
            status=status,
            user_id=user_id,
            rider_id=rider_id,
            timestamp=timestamp,
            body=body,
        )

    return _make


@pytest.fixture
def make_chat_event():
    def _make(
        order_id: str = "ORD-20250110-00001",
        user_id: str = "USER-00001",
        role: str = "user",
        timestamp: str = "1736519400000",
        message: str = "Where is my food?",
    ) -> ChatEvent:
        return ChatEvent(
            order_id=order_id,
            user_id=user_id,
            role=role,
            timestamp=timestamp,
            message=message,
        )

    return _make


@pytest.fixture
def make_status_message():
    """Factory for a status QueueMessage as the publisher would emit it."""

    def _make(
        order_id: str = "ORD-20250110-00001",
        status: str = "placed",
        user_id: str = "USER-00001",
        rider_id: str = "defaultRiderId",
        timestamp: str = "2025-01-10 14:30:00",
        body: str = "Order placed",
        deduplication_id: Optional[str] = None,
    ) -> QueueMessage:
        return QueueMessage(
            body=body,
            attributes={
                "orderId": order_id,
                "status": status,
                "userId": user_id,
                "riderId": rider_id,
                "timestamp": timestamp,
            },
            ordering_key=order_id,
            deduplication_id=deduplication_id,
        )

    return _make


# ==============================================================================
# FAKE KAFKA MESSAGES
# ==============================================================================


class FakeKafkaMessage:
    """Duck-typed stand-in for confluent_kafka.Message."""

    def __init__(
        self,
        value: Optional[bytes],
        key: Optional[bytes] = None,
        headers: Optional[List[Tuple[str, bytes]]] = None,
        topic: str = "order-status-events",
        partition: int = 0,
        offset: int = 0,
        error=None,
    ):
        self._value = value
        self._key = key
        self._headers = headers
        self._topic = topic
        self._partition = partition
        self._offset = offset
        self._error = error

    def value(self):
        return self._value

    def key(self):
        return self._key

    def headers(self):
        return self._headers

    def topic(self):
        return self._topic

    def partition(self):
        return self._partition

    def offset(self):
        return self._offset

    def error(self):
        return self._error


@pytest.fixture
def make_kafka_message():
    """
    Factory for fake Kafka messages carrying the publisher's header layout.

    Usage:
        msg = make_kafka_message({"orderId": "o1", "status": "placed"}, body="hi")
    """

    def _make(
        attributes: Dict[str, str],
        body: str = "Order placed",
        key: Optional[str] = "ORD-20250110-00001",
        deduplication_id: Optional[str] = None,
        topic: str = "order-status-events",
        offset: int = 0,
    ) -> FakeKafkaMessage:
        headers = [(name, value.encode("utf-8")) for name, value in attributes.items()]
        if deduplication_id is not None:
            headers.append(("deduplication_id", deduplication_id.encode("utf-8")))
        return FakeKafkaMessage(
            value=body.encode("utf-8"),
            key=key.encode("utf-8") if key is not None else None,
            headers=headers,
            topic=topic,
            offset=offset,
        )

    return _make


# ==============================================================================
# CONTAINERS (integration)
# ==============================================================================


@pytest.fixture(scope="session")
def redis_container() -> Generator[RedisContainer, None, None]:
    """
    Redis testcontainer for the whole session.

    7.4 or later is required for per-field hash expiry (HEXPIRE).
    """
    with RedisContainer("redis:7.4") as redis_server:
        yield redis_server


@pytest.fixture
def redis_client(redis_container):
    """Client on a freshly flushed database."""
    client = redis_container.get_client(decode_responses=True)
    client.flushdb()
    try:
        yield client
    finally:
        client.flushdb()
        client.close()


@pytest.fixture(scope="session")
def kafka_container() -> Generator[KafkaContainer, None, None]:
    """Kafka testcontainer for the whole session."""
    with KafkaContainer() as kafka:
        kafka.get_bootstrap_server()
        yield kafka


# ==============================================================================
# TEST ENVIRONMENT CONFIGURATION
# ==============================================================================


def pytest_configure(config):
    """Set test environment variables and register markers."""
    os.environ["ENVIRONMENT"] = "test"
    os.environ["LOG_LEVEL"] = "DEBUG"

    config.addinivalue_line(
        "markers", "integration: mark test as integration test (requires containers)"
    )
    config.addinivalue_line("markers", "slow: mark test as slow (takes more than 5 seconds)")
    config.addinivalue_line("markers", "unit: mark test as unit test (no external dependencies)")
