"""
Unit Tests for EventConsumer, StatusEventHandler and WorkerPool

The Kafka client is a MagicMock and messages are FakeKafkaMessage objects
(see conftest), so commit/seek decisions can be asserted directly.

TEST STRATEGY:
- Processed events are committed and leave a deduplication marker
- Repeated publishes inside the window are committed without effect
- Rejected events (bad timestamp) are committed and skipped
- Store failures are not committed; the worker seeks back for redelivery
- Poll loop: idle polls, partition EOF, fatal errors, shutdown
"""

from unittest.mock import MagicMock

import pytest
import redis
from confluent_kafka import KafkaError

from delivery_index.consumer.config import ConsumerConfig
from delivery_index.consumer.consumer import EventConsumer, dedup_key
from delivery_index.consumer.handlers import HandlerOutcome, StatusEventHandler
from delivery_index.consumer.pool import WorkerPool
from delivery_index.index.repository import status_index_key

STATUS_TOPIC = "order-status-events"


@pytest.fixture
def consumer_config() -> ConsumerConfig:
    return ConsumerConfig(
        store_backend="memory",
        kafka_bootstrap_servers="localhost:9092",
        status_workers=3,
        chat_workers=2,
        poll_timeout_seconds=0.1,
        dedup_window_seconds=300,
    )


@pytest.fixture
def kafka_consumer() -> MagicMock:
    return MagicMock(name="confluent_kafka.Consumer")


@pytest.fixture
def worker(consumer_config, kafka_consumer, memory_store, maintainer) -> EventConsumer:
    return EventConsumer(
        config=consumer_config,
        topic=STATUS_TOPIC,
        group_id=consumer_config.status_group_id,
        handler=StatusEventHandler(maintainer),
        store=memory_store,
        worker_name="status-0",
        consumer=kafka_consumer,
    )


def status_attributes(order_id="o1", status="placed", rider_id="defaultRiderId", timestamp="2025-01-10 14:30:00"):
    return {
        "orderId": order_id,
        "status": status,
        "userId": "u1",
        "riderId": rider_id,
        "timestamp": timestamp,
    }


# ==============================================================================
# HANDLER
# ==============================================================================


@pytest.mark.unit
def test_status_handler_maps_outcomes(maintainer, make_status_message):
    handler = StatusEventHandler(maintainer)

    assert handler(make_status_message("o1", "placed")) == HandlerOutcome.APPLIED
    assert handler(make_status_message("o1", "placed")) == HandlerOutcome.STALE
    assert handler(make_status_message("o1", "done")) == HandlerOutcome.PURGED


# ==============================================================================
# PROCESS MESSAGE
# ==============================================================================


@pytest.mark.unit
def test_worker_subscribes_on_init(worker, kafka_consumer):
    kafka_consumer.subscribe.assert_called_once_with([STATUS_TOPIC])


@pytest.mark.unit
def test_processed_event_is_committed_and_marked(worker, kafka_consumer, memory_store, repository, make_kafka_message):
    msg = make_kafka_message(status_attributes(), key="o1", deduplication_id="o1_1000")

    outcome = worker.process_message(msg)

    assert outcome == HandlerOutcome.APPLIED
    kafka_consumer.commit.assert_called_once_with(message=msg, asynchronous=False)
    kafka_consumer.seek.assert_not_called()
    assert memory_store.exists(dedup_key(STATUS_TOPIC, "o1_1000"))
    assert repository.is_indexed_under("o1", "placed")
    assert worker.messages_processed == 1


@pytest.mark.unit
def test_repeated_publish_is_skipped(consumer_config, kafka_consumer, memory_store, make_kafka_message):
    handler = MagicMock(return_value=HandlerOutcome.APPLIED)
    worker = EventConsumer(
        consumer_config, STATUS_TOPIC, "g", handler, memory_store, consumer=kafka_consumer
    )
    first = make_kafka_message(status_attributes(), deduplication_id="o1_1000", offset=1)
    retry = make_kafka_message(status_attributes(), deduplication_id="o1_1000", offset=2)

    assert worker.process_message(first) == HandlerOutcome.APPLIED
    assert worker.process_message(retry) == HandlerOutcome.DUPLICATE

    handler.assert_called_once()
    assert kafka_consumer.commit.call_count == 2
    assert worker.messages_skipped == 1


@pytest.mark.unit
def test_dedup_window_expires(consumer_config, kafka_consumer, memory_store, clock, make_kafka_message):
    handler = MagicMock(return_value=HandlerOutcome.APPLIED)
    worker = EventConsumer(
        consumer_config, STATUS_TOPIC, "g", handler, memory_store, consumer=kafka_consumer
    )
    worker.process_message(make_kafka_message(status_attributes(), deduplication_id="o1_1000"))

    clock.advance(300)

    assert worker.process_message(make_kafka_message(status_attributes(), deduplication_id="o1_1000")) == (
        HandlerOutcome.APPLIED
    )
    assert handler.call_count == 2


@pytest.mark.unit
def test_same_dedup_id_on_other_topic_is_not_a_duplicate(
    consumer_config, kafka_consumer, memory_store, make_kafka_message
):
    memory_store.mark_if_absent(dedup_key("order-chat-events", "o1_1000"), 300)
    handler = MagicMock(return_value=HandlerOutcome.APPLIED)
    worker = EventConsumer(
        consumer_config, STATUS_TOPIC, "g", handler, memory_store, consumer=kafka_consumer
    )

    assert worker.process_message(make_kafka_message(status_attributes(), deduplication_id="o1_1000")) == (
        HandlerOutcome.APPLIED
    )


@pytest.mark.unit
def test_message_without_dedup_id_is_processed(worker, kafka_consumer, memory_store, make_kafka_message):
    assert worker.process_message(make_kafka_message(status_attributes())) == HandlerOutcome.APPLIED
    assert not any(key.startswith("dedup:") for key in memory_store.keys())
    kafka_consumer.commit.assert_called_once()


@pytest.mark.unit
def test_rejected_event_is_committed_and_skipped(worker, kafka_consumer, memory_store, make_kafka_message):
    msg = make_kafka_message(status_attributes(timestamp="not a time"), deduplication_id="o1_1000")

    outcome = worker.process_message(msg)

    assert outcome == HandlerOutcome.SKIPPED
    kafka_consumer.commit.assert_called_once_with(message=msg, asynchronous=False)
    kafka_consumer.seek.assert_not_called()
    assert memory_store.keys() == []
    assert worker.messages_skipped == 1


@pytest.mark.unit
def test_store_failure_seeks_back_without_commit(consumer_config, kafka_consumer, memory_store, make_kafka_message):
    handler = MagicMock(side_effect=redis.ConnectionError("connection refused"))
    worker = EventConsumer(
        consumer_config, STATUS_TOPIC, "g", handler, memory_store, consumer=kafka_consumer
    )
    msg = make_kafka_message(status_attributes(), deduplication_id="o1_1000", offset=17)

    assert worker.process_message(msg) is None

    kafka_consumer.commit.assert_not_called()
    (partition,), _ = kafka_consumer.seek.call_args
    assert (partition.topic, partition.partition, partition.offset) == (STATUS_TOPIC, 0, 17)
    assert not memory_store.exists(dedup_key(STATUS_TOPIC, "o1_1000"))
    assert worker.messages_failed == 1


@pytest.mark.unit
def test_redelivered_event_after_success_is_stale(worker, kafka_consumer, make_kafka_message):
    """Crash after the store writes but before commit: redelivery is a no-op."""
    worker.process_message(make_kafka_message(status_attributes()))

    assert worker.process_message(make_kafka_message(status_attributes())) == HandlerOutcome.STALE
    assert kafka_consumer.commit.call_count == 2


# ==============================================================================
# POLL LOOP
# ==============================================================================


def poll_script(worker: EventConsumer, items):
    """poll() side effect returning ``items`` in turn, then stopping the worker."""
    remaining = list(items)

    def _poll(timeout):
        if not remaining:
            worker.stop()
            return None
        return remaining.pop(0)

    return _poll


@pytest.mark.unit
def test_loop_processes_until_stopped(worker, kafka_consumer, repository, make_kafka_message):
    eof = MagicMock()
    eof.error.return_value = KafkaError(KafkaError._PARTITION_EOF)
    kafka_consumer.poll.side_effect = poll_script(
        worker,
        [
            None,
            make_kafka_message(status_attributes("o1")),
            eof,
            make_kafka_message(status_attributes("o2"), key="o2"),
        ],
    )

    worker.start()

    assert worker.messages_processed == 2
    assert repository.members_oldest_first("placed") == ["o1", "o2"]
    kafka_consumer.close.assert_called_once()


@pytest.mark.unit
def test_fatal_kafka_error_stops_loop(worker, kafka_consumer, make_kafka_message):
    broken = MagicMock()
    broken.error.return_value = KafkaError(KafkaError._ALL_BROKERS_DOWN)
    kafka_consumer.poll.side_effect = [broken, make_kafka_message(status_attributes())]

    worker.start()

    assert worker.running is False
    assert worker.messages_processed == 0
    kafka_consumer.close.assert_called_once()


@pytest.mark.unit
def test_store_failure_does_not_break_loop(consumer_config, kafka_consumer, memory_store, make_kafka_message):
    handler = MagicMock(side_effect=[redis.TimeoutError("slow"), HandlerOutcome.APPLIED])
    worker = EventConsumer(
        consumer_config, STATUS_TOPIC, "g", handler, memory_store, consumer=kafka_consumer
    )
    msg = make_kafka_message(status_attributes())
    kafka_consumer.poll.side_effect = poll_script(worker, [msg, msg])

    worker.start()

    assert worker.messages_failed == 1
    assert worker.messages_processed == 1
    kafka_consumer.commit.assert_called_once_with(message=msg, asynchronous=False)


@pytest.mark.unit
def test_status_index_key_used_by_worker(worker, memory_store, make_kafka_message):
    worker.process_message(make_kafka_message(status_attributes(status="pending")))

    assert memory_store.zset_range(status_index_key("pending")) == ["o1"]


# ==============================================================================
# WORKER POOL
# ==============================================================================


@pytest.mark.unit
def test_pool_builds_workers_per_topic(consumer_config, memory_store):
    created = []

    def factory(**kwargs):
        created.append(kwargs)
        fake = MagicMock()
        fake.worker_name = kwargs["worker_name"]
        return fake

    pool = WorkerPool(consumer_config, memory_store, consumer_factory=factory)
    workers = pool.build()

    assert len(workers) == 5
    assert [c["worker_name"] for c in created] == ["status-0", "status-1", "status-2", "chat-0", "chat-1"]
    assert {c["topic"] for c in created[:3]} == {consumer_config.kafka_topic_status}
    assert {c["group_id"] for c in created[3:]} == {consumer_config.chat_group_id}
    assert all(c["store"] is memory_store for c in created)


@pytest.mark.unit
def test_pool_start_and_stop(consumer_config, memory_store):
    workers = []

    def factory(**kwargs):
        fake = MagicMock()
        fake.worker_name = kwargs["worker_name"]
        fake.messages_processed = 2
        workers.append(fake)
        return fake

    pool = WorkerPool(consumer_config, memory_store, consumer_factory=factory)
    pool.start()
    pool.join(timeout=5)
    pool.stop()

    assert all(w.start.call_count == 1 for w in workers)
    assert all(w.stop.call_count == 1 for w in workers)
    assert pool.messages_processed == 10
    assert not pool.alive()
