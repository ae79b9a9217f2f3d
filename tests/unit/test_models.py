"""
Unit Tests for Index Data Models

TEST STRATEGY:
- Test QueueMessage decoding from Kafka messages (value, key, headers)
- Test deduplication header handling
- Test immutability of typed events and projections
- Test ChatEntry JSON form (the stored chat log format)
"""

import pytest
from pydantic import ValidationError

from conftest import FakeKafkaMessage
from delivery_index.index.models import ChatEntry, OrderProjection, QueueMessage, StatusEvent


@pytest.mark.unit
def test_queue_message_from_kafka():
    """Test decoding body, ordering key and attributes."""
    msg = FakeKafkaMessage(
        value="Order placed".encode("utf-8"),
        key=b"o1",
        headers=[("orderId", b"o1"), ("status", b"placed"), ("deduplication_id", b"o1_1000")],
    )

    message = QueueMessage.from_kafka(msg)

    assert message.body == "Order placed"
    assert message.ordering_key == "o1"
    assert message.attributes == {"orderId": "o1", "status": "placed"}
    assert message.deduplication_id == "o1_1000"


@pytest.mark.unit
def test_queue_message_from_kafka_without_headers_or_key():
    message = QueueMessage.from_kafka(FakeKafkaMessage(value=None, key=None, headers=None))

    assert message.body == ""
    assert message.ordering_key is None
    assert message.attributes == {}
    assert message.deduplication_id is None


@pytest.mark.unit
def test_queue_message_null_header_value_kept_as_none():
    message = QueueMessage.from_kafka(FakeKafkaMessage(value=b"x", headers=[("riderId", None)]))

    assert message.attributes == {"riderId": None}


@pytest.mark.unit
def test_queue_message_undecodable_bytes_replaced():
    message = QueueMessage.from_kafka(FakeKafkaMessage(value=b"caf\xff", headers=[("userId", b"u\xfe1")]))

    assert message.body.startswith("caf")
    assert message.attributes["userId"].startswith("u")


@pytest.mark.unit
def test_status_event_is_frozen():
    event = StatusEvent(
        order_id="o1", status="placed", user_id="u1", rider_id="r1", timestamp="2025-01-10 14:30:00", body="x"
    )

    with pytest.raises(ValidationError):
        event.status = "done"


@pytest.mark.unit
def test_projection_rider_defaults_to_none():
    projection = OrderProjection(order_id="o1", status="placed", user_id="u1", message_body="x")

    assert projection.rider_id is None


@pytest.mark.unit
def test_chat_entry_json_form():
    entry = ChatEntry(order_id="o1", user_id="u1", role="user", message="hi", timestamp=42)

    assert ChatEntry.model_validate_json(entry.model_dump_json()) == entry
    assert '"timestamp":42' in entry.model_dump_json()
