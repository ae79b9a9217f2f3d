"""
Event producer: publishes order status events and chat messages keyed by
order id, plus a seeded lifecycle simulator for generating traffic.
"""

from delivery_index.producer.publisher import EventPublisher

__all__ = ["EventPublisher"]
