"""
Index engine: projects order status events and chat messages into the
key-value store and answers queries over the result.

Package components:
- models.py: queue message, typed events, projection and chat entry models
- extractor.py: raw message → typed event, with defaults
- repository.py: store layout of order projections
- maintainer.py: status event application (stale / move / purge)
- query.py: read paths and the Role enum
- chat.py: per-conversation chat logs
- service.py: query surface for transports
"""

from delivery_index.index.chat import ChatLogMaintainer
from delivery_index.index.maintainer import ApplyOutcome, OrderIndexMaintainer
from delivery_index.index.models import ChatEntry, OrderProjection, QueueMessage, StatusEvent
from delivery_index.index.query import OrderQueryEngine, Role
from delivery_index.index.repository import OrderProjectionRepository
from delivery_index.index.service import IndexService

__all__ = [
    "ApplyOutcome",
    "ChatEntry",
    "ChatLogMaintainer",
    "IndexService",
    "OrderIndexMaintainer",
    "OrderProjection",
    "OrderProjectionRepository",
    "OrderQueryEngine",
    "QueueMessage",
    "Role",
    "StatusEvent",
]
