"""
Index store backends.

Package components:
- base.py: IndexStore interface (hashes, sorted sets, lists, expiry)
- redis_store.py: Redis implementation (production)
- memory_store.py: in-memory implementation (development, tests)
- factory.py: backend selection from settings
"""

from delivery_index.store.base import IndexStore
from delivery_index.store.factory import create_index_store
from delivery_index.store.memory_store import InMemoryIndexStore

__all__ = [
    "IndexStore",
    "InMemoryIndexStore",
    "create_index_store",
]
