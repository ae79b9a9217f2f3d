"""
Store Factory: create the index store backend named in configuration.

    STORE_BACKEND=redis   RedisIndexStore at REDIS_URL (production)
    STORE_BACKEND=memory  InMemoryIndexStore (development, single process)

Usage:
    from delivery_index.store.factory import create_index_store
    store = create_index_store(settings)
"""

import logging

from delivery_index.shared.config import IndexSettings
from delivery_index.shared.exceptions import StoreBackendError
from delivery_index.store.base import IndexStore

logger = logging.getLogger(__name__)


def create_index_store(settings: IndexSettings) -> IndexStore:
    """
    Build the configured IndexStore.

    Raises:
        StoreBackendError: If the backend name is not recognised
    """
    backend = settings.store_backend.lower()

    if backend == "redis":
        from delivery_index.store.redis_store import RedisIndexStore

        store: IndexStore = RedisIndexStore(redis_url=settings.redis_url)
    elif backend == "memory":
        from delivery_index.store.memory_store import InMemoryIndexStore

        store = InMemoryIndexStore()
    else:
        raise StoreBackendError(f"Unknown store backend: {settings.store_backend!r}")

    logger.info("Index store created", extra={"backend": backend})
    return store
