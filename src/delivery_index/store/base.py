"""
Index Store Interface

The capability surface the index engine needs from a key-value store:
hash maps, sorted sets, lists, per-key expiry and per-hash-field expiry.

Implementations:
  - RedisIndexStore     (production, redis-py; per-field expiry needs Redis 7.4+)
  - InMemoryIndexStore  (development and unit tests, single process)

Every single call is expected to be atomic on its own. Nothing in this
interface groups calls into a transaction; callers that issue several calls
in sequence must tolerate a failure between any two of them.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional


class IndexStore(ABC):
    """Interface that all index store backends implement."""

    # ── Hash maps ────────────────────────────────────────────

    @abstractmethod
    def hash_get(self, key: str, field: str) -> Optional[str]:
        ...

    @abstractmethod
    def hash_put(self, key: str, field: str, value: str) -> None:
        ...

    @abstractmethod
    def hash_delete(self, key: str, *fields: str) -> None:
        ...

    @abstractmethod
    def hash_keys(self, key: str) -> List[str]:
        ...

    @abstractmethod
    def hash_entries(self, key: str) -> Dict[str, str]:
        ...

    @abstractmethod
    def hash_expire(self, key: str, ttl_seconds: int, *fields: str) -> None:
        """Set an expiry on individual fields of a hash (missing fields are ignored)."""

    # ── Sorted sets ──────────────────────────────────────────

    @abstractmethod
    def zset_add(self, key: str, member: str, score: float) -> None:
        ...

    @abstractmethod
    def zset_remove(self, key: str, member: str) -> None:
        ...

    @abstractmethod
    def zset_range(self, key: str) -> List[str]:
        """All members, lowest score first."""

    @abstractmethod
    def zset_reverse_range(self, key: str) -> List[str]:
        """All members, highest score first."""

    @abstractmethod
    def zset_score(self, key: str, member: str) -> Optional[float]:
        ...

    # ── Lists ────────────────────────────────────────────────

    @abstractmethod
    def list_right_push(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def list_range(self, key: str) -> List[str]:
        """All elements, head to tail."""

    # ── Keys ─────────────────────────────────────────────────

    @abstractmethod
    def delete(self, key: str) -> None:
        ...

    @abstractmethod
    def expire(self, key: str, ttl_seconds: int) -> None:
        ...

    @abstractmethod
    def exists(self, key: str) -> bool:
        ...

    @abstractmethod
    def mark_if_absent(self, key: str, ttl_seconds: int) -> bool:
        """Create a short-lived marker key; False if it already existed."""

    # ── Administration ───────────────────────────────────────

    @abstractmethod
    def flush_all(self) -> None:
        """Delete every key in the store."""

    @abstractmethod
    def ping(self) -> bool:
        ...

    def close(self) -> None:
        """Release connections. Backends without connections need not override."""
