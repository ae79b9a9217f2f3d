"""
InMemoryIndexStore: dict-backed index store for development and testing.

Features:
  - Zero external services (no Redis)
  - Same semantics as RedisIndexStore for every IndexStore call, including
    per-key and per-hash-field expiry against an injectable clock
  - Thread-safe via a single lock (consumer workers share one instance)
  - Optionally records every mutating call in ``write_log`` so tests can
    count writes (off by default, the log is never trimmed)
  - All data lost on process restart
"""

import logging
import threading
import time
from collections import defaultdict
from typing import Callable, Dict, List, Optional, Tuple

from delivery_index.store.base import IndexStore

Clock = Callable[[], float]


class InMemoryIndexStore(IndexStore):
    """
    Single-process IndexStore with Redis-like semantics.

    Attributes:
        write_log: (operation, key) for every mutating call, oldest first;
            stays empty unless record_writes is set
    """

    def __init__(self, clock: Clock = time.monotonic, record_writes: bool = False):
        """
        Args:
            clock: Seconds source used for expiry; tests pass a fake clock
            record_writes: Append every mutating call to ``write_log``
        """
        self.logger = logging.getLogger(__name__)
        self._clock = clock
        self._lock = threading.RLock()

        self._hashes: Dict[str, Dict[str, str]] = defaultdict(dict)
        self._zsets: Dict[str, Dict[str, float]] = defaultdict(dict)
        self._lists: Dict[str, List[str]] = defaultdict(list)
        self._strings: Dict[str, str] = {}

        # Expiry deadlines in clock seconds
        self._key_deadlines: Dict[str, float] = {}
        self._field_deadlines: Dict[Tuple[str, str], float] = {}

        self.record_writes = record_writes
        self.write_log: List[Tuple[str, str]] = []
        self.logger.info("In-memory index store initialized")

    # ── Expiry bookkeeping ───────────────────────────────────

    def _evict_expired(self) -> None:
        now = self._clock()

        for (key, field), deadline in list(self._field_deadlines.items()):
            if deadline <= now:
                del self._field_deadlines[(key, field)]
                self._hashes.get(key, {}).pop(field, None)
                if key in self._hashes and not self._hashes[key]:
                    del self._hashes[key]

        for key, deadline in list(self._key_deadlines.items()):
            if deadline <= now:
                self._drop_key(key)

    def _drop_key(self, key: str) -> None:
        self._hashes.pop(key, None)
        self._zsets.pop(key, None)
        self._lists.pop(key, None)
        self._strings.pop(key, None)
        self._key_deadlines.pop(key, None)
        for field_key in [fk for fk in self._field_deadlines if fk[0] == key]:
            del self._field_deadlines[field_key]

    def _key_exists(self, key: str) -> bool:
        return (
            bool(self._hashes.get(key))
            or bool(self._zsets.get(key))
            or bool(self._lists.get(key))
            or key in self._strings
        )

    def _record(self, operation: str, key: str) -> None:
        if self.record_writes:
            self.write_log.append((operation, key))

    # ── Hash maps ────────────────────────────────────────────

    def hash_get(self, key: str, field: str) -> Optional[str]:
        with self._lock:
            self._evict_expired()
            return self._hashes.get(key, {}).get(field)

    def hash_put(self, key: str, field: str, value: str) -> None:
        with self._lock:
            self._evict_expired()
            self._hashes[key][field] = value
            # Overwriting a field clears its expiry, as HSET does
            self._field_deadlines.pop((key, field), None)
            self._record("hash_put", key)

    def hash_delete(self, key: str, *fields: str) -> None:
        with self._lock:
            self._evict_expired()
            bucket = self._hashes.get(key)
            for field in fields:
                if bucket is not None:
                    bucket.pop(field, None)
                self._field_deadlines.pop((key, field), None)
            if bucket is not None and not bucket:
                del self._hashes[key]
            self._record("hash_delete", key)

    def hash_keys(self, key: str) -> List[str]:
        with self._lock:
            self._evict_expired()
            return list(self._hashes.get(key, {}).keys())

    def hash_entries(self, key: str) -> Dict[str, str]:
        with self._lock:
            self._evict_expired()
            return dict(self._hashes.get(key, {}))

    def hash_expire(self, key: str, ttl_seconds: int, *fields: str) -> None:
        with self._lock:
            self._evict_expired()
            bucket = self._hashes.get(key, {})
            deadline = self._clock() + ttl_seconds
            for field in fields:
                if field in bucket:
                    self._field_deadlines[(key, field)] = deadline
            self._record("hash_expire", key)

    # ── Sorted sets ──────────────────────────────────────────

    def zset_add(self, key: str, member: str, score: float) -> None:
        with self._lock:
            self._evict_expired()
            self._zsets[key][member] = float(score)
            self._record("zset_add", key)

    def zset_remove(self, key: str, member: str) -> None:
        with self._lock:
            self._evict_expired()
            members = self._zsets.get(key)
            if members is not None:
                members.pop(member, None)
                if not members:
                    del self._zsets[key]
            self._record("zset_remove", key)

    def zset_range(self, key: str) -> List[str]:
        with self._lock:
            self._evict_expired()
            members = self._zsets.get(key, {})
            # Ties broken lexicographically, as Redis does
            return [m for m, _ in sorted(members.items(), key=lambda item: (item[1], item[0]))]

    def zset_reverse_range(self, key: str) -> List[str]:
        with self._lock:
            self._evict_expired()
            members = self._zsets.get(key, {})
            return [
                m
                for m, _ in sorted(members.items(), key=lambda item: (item[1], item[0]), reverse=True)
            ]

    def zset_score(self, key: str, member: str) -> Optional[float]:
        with self._lock:
            self._evict_expired()
            return self._zsets.get(key, {}).get(member)

    # ── Lists ────────────────────────────────────────────────

    def list_right_push(self, key: str, value: str) -> None:
        with self._lock:
            self._evict_expired()
            self._lists[key].append(value)
            self._record("list_right_push", key)

    def list_range(self, key: str) -> List[str]:
        with self._lock:
            self._evict_expired()
            return list(self._lists.get(key, []))

    # ── Keys ─────────────────────────────────────────────────

    def delete(self, key: str) -> None:
        with self._lock:
            self._evict_expired()
            self._drop_key(key)
            self._record("delete", key)

    def expire(self, key: str, ttl_seconds: int) -> None:
        with self._lock:
            self._evict_expired()
            if self._key_exists(key):
                self._key_deadlines[key] = self._clock() + ttl_seconds
            self._record("expire", key)

    def exists(self, key: str) -> bool:
        with self._lock:
            self._evict_expired()
            return self._key_exists(key)

    def mark_if_absent(self, key: str, ttl_seconds: int) -> bool:
        with self._lock:
            self._evict_expired()
            if self._key_exists(key):
                return False
            self._strings[key] = "1"
            self._key_deadlines[key] = self._clock() + ttl_seconds
            self._record("mark_if_absent", key)
            return True

    # ── Administration ───────────────────────────────────────

    def flush_all(self) -> None:
        with self._lock:
            self._hashes.clear()
            self._zsets.clear()
            self._lists.clear()
            self._strings.clear()
            self._key_deadlines.clear()
            self._field_deadlines.clear()
            self._record("flush_all", "*")
        self.logger.warning("In-memory index store flushed")

    def ping(self) -> bool:
        return True

    # ── Test helpers ─────────────────────────────────────────

    def keys(self) -> List[str]:
        """Every live key, sorted; used to compare store snapshots."""
        with self._lock:
            self._evict_expired()
            live = set(self._hashes) | set(self._zsets) | set(self._lists) | set(self._strings)
            return sorted(k for k in live if self._key_exists(k))

    def snapshot(self) -> dict:
        """Deep copy of all live data (expiry deadlines excluded)."""
        with self._lock:
            self._evict_expired()
            return {
                "hashes": {k: dict(v) for k, v in self._hashes.items() if v},
                "zsets": {k: dict(v) for k, v in self._zsets.items() if v},
                "lists": {k: list(v) for k, v in self._lists.items() if v},
                "strings": dict(self._strings),
            }
