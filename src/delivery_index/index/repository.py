"""
Order Projection Repository

The only code that knows how an order projection is laid out in the store.
The maintainer and the query engine work with OrderProjection values and
the typed operations below; raw keys never leave this module.

STORE LAYOUT:
┌──────────────────┬────────────┬──────────────────────────────────────────┐
│ Key              │ Type       │ Content                                  │
├──────────────────┼────────────┼──────────────────────────────────────────┤
│ order:status     │ hash       │ order id → status                        │
│ order:body       │ hash       │ order id → latest message body           │
│ order:user       │ hash       │ order id → user id                       │
│ order:rider      │ hash       │ order id → rider id (rider-assigned only)│
│ order:index      │ hash       │ order id → status whose index holds it   │
│ index:<status>   │ sorted set │ order ids scored by event epoch seconds  │
│ orders:all       │ sorted set │ every indexed order id, same scores      │
└──────────────────┴────────────┴──────────────────────────────────────────┘

INVARIANT: an order id is a member of at most one index:<status> set.
``detach`` followed by ``attach`` moves it; the two are separate store
calls, so a failure between them leaves the order in no status index.

The four attribute fields expire, sorted-set members do not. order:index
has no expiry, so an order whose fields lapsed is still taken out of the
index it was left in by its next event or its purge.
"""

import logging
from typing import List, Optional, Tuple

from delivery_index.index.models import OrderProjection
from delivery_index.store.base import IndexStore

STATUS_HASH = "order:status"
BODY_HASH = "order:body"
USER_HASH = "order:user"
RIDER_HASH = "order:rider"
INDEX_HASH = "order:index"
ATTRIBUTE_HASHES = (STATUS_HASH, BODY_HASH, USER_HASH, RIDER_HASH)

STATUS_INDEX_PREFIX = "index:"
ALL_ORDERS_INDEX = "orders:all"


def status_index_key(status: str) -> str:
    return f"{STATUS_INDEX_PREFIX}{status}"


class OrderProjectionRepository:
    """Typed read/write/delete access to order projections."""

    def __init__(self, store: IndexStore, ttl_seconds: int):
        """
        Args:
            store: Backend holding the hashes and sorted sets
            ttl_seconds: Expiry applied to every attribute field on refresh
        """
        self.store = store
        self.ttl_seconds = ttl_seconds
        self.logger = logging.getLogger(__name__)

    # ── Reads ────────────────────────────────────────────────

    def current_status_and_rider(self, order_id: str) -> Tuple[Optional[str], Optional[str]]:
        """(status, rider id) currently recorded; (None, None) for an unknown order."""
        return (
            self.store.hash_get(STATUS_HASH, order_id),
            self.store.hash_get(RIDER_HASH, order_id),
        )

    def load(self, order_id: str) -> Optional[OrderProjection]:
        """
        Rebuild the projection of one order.

        Returns None when status, body or user id is missing (unknown,
        purged, expired, or half-written order). A missing rider id alone
        does not disqualify the projection.
        """
        status = self.store.hash_get(STATUS_HASH, order_id)
        body = self.store.hash_get(BODY_HASH, order_id)
        user_id = self.store.hash_get(USER_HASH, order_id)
        rider_id = self.store.hash_get(RIDER_HASH, order_id)

        if status is None or body is None or user_id is None:
            return None

        return OrderProjection(
            order_id=order_id,
            status=status,
            user_id=user_id,
            rider_id=rider_id,
            message_body=body,
        )

    def members_newest_first(self, status: str) -> List[str]:
        return self.store.zset_reverse_range(status_index_key(status))

    def members_oldest_first(self, status: str) -> List[str]:
        return self.store.zset_range(status_index_key(status))

    def indexed_status(self, order_id: str) -> Optional[str]:
        """Status whose index currently holds the order, even after its fields lapsed."""
        return self.store.hash_get(INDEX_HASH, order_id)

    def is_indexed_under(self, order_id: str, status: str) -> bool:
        return self.store.zset_score(status_index_key(status), order_id) is not None

    def indexed_order_ids(self) -> List[str]:
        """Every order id in the all-orders index, oldest first."""
        return self.store.zset_range(ALL_ORDERS_INDEX)

    def recorded_order_ids(self) -> List[str]:
        """Every order id with a recorded status."""
        return self.store.hash_keys(STATUS_HASH)

    # ── Writes ───────────────────────────────────────────────

    def detach(self, order_id: str, current_status: Optional[str]) -> Optional[str]:
        """
        Take the order out of its status index and drop the status and
        rider fields. Body and user fields are left in place because the
        next attach overwrites them.

        Returns:
            The status the order was indexed under, or None if none
        """
        previous = self.indexed_status(order_id) or current_status
        self._remove_from_status_indexes(order_id, current_status)
        self.store.hash_delete(STATUS_HASH, order_id)
        self.store.hash_delete(RIDER_HASH, order_id)
        return previous

    def attach(self, projection: OrderProjection, score: float) -> None:
        """
        Index the order under its status and write its attribute fields.

        The rider field is written only when ``projection.rider_id`` is set.
        """
        order_id = projection.order_id

        self.store.hash_put(INDEX_HASH, order_id, projection.status)
        self.store.zset_add(status_index_key(projection.status), order_id, score)
        self.store.zset_add(ALL_ORDERS_INDEX, order_id, score)
        self.store.hash_put(STATUS_HASH, order_id, projection.status)
        self.store.hash_put(BODY_HASH, order_id, projection.message_body)
        self.store.hash_put(USER_HASH, order_id, projection.user_id)

        if projection.rider_id is not None:
            self.store.hash_put(RIDER_HASH, order_id, projection.rider_id)

    def refresh_expiry(self, order_id: str) -> None:
        """Restart the expiry clock on all four attribute fields of the order."""
        for hash_key in ATTRIBUTE_HASHES:
            self.store.hash_expire(hash_key, self.ttl_seconds, order_id)

    def purge(self, order_id: str, current_status: Optional[str]) -> None:
        """Delete every field and index membership of the order."""
        for hash_key in ATTRIBUTE_HASHES:
            self.store.hash_delete(hash_key, order_id)

        self._remove_from_status_indexes(order_id, current_status)
        self.store.zset_remove(ALL_ORDERS_INDEX, order_id)

        self.logger.info(
            "Order projection purged",
            extra={"correlation_id": order_id, "previous_status": current_status},
        )

    def _remove_from_status_indexes(self, order_id: str, current_status: Optional[str]) -> None:
        """Remove the order from the index order:index names and from current_status's."""
        indexed = self.indexed_status(order_id)
        for status in dict.fromkeys([current_status, indexed]):
            if status is not None:
                self.store.zset_remove(status_index_key(status), order_id)
        self.store.hash_delete(INDEX_HASH, order_id)

    def wipe(self) -> None:
        """Administrative full-store wipe (orders, indexes and chat logs alike)."""
        self.store.flush_all()
