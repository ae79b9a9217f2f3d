"""
Order Query Engine

Read paths over the indexes the maintainer writes. Queries never fail for
unknown, purged or expired orders; they return empty results. Any order
whose projection cannot be rebuilt (missing status, body or user id) is
left out of every result, and an order is only returned under a status
its recorded status matches.

ORDERING:
- by_status:          most recent event first (reverse score)
- by_order_id:        all-orders index, oldest first
- by_user_or_rider:   merged across statuses, then ascending order id
"""

from enum import Enum
from operator import attrgetter
from typing import Iterable, List, Optional

from delivery_index.index.models import OrderProjection
from delivery_index.index.repository import OrderProjectionRepository


class Role(Enum):
    """Which party an id refers to; each member carries its projection field."""

    USER = ("user", attrgetter("user_id"))
    RIDER = ("rider", attrgetter("rider_id"))

    def __init__(self, label: str, selector):
        self.label = label
        self.selector = selector

    def party_id(self, projection: OrderProjection) -> Optional[str]:
        return self.selector(projection)

    @classmethod
    def parse(cls, value: str) -> "Role":
        """
        Role from its name or label, case-insensitive ("USER", "rider", ...).

        Raises:
            ValueError: For anything else
        """
        normalized = value.strip().lower()
        for role in cls:
            if role.label == normalized:
                return role
        raise ValueError(f"Unknown role: {value!r}")


class OrderQueryEngine:
    """Multi-dimensional reads over order projections."""

    def __init__(self, repository: OrderProjectionRepository):
        self.repository = repository

    def _build_all(self, order_ids: Iterable[str], status: Optional[str] = None) -> List[OrderProjection]:
        """Load each order; with ``status``, drop any whose recorded status differs."""
        projections = []
        for order_id in order_ids:
            projection = self.repository.load(order_id)
            if projection is None:
                continue
            if status is not None and projection.status != status:
                continue
            projections.append(projection)
        return projections

    def by_status(self, status: str) -> List[OrderProjection]:
        """Orders currently indexed under ``status``, most recent first."""
        return self._build_all(self.repository.members_newest_first(status), status=status)

    def by_order_id(self, order_id: str) -> List[OrderProjection]:
        """The order's projection as a one-element list, or [] if not indexed."""
        matches = (oid for oid in self.repository.indexed_order_ids() if oid == order_id)
        return self._build_all(matches)

    def by_user_or_rider(
        self, party_id: str, statuses: Iterable[str], role: Role
    ) -> List[OrderProjection]:
        """
        Orders of one user or rider across several statuses.

        Each status is read with ``by_status`` and filtered on the role's id
        field; the concatenation is sorted by order id ascending, whatever
        the recency order inside each status.
        """
        merged = [
            projection
            for status in statuses
            for projection in self.by_status(status)
            if role.party_id(projection) == party_id
        ]
        merged.sort(key=lambda p: p.order_id)
        return merged

    def by_order_and_status(self, order_id: str, status: str) -> Optional[OrderProjection]:
        """
        The order's projection if it is currently indexed under ``status``.

        Membership is checked on the status index first, so an order whose
        hash fields exist but which is indexed elsewhere is never returned.
        """
        if not self.repository.is_indexed_under(order_id, status):
            return None
        projection = self.repository.load(order_id)
        if projection is None or projection.status != status:
            return None
        return projection

    def all(self) -> List[OrderProjection]:
        """Every order with a recorded status and a complete projection."""
        return self._build_all(self.repository.recorded_order_ids())
