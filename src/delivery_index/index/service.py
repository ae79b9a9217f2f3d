"""
Index Service

Transport-independent query surface. An HTTP or RPC layer maps its routes
one-to-one onto these methods; nothing here knows about requests.

Usage:
    settings = load_settings()
    service = IndexService.from_settings(settings)
    service.orders_by_status("delivering")
    service.active_orders("rider-7", Role.RIDER)
    service.order_count("user-3", "user")
    service.chat_messages("ORD-20250110-00001", since_timestamp=0)
"""

import logging
from typing import List, Optional, Union

from delivery_index.index.chat import ChatLogMaintainer
from delivery_index.index.maintainer import OrderIndexMaintainer
from delivery_index.index.models import ChatEntry, OrderProjection
from delivery_index.index.query import OrderQueryEngine, Role
from delivery_index.index.repository import OrderProjectionRepository
from delivery_index.shared.config import IndexSettings
from delivery_index.store.base import IndexStore
from delivery_index.store.factory import create_index_store

RoleLike = Union[Role, str]


def as_role(role: RoleLike) -> Role:
    """Accept a Role or its name as a transport passes it ("user", "RIDER").

    Raises:
        ValueError: For an unknown role name
    """
    return role if isinstance(role, Role) else Role.parse(role)


class IndexService:
    """Query engine, chat reads, counts and the administrative wipe."""

    def __init__(
        self,
        repository: OrderProjectionRepository,
        chat_log: ChatLogMaintainer,
        settings: IndexSettings,
    ):
        self.repository = repository
        self.chat_log = chat_log
        self.settings = settings
        self.query = OrderQueryEngine(repository)
        self.logger = logging.getLogger(__name__)

    @classmethod
    def from_settings(cls, settings: IndexSettings, store: Optional[IndexStore] = None) -> "IndexService":
        store = store or create_index_store(settings)
        return cls(
            repository=OrderProjectionRepository(store, settings.order_ttl_seconds),
            chat_log=ChatLogMaintainer(store, settings.chat_retention_seconds),
            settings=settings,
        )

    def maintainer(self) -> OrderIndexMaintainer:
        """A maintainer writing to the same store this service reads."""
        return OrderIndexMaintainer(
            repository=self.repository,
            chat_log=self.chat_log,
            terminal_status=self.settings.terminal_status,
            rider_assigned_statuses=self.settings.rider_assigned_statuses,
        )

    # ── Order queries ────────────────────────────────────────

    def orders_by_status(self, status: str) -> List[OrderProjection]:
        return self.query.by_status(status)

    def orders_by_order_id(self, order_id: str) -> List[OrderProjection]:
        return self.query.by_order_id(order_id)

    def orders_by_party(
        self, party_id: str, role: RoleLike, status: Optional[str] = None
    ) -> List[OrderProjection]:
        """A party's orders in one status, or across all active delivery statuses."""
        statuses = [status] if status else self.settings.active_delivery_statuses
        return self.query.by_user_or_rider(party_id, statuses, as_role(role))

    def order_by_id_and_status(self, order_id: str, status: str) -> Optional[OrderProjection]:
        return self.query.by_order_and_status(order_id, status)

    def all_orders(self) -> List[OrderProjection]:
        return self.query.all()

    def active_orders(self, party_id: str, role: RoleLike) -> List[OrderProjection]:
        return self.query.by_user_or_rider(party_id, self.settings.active_delivery_statuses, as_role(role))

    def order_count(self, party_id: str, role: RoleLike) -> int:
        return len(self.query.by_user_or_rider(party_id, self.settings.order_count_statuses, as_role(role)))

    def chat_count(self, party_id: str, role: RoleLike) -> int:
        """Number of the party's orders that have an open conversation."""
        return len(self.query.by_user_or_rider(party_id, self.settings.active_delivery_statuses, as_role(role)))

    # ── Chat ─────────────────────────────────────────────────

    def chat_messages(self, order_id: str, since_timestamp: int = 0) -> List[ChatEntry]:
        return self.chat_log.read(order_id, since_timestamp)

    # ── Administration ───────────────────────────────────────

    def wipe(self) -> None:
        self.logger.warning("Wiping the whole index store")
        self.repository.wipe()
