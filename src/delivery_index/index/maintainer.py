"""
Order Index Maintainer

Applies one status event to the order projections. The event stream of a
single order must be fed in publish order by a single caller at a time;
the consumers get that from the queue's ordering key. Nothing here locks
across orders or across calls.

APPLY SEQUENCE:
┌─────────────────────────────────────────────────────────────────────────┐
│ 1. Read current status + rider id                    (absent → new)    │
│ 2. Same status and same stored rider id?             → STALE, no write │
│ 3. Terminal status?  purge projection + chat log     → PURGED          │
│ 4. Parse timestamp   (InvalidTimestampError before any write)          │
│ 5. Detach from the current status index                                │
│ 6. Attach under the new status, write attribute fields                 │
│ 7. Refresh expiry on all attribute fields            → APPLIED         │
└─────────────────────────────────────────────────────────────────────────┘

The sequence is not transactional: store errors propagate from whichever
step raised, and the steps already done stay done. The consumer does not
acknowledge such an event, so redelivery repeats the sequence from step 1.
"""

import logging
from enum import Enum
from typing import Iterable, Optional

from delivery_index.index.chat import ChatLogMaintainer
from delivery_index.index.extractor import parse_status_timestamp
from delivery_index.index.models import OrderProjection, StatusEvent
from delivery_index.index.repository import OrderProjectionRepository
from delivery_index.shared.logger import CorrelationAdapter


class ApplyOutcome(str, Enum):
    """What ``OrderIndexMaintainer.apply`` did with an event."""

    APPLIED = "applied"
    STALE = "stale"
    PURGED = "purged"


class OrderIndexMaintainer:
    """
    Moves orders between status indexes as their status events arrive.

    Attributes:
        repository: Typed access to the order projections
        chat_log: Chat logs, purged together with a terminated order
        terminal_status: Status that deletes the order
        rider_assigned_statuses: Statuses for which the rider id is recorded
    """

    def __init__(
        self,
        repository: OrderProjectionRepository,
        chat_log: ChatLogMaintainer,
        terminal_status: str,
        rider_assigned_statuses: Iterable[str],
    ):
        self.repository = repository
        self.chat_log = chat_log
        self.terminal_status = terminal_status
        self.rider_assigned_statuses = frozenset(rider_assigned_statuses)
        self.logger = logging.getLogger(__name__)

    def recorded_rider_id(self, event: StatusEvent) -> Optional[str]:
        """Rider id the event leaves in the projection (None before assignment)."""
        if event.status in self.rider_assigned_statuses:
            return event.rider_id
        return None

    def apply(self, event: StatusEvent) -> ApplyOutcome:
        """
        Apply one status event.

        Returns:
            APPLIED, STALE or PURGED

        Raises:
            InvalidTimestampError: Timestamp unparsable; nothing was written
            redis.RedisError: Store failure; earlier steps may have been written
        """
        order_id = event.order_id
        order_logger = CorrelationAdapter(self.logger, {"correlation_id": order_id})

        current_status, current_rider_id = self.repository.current_status_and_rider(order_id)

        # A rider id is only ever stored for rider-assigned statuses, so the
        # incoming side is compared by what it would store, not by what it carries.
        if (
            current_status is not None
            and event.status == current_status
            and self.recorded_rider_id(event) == current_rider_id
        ):
            order_logger.info(
                "Stale status event, already applied",
                extra={"status": event.status, "rider_id": current_rider_id},
            )
            return ApplyOutcome.STALE

        if event.status == self.terminal_status:
            self.chat_log.purge(order_id)
            self.repository.purge(order_id, current_status)
            return ApplyOutcome.PURGED

        score = parse_status_timestamp(event.timestamp, order_id=order_id)

        # Also finds the index of an order whose attribute fields lapsed
        previous_index = self.repository.detach(order_id, current_status)
        if previous_index is not None:
            order_logger.debug(
                "Detached from previous status index",
                extra={"previous_status": previous_index},
            )

        projection = OrderProjection(
            order_id=order_id,
            status=event.status,
            user_id=event.user_id,
            rider_id=self.recorded_rider_id(event),
            message_body=event.body,
        )
        self.repository.attach(projection, score)
        self.repository.refresh_expiry(order_id)

        order_logger.info(
            "Order projection updated",
            extra={
                "previous_status": current_status,
                "status": projection.status,
                "user_id": projection.user_id,
                "rider_id": projection.rider_id,
                "score": score,
            },
        )
        return ApplyOutcome.APPLIED
