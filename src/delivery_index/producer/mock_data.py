"""
Order Lifecycle Simulator

Generates realistic delivery traffic for the index pipeline: orders that walk
through the status lifecycle, with chat messages between user and rider
sprinkled in.

LIFECYCLE:
    placed → pending → assigned → delivering → delivered → done

- Before "assigned" the status events carry no rider id (the publisher sends
  defaultRiderId)
- From "assigned" on they carry the order's rider
- Chat messages come from the user at any time, from the rider only once
  assigned
- "done" is terminal: the consumer deletes the order and its conversation

DATA GENERATION STRATEGY:
1. Generate a fixed user pool (100) and rider pool (20) with Faker names
2. Each new order picks a user, a rider and a restaurant
3. Many orders are in flight at once; each tick advances every one of them
   by a single step, so per-order events stay in lifecycle order while
   orders interleave

Seeded: the same seed yields the same users, riders, orders and messages.
"""

import random
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional

from faker import Faker

RANDOM_SEED = 42

NUM_USERS = 100
NUM_RIDERS = 20

# ORD-YYYYMMDD-NNNNN
ORDER_ID_FORMAT = "ORD-{date}-{sequence:05d}"

LIFECYCLE = ["placed", "pending", "assigned", "delivering", "delivered", "done"]
RIDER_ASSIGNED_FROM = LIFECYCLE.index("assigned")

STATUS_NOTES = {
    "placed": "Order placed at {restaurant}",
    "pending": "{restaurant} is preparing your order",
    "assigned": "{rider} will pick up your order",
    "delivering": "{rider} is on the way",
    "delivered": "Order handed over by {rider}",
    "done": "Order closed",
}


class LifecycleSimulator:
    """
    Produces status and chat events for simulated orders.

    Events are plain dicts, ready for ``EventPublisher``:

        {"kind": "status", "order_id", "status", "user_id", "rider_id", "message"}
        {"kind": "chat", "order_id", "user_id", "role", "message"}

    Attributes:
        users: Pool of user dicts (user_id, name)
        riders: Pool of rider dicts (rider_id, name)
        chat_probability: Chance of a chat message after each non-terminal step
        order_sequence: Counter for sequential order IDs
    """

    def __init__(self, seed: int = RANDOM_SEED, chat_probability: float = 0.3):
        self.seed = seed
        self.random = random.Random(seed)
        self.fake = Faker()
        self.fake.seed_instance(seed)
        self.chat_probability = chat_probability

        self.users = [
            {"user_id": f"USER-{i:05d}", "name": self.fake.name()} for i in range(1, NUM_USERS + 1)
        ]
        self.riders = [
            {"rider_id": f"RIDER-{i:03d}", "name": self.fake.first_name()} for i in range(1, NUM_RIDERS + 1)
        ]

        self.order_sequence = 0
        self._in_flight: List[Iterator[List[Dict[str, Any]]]] = []

    def generate_order_id(self) -> str:
        self.order_sequence += 1
        today = datetime.now().strftime("%Y%m%d")
        return ORDER_ID_FORMAT.format(date=today, sequence=self.order_sequence)

    def new_order(self) -> Dict[str, str]:
        """Pick the participants of a fresh order."""
        user = self.random.choice(self.users)
        rider = self.random.choice(self.riders)
        return {
            "order_id": self.generate_order_id(),
            "user_id": user["user_id"],
            "rider_id": rider["rider_id"],
            "rider_name": rider["name"],
            "restaurant": self.fake.company(),
        }

    def lifecycle(self, order: Dict[str, str]) -> Iterator[List[Dict[str, Any]]]:
        """
        Yield the events of one order, one lifecycle step per item.

        A step is the status event, optionally followed by a chat message.
        """
        for position, status in enumerate(LIFECYCLE):
            rider_assigned = position >= RIDER_ASSIGNED_FROM
            step = [
                {
                    "kind": "status",
                    "order_id": order["order_id"],
                    "status": status,
                    "user_id": order["user_id"],
                    "rider_id": order["rider_id"] if rider_assigned else None,
                    "message": STATUS_NOTES[status].format(
                        restaurant=order["restaurant"], rider=order["rider_name"]
                    ),
                }
            ]
            if status != LIFECYCLE[-1] and self.random.random() < self.chat_probability:
                step.append(self._chat(order, rider_assigned))
            yield step

    def _chat(self, order: Dict[str, str], rider_assigned: bool) -> Dict[str, Any]:
        role = "rider" if rider_assigned and self.random.random() < 0.5 else "user"
        return {
            "kind": "chat",
            "order_id": order["order_id"],
            "user_id": order["user_id"] if role == "user" else order["rider_id"],
            "role": role,
            "message": self.fake.sentence(nb_words=8),
        }

    def tick(self, new_orders: int = 1) -> List[Dict[str, Any]]:
        """
        Start ``new_orders`` orders and advance every in-flight order by one step.

        Returns:
            Events to publish, in publish order
        """
        for _ in range(new_orders):
            self._in_flight.append(self.lifecycle(self.new_order()))

        events: List[Dict[str, Any]] = []
        still_running = []
        for steps in self._in_flight:
            step: Optional[List[Dict[str, Any]]] = next(steps, None)
            if step is None:
                continue
            events.extend(step)
            still_running.append(steps)
        self._in_flight = still_running
        return events

    def drain(self) -> List[Dict[str, Any]]:
        """Finish every in-flight order (used on shutdown so no order is left open)."""
        events: List[Dict[str, Any]] = []
        while self._in_flight:
            events.extend(self.tick(new_orders=0))
        return events

    @property
    def orders_in_flight(self) -> int:
        return len(self._in_flight)
