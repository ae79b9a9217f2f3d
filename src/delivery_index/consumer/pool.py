"""
Worker Pool

Runs a bounded number of EventConsumer workers per topic, each on its own
thread with its own Kafka consumer. Workers of one topic share a consumer
group, so Kafka splits that topic's partitions between them.

    ┌──────────────┐   status-0 ─┐
    │ status topic │── status-1 ─┼─→ OrderIndexMaintainer ─┐
    └──────────────┘   status-2 ─┘                         ├─→ index store
    ┌──────────────┐   chat-0  ──┐                         │
    │ chat topic   │── chat-1  ──┴─→ ChatLogMaintainer ────┘
    └──────────────┘

More workers than partitions leaves the extra workers idle.
"""

import logging
import threading
from typing import Callable, List, Optional

from delivery_index.consumer.config import ConsumerConfig
from delivery_index.consumer.consumer import EventConsumer, EventHandler
from delivery_index.consumer.handlers import ChatEventHandler, StatusEventHandler
from delivery_index.index.service import IndexService
from delivery_index.store.base import IndexStore

ConsumerFactory = Callable[..., EventConsumer]


class WorkerPool:
    """Owns the worker threads of both topics."""

    def __init__(
        self,
        config: ConsumerConfig,
        store: IndexStore,
        consumer_factory: Optional[ConsumerFactory] = None,
    ):
        self.config = config
        self.store = store
        self.consumer_factory = consumer_factory or EventConsumer
        self.service = IndexService.from_settings(config, store=store)
        self.workers: List[EventConsumer] = []
        self.threads: List[threading.Thread] = []
        self.logger = logging.getLogger(__name__)

    def build(self) -> List[EventConsumer]:
        """Create every worker (one Kafka consumer each) without starting them."""
        status_handler = StatusEventHandler(self.service.maintainer())
        chat_handler = ChatEventHandler(self.service.chat_log)

        for index in range(self.config.status_workers):
            self._add_worker(
                self.config.kafka_topic_status, self.config.status_group_id, status_handler, f"status-{index}"
            )
        for index in range(self.config.chat_workers):
            self._add_worker(
                self.config.kafka_topic_chat, self.config.chat_group_id, chat_handler, f"chat-{index}"
            )

        self.logger.info(
            "Worker pool built",
            extra={"status_workers": self.config.status_workers, "chat_workers": self.config.chat_workers},
        )
        return self.workers

    def _add_worker(self, topic: str, group_id: str, handler: EventHandler, name: str) -> None:
        worker = self.consumer_factory(
            config=self.config,
            topic=topic,
            group_id=group_id,
            handler=handler,
            store=self.store,
            worker_name=name,
        )
        self.workers.append(worker)

    def start(self) -> None:
        """Start one thread per worker."""
        if not self.workers:
            self.build()
        for worker in self.workers:
            thread = threading.Thread(target=self._run_worker, args=(worker,), name=worker.worker_name, daemon=True)
            self.threads.append(thread)
            thread.start()

    def _run_worker(self, worker: EventConsumer) -> None:
        try:
            worker.start()
        except Exception:
            # A dead worker's partitions are reassigned to its group peers
            self.logger.error("Worker exited with error", exc_info=True, extra={"worker": worker.worker_name})

    def stop(self) -> None:
        for worker in self.workers:
            worker.stop()

    def join(self, timeout: Optional[float] = None) -> None:
        for thread in self.threads:
            thread.join(timeout)

    def alive(self) -> bool:
        return any(thread.is_alive() for thread in self.threads)

    @property
    def messages_processed(self) -> int:
        return sum(worker.messages_processed for worker in self.workers)
