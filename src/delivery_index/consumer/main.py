"""
Delivery Index Consumer Service - Main Entry Point

Command-line interface for the worker pool that keeps the order indexes and
chat logs up to date.

USAGE:
    python -m delivery_index.consumer.main [options]
    delivery-index-consumer [options]

OPTIONS:
    --log-level        Logging level (DEBUG, INFO, WARNING, ERROR)
    --log-format       Log format (json or text)
    --status-workers   Number of status-event workers
    --chat-workers     Number of chat-event workers
    --store-backend    Index store backend (redis or memory)

GRACEFUL SHUTDOWN:
- Handles SIGINT (Ctrl+C) and SIGTERM (Docker stop)
- Every worker finishes its current event, then closes its consumer
- The index store connection is closed last
"""

import argparse
import logging
import signal
import sys
from typing import Optional

from delivery_index import __version__
from delivery_index.consumer.config import ConsumerConfig, load_config
from delivery_index.consumer.pool import WorkerPool
from delivery_index.shared.logger import setup_logger
from delivery_index.store.factory import create_index_store

# ==============================================================================
# GLOBAL STATE
# ==============================================================================
# Signal handlers need the running pool

pool_instance: Optional[WorkerPool] = None


def signal_handler(signum: int, frame) -> None:
    """Stop every worker on SIGINT / SIGTERM."""
    signal_name = signal.Signals(signum).name
    logging.getLogger(__name__).info(f"Received {signal_name}, initiating graceful shutdown...")

    if pool_instance:
        pool_instance.stop()


# ==============================================================================
# CLI ARGUMENT PARSING
# ==============================================================================


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Delivery Index Consumer Service",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Start with default settings
  delivery-index-consumer

  # Debug logging, plain text
  delivery-index-consumer --log-level DEBUG --log-format text

  # Local development without Redis
  delivery-index-consumer --store-backend memory --status-workers 1

Environment Variables:
  KAFKA_BOOTSTRAP_SERVERS    Kafka broker addresses (default: localhost:9092)
  KAFKA_TOPIC_STATUS         Status topic (default: order-status-events)
  KAFKA_TOPIC_CHAT           Chat topic (default: order-chat-events)
  STATUS_WORKERS             Status workers (default: 3)
  CHAT_WORKERS               Chat workers (default: 2)
  STORE_BACKEND              redis or memory (default: redis)
  REDIS_URL                  Redis URL (default: redis://localhost:6379/0)
  ORDER_TTL_SECONDS          Order field expiry (default: 86400)
  CHAT_RETENTION_SECONDS     Chat log expiry (default: 86400)
  DEDUP_WINDOW_SECONDS       Deduplication window (default: 300)
  LOG_LEVEL                  Logging level (default: INFO)
  LOG_FORMAT                 Log format: json or text (default: json)
        """,
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (overrides LOG_LEVEL env var)",
    )

    parser.add_argument(
        "--log-format",
        type=str,
        choices=["json", "text"],
        help="Log output format (overrides LOG_FORMAT env var)",
    )

    parser.add_argument(
        "--status-workers",
        type=int,
        help="Status-event workers (overrides STATUS_WORKERS env var)",
    )

    parser.add_argument(
        "--chat-workers",
        type=int,
        help="Chat-event workers (overrides CHAT_WORKERS env var)",
    )

    parser.add_argument(
        "--store-backend",
        type=str,
        choices=["redis", "memory"],
        help="Index store backend (overrides STORE_BACKEND env var)",
    )

    return parser.parse_args(argv)


# ==============================================================================
# MAIN FUNCTION
# ==============================================================================


def main(argv=None) -> int:
    """
    Main entry point for the consumer service.

    Returns:
        Exit code (0 = success, 1 = error)
    """
    global pool_instance

    args = parse_args(argv)

    overrides = {
        "log_level": args.log_level,
        "log_format": args.log_format,
        "status_workers": args.status_workers,
        "chat_workers": args.chat_workers,
        "store_backend": args.store_backend,
    }

    try:
        config = load_config()
        # Re-validate so CLI values get the same bounds as env values
        config = ConsumerConfig.model_validate(
            {**config.model_dump(), **{k: v for k, v in overrides.items() if v is not None}}
        )
    except Exception as e:
        print(f"ERROR: Failed to load configuration: {e}", file=sys.stderr)
        return 1

    logger = setup_logger(
        name="delivery_index",
        service_name="delivery-index-consumer",
        log_level=config.log_level,
        log_format=config.log_format,
    )

    logger.info(
        "Starting Delivery Index Consumer Service",
        extra={
            "version": __version__,
            "kafka_bootstrap_servers": config.kafka_bootstrap_servers,
            "status_topic": config.kafka_topic_status,
            "chat_topic": config.kafka_topic_chat,
            "status_workers": config.status_workers,
            "chat_workers": config.chat_workers,
            "store_backend": config.store_backend,
        },
    )

    try:
        store = create_index_store(config)
    except Exception:
        logger.error("Failed to create index store", exc_info=True)
        return 1

    if not store.ping():
        logger.error("Index store is not reachable")
        store.close()
        return 1

    try:
        pool_instance = WorkerPool(config, store)
        pool_instance.build()
    except Exception:
        logger.error("Failed to create Kafka consumers", exc_info=True)
        store.close()
        return 1

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)
    logger.info("Signal handlers registered (SIGINT, SIGTERM)")

    try:
        logger.info("Workers starting, press Ctrl+C to stop...")
        pool_instance.start()
        # Short joins keep the main thread responsive to signals
        while pool_instance.alive():
            pool_instance.join(timeout=1.0)
        logger.info(
            "All workers stopped",
            extra={"messages_processed": pool_instance.messages_processed},
        )
        return 0

    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
        pool_instance.stop()
        pool_instance.join()
        return 0

    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
