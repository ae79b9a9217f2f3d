"""
Delivery Event Producer - Main Entry Point

Runs the lifecycle simulator and publishes its status and chat events to
Kafka.

RUN MODES:
- Batch: Run for PRODUCER_DURATION seconds, then finish open orders
- Continuous: Run until stopped (PRODUCER_DURATION = 0)
- Rate-limited: PRODUCER_RATE new orders per second

USAGE:
    python -m delivery_index.producer.main
    delivery-index-producer --rate 20 --duration 120
    delivery-index-producer --bootstrap-servers kafka:9092 --seed 7
    delivery-index-producer --log-level DEBUG --log-format text
"""

import argparse
import signal
import sys
import time
from typing import Any, Dict

from delivery_index.producer.config import ProducerConfig, load_config, validate_kafka_connection
from delivery_index.producer.mock_data import LifecycleSimulator
from delivery_index.producer.publisher import EventPublisher
from delivery_index.shared.logger import setup_logger

# ==============================================================================
# GLOBAL STATE FOR SIGNAL HANDLING
# ==============================================================================

shutdown_requested = False


def signal_handler(signum, frame):
    """Leave the production loop after the current tick."""
    global shutdown_requested
    print(f"\nShutdown signal received (signal {signum}), finishing open orders...", file=sys.stderr)
    shutdown_requested = True


def publish_event(publisher: EventPublisher, event: Dict[str, Any]) -> bool:
    """Route one simulator event to the matching publish call."""
    if event["kind"] == "status":
        return publisher.publish_status(
            order_id=event["order_id"],
            status=event["status"],
            user_id=event["user_id"],
            message=event["message"],
            rider_id=event["rider_id"],
        )
    return publisher.publish_chat(
        order_id=event["order_id"],
        user_id=event["user_id"],
        role=event["role"],
        message=event["message"],
    )


# ==============================================================================
# MAIN PRODUCER FUNCTION
# ==============================================================================


def run_producer(config: ProducerConfig) -> int:
    """
    Run the producer service.

    Returns:
        Exit code (0 = success, 1 = error)

    PRODUCTION LOOP (once per second / rate):
    - Start one new order lifecycle
    - Advance every in-flight order by one step, publish its events
    - Stop on duration or signal, then drain open orders and flush
    """
    logger = setup_logger(
        name="delivery_index",
        service_name="delivery-index-producer",
        log_level=config.log_level,
        log_format=config.log_format,
    )

    logger.info(
        "Delivery event producer starting",
        extra={
            "bootstrap_servers": config.kafka_bootstrap_servers,
            "status_topic": config.kafka_topic_status,
            "chat_topic": config.kafka_topic_chat,
            "rate": config.producer_rate,
            "duration": config.producer_duration if config.producer_duration > 0 else "infinite",
        },
    )

    if not validate_kafka_connection(config):
        logger.error(
            "Cannot connect to Kafka brokers",
            extra={"bootstrap_servers": config.kafka_bootstrap_servers},
        )
        return 1

    simulator = LifecycleSimulator(seed=config.mock_seed, chat_probability=config.chat_probability)

    try:
        publisher = EventPublisher(
            kafka_config=config.get_kafka_config(),
            status_topic=config.kafka_topic_status,
            chat_topic=config.kafka_topic_chat,
        )
    except Exception as e:
        logger.error("Failed to initialize Kafka producer", exc_info=True, extra={"error": str(e)})
        return 1

    sleep_interval = 1.0 / config.producer_rate
    events_published = 0
    errors = 0
    start_time = time.time()

    try:
        while not shutdown_requested:
            if config.producer_duration > 0 and time.time() - start_time >= config.producer_duration:
                logger.info(
                    "Duration limit reached, stopping production",
                    extra={"duration": config.producer_duration, "events_published": events_published},
                )
                break

            for event in simulator.tick():
                if publish_event(publisher, event):
                    events_published += 1
                else:
                    errors += 1

            if simulator.order_sequence % 100 == 0:
                elapsed = time.time() - start_time
                logger.info(
                    "Production progress",
                    extra={
                        "orders_started": simulator.order_sequence,
                        "orders_in_flight": simulator.orders_in_flight,
                        "events_published": events_published,
                        "elapsed_seconds": round(elapsed, 2),
                        "errors": errors,
                    },
                )

            time.sleep(sleep_interval)

        # Leave no order half-way through its lifecycle
        for event in simulator.drain():
            if publish_event(publisher, event):
                events_published += 1
            else:
                errors += 1

    except KeyboardInterrupt:
        pass

    finally:
        elapsed = time.time() - start_time
        publisher.close(timeout=30.0)
        logger.info(
            "Producer shutdown complete",
            extra={
                "orders_started": simulator.order_sequence,
                "events_published": events_published,
                "errors": errors,
                "total_duration_seconds": round(elapsed, 2),
            },
        )

    return 0 if errors == 0 else 1


# ==============================================================================
# CLI ARGUMENT PARSING
# ==============================================================================


def parse_args(argv=None) -> argparse.Namespace:
    """Command-line args override environment variables."""
    parser = argparse.ArgumentParser(
        description="Delivery Event Producer - simulate order lifecycles and chat traffic",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Use environment variables (from .env)
  delivery-index-producer

  # Override rate and duration
  delivery-index-producer --rate 20 --duration 120

  # Run indefinitely with debug logging
  delivery-index-producer --duration 0 --log-level DEBUG
        """,
    )

    parser.add_argument("--bootstrap-servers", type=str, help="Kafka bootstrap servers (default: from config)")
    parser.add_argument("--rate", type=int, help="New orders per second (1-1000, default: from config)")
    parser.add_argument("--duration", type=int, help="Run duration in seconds (0=infinite, default: from config)")
    parser.add_argument("--seed", type=int, help="Random seed for reproducible data (default: from config)")
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: from config)",
    )
    parser.add_argument(
        "--log-format",
        type=str,
        choices=["json", "text"],
        help="Log output format (default: from config)",
    )

    return parser.parse_args(argv)


# ==============================================================================
# MAIN ENTRY POINT
# ==============================================================================


def main(argv=None) -> int:
    args = parse_args(argv)

    overrides = {
        "kafka_bootstrap_servers": args.bootstrap_servers,
        "producer_rate": args.rate,
        "producer_duration": args.duration,
        "mock_seed": args.seed,
        "log_level": args.log_level,
        "log_format": args.log_format,
    }

    try:
        config = load_config()
        config = ProducerConfig.model_validate(
            {**config.model_dump(), **{k: v for k, v in overrides.items() if v is not None}}
        )
    except Exception as e:
        print(f"ERROR: Invalid configuration: {e}", file=sys.stderr)
        return 1

    print(config.display_config())

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    return run_producer(config)


if __name__ == "__main__":
    sys.exit(main())
