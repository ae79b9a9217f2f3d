"""
Shared Index Configuration

Settings every component that touches the index store needs: which store
backend to use, expiry windows, and the status vocabulary that drives the
maintainer and the query conveniences.

CONFIGURATION SOURCES (priority order):
1. Environment variables (highest priority)
2. .env file (loaded by python-dotenv)
3. Default values (fallback)

List settings are read from the environment as JSON, e.g.
RIDER_ASSIGNED_STATUSES='["assigned", "delivering", "delivered"]'.
"""

from typing import List

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings

# Load .env file if present (local development)
load_dotenv()

ONE_DAY_SECONDS = 24 * 60 * 60


class IndexSettings(BaseSettings):
    """
    Store and status-vocabulary settings shared by consumers and queries.

    Attributes:
        store_backend: "redis" for production, "memory" for development
        redis_url: Redis connection URL (redis backend only)
        order_ttl_seconds: Expiry of each order hash field, refreshed per update
        chat_retention_seconds: Expiry of a chat log, refreshed per append
        dedup_window_seconds: How long a processed deduplication key is remembered
        terminal_status: Status whose arrival purges the order and its chat log
        rider_assigned_statuses: Statuses for which the rider id is recorded
        active_delivery_statuses: Statuses listed as a party's active deliveries
        order_count_statuses: Statuses counted by the order count query
    """

    # === STORE ===
    store_backend: str = Field(
        default="redis",
        pattern="^(redis|memory)$",
        description="Index store backend: redis or memory",
    )

    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL",
    )

    # === EXPIRY ===
    order_ttl_seconds: int = Field(
        default=ONE_DAY_SECONDS,
        ge=1,
        description="Expiry of order hash fields, refreshed on every applied event",
    )

    chat_retention_seconds: int = Field(
        default=ONE_DAY_SECONDS,
        ge=1,
        description="Chat log expiry, refreshed on every appended message",
    )

    dedup_window_seconds: int = Field(
        default=300,
        ge=1,
        le=ONE_DAY_SECONDS,
        description="Window in which a repeated deduplication key is dropped",
    )

    # === STATUS VOCABULARY ===
    terminal_status: str = Field(
        default="done",
        min_length=1,
        description="Status that deletes the order projection and chat log",
    )

    rider_assigned_statuses: List[str] = Field(
        default=["assigned", "delivering", "delivered"],
        description="Statuses at or past rider assignment (rider id is written)",
    )

    active_delivery_statuses: List[str] = Field(
        default=["delivering", "delivered"],
        description="Statuses of a user's or rider's active deliveries",
    )

    order_count_statuses: List[str] = Field(
        default=["pending", "delivering", "delivered"],
        description="Statuses counted by the order count query",
    )

    # === LOGGING ===
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )

    log_format: str = Field(
        default="json",
        description="Log output format (json or text)",
    )

    class Config:
        """Pydantic configuration."""

        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


def load_settings() -> IndexSettings:
    """Load and validate the shared index settings."""
    return IndexSettings()
