"""Scheduling defaults for reconciliation cycles."""

from __future__ import annotations

from dataclasses import dataclass

from .env import env_bool, env_float, env_int
from .errors import ConfigurationError

DEFAULT_INTERVAL_SECONDS = 300.0
DEFAULT_MAX_CONCURRENCY = 1
DEFAULT_ITEM_DELAY_SECONDS = 1.0


@dataclass(frozen=True, slots=True)
class ReconciliationConfig:
    interval_seconds: float = DEFAULT_INTERVAL_SECONDS
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    inter_item_delay_seconds: float = DEFAULT_ITEM_DELAY_SECONDS
    expire_overdue: bool = True


def get_reconciliation_config() -> ReconciliationConfig:
    config = ReconciliationConfig(
        interval_seconds=env_float("RECONCILIATION_INTERVAL_SECONDS", DEFAULT_INTERVAL_SECONDS),
        max_concurrency=env_int("RECONCILIATION_MAX_CONCURRENCY", DEFAULT_MAX_CONCURRENCY),
        inter_item_delay_seconds=env_float(
            "RECONCILIATION_ITEM_DELAY_SECONDS", DEFAULT_ITEM_DELAY_SECONDS
        ),
        expire_overdue=env_bool("RECONCILIATION_EXPIRE_OVERDUE", default=True),
    )
    if config.interval_seconds <= 0:
        raise ConfigurationError("RECONCILIATION_INTERVAL_SECONDS must be positive")
    if config.max_concurrency < 1:
        raise ConfigurationError("RECONCILIATION_MAX_CONCURRENCY must be at least 1")
    if config.inter_item_delay_seconds < 0:
        raise ConfigurationError("RECONCILIATION_ITEM_DELAY_SECONDS must be non-negative")
    return config
