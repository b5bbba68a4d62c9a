"""Logging setup shared by the CLI and the scheduler."""

from __future__ import annotations

import logging
from typing import Final

from .env import optional_env_var
from .errors import ConfigurationError

LOG_FORMAT: Final[str] = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
LOG_DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"
# HTTP client loggers emit a line per carrier and ledger request at INFO.
NOISY_LOGGERS: Final[tuple[str, ...]] = ("httpx", "httpcore")


def log_level_from_env(default: int = logging.INFO) -> int:
    raw = optional_env_var("LOG_LEVEL")
    if raw is None:
        return default
    level = logging.getLevelNamesMapping().get(raw.upper())
    if level is None:
        raise ConfigurationError(f"LOG_LEVEL must be a logging level name, got {raw!r}")
    return level


def configure_logging(*, level: int | None = None, force: bool = False) -> None:
    """Initialise the root logger once for a daemon-style process.

    An explicit ``level`` wins over ``LOG_LEVEL``. HTTP client loggers stay at
    WARNING unless the process runs at DEBUG. Pass ``force=True`` to reconfigure
    during tests.
    """

    effective = level if level is not None else log_level_from_env()
    logging.basicConfig(
        level=effective,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        force=force,
    )
    quiet_level = effective if effective <= logging.DEBUG else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)
