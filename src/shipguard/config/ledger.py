"""Ledger connection configuration values."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, cast

from .env import optional_env_var, require_env_vars
from .errors import ConfigurationError
from .http_resilience import ResilienceConfig, RetryPolicy

LEDGER_TIMEOUT_SECONDS = 30.0
DEFAULT_OWNER_ADDRESS = "0x0000000000000000000000000000000000000001"
DEFAULT_ORACLE_ADDRESS = "0x0000000000000000000000000000000000000002"

type LedgerBackend = Literal["local", "memory", "http"]
LEDGER_BACKENDS: frozenset[str] = frozenset({"local", "memory", "http"})


@dataclass(frozen=True, slots=True)
class LedgerConfig:
    """Identity and transport settings for the funds ledger.

    ``oracle_address`` is the only identity allowed to author status updates;
    the reconciliation engine is its sole user. The ``local`` backend keeps a
    simulated contract in the mirror database, ``memory`` keeps it in the
    process and ``http`` talks to a ledger gateway.
    """

    backend: LedgerBackend
    oracle_address: str
    owner_address: str = DEFAULT_OWNER_ADDRESS
    api_key: str | None = None
    resilience: ResilienceConfig | None = None


def get_ledger_config() -> LedgerConfig:
    backend = optional_env_var("LEDGER_BACKEND", "local")
    if backend not in LEDGER_BACKENDS:
        raise ConfigurationError(f"Unsupported ledger backend: {backend}")

    if backend != "http":
        return LedgerConfig(
            backend=cast("LedgerBackend", backend),
            oracle_address=optional_env_var("ORACLE_ADDRESS", DEFAULT_ORACLE_ADDRESS)
            or DEFAULT_ORACLE_ADDRESS,
            owner_address=optional_env_var("LEDGER_OWNER_ADDRESS", DEFAULT_OWNER_ADDRESS)
            or DEFAULT_OWNER_ADDRESS,
        )

    values = require_env_vars(("LEDGER_URL", "LEDGER_API_KEY", "ORACLE_ADDRESS"))
    return LedgerConfig(
        backend=cast("LedgerBackend", backend),
        oracle_address=values["ORACLE_ADDRESS"],
        api_key=values["LEDGER_API_KEY"],
        resilience=ResilienceConfig(
            name="ledger",
            base_url=values["LEDGER_URL"].rstrip("/"),
            timeout_seconds=LEDGER_TIMEOUT_SECONDS,
            retry=RetryPolicy(total=2),
        ),
    )
