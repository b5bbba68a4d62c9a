"""Shipment status oracle configuration values."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, cast

from .env import env_int, optional_env_var, require_env_vars
from .errors import ConfigurationError
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy

ORACLE_TIMEOUT_SECONDS = 10.0

type OracleBackend = Literal["simulated", "http"]


@dataclass(frozen=True, slots=True)
class OracleConfig:
    backend: OracleBackend
    api_key: str | None = None
    seed: int | None = None
    resilience: ResilienceConfig | None = None


def get_oracle_config() -> OracleConfig:
    backend = optional_env_var("ORACLE_BACKEND", "simulated")
    if backend not in {"simulated", "http"}:
        raise ConfigurationError(f"Unsupported oracle backend: {backend}")

    if backend == "simulated":
        seed = env_int("ORACLE_SEED", -1)
        return OracleConfig(backend="simulated", seed=seed if seed >= 0 else None)

    values = require_env_vars(("ORACLE_URL", "ORACLE_API_KEY"))
    return OracleConfig(
        backend=cast("OracleBackend", backend),
        api_key=values["ORACLE_API_KEY"],
        resilience=ResilienceConfig(
            name="oracle",
            base_url=values["ORACLE_URL"].rstrip("/"),
            timeout_seconds=ORACLE_TIMEOUT_SECONDS,
            retry=RetryPolicy(total=2),
            ratelimit=RateLimit(max_calls=5, per_seconds=1.0),
        ),
    )
