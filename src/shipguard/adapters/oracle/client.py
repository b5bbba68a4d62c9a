"""HTTP client for a carrier status endpoint."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

import httpx
from pydantic import ValidationError

from shipguard.adapters.http_resilience import ResilientClient
from shipguard.config import ResilienceConfig
from shipguard.domain.ports.oracle import Observation, Unavailable

from .schema import ObservationPayload

if TYPE_CHECKING:
    from collections.abc import Callable

    from shipguard.domain.ports.oracle import OracleResult, ShipmentOracle

log = getLogger(__name__)


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(slots=True)
class HttpShipmentOracle:
    """Reads ``GET /shipments/{id}/status`` and never raises for transport problems."""

    resilience: ResilienceConfig
    api_key: str | None = None
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )
    clock: Callable[[], datetime] = _utcnow

    def observe(self, shipment_id: str) -> OracleResult:
        return asyncio.run(self._observe_async(shipment_id))

    async def _observe_async(self, shipment_id: str) -> OracleResult:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            async with self.client_factory(self.resilience) as client:
                response = await client.get(f"/shipments/{shipment_id}/status", headers=headers)
                response.raise_for_status()
                payload = ObservationPayload.model_validate(response.json())
        except httpx.TimeoutException:
            return self._unavailable(shipment_id, "oracle request timed out")
        except httpx.HTTPStatusError as exc:
            return self._unavailable(
                shipment_id, f"oracle returned HTTP {exc.response.status_code}"
            )
        except httpx.HTTPError as exc:
            return self._unavailable(shipment_id, f"oracle request failed: {exc}")
        except (ValidationError, ValueError) as exc:
            return self._unavailable(shipment_id, f"invalid oracle payload: {exc}")

        if payload.shipment_id != shipment_id:
            return self._unavailable(
                shipment_id, f"oracle answered for shipment {payload.shipment_id}"
            )

        return Observation(
            shipment_id=shipment_id,
            status=payload.status,
            location=payload.location,
            note=payload.note,
            timestamp=payload.timestamp or self.clock(),
        )

    @staticmethod
    def _unavailable(shipment_id: str, reason: str) -> Unavailable:
        log.debug("Oracle request for %s failed: %s", shipment_id, reason)
        return Unavailable(shipment_id=shipment_id, reason=reason)


if TYPE_CHECKING:
    _oracle_check: ShipmentOracle = HttpShipmentOracle(resilience=ResilienceConfig(name="oracle"))
