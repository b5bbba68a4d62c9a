"""Port for observing the real-world status of shipments."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from datetime import datetime

    from shipguard.domain.model import ShipmentStatus


@dataclass(frozen=True, slots=True, kw_only=True)
class Observation:
    """One status report for a shipment."""

    shipment_id: str
    status: ShipmentStatus
    location: str | None
    note: str | None
    timestamp: datetime


@dataclass(frozen=True, slots=True, kw_only=True)
class Unavailable:
    """The oracle could not be reached; the shipment should be retried later."""

    shipment_id: str
    reason: str


type OracleResult = Observation | Unavailable


@runtime_checkable
class ShipmentOracle(Protocol):
    """Stateless, replaceable source of shipment observations.

    Implementations never raise for transport problems; they return
    :class:`Unavailable` instead so a batch can carry on with other shipments.
    """

    def observe(self, shipment_id: str) -> OracleResult: ...
