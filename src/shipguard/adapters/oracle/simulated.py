"""Randomised stand-in for a carrier tracking feed."""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING, Final

from shipguard.domain.model import ShipmentStatus
from shipguard.domain.ports.oracle import Observation, Unavailable

if TYPE_CHECKING:
    from collections.abc import Callable

    from shipguard.domain.ports.oracle import OracleResult, ShipmentOracle

log = getLogger(__name__)

# Cumulative thresholds: 85% delivered, 10% damaged, 5% lost.
DELIVERED_THRESHOLD: Final[float] = 0.85
DAMAGED_THRESHOLD: Final[float] = 0.95

LOCATIONS: Final[tuple[str, ...]] = (
    "Hanoi, Vietnam",
    "Ho Chi Minh City, Vietnam",
    "Da Nang, Vietnam",
    "Singapore",
    "Bangkok, Thailand",
)

STATUS_NOTES: Final[dict[ShipmentStatus, str]] = {
    ShipmentStatus.IN_TRANSIT: "Goods are in transit",
    ShipmentStatus.DELIVERED: "Goods were delivered successfully",
    ShipmentStatus.DAMAGED: "Goods were damaged in transit",
    ShipmentStatus.LOST: "Goods were lost in transit",
}

type ScriptedResult = ShipmentStatus | Unavailable


def _utcnow() -> datetime:
    return datetime.now(UTC)


def draw_status(roll: float) -> ShipmentStatus:
    """Map a uniform roll in ``[0, 1)`` onto a shipment status."""

    if roll < DELIVERED_THRESHOLD:
        return ShipmentStatus.DELIVERED
    if roll < DAMAGED_THRESHOLD:
        return ShipmentStatus.DAMAGED
    return ShipmentStatus.LOST


@dataclass(slots=True)
class SimulatedShipmentOracle:
    """Oracle that invents plausible outcomes.

    ``scripted`` pins the answer for specific shipments; everything else is drawn
    from ``rng``. A drawn outcome is final: later observations of the same
    shipment repeat it, the way a carrier keeps reporting a closed shipment.
    """

    rng: random.Random = field(default_factory=random.Random)
    clock: Callable[[], datetime] = _utcnow
    scripted: dict[str, ScriptedResult] = field(default_factory=dict[str, "ScriptedResult"])
    locations: tuple[str, ...] = LOCATIONS
    reported: dict[str, ShipmentStatus] = field(default_factory=dict[str, ShipmentStatus])

    @classmethod
    def seeded(cls, seed: int | None) -> SimulatedShipmentOracle:
        return cls(rng=random.Random(seed))

    def script(self, shipment_id: str, result: ScriptedResult) -> None:
        self.scripted[shipment_id] = result

    def observe(self, shipment_id: str) -> OracleResult:
        scripted = self.scripted.get(shipment_id)
        if isinstance(scripted, Unavailable):
            return scripted
        status = scripted if scripted is not None else self._outcome(shipment_id)
        observation = Observation(
            shipment_id=shipment_id,
            status=status,
            location=self.rng.choice(self.locations),
            note=STATUS_NOTES[status],
            timestamp=self.clock(),
        )
        log.debug("Simulated %s for shipment %s", status, shipment_id)
        return observation

    def _outcome(self, shipment_id: str) -> ShipmentStatus:
        status = self.reported.get(shipment_id)
        if status is None:
            status = self.reported.setdefault(shipment_id, draw_status(self.rng.random()))
        return status


if TYPE_CHECKING:
    _oracle_check: ShipmentOracle = SimulatedShipmentOracle()
