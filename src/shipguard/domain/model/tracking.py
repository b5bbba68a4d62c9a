"""Append-only audit trail of oracle observations."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime

    from .enums import ShipmentStatus


@dataclass(eq=False, kw_only=True)
class TrackingEntry:
    shipment_id: str
    status: ShipmentStatus
    location: str | None
    note: str | None
    timestamp: datetime
    id: int | None = None


@dataclass(frozen=True, slots=True)
class TrackingStats:
    """Observation counts across the whole tracking log."""

    total: int
    by_status: dict[ShipmentStatus, int]

    def count(self, status: ShipmentStatus) -> int:
        return self.by_status.get(status, 0)


@dataclass(frozen=True, slots=True)
class PolicyOverview:
    total_policies: int
    active_policies: int
    claimed_policies: int
    total_claims: int
    total_coverage: int
