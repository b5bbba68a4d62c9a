"""Result types reported by reconciliation runs."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime

    from shipguard.domain.model import ShipmentStatus
    from shipguard.domain.ports.ledger import TxReceipt


class CheckOutcome(StrEnum):
    """How one shipment check ended."""

    APPLIED = "applied"
    SKIPPED = "skipped"
    UNAVAILABLE = "unavailable"
    REJECTED = "rejected"
    # The ledger accepted a change the mirror failed to record.
    INCONSISTENT = "inconsistent"
    ERROR = "error"


@dataclass(frozen=True, slots=True, kw_only=True)
class ShipmentCheckResult:
    shipment_id: str
    outcome: CheckOutcome
    status: ShipmentStatus | None = None
    error: str | None = None
    claim_created: bool = False
    receipt: TxReceipt | None = None

    @property
    def success(self) -> bool:
        return self.outcome is CheckOutcome.APPLIED

    def as_payload(self) -> dict[str, object]:
        payload: dict[str, object] = {"shipmentId": self.shipment_id}
        if self.success and self.status is not None:
            payload["status"] = str(self.status)
        else:
            payload["error"] = self.error or str(self.outcome)
        payload["success"] = self.success
        return payload


@dataclass(frozen=True, slots=True)
class BatchResult:
    """Summary of one reconciliation cycle."""

    results: tuple[ShipmentCheckResult, ...] = ()
    started_at: datetime | None = None
    finished_at: datetime | None = None
    expired: int = 0
    not_started: int = 0

    @property
    def total_checked(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> int:
        return self.count(CheckOutcome.APPLIED)

    @property
    def failed(self) -> int:
        return self.total_checked - self.succeeded

    @property
    def claims_created(self) -> int:
        return sum(1 for result in self.results if result.claim_created)

    def count(self, outcome: CheckOutcome) -> int:
        return sum(1 for result in self.results if result.outcome is outcome)

    def as_payload(self) -> dict[str, object]:
        return {
            "results": [result.as_payload() for result in self.results],
            "totalChecked": self.total_checked,
        }
