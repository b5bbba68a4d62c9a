"""Insurance policy and claim entities."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from .enums import PolicyStatus, ShipmentStatus

if TYPE_CHECKING:
    from datetime import datetime


class InvalidTransitionError(ValueError):
    """Raised when a policy would leave a terminal status."""


@dataclass(eq=False, kw_only=True)
class Policy:
    """Coverage for one shipment.

    ``policy_id`` is the ledger identifier; ``id`` is the mirror's surrogate key
    and stays ``None`` for policies read straight from the ledger.
    """

    policy_id: int
    holder: str
    shipment_id: str
    coverage_amount: int
    premium: int
    start_time: datetime
    end_time: datetime
    policy_status: PolicyStatus = PolicyStatus.ACTIVE
    shipment_status: ShipmentStatus = ShipmentStatus.IN_TRANSIT
    claim_processed: bool = False
    id: int | None = None

    @property
    def is_active(self) -> bool:
        return self.policy_status is PolicyStatus.ACTIVE

    @property
    def awaiting_check(self) -> bool:
        return self.is_active and self.shipment_status is ShipmentStatus.IN_TRANSIT

    def is_overdue(self, now: datetime) -> bool:
        return self.is_active and self.end_time < now

    def transition_to(self, status: PolicyStatus) -> None:
        """Move an Active policy to another status; terminal statuses are final."""

        if status is self.policy_status:
            return
        if not self.is_active:
            raise InvalidTransitionError(
                f"Policy {self.policy_id} is {self.policy_status} and cannot become {status}"
            )
        if status is PolicyStatus.ACTIVE:
            raise InvalidTransitionError("Policies cannot return to Active")
        self.policy_status = status

    def ref(self) -> PolicyRef:
        return PolicyRef(
            policy_id=self.policy_id,
            shipment_id=self.shipment_id,
            holder=self.holder,
            coverage_amount=self.coverage_amount,
        )


@dataclass(frozen=True, slots=True, kw_only=True)
class PolicyRef:
    """Lightweight handle on a policy that still needs an oracle check."""

    policy_id: int
    shipment_id: str
    holder: str
    coverage_amount: int


@dataclass(eq=False, kw_only=True)
class Claim:
    """Full payout record created together with a policy's Claimed transition."""

    policy_id: int
    claimant: str
    claim_amount: int
    timestamp: datetime
    approved: bool = True
    processed: bool = True
    id: int | None = None
