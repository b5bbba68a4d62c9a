"""Queryable mirror of ledger state plus the shipment tracking log.

The mirror is never authoritative for funds. Every write that could create a
claim goes through a compare-and-set on ``claim_processed`` so that concurrent
or repeated observations settle a policy at most once.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

from shipguard.domain.model import (
    Claim,
    PolicyOverview,
    PolicyStatus,
    TrackingEntry,
    TrackingStats,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Collection

    from shipguard.domain.model import Policy, PolicyRef, ShipmentStatus
    from shipguard.domain.ports.unit_of_work import MirrorUnitOfWork

log = getLogger(__name__)

type MirrorUnitOfWorkFactory = Callable[[], MirrorUnitOfWork]


class DuplicatePolicyError(ValueError):
    """Raised when a shipment is already mirrored."""


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class MirrorApplyResult:
    """What a single observation changed in the mirror."""

    tracking_entry: TrackingEntry
    status_changed: bool
    claim: Claim | None = None

    @property
    def claim_created(self) -> bool:
        return self.claim is not None


class MirrorStore:
    """Transactional operations over the mirror repositories."""

    def __init__(
        self,
        unit_of_work_factory: MirrorUnitOfWorkFactory,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._unit_of_work_factory = unit_of_work_factory
        self._clock = clock

    def register_policy(self, policy: Policy) -> Policy:
        with self._unit_of_work_factory() as uow:
            policies = uow.repositories.policies
            if policies.get_by_shipment_id(policy.shipment_id) is not None:
                raise DuplicatePolicyError(f"Shipment {policy.shipment_id} is already insured")
            policies.add(policy)
            uow.commit()
        log.info("Mirrored policy %s for shipment %s", policy.policy_id, policy.shipment_id)
        return policy

    def find_policy(self, shipment_id: str) -> Policy | None:
        with self._unit_of_work_factory() as uow:
            return uow.repositories.policies.get_by_shipment_id(shipment_id)

    def active_policies_awaiting_check(self) -> list[PolicyRef]:
        with self._unit_of_work_factory() as uow:
            return [policy.ref() for policy in uow.repositories.policies.list_awaiting_check()]

    def apply_observation(
        self,
        shipment_id: str,
        status: ShipmentStatus,
        *,
        location: str | None = None,
        note: str | None = None,
        observed_at: datetime | None = None,
    ) -> MirrorApplyResult:
        """Record an observation and, for terminal statuses, settle the claim once.

        Always appends one tracking entry. The shipment status only moves while the
        policy is Active. A Damaged/Lost status flips the policy to Claimed and adds
        the claim row only if this call wins the ``claim_processed`` compare-and-set;
        losing it is a no-op.
        """

        entry = TrackingEntry(
            shipment_id=shipment_id,
            status=status,
            location=location,
            note=note,
            timestamp=observed_at or self._clock(),
        )
        claim: Claim | None = None

        with self._unit_of_work_factory() as uow:
            repositories = uow.repositories
            repositories.tracking.add(entry)
            status_changed = repositories.policies.set_shipment_status(shipment_id, status)

            if status.is_terminal and repositories.policies.mark_claimed(shipment_id):
                policy = repositories.policies.get_by_shipment_id(shipment_id)
                if policy is None:
                    raise LookupError(f"Claimed policy for {shipment_id} vanished mid-transaction")
                claim = Claim(
                    policy_id=policy.policy_id,
                    claimant=policy.holder,
                    claim_amount=policy.coverage_amount,
                    timestamp=self._clock(),
                )
                repositories.claims.add(claim)

            uow.commit()

        if claim is not None:
            log.info(
                "Claim recorded for shipment %s (policy %s, amount=%s wei)",
                shipment_id,
                claim.policy_id,
                claim.claim_amount,
            )
        elif status.is_terminal:
            log.debug("Shipment %s already settled in mirror; observation logged only", shipment_id)

        return MirrorApplyResult(tracking_entry=entry, status_changed=status_changed, claim=claim)

    def overdue_policies(self, now: datetime | None = None) -> list[PolicyRef]:
        with self._unit_of_work_factory() as uow:
            overdue = uow.repositories.policies.list_overdue(now or self._clock())
            return [policy.ref() for policy in overdue]

    def expire_overdue(
        self,
        now: datetime | None = None,
        *,
        keep: Collection[str] = (),
    ) -> int:
        """Expire overdue, unclaimed Active policies except the shipments in ``keep``."""

        with self._unit_of_work_factory() as uow:
            expired = uow.repositories.policies.expire_overdue(now or self._clock(), keep=keep)
            uow.commit()
        if expired:
            log.info("Expired %s overdue policies", expired)
        return expired

    def claims_for(self, policy_id: int) -> list[Claim]:
        with self._unit_of_work_factory() as uow:
            return uow.repositories.claims.for_policy(policy_id)

    def tracking_history(self, shipment_id: str) -> list[TrackingEntry]:
        with self._unit_of_work_factory() as uow:
            return uow.repositories.tracking.history(shipment_id)

    def tracking_stats(self) -> TrackingStats:
        with self._unit_of_work_factory() as uow:
            by_status = uow.repositories.tracking.count_by_status()
        return TrackingStats(total=sum(by_status.values()), by_status=by_status)

    def policy_overview(self) -> PolicyOverview:
        with self._unit_of_work_factory() as uow:
            repositories = uow.repositories
            by_status = repositories.policies.count_by_status()
            return PolicyOverview(
                total_policies=sum(by_status.values()),
                active_policies=by_status.get(PolicyStatus.ACTIVE, 0),
                claimed_policies=by_status.get(PolicyStatus.CLAIMED, 0),
                total_claims=repositories.claims.count(),
                total_coverage=repositories.policies.total_coverage(),
            )
