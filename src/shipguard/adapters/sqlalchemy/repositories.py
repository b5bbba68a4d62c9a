"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import false, func, insert, select, update

from shipguard.adapters.sqlalchemy.mappings import (
    claim_table,
    ledger_state_table,
    policy_table,
    tracking_table,
)
from shipguard.domain.model import (
    Claim,
    Policy,
    PolicyStatus,
    ShipmentStatus,
    TrackingEntry,
)

if TYPE_CHECKING:
    from collections.abc import Collection
    from datetime import datetime

    from sqlalchemy import CursorResult, Update
    from sqlalchemy.orm import Session


class SqlAlchemyPolicyRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: Policy) -> None:
        self.session.add(entity)

    def get_by_shipment_id(self, shipment_id: str) -> Policy | None:
        stmt = select(Policy).where(policy_table.c.shipment_id == shipment_id)
        return self.session.execute(stmt).scalar_one_or_none()

    def get_by_policy_id(self, policy_id: int) -> Policy | None:
        stmt = select(Policy).where(policy_table.c.policy_id == policy_id)
        return self.session.execute(stmt).scalar_one_or_none()

    def list_awaiting_check(self) -> list[Policy]:
        stmt = (
            select(Policy)
            .where(policy_table.c.policy_status == PolicyStatus.ACTIVE)
            .where(policy_table.c.shipment_status == ShipmentStatus.IN_TRANSIT)
            .order_by(policy_table.c.id)
        )
        return list(self.session.execute(stmt).scalars())

    def set_shipment_status(self, shipment_id: str, status: ShipmentStatus) -> bool:
        stmt = (
            update(policy_table)
            .where(policy_table.c.shipment_id == shipment_id)
            .where(policy_table.c.policy_status == PolicyStatus.ACTIVE)
            .values(shipment_status=status)
        )
        return self._rowcount(stmt) == 1

    def mark_claimed(self, shipment_id: str) -> bool:
        # Row-level compare-and-set; concurrent callers see zero rows after the winner.
        stmt = (
            update(policy_table)
            .where(policy_table.c.shipment_id == shipment_id)
            .where(policy_table.c.claim_processed == false())
            .where(policy_table.c.policy_status == PolicyStatus.ACTIVE)
            .values(policy_status=PolicyStatus.CLAIMED, claim_processed=True)
        )
        return self._rowcount(stmt) == 1

    def list_overdue(self, now: datetime) -> list[Policy]:
        stmt = (
            select(Policy)
            .where(policy_table.c.policy_status == PolicyStatus.ACTIVE)
            .where(policy_table.c.claim_processed == false())
            .where(policy_table.c.end_time < now)
            .order_by(policy_table.c.policy_id)
        )
        return list(self.session.execute(stmt).scalars())

    def expire_overdue(self, now: datetime, *, keep: Collection[str] = ()) -> int:
        stmt = (
            update(policy_table)
            .where(policy_table.c.policy_status == PolicyStatus.ACTIVE)
            .where(policy_table.c.claim_processed == false())
            .where(policy_table.c.end_time < now)
            .values(policy_status=PolicyStatus.EXPIRED)
        )
        if keep:
            stmt = stmt.where(policy_table.c.shipment_id.not_in(list(keep)))
        return self._rowcount(stmt)

    def count_by_status(self) -> dict[PolicyStatus, int]:
        stmt = select(policy_table.c.policy_status, func.count()).group_by(
            policy_table.c.policy_status
        )
        return {PolicyStatus(status): count for status, count in self.session.execute(stmt)}

    def total_coverage(self) -> int:
        # Amounts are stored as decimal strings, so the sum happens here.
        stmt = select(policy_table.c.coverage_amount)
        return sum(self.session.execute(stmt).scalars())

    def _rowcount(self, stmt: Update) -> int:
        result = cast("CursorResult[Any]", self.session.execute(stmt))
        return result.rowcount


class SqlAlchemyClaimRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: Claim) -> None:
        self.session.add(entity)

    def for_policy(self, policy_id: int) -> list[Claim]:
        stmt = select(Claim).where(claim_table.c.policy_id == policy_id).order_by(claim_table.c.id)
        return list(self.session.execute(stmt).scalars())

    def count(self) -> int:
        stmt = select(func.count()).select_from(claim_table)
        return self.session.execute(stmt).scalar_one()


class SqlAlchemyTrackingRepository:
    """Append-only access to the tracking log."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: TrackingEntry) -> None:
        self.session.add(entity)

    def history(self, shipment_id: str) -> list[TrackingEntry]:
        stmt = (
            select(TrackingEntry)
            .where(tracking_table.c.shipment_id == shipment_id)
            .order_by(tracking_table.c.timestamp.desc(), tracking_table.c.id.desc())
        )
        return list(self.session.execute(stmt).scalars())

    def count_by_status(self) -> dict[ShipmentStatus, int]:
        stmt = select(tracking_table.c.status, func.count()).group_by(tracking_table.c.status)
        return {ShipmentStatus(status): count for status, count in self.session.execute(stmt)}


class SqlAlchemyLedgerStateRepository:
    """The local ledger's serialised state, kept in a single row."""

    row_id = 1

    def __init__(self, session: Session) -> None:
        self.session = session

    def lock(self) -> None:
        """Take the write lock on the state row before reading it."""

        stmt = (
            update(ledger_state_table)
            .where(ledger_state_table.c.id == self.row_id)
            .values(version=ledger_state_table.c.version + 1)
        )
        if self._rowcount(stmt) == 0:
            self.session.execute(
                insert(ledger_state_table).values(id=self.row_id, version=1, state=None)
            )

    def load(self) -> str | None:
        stmt = select(ledger_state_table.c.state).where(ledger_state_table.c.id == self.row_id)
        return self.session.execute(stmt).scalar_one_or_none()

    def save(self, state: str) -> None:
        stmt = (
            update(ledger_state_table)
            .where(ledger_state_table.c.id == self.row_id)
            .values(state=state)
        )
        if self._rowcount(stmt) != 1:
            raise LookupError("Ledger state row is missing; call lock() first")

    def _rowcount(self, stmt: Update) -> int:
        result = cast("CursorResult[Any]", self.session.execute(stmt))
        return result.rowcount


if TYPE_CHECKING:
    from shipguard.domain.ports.persistence import (
        ClaimRepository,
        LedgerStateRepository,
        PolicyRepository,
        TrackingRepository,
    )

    def _check_protocols(session: Session) -> None:
        _policies: PolicyRepository = SqlAlchemyPolicyRepository(session)
        _claims: ClaimRepository = SqlAlchemyClaimRepository(session)
        _tracking: TrackingRepository = SqlAlchemyTrackingRepository(session)
        _ledger_state: LedgerStateRepository = SqlAlchemyLedgerStateRepository(session)
