"""Contract simulation whose state lives in the mirror database.

Each call loads the serialised :class:`InMemoryLedger`, runs the operation and,
for transactions, writes the new state back in the same database transaction.
A reverted transaction rolls back with it, so separate CLI invocations and
threads share one consistent ledger.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

from .memory import InMemoryLedger, InMemoryLedgerGateway
from .snapshot import LedgerSnapshot

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from shipguard.domain.model import Policy, ShipmentStatus
    from shipguard.domain.ports.ledger import Ledger, LedgerTotals, PolicyIssued, TxReceipt
    from shipguard.domain.ports.unit_of_work import LedgerStateUnitOfWork

type LedgerStateUnitOfWorkFactory = Callable[[], LedgerStateUnitOfWork]

log = getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class StoredLedgerGateway:
    """``Ledger`` port over a database-persisted :class:`InMemoryLedger`.

    ``owner``, ``oracle_address`` and ``reserve`` only seed a ledger that has
    never been written; afterwards the stored state wins.
    """

    def __init__(
        self,
        unit_of_work_factory: LedgerStateUnitOfWorkFactory,
        *,
        identity: str,
        owner: str,
        oracle_address: str,
        reserve: int = 0,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._unit_of_work_factory = unit_of_work_factory
        self.identity = identity
        self._owner = owner
        self._oracle_address = oracle_address
        self._reserve = reserve
        self._clock = clock

    def submit_status_update(
        self,
        shipment_id: str,
        status: ShipmentStatus,
        *,
        policy_id: int | None = None,
    ) -> TxReceipt:
        with self._transaction() as ledger:
            return InMemoryLedgerGateway(ledger, identity=self.identity).submit_status_update(
                shipment_id, status, policy_id=policy_id
            )

    def create_policy(
        self,
        *,
        holder: str,
        shipment_id: str,
        coverage_amount: int,
        duration_seconds: int,
    ) -> PolicyIssued:
        with self._transaction() as ledger:
            return InMemoryLedgerGateway(ledger, identity=holder).create_policy(
                holder=holder,
                shipment_id=shipment_id,
                coverage_amount=coverage_amount,
                duration_seconds=duration_seconds,
            )

    def read_policy(self, policy_id: int) -> Policy:
        return self.current_state().get_policy(policy_id)

    def read_user_policies(self, holder: str) -> tuple[int, ...]:
        return self.current_state().get_user_policies(holder)

    def read_totals(self) -> LedgerTotals:
        return self.current_state().totals()

    def current_state(self) -> InMemoryLedger:
        """Load a detached copy of the stored ledger; changes to it are not saved."""

        with self._unit_of_work_factory() as uow:
            return self._restore(uow.repositories.state.load())

    @contextmanager
    def _transaction(self) -> Iterator[InMemoryLedger]:
        with self._unit_of_work_factory() as uow:
            store = uow.repositories.state
            store.lock()
            ledger = self._restore(store.load())
            yield ledger
            store.save(ledger.snapshot().model_dump_json())
            uow.commit()

    def _restore(self, state: str | None) -> InMemoryLedger:
        if state is None:
            log.info("Initialising local ledger with a reserve of %s wei", self._reserve)
            return InMemoryLedger(
                owner=self._owner,
                oracle_address=self._oracle_address,
                reserve=self._reserve,
                clock=self._clock,
            )
        return InMemoryLedger.restore(LedgerSnapshot.model_validate_json(state), clock=self._clock)


if TYPE_CHECKING:
    from shipguard.adapters.sqlalchemy.unit_of_work import SqlAlchemyLedgerStateUnitOfWork

    _ledger_check: Ledger = StoredLedgerGateway(
        SqlAlchemyLedgerStateUnitOfWork, identity="0x0", owner="0x0", oracle_address="0x0"
    )
