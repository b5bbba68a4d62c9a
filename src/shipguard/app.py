"""Application orchestration entry points."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from shipguard.adapters.ledger import (
    HttpLedgerGateway,
    InMemoryLedger,
    InMemoryLedgerGateway,
    StoredLedgerGateway,
)
from shipguard.adapters.oracle import HttpShipmentOracle, SimulatedShipmentOracle
from shipguard.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyLedgerStateUnitOfWork,
    SqlAlchemyMirrorUnitOfWork,
    is_started,
    startup,
)
from shipguard.config import (
    LedgerConfig,
    MissingConfigurationError,
    OracleConfig,
    ReconciliationConfig,
    get_ledger_config,
    get_oracle_config,
    get_reconciliation_config,
)
from shipguard.domain.mirror import MirrorStore
from shipguard.domain.model import WEI_PER_UNIT, from_wei
from shipguard.domain.reconciliation import ReconciliationEngine
from shipguard.scheduler import ReconciliationScheduler

if TYPE_CHECKING:
    from collections.abc import Callable

    from shipguard.domain.model import Policy, PolicyOverview, TrackingEntry, TrackingStats
    from shipguard.domain.ports.ledger import Ledger
    from shipguard.domain.ports.oracle import ShipmentOracle
    from shipguard.domain.ports.unit_of_work import MirrorUnitOfWork
    from shipguard.domain.reconciliation import BatchResult, ShipmentCheckResult

type UnitOfWorkFactory = Callable[[], MirrorUnitOfWork]

# Funds available to pay claims on a fresh simulated ledger.
SIMULATED_LEDGER_RESERVE = 1_000 * WEI_PER_UNIT

log = getLogger(__name__)


@dataclass(slots=True)
class Services:
    """Wired adapters and services for one process."""

    ledger: Ledger
    oracle: ShipmentOracle
    mirror: MirrorStore
    engine: ReconciliationEngine
    reconciliation: ReconciliationConfig


def build_ledger(config: LedgerConfig | None = None) -> Ledger:
    effective = config or get_ledger_config()
    if effective.backend == "http":
        if effective.resilience is None or not effective.api_key:
            raise MissingConfigurationError("HTTP ledger requires LEDGER_URL and LEDGER_API_KEY")
        return HttpLedgerGateway(
            resilience=effective.resilience,
            api_key=effective.api_key,
            oracle_address=effective.oracle_address,
        )

    if effective.backend == "local":
        if not is_started():
            startup()
        return StoredLedgerGateway(
            SqlAlchemyLedgerStateUnitOfWork,
            identity=effective.oracle_address,
            owner=effective.owner_address,
            oracle_address=effective.oracle_address,
            reserve=SIMULATED_LEDGER_RESERVE,
        )

    ledger = InMemoryLedger(
        owner=effective.owner_address,
        oracle_address=effective.oracle_address,
        reserve=SIMULATED_LEDGER_RESERVE,
    )
    log.warning("Using the in-memory ledger; ledger state is lost when the process exits")
    return InMemoryLedgerGateway(ledger, identity=effective.oracle_address)


def build_oracle(config: OracleConfig | None = None) -> ShipmentOracle:
    effective = config or get_oracle_config()
    if effective.backend == "http":
        if effective.resilience is None:
            raise MissingConfigurationError("HTTP oracle requires ORACLE_URL")
        return HttpShipmentOracle(resilience=effective.resilience, api_key=effective.api_key)
    return SimulatedShipmentOracle.seeded(effective.seed)


def build_services(
    *,
    ledger: Ledger | None = None,
    oracle: ShipmentOracle | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    reconciliation: ReconciliationConfig | None = None,
) -> Services:
    """Wire the engine from configuration, letting callers swap any adapter."""

    if unit_of_work_factory is None:
        if not is_started():
            startup()
        unit_of_work_factory = SqlAlchemyMirrorUnitOfWork

    effective_reconciliation = reconciliation or get_reconciliation_config()
    effective_ledger = ledger or build_ledger()
    effective_oracle = oracle or build_oracle()
    mirror = MirrorStore(unit_of_work_factory)
    engine = ReconciliationEngine(
        oracle=effective_oracle,
        ledger=effective_ledger,
        mirror=mirror,
        max_concurrency=effective_reconciliation.max_concurrency,
        inter_item_delay=effective_reconciliation.inter_item_delay_seconds,
    )
    return Services(
        ledger=effective_ledger,
        oracle=effective_oracle,
        mirror=mirror,
        engine=engine,
        reconciliation=effective_reconciliation,
    )


def build_scheduler(services: Services) -> ReconciliationScheduler:
    config = services.reconciliation
    return ReconciliationScheduler(
        services.engine,
        interval_seconds=config.interval_seconds,
        expire_overdue=config.expire_overdue,
    )


def reconcile_once(services: Services | None = None) -> BatchResult:
    """Run one full cycle, including the expiry sweep when enabled."""

    effective = services or build_services()
    return build_scheduler(effective).run_once()


def check_shipment(shipment_id: str, services: Services | None = None) -> ShipmentCheckResult:
    effective = services or build_services()
    return effective.engine.check_shipment(shipment_id)


def issue_policy(
    *,
    holder: str,
    shipment_id: str,
    coverage_amount: int,
    duration_seconds: int,
    services: Services | None = None,
) -> Policy:
    """Create a policy on the ledger, then mirror it."""

    effective = services or build_services()
    issued = effective.ledger.create_policy(
        holder=holder,
        shipment_id=shipment_id,
        coverage_amount=coverage_amount,
        duration_seconds=duration_seconds,
    )
    log.info(
        "Issued policy %s for shipment %s: coverage=%s, premium=%s (tx=%s)",
        issued.policy.policy_id,
        shipment_id,
        from_wei(issued.policy.coverage_amount),
        from_wei(issued.policy.premium),
        issued.receipt.tx_hash,
    )
    return effective.mirror.register_policy(issued.policy)


def tracking_history(shipment_id: str, services: Services | None = None) -> list[TrackingEntry]:
    effective = services or build_services()
    return effective.mirror.tracking_history(shipment_id)


def mirror_stats(services: Services | None = None) -> tuple[TrackingStats, PolicyOverview]:
    effective = services or build_services()
    return effective.mirror.tracking_stats(), effective.mirror.policy_overview()
