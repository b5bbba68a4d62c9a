"""Poll the oracle for insured shipments and settle what it reports.

Terminal observations are written to the ledger before the mirror. If the
mirror write fails after the ledger accepted the change, the shipment is
reported as inconsistent and the next observation heals it: the ledger then
answers "Policy not active", and the engine re-applies the mirror flip once it
has confirmed that the ledger already paid the claim.
"""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

from shipguard.config import ConfigurationError
from shipguard.domain.ports.ledger import (
    LedgerError,
    LedgerRejectedError,
    LedgerUnavailableError,
    PolicyAlreadyTerminalError,
    PolicyNotFoundError,
)
from shipguard.domain.ports.oracle import Unavailable

from .decide import decide
from .outcomes import BatchResult, CheckOutcome, ShipmentCheckResult

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from shipguard.domain.mirror import MirrorStore
    from shipguard.domain.model import PolicyRef, ShipmentStatus
    from shipguard.domain.ports.ledger import Ledger, TxReceipt
    from shipguard.domain.ports.oracle import Observation, ShipmentOracle

log = getLogger(__name__)

# Errors that must abort a cycle instead of being recorded against one shipment.
FATAL_ERRORS: tuple[type[BaseException], ...] = (ConfigurationError, MemoryError)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ReconciliationEngine:
    """Drive oracle observations through the ledger and the mirror."""

    def __init__(
        self,
        *,
        oracle: ShipmentOracle,
        ledger: Ledger,
        mirror: MirrorStore,
        max_concurrency: int = 1,
        inter_item_delay: float = 0.0,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        if inter_item_delay < 0:
            raise ValueError("inter_item_delay must not be negative")
        self._oracle = oracle
        self._ledger = ledger
        self._mirror = mirror
        self._max_concurrency = max_concurrency
        self._inter_item_delay = inter_item_delay
        self._sleep = sleep
        self._clock = clock

    @property
    def mirror(self) -> MirrorStore:
        return self._mirror

    def run_cycle(self, should_stop: Callable[[], bool] | None = None) -> BatchResult:
        """Check every Active, InTransit policy once.

        A failure to list pending policies aborts the cycle. Failures for a single
        shipment are recorded in the result and never stop the others. Once
        ``should_stop`` returns true no further shipment is started; checks already
        in flight finish and the rest are counted as not started.
        """

        started_at = self._clock()
        refs = self._mirror.active_policies_awaiting_check()
        if not refs:
            log.info("No active shipments to check")
            return BatchResult(started_at=started_at, finished_at=self._clock())

        log.info("Checking %s active shipments", len(refs))
        if self._max_concurrency == 1 or len(refs) == 1:
            results = self._run_sequential(refs, should_stop)
        else:
            results = self._run_concurrent(refs, should_stop)

        not_started = len(refs) - len(results)
        if not_started:
            log.info("Cycle stopped early; %s shipments were not started", not_started)
        batch = BatchResult(
            results=tuple(results),
            started_at=started_at,
            finished_at=self._clock(),
            not_started=not_started,
        )
        log.info(
            "Reconciliation cycle finished: checked=%s, applied=%s, failed=%s, claims=%s",
            batch.total_checked,
            batch.succeeded,
            batch.failed,
            batch.claims_created,
        )
        return batch

    def check_shipment(self, shipment_id: str) -> ShipmentCheckResult:
        """On-demand check of one shipment through the same path as a cycle."""

        policy = self._mirror.find_policy(shipment_id)
        if policy is None:
            return ShipmentCheckResult(
                shipment_id=shipment_id,
                outcome=CheckOutcome.ERROR,
                error=f"No policy found for shipment {shipment_id}",
            )
        if not policy.is_active:
            return ShipmentCheckResult(
                shipment_id=shipment_id,
                outcome=CheckOutcome.SKIPPED,
                status=policy.shipment_status,
                error=f"Policy is {policy.policy_status}",
            )
        return self._check(policy.ref())

    def expire_overdue(self, now: datetime | None = None) -> int:
        """Expire overdue policies, settling first those the ledger already paid.

        A policy whose claim was paid on the ledger but never reached the mirror is
        flipped to Claimed instead of Expired. Policies whose ledger state cannot be
        read stay Active until a later sweep.
        """

        cutoff = now or self._clock()
        keep: list[str] = []
        for ref in self._mirror.overdue_policies(cutoff):
            try:
                settled = self._ledger.read_policy(ref.policy_id)
            except PolicyNotFoundError:
                continue
            except LedgerError as exc:
                log.warning("Not expiring %s; ledger policy unreadable: %s", ref.shipment_id, exc)
                keep.append(ref.shipment_id)
                continue
            if settled.claim_processed and settled.shipment_status.is_terminal:
                log.warning("Ledger already settled overdue %s; recording it", ref.shipment_id)
                self._settle_from_ledger(ref, settled.shipment_status, keep)
        return self._mirror.expire_overdue(cutoff, keep=keep)

    def _settle_from_ledger(self, ref: PolicyRef, status: ShipmentStatus, keep: list[str]) -> None:
        try:
            self._mirror.apply_observation(
                ref.shipment_id,
                status,
                note="Settled on the ledger before expiry",
            )
        except FATAL_ERRORS:
            raise
        except Exception:
            log.exception("Could not record ledger settlement for %s", ref.shipment_id)
            keep.append(ref.shipment_id)

    def _run_sequential(
        self,
        refs: Sequence[PolicyRef],
        should_stop: Callable[[], bool] | None,
    ) -> list[ShipmentCheckResult]:
        results: list[ShipmentCheckResult] = []
        for index, ref in enumerate(refs):
            if should_stop is not None and should_stop():
                break
            if index and self._inter_item_delay:
                self._sleep(self._inter_item_delay)
                if should_stop is not None and should_stop():
                    break
            results.append(self._check(ref))
        return results

    def _run_concurrent(
        self,
        refs: Sequence[PolicyRef],
        should_stop: Callable[[], bool] | None,
    ) -> list[ShipmentCheckResult]:
        def check(ref: PolicyRef) -> ShipmentCheckResult | None:
            if should_stop is not None and should_stop():
                return None
            return self._check(ref)

        workers = min(self._max_concurrency, len(refs))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="reconcile") as pool:
            return [result for result in pool.map(check, refs) if result is not None]

    def _check(self, ref: PolicyRef) -> ShipmentCheckResult:
        try:
            return self._reconcile(ref)
        except FATAL_ERRORS:
            raise
        except Exception as exc:
            log.exception("Unexpected error while checking shipment %s", ref.shipment_id)
            return ShipmentCheckResult(
                shipment_id=ref.shipment_id,
                outcome=CheckOutcome.ERROR,
                error=str(exc) or type(exc).__name__,
            )

    def _reconcile(self, ref: PolicyRef) -> ShipmentCheckResult:
        observed = self._oracle.observe(ref.shipment_id)
        if isinstance(observed, Unavailable):
            log.warning("Oracle unavailable for shipment %s: %s", ref.shipment_id, observed.reason)
            return ShipmentCheckResult(
                shipment_id=ref.shipment_id,
                outcome=CheckOutcome.UNAVAILABLE,
                error=observed.reason,
            )

        log.info("Shipment %s observed as %s", ref.shipment_id, observed.status)
        receipt: TxReceipt | None = None

        if decide(observed.status).touches_ledger:
            try:
                receipt = self._ledger.submit_status_update(
                    ref.shipment_id, observed.status, policy_id=ref.policy_id
                )
            except PolicyAlreadyTerminalError as exc:
                if not self._ledger_paid_claim(ref):
                    log.warning(
                        "Ledger reports policy for %s no longer active without a claim: %s",
                        ref.shipment_id,
                        exc.reason,
                    )
                    return self._not_applied(ref, observed, CheckOutcome.SKIPPED, exc.reason)
                log.warning("Ledger already settled %s; updating the mirror", ref.shipment_id)
            except LedgerRejectedError as exc:
                log.warning("Ledger rejected update for %s: %s", ref.shipment_id, exc.reason)
                return self._not_applied(ref, observed, CheckOutcome.REJECTED, exc.reason)
            except LedgerUnavailableError as exc:
                log.warning("Ledger unavailable for %s: %s", ref.shipment_id, exc)
                return self._not_applied(ref, observed, CheckOutcome.UNAVAILABLE, str(exc))
            else:
                log.info(
                    "Ledger updated for %s: tx=%s, payout=%s",
                    ref.shipment_id,
                    receipt.tx_hash,
                    receipt.claim_payout,
                )

        try:
            applied = self._mirror.apply_observation(
                ref.shipment_id,
                observed.status,
                location=observed.location,
                note=observed.note,
                observed_at=observed.timestamp,
            )
        except Exception as exc:
            if receipt is None:
                raise
            log.warning(
                "Mirror write failed after ledger accepted %s for %s (tx=%s); "
                "it will be reconciled on the next observation",
                observed.status,
                ref.shipment_id,
                receipt.tx_hash,
                exc_info=exc,
            )
            return ShipmentCheckResult(
                shipment_id=ref.shipment_id,
                outcome=CheckOutcome.INCONSISTENT,
                status=observed.status,
                error=str(exc) or type(exc).__name__,
                receipt=receipt,
            )

        return ShipmentCheckResult(
            shipment_id=ref.shipment_id,
            outcome=CheckOutcome.APPLIED,
            status=observed.status,
            claim_created=applied.claim_created,
            receipt=receipt,
        )

    def _ledger_paid_claim(self, ref: PolicyRef) -> bool:
        try:
            policy = self._ledger.read_policy(ref.policy_id)
        except LedgerError as exc:
            log.warning("Could not read ledger policy %s: %s", ref.policy_id, exc)
            return False
        return policy.claim_processed

    @staticmethod
    def _not_applied(
        ref: PolicyRef,
        observed: Observation,
        outcome: CheckOutcome,
        error: str,
    ) -> ShipmentCheckResult:
        return ShipmentCheckResult(
            shipment_id=ref.shipment_id,
            outcome=outcome,
            status=observed.status,
            error=error,
        )
