"""Periodic driver for reconciliation cycles."""

from __future__ import annotations

import threading
from dataclasses import replace
from logging import getLogger
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

    from shipguard.domain.reconciliation import (
        BatchResult,
        ReconciliationEngine,
        ShipmentCheckResult,
    )

log = getLogger(__name__)


class ReconciliationScheduler:
    """Run :meth:`ReconciliationEngine.run_cycle` on a fixed interval.

    One driver thread runs the cycles. :meth:`stop` lets the shipment checks in
    flight finish, starts no further shipment and guarantees no further cycle
    starts. The driver is not a daemon thread, so the interpreter waits for it.
    Cycles never overlap, whether started by the driver or through
    :meth:`run_once`; on-demand shipment checks are not serialised against them.
    """

    def __init__(
        self,
        engine: ReconciliationEngine,
        *,
        interval_seconds: float,
        run_immediately: bool = True,
        expire_overdue: bool = True,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._engine = engine
        self._interval = interval_seconds
        self._run_immediately = run_immediately
        self._expire_overdue = expire_overdue
        self._stop_event = threading.Event()
        self._cycle_lock = threading.Lock()
        self._thread: threading.Thread | None = None
        self._last_result: BatchResult | None = None
        self._cycles_run = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def last_result(self) -> BatchResult | None:
        return self._last_result

    @property
    def cycles_run(self) -> int:
        return self._cycles_run

    def start(self) -> None:
        if self.running:
            raise RuntimeError("Scheduler is already running")
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="reconciliation-scheduler",
            daemon=False,
        )
        self._thread.start()
        log.info("Reconciliation scheduler started (interval=%ss)", self._interval)

    def stop(self, timeout: float | None = None) -> bool:
        """Signal the driver to stop and wait for it; return whether it has exited."""

        self._stop_event.set()
        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout)
        stopped = not thread.is_alive()
        if stopped:
            self._thread = None
            log.info("Reconciliation scheduler stopped")
        else:
            log.warning("Reconciliation scheduler still finishing a cycle after %ss", timeout)
        return stopped

    def run_once(self) -> BatchResult:
        return self._run(None)

    def _run(self, should_stop: Callable[[], bool] | None) -> BatchResult:
        with self._cycle_lock:
            expired = self._engine.expire_overdue() if self._expire_overdue else 0
            result = self._engine.run_cycle(should_stop)
            if expired:
                result = replace(result, expired=expired)
            self._last_result = result
            self._cycles_run += 1
            return result

    def check_shipment(self, shipment_id: str) -> ShipmentCheckResult:
        return self._engine.check_shipment(shipment_id)

    def _run_loop(self) -> None:
        if not self._run_immediately and self._stop_event.wait(self._interval):
            return
        while not self._stop_event.is_set():
            try:
                self._run(self._stop_event.is_set)
            except Exception:
                log.exception("Reconciliation cycle failed; retrying in %ss", self._interval)
            if self._stop_event.wait(self._interval):
                break
