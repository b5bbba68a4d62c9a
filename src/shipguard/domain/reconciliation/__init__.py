"""Reconciliation of oracle observations against the ledger and the mirror.

Flow for one shipment:
1) ask the oracle for the current status
2) decide the transition the status requires
3) settle on the ledger when funds move
4) record the observation in the mirror
"""

from __future__ import annotations

from .decide import Transition, decide
from .engine import ReconciliationEngine
from .outcomes import BatchResult, CheckOutcome, ShipmentCheckResult

__all__ = [
    "BatchResult",
    "CheckOutcome",
    "ReconciliationEngine",
    "ShipmentCheckResult",
    "Transition",
    "decide",
]
