"""Domain port definitions for adapters."""

from __future__ import annotations

from .ledger import (
    DuplicateShipmentError,
    IncorrectPremiumError,
    InvalidStatusError,
    Ledger,
    LedgerError,
    LedgerEvent,
    LedgerRejectedError,
    LedgerTotals,
    LedgerUnavailableError,
    PolicyAlreadyTerminalError,
    PolicyIssued,
    PolicyNotFoundError,
    TxReceipt,
    UnauthorizedCallerError,
    classify_revert,
)
from .oracle import Observation, OracleResult, ShipmentOracle, Unavailable
from .persistence import (
    ClaimRepository,
    LedgerStateRepository,
    PolicyRepository,
    Repository,
    TrackingRepository,
)
from .unit_of_work import (
    LedgerStateRepositories,
    LedgerStateUnitOfWork,
    MirrorRepositories,
    MirrorUnitOfWork,
    RepositoryCollection,
    UnitOfWork,
)

__all__ = [
    "ClaimRepository",
    "DuplicateShipmentError",
    "IncorrectPremiumError",
    "InvalidStatusError",
    "Ledger",
    "LedgerError",
    "LedgerEvent",
    "LedgerRejectedError",
    "LedgerStateRepositories",
    "LedgerStateRepository",
    "LedgerStateUnitOfWork",
    "LedgerTotals",
    "LedgerUnavailableError",
    "MirrorRepositories",
    "MirrorUnitOfWork",
    "Observation",
    "OracleResult",
    "PolicyAlreadyTerminalError",
    "PolicyIssued",
    "PolicyNotFoundError",
    "PolicyRepository",
    "Repository",
    "RepositoryCollection",
    "ShipmentOracle",
    "TrackingRepository",
    "TxReceipt",
    "UnauthorizedCallerError",
    "UnitOfWork",
    "Unavailable",
    "classify_revert",
]
