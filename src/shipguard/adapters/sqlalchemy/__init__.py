"""SQLAlchemy adapter package for the Shipguard mirror."""

from __future__ import annotations

from .mappings import create_all_tables, mapper_registry, start_mappers
from .repositories import (
    SqlAlchemyClaimRepository,
    SqlAlchemyLedgerStateRepository,
    SqlAlchemyPolicyRepository,
    SqlAlchemyTrackingRepository,
)
from .unit_of_work import (
    SqlAlchemyLedgerStateUnitOfWork,
    SqlAlchemyMirrorUnitOfWork,
    shutdown,
    startup,
)

__all__ = [
    "SqlAlchemyClaimRepository",
    "SqlAlchemyLedgerStateRepository",
    "SqlAlchemyLedgerStateUnitOfWork",
    "SqlAlchemyMirrorUnitOfWork",
    "SqlAlchemyPolicyRepository",
    "SqlAlchemyTrackingRepository",
    "create_all_tables",
    "mapper_registry",
    "shutdown",
    "start_mappers",
    "startup",
]
