"""Ports for persisting the queryable mirror."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from shipguard.domain.model import Claim, Policy, TrackingEntry

if TYPE_CHECKING:
    from collections.abc import Collection
    from datetime import datetime

    from shipguard.domain.model import PolicyStatus, ShipmentStatus


@runtime_checkable
class Repository[TEntity](Protocol):
    """Minimal repository contract for a persistent aggregate store."""

    def add(self, entity: TEntity) -> None: ...


@runtime_checkable
class PolicyRepository(Repository[Policy], Protocol):
    """Persistence contract for mirrored policies."""

    def get_by_shipment_id(self, shipment_id: str) -> Policy | None: ...

    def get_by_policy_id(self, policy_id: int) -> Policy | None: ...

    def list_awaiting_check(self) -> list[Policy]: ...

    def set_shipment_status(self, shipment_id: str, status: ShipmentStatus) -> bool:
        """Update the shipment status of an Active policy; return whether a row changed."""
        ...

    def mark_claimed(self, shipment_id: str) -> bool:
        """Compare-and-set Active/unprocessed -> Claimed/processed; True if this call won."""
        ...

    def list_overdue(self, now: datetime) -> list[Policy]:
        """Active, unclaimed policies whose end time has passed."""
        ...

    def expire_overdue(self, now: datetime, *, keep: Collection[str] = ()) -> int:
        """Mark Active, unclaimed policies past their end time as Expired.

        Shipments listed in ``keep`` are left Active.
        """
        ...

    def count_by_status(self) -> dict[PolicyStatus, int]: ...

    def total_coverage(self) -> int: ...


@runtime_checkable
class ClaimRepository(Repository[Claim], Protocol):
    def for_policy(self, policy_id: int) -> list[Claim]: ...

    def count(self) -> int: ...


@runtime_checkable
class TrackingRepository(Repository[TrackingEntry], Protocol):
    """Append-only log; there is deliberately no update or delete."""

    def history(self, shipment_id: str) -> list[TrackingEntry]: ...

    def count_by_status(self) -> dict[ShipmentStatus, int]: ...


@runtime_checkable
class LedgerStateRepository(Protocol):
    """Serialised state of the locally persisted ledger."""

    def lock(self) -> None:
        """Block other writers until the surrounding unit of work ends."""
        ...

    def load(self) -> str | None: ...

    def save(self, state: str) -> None: ...
