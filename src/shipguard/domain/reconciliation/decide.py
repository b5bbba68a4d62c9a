"""Map an observed shipment status onto the work it requires."""

from __future__ import annotations

from enum import StrEnum

from shipguard.domain.model import ShipmentStatus


class Transition(StrEnum):
    """What a single observation requires from the ledger and the mirror."""

    RECORD_ONLY = "record_only"
    MIRROR_ONLY = "mirror_only"
    SETTLE_CLAIM = "settle_claim"

    @property
    def touches_ledger(self) -> bool:
        return self is Transition.SETTLE_CLAIM


def decide(status: ShipmentStatus) -> Transition:
    """Return the transition for ``status``.

    InTransit only lands in the tracking log. Delivered updates the mirror and
    needs no payout, so the ledger is left alone. Damaged and Lost must be
    settled on the ledger before the mirror reflects them.
    """

    if status is ShipmentStatus.IN_TRANSIT:
        return Transition.RECORD_ONLY
    if status is ShipmentStatus.DELIVERED:
        return Transition.MIRROR_ONLY
    return Transition.SETTLE_CLAIM
