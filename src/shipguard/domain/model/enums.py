"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class ShipmentStatus(StrEnum):
    """Real-world condition of an insured shipment.

    Member order matches the ledger's integer encoding.
    """

    IN_TRANSIT = "InTransit"
    DELIVERED = "Delivered"
    DAMAGED = "Damaged"
    LOST = "Lost"

    @property
    def code(self) -> int:
        return _SHIPMENT_CODES[self]

    @property
    def is_terminal(self) -> bool:
        """Damaged and Lost trigger claim settlement."""
        return self in {ShipmentStatus.DAMAGED, ShipmentStatus.LOST}

    @classmethod
    def from_code(cls, code: int) -> ShipmentStatus:
        try:
            return _SHIPMENT_BY_CODE[code]
        except KeyError:
            raise ValueError(f"Invalid shipment status code: {code}") from None


class PolicyStatus(StrEnum):
    ACTIVE = "Active"
    CLAIMED = "Claimed"
    EXPIRED = "Expired"
    CANCELLED = "Cancelled"

    @property
    def code(self) -> int:
        return _POLICY_CODES[self]

    @classmethod
    def from_code(cls, code: int) -> PolicyStatus:
        try:
            return _POLICY_BY_CODE[code]
        except KeyError:
            raise ValueError(f"Invalid policy status code: {code}") from None


_SHIPMENT_CODES = {status: index for index, status in enumerate(ShipmentStatus)}
_SHIPMENT_BY_CODE = {index: status for status, index in _SHIPMENT_CODES.items()}
_POLICY_CODES = {status: index for index, status in enumerate(PolicyStatus)}
_POLICY_BY_CODE = {index: status for status, index in _POLICY_CODES.items()}
