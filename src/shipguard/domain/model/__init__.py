"""Domain model for insured shipments."""

from __future__ import annotations

from .amounts import PREMIUM_RATE_PERCENT, WEI_PER_UNIT, from_wei, premium_for, to_wei
from .enums import PolicyStatus, ShipmentStatus
from .policy import Claim, InvalidTransitionError, Policy, PolicyRef
from .tracking import PolicyOverview, TrackingEntry, TrackingStats

__all__ = [
    "PREMIUM_RATE_PERCENT",
    "WEI_PER_UNIT",
    "Claim",
    "InvalidTransitionError",
    "Policy",
    "PolicyOverview",
    "PolicyRef",
    "PolicyStatus",
    "ShipmentStatus",
    "TrackingEntry",
    "TrackingStats",
    "from_wei",
    "premium_for",
    "to_wei",
]
