"""Shipment status oracles."""

from __future__ import annotations

from .client import HttpShipmentOracle
from .schema import ObservationPayload
from .simulated import SimulatedShipmentOracle, draw_status

__all__ = [
    "HttpShipmentOracle",
    "ObservationPayload",
    "SimulatedShipmentOracle",
    "draw_status",
]
