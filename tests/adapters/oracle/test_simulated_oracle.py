from __future__ import annotations

import random
from collections import Counter
from datetime import UTC, datetime

import pytest

from shipguard.adapters.oracle import SimulatedShipmentOracle, draw_status
from shipguard.adapters.oracle.simulated import LOCATIONS, STATUS_NOTES
from shipguard.domain.model import ShipmentStatus
from shipguard.domain.ports.oracle import Observation, ShipmentOracle, Unavailable


@pytest.mark.parametrize(
    ("roll", "status"),
    [
        (0.0, ShipmentStatus.DELIVERED),
        (0.8499, ShipmentStatus.DELIVERED),
        (0.85, ShipmentStatus.DAMAGED),
        (0.9499, ShipmentStatus.DAMAGED),
        (0.95, ShipmentStatus.LOST),
        (0.9999, ShipmentStatus.LOST),
    ],
)
def test_draw_status_thresholds(roll: float, status: ShipmentStatus) -> None:
    assert draw_status(roll) is status


def test_seeded_oracle_is_deterministic() -> None:
    first = SimulatedShipmentOracle.seeded(42)
    second = SimulatedShipmentOracle.seeded(42)

    for shipment_id in ("A", "B", "C", "D"):
        left = first.observe(shipment_id)
        right = second.observe(shipment_id)
        assert isinstance(left, Observation)
        assert isinstance(right, Observation)
        assert (left.status, left.location) == (right.status, right.location)


def test_distribution_roughly_matches_the_thresholds() -> None:
    oracle = SimulatedShipmentOracle(rng=random.Random(7))

    counts = Counter(
        result.status
        for index in range(2000)
        if isinstance(result := oracle.observe(f"S{index}"), Observation)
    )

    assert 0.80 < counts[ShipmentStatus.DELIVERED] / 2000 < 0.90
    assert counts[ShipmentStatus.DAMAGED] > counts[ShipmentStatus.LOST] > 0
    assert counts[ShipmentStatus.IN_TRANSIT] == 0


def test_observation_carries_location_note_and_clock_time() -> None:
    now = datetime(2025, 3, 1, 12, 0, tzinfo=UTC)
    oracle = SimulatedShipmentOracle(rng=random.Random(1), clock=lambda: now)
    oracle.script("S1", ShipmentStatus.LOST)

    result = oracle.observe("S1")

    assert isinstance(result, Observation)
    assert result.status is ShipmentStatus.LOST
    assert result.location in LOCATIONS
    assert result.note == STATUS_NOTES[ShipmentStatus.LOST]
    assert result.timestamp == now


def test_scripted_outage() -> None:
    oracle = SimulatedShipmentOracle()
    outage = Unavailable(shipment_id="S1", reason="carrier offline")
    oracle.script("S1", outage)

    assert oracle.observe("S1") is outage
    assert isinstance(oracle, ShipmentOracle)


def test_drawn_outcome_is_reported_again() -> None:
    oracle = SimulatedShipmentOracle.seeded(11)

    first = oracle.observe("S1")
    repeats = [oracle.observe("S1") for _ in range(20)]

    assert isinstance(first, Observation)
    assert all(isinstance(result, Observation) for result in repeats)
    assert {result.status for result in repeats if isinstance(result, Observation)} == {
        first.status
    }
    assert oracle.reported == {"S1": first.status}


def test_script_overrides_an_earlier_draw() -> None:
    oracle = SimulatedShipmentOracle.seeded(11)
    oracle.observe("S1")

    oracle.script("S1", ShipmentStatus.LOST)

    result = oracle.observe("S1")
    assert isinstance(result, Observation)
    assert result.status is ShipmentStatus.LOST
