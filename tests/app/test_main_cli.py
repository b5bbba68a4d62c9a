from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import pytest

from shipguard import main as cli
from shipguard.adapters.oracle import SimulatedShipmentOracle
from shipguard.adapters.sqlalchemy.unit_of_work import SqlAlchemyMirrorUnitOfWork, shutdown
from shipguard.app import build_ledger
from shipguard.domain.mirror import MirrorStore
from shipguard.domain.model import (
    WEI_PER_UNIT,
    PolicyOverview,
    PolicyStatus,
    ShipmentStatus,
    TrackingEntry,
    TrackingStats,
)
from shipguard.domain.reconciliation import BatchResult, CheckOutcome, ShipmentCheckResult
from tests.helpers.shipments import HOLDER, make_policy

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


@pytest.fixture(autouse=True)
def local_ledger_backend(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("LEDGER_BACKEND", raising=False)


def _batch(*outcomes: CheckOutcome) -> BatchResult:
    return BatchResult(
        results=tuple(
            ShipmentCheckResult(
                shipment_id=f"SHIP{index}",
                outcome=outcome,
                status=ShipmentStatus.DAMAGED if outcome is CheckOutcome.APPLIED else None,
                error=None if outcome is CheckOutcome.APPLIED else "oracle unavailable",
            )
            for index, outcome in enumerate(outcomes, start=1)
        )
    )


def test_missing_command_exits_with_usage_error() -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main([])

    assert excinfo.value.code == 2


@pytest.mark.parametrize("coverage", ["0", "-1", "abc", "0.0000000000000000001"])
def test_invalid_coverage_is_a_validation_error(coverage: str) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(
            ["issue-policy", "--holder", HOLDER, "--shipment-id", "SHIP1", "--coverage", coverage]
        )

    assert excinfo.value.code == 2


def test_non_positive_duration_is_a_validation_error() -> None:
    argv = [
        "issue-policy",
        "--holder",
        HOLDER,
        "--shipment-id",
        "SHIP1",
        "--coverage",
        "1",
        "--duration-days",
        "0",
    ]

    with pytest.raises(SystemExit) as excinfo:
        cli.main(argv)

    assert excinfo.value.code == 2


def test_issue_policy_converts_units(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, Any] = {}

    def fake_issue_policy(**kwargs: Any) -> object:
        captured.update(kwargs)
        return make_policy(kwargs["shipment_id"])

    monkeypatch.setattr(cli, "issue_policy", fake_issue_policy)

    cli.main(
        [
            "issue-policy",
            "--holder",
            HOLDER,
            "--shipment-id",
            "SHIP100",
            "--coverage",
            "2.5",
            "--duration-days",
            "1.5",
        ]
    )

    assert captured == {
        "holder": HOLDER,
        "shipment_id": "SHIP100",
        "coverage_amount": 5 * WEI_PER_UNIT // 2,
        "duration_seconds": 129_600,
    }


def test_cycle_prints_json_payload(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setattr(cli, "reconcile_once", lambda: _batch(CheckOutcome.APPLIED))

    cli.main(["cycle", "--json"])

    payload = json.loads(capsys.readouterr().out)
    assert payload == {
        "results": [{"shipmentId": "SHIP1", "status": "Damaged", "success": True}],
        "totalChecked": 1,
    }


def test_cycle_with_failures_exits_nonzero(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        cli,
        "reconcile_once",
        lambda: _batch(CheckOutcome.APPLIED, CheckOutcome.UNAVAILABLE),
    )

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["cycle"])

    assert excinfo.value.code == 3


def test_check_reports_failure_payload(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    result = ShipmentCheckResult(
        shipment_id="SHIP9", outcome=CheckOutcome.REJECTED, error="Policy not active"
    )
    monkeypatch.setattr(cli, "check_shipment", lambda shipment_id: result)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["check", "SHIP9", "--json"])

    assert excinfo.value.code == 3
    assert json.loads(capsys.readouterr().out) == {
        "shipmentId": "SHIP9",
        "error": "Policy not active",
        "success": False,
    }


def test_fatal_error_exits_with_one(monkeypatch: pytest.MonkeyPatch) -> None:
    def broken() -> BatchResult:
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(cli, "reconcile_once", broken)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["cycle"])

    assert excinfo.value.code == 1


def test_tracking_prints_one_line_per_entry(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    entries = [
        TrackingEntry(
            shipment_id="SHIP1",
            status=ShipmentStatus.IN_TRANSIT,
            location="Rotterdam",
            note=None,
            timestamp=datetime(2025, 3, 1, 10, 0, tzinfo=UTC),
        ),
        TrackingEntry(
            shipment_id="SHIP1",
            status=ShipmentStatus.DELIVERED,
            location=None,
            note="Signed for",
            timestamp=datetime(2025, 3, 2, 10, 0, tzinfo=UTC),
        ),
    ]
    monkeypatch.setattr(cli, "tracking_history", lambda shipment_id: entries)

    cli.main(["tracking", "SHIP1"])

    lines = capsys.readouterr().out.splitlines()
    assert len(lines) == 2
    assert "Rotterdam" in lines[0]
    assert "Delivered" in lines[1]
    assert lines[1].endswith("Signed for")


def test_stats_output(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    tracking = TrackingStats(
        total=3, by_status={ShipmentStatus.IN_TRANSIT: 2, ShipmentStatus.LOST: 1}
    )
    overview = PolicyOverview(
        total_policies=2,
        active_policies=1,
        claimed_policies=1,
        total_claims=1,
        total_coverage=3 * WEI_PER_UNIT,
    )
    monkeypatch.setattr(cli, "mirror_stats", lambda: (tracking, overview))

    cli.main(["stats"])

    out = capsys.readouterr().out
    assert "Policies: 2 (active 1, claimed 1)" in out
    assert "Total coverage: 3" in out
    assert "InTransit: 2" in out
    assert "Lost: 1" in out


@pytest.fixture
def database_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    path = tmp_path / "shipguard.db"
    monkeypatch.setenv("DATABASE_URI", f"sqlite+pysqlite:///{path}")
    shutdown()
    try:
        yield path
    finally:
        shutdown()


def _issue_command(shipment_id: str) -> list[str]:
    return ["issue-policy", "--holder", HOLDER, "--shipment-id", shipment_id, "--coverage", "2"]


@pytest.mark.usefixtures("database_file")
def test_separate_commands_share_the_local_ledger(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    oracle = SimulatedShipmentOracle(scripted={"SHIP2": ShipmentStatus.DAMAGED})
    monkeypatch.setattr("shipguard.app.build_oracle", lambda config=None: oracle)

    # Each command runs as if in a fresh process against the same database file.
    cli.main(_issue_command("SHIP1"))
    shutdown()
    cli.main(_issue_command("SHIP2"))
    shutdown()
    cli.main(["check", "SHIP2", "--json"])

    assert json.loads(capsys.readouterr().out) == {
        "shipmentId": "SHIP2",
        "status": "Damaged",
        "success": True,
    }
    ledger = build_ledger()
    assert ledger.read_user_policies(HOLDER) == (1, 2)
    assert ledger.read_policy(2).claim_processed
    assert ledger.read_totals().total_claims == 1
    mirrored = MirrorStore(SqlAlchemyMirrorUnitOfWork).find_policy("SHIP2")
    assert mirrored is not None
    assert mirrored.policy_status is PolicyStatus.CLAIMED


@pytest.mark.parametrize("argv", [["cycle"], ["check", "SHIP1"], _issue_command("SHIP1")])
def test_one_shot_commands_refuse_the_in_memory_ledger(
    monkeypatch: pytest.MonkeyPatch, argv: list[str]
) -> None:
    monkeypatch.setenv("LEDGER_BACKEND", "memory")

    def unexpected(*args: object, **kwargs: object) -> object:
        raise AssertionError("command should not run")

    for name in ("reconcile_once", "check_shipment", "issue_policy"):
        monkeypatch.setattr(cli, name, unexpected)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(argv)

    assert excinfo.value.code == 1
