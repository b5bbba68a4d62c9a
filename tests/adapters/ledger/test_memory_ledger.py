from __future__ import annotations

import pytest

from shipguard.adapters.ledger import InMemoryLedger, InMemoryLedgerGateway
from shipguard.adapters.ledger.memory import REVERT_INSUFFICIENT_BALANCE
from shipguard.domain.model import WEI_PER_UNIT, PolicyStatus, ShipmentStatus, premium_for
from shipguard.domain.ports.ledger import (
    CLAIM_APPROVED,
    POLICY_CREATED,
    SHIPMENT_STATUS_UPDATED,
    DuplicateShipmentError,
    IncorrectPremiumError,
    InvalidStatusError,
    Ledger,
    LedgerRejectedError,
    PolicyAlreadyTerminalError,
    PolicyNotFoundError,
    UnauthorizedCallerError,
)
from tests.helpers.shipments import HOLDER, ORACLE, OWNER, make_ledger


def _create(ledger_gateway: InMemoryLedgerGateway, shipment_id: str, coverage: int) -> int:
    issued = ledger_gateway.create_policy(
        holder=HOLDER,
        shipment_id=shipment_id,
        coverage_amount=coverage,
        duration_seconds=3600,
    )
    return issued.policy.policy_id


def test_gateway_satisfies_the_ledger_port() -> None:
    assert isinstance(InMemoryLedgerGateway(make_ledger(), identity=ORACLE), Ledger)


def test_create_policy_charges_two_percent_premium() -> None:
    ledger = make_ledger(reserve=0)
    holder_gateway = InMemoryLedgerGateway(ledger, identity=HOLDER)

    issued = holder_gateway.create_policy(
        holder=HOLDER,
        shipment_id="SHIP1",
        coverage_amount=WEI_PER_UNIT,
        duration_seconds=3600,
    )

    assert issued.policy.premium == WEI_PER_UNIT * 2 // 100
    assert issued.policy.policy_status is PolicyStatus.ACTIVE
    assert ledger.contract_balance == issued.policy.premium
    assert [event.name for event in issued.receipt.events] == [POLICY_CREATED]
    assert issued.receipt.tx_hash.startswith("0x")
    assert ledger.get_user_policies(HOLDER) == (1,)


def test_create_policy_rejects_wrong_premium_and_duplicates() -> None:
    ledger = make_ledger()

    with pytest.raises(IncorrectPremiumError):
        ledger.create_policy(
            caller=HOLDER,
            shipment_id="SHIP1",
            coverage_amount=WEI_PER_UNIT,
            duration_seconds=60,
            value=premium_for(WEI_PER_UNIT) - 1,
        )

    _create(InMemoryLedgerGateway(ledger, identity=HOLDER), "SHIP1", WEI_PER_UNIT)
    with pytest.raises(DuplicateShipmentError):
        _create(InMemoryLedgerGateway(ledger, identity=HOLDER), "SHIP1", WEI_PER_UNIT)


@pytest.mark.parametrize(("coverage", "duration"), [(0, 60), (WEI_PER_UNIT, 0)])
def test_create_policy_requires_coverage_and_duration(coverage: int, duration: int) -> None:
    ledger = make_ledger()

    with pytest.raises(LedgerRejectedError, match="must be greater than 0"):
        ledger.create_policy(
            caller=HOLDER,
            shipment_id="SHIP1",
            coverage_amount=coverage,
            duration_seconds=duration,
            value=0,
        )


def test_only_the_oracle_may_update_status() -> None:
    ledger = make_ledger()
    _create(InMemoryLedgerGateway(ledger, identity=HOLDER), "SHIP1", WEI_PER_UNIT)
    intruder = InMemoryLedgerGateway(ledger, identity=HOLDER)

    with pytest.raises(UnauthorizedCallerError):
        intruder.submit_status_update("SHIP1", ShipmentStatus.DAMAGED)

    assert ledger.get_policy(1).policy_status is PolicyStatus.ACTIVE


def test_terminal_update_pays_the_holder_once() -> None:
    ledger = make_ledger()
    _create(InMemoryLedgerGateway(ledger, identity=HOLDER), "SHIP1", 2 * WEI_PER_UNIT)
    oracle = InMemoryLedgerGateway(ledger, identity=ORACLE)
    balance_before = ledger.contract_balance

    receipt = oracle.submit_status_update("SHIP1", ShipmentStatus.DAMAGED)

    assert receipt.claim_paid
    assert receipt.claim_payout == 2 * WEI_PER_UNIT
    assert [event.name for event in receipt.events] == [SHIPMENT_STATUS_UPDATED, CLAIM_APPROVED]
    assert ledger.balance_of(HOLDER) == 2 * WEI_PER_UNIT
    assert ledger.contract_balance == balance_before - 2 * WEI_PER_UNIT
    policy = oracle.read_policy(1)
    assert policy.policy_status is PolicyStatus.CLAIMED
    assert policy.claim_processed
    assert oracle.read_totals().total_claims == 1

    with pytest.raises(PolicyAlreadyTerminalError):
        oracle.submit_status_update("SHIP1", ShipmentStatus.LOST)
    assert ledger.balance_of(HOLDER) == 2 * WEI_PER_UNIT


def test_non_terminal_update_records_status_without_payout() -> None:
    ledger = make_ledger()
    _create(InMemoryLedgerGateway(ledger, identity=HOLDER), "SHIP1", WEI_PER_UNIT)
    oracle = InMemoryLedgerGateway(ledger, identity=ORACLE)

    receipt = oracle.submit_status_update("SHIP1", ShipmentStatus.DELIVERED)

    assert not receipt.claim_paid
    assert ledger.get_policy(1).shipment_status is ShipmentStatus.DELIVERED
    assert ledger.get_policy(1).policy_status is PolicyStatus.ACTIVE


def test_update_for_unknown_shipment_or_code() -> None:
    ledger = make_ledger()
    _create(InMemoryLedgerGateway(ledger, identity=HOLDER), "SHIP1", WEI_PER_UNIT)

    with pytest.raises(PolicyNotFoundError):
        ledger.update_shipment_status(caller=ORACLE, shipment_id="NOPE", code=2)
    with pytest.raises(InvalidStatusError):
        ledger.update_shipment_status(caller=ORACLE, shipment_id="SHIP1", code=9)
    with pytest.raises(PolicyNotFoundError):
        ledger.get_policy(42)


def test_payout_requires_funds_in_the_contract() -> None:
    ledger = make_ledger(reserve=0)
    _create(InMemoryLedgerGateway(ledger, identity=HOLDER), "SHIP1", WEI_PER_UNIT)

    with pytest.raises(LedgerRejectedError, match=REVERT_INSUFFICIENT_BALANCE):
        ledger.update_shipment_status(caller=ORACLE, shipment_id="SHIP1", code=3)

    policy = ledger.get_policy(1)
    assert policy.policy_status is PolicyStatus.ACTIVE
    assert policy.shipment_status is ShipmentStatus.IN_TRANSIT


def test_owner_only_administration() -> None:
    ledger = make_ledger(reserve=0)
    ledger.fund(caller=HOLDER, value=5)

    with pytest.raises(UnauthorizedCallerError):
        ledger.withdraw(caller=HOLDER)
    with pytest.raises(UnauthorizedCallerError):
        ledger.set_oracle_address(caller=HOLDER, address=HOLDER)

    ledger.set_oracle_address(caller=OWNER, address="0xnew")
    ledger.withdraw(caller=OWNER)

    assert ledger.oracle_address == "0xnew"
    assert ledger.contract_balance == 0
    assert ledger.balance_of(OWNER) == 5


def test_read_policy_returns_a_copy() -> None:
    ledger = make_ledger()
    _create(InMemoryLedgerGateway(ledger, identity=HOLDER), "SHIP1", WEI_PER_UNIT)

    copy = ledger.get_policy(1)
    copy.claim_processed = True

    assert not ledger.get_policy(1).claim_processed


def test_blocks_advance_per_transaction() -> None:
    ledger = make_ledger()
    first = ledger.fund(caller=OWNER, value=1)
    second = ledger.fund(caller=OWNER, value=1)

    assert second.block_number == first.block_number + 1
    assert first.tx_hash != second.tx_hash


def test_restored_ledger_continues_where_the_snapshot_stopped() -> None:
    ledger = make_ledger()
    holder_gateway = InMemoryLedgerGateway(ledger, identity=HOLDER)
    _create(holder_gateway, "SHIP1", WEI_PER_UNIT)
    _create(holder_gateway, "SHIP2", 2 * WEI_PER_UNIT)
    InMemoryLedgerGateway(ledger, identity=ORACLE).submit_status_update(
        "SHIP2", ShipmentStatus.DAMAGED
    )

    restored = InMemoryLedger.restore(ledger.snapshot())

    assert restored.totals() == ledger.totals()
    assert restored.balance_of(HOLDER) == 2 * WEI_PER_UNIT
    assert restored.contract_balance == ledger.contract_balance
    assert restored.get_policy(2).policy_status is PolicyStatus.CLAIMED
    assert _create(InMemoryLedgerGateway(restored, identity=HOLDER), "SHIP3", WEI_PER_UNIT) == 3
    with pytest.raises(DuplicateShipmentError):
        _create(InMemoryLedgerGateway(restored, identity=HOLDER), "SHIP1", WEI_PER_UNIT)
