from __future__ import annotations

import json
from decimal import Decimal
from typing import TYPE_CHECKING

import httpx
import pytest

from shipguard.adapters.http_resilience import ResilientClient
from shipguard.adapters.ledger import HttpLedgerGateway
from shipguard.config import ResilienceConfig, RetryPolicy
from shipguard.domain.model import WEI_PER_UNIT, PolicyStatus, ShipmentStatus, to_wei
from shipguard.domain.ports.ledger import (
    CLAIM_APPROVED,
    InvalidStatusError,
    LedgerError,
    LedgerRejectedError,
    LedgerUnavailableError,
    PolicyAlreadyTerminalError,
    PolicyNotFoundError,
    UnauthorizedCallerError,
)

if TYPE_CHECKING:
    from collections.abc import Callable

type Handler = Callable[[httpx.Request], httpx.Response]

ORACLE_ADDRESS = "0x00000000000000000000000000000000000000bb"
HOLDER = "0x00000000000000000000000000000000000000cc"
TX_HASH = "0x" + "ab" * 32


def _gateway(handler: Handler) -> HttpLedgerGateway:
    config = ResilienceConfig(
        name="ledger",
        base_url="https://ledger.test",
        retry=RetryPolicy(total=0),
    )

    def factory(resilience: ResilienceConfig) -> ResilientClient:
        return ResilientClient(resilience, transport=httpx.MockTransport(handler))

    return HttpLedgerGateway(
        resilience=config,
        api_key="secret",
        oracle_address=ORACLE_ADDRESS,
        client_factory=factory,
    )


def _policy_json(policy_id: int = 7, shipment_id: str = "SHIP100") -> dict[str, object]:
    return {
        "policyId": policy_id,
        "policyholder": HOLDER,
        "shipmentId": shipment_id,
        "coverageAmount": "2.0",
        "premium": "0.04",
        "startTime": "2025-03-01T08:00:00.000Z",
        "endTime": "2025-03-08T08:00:00",
        "status": "Active",
        "shipmentStatus": "InTransit",
        "claimProcessed": False,
    }


def _transaction_json(events: list[dict[str, object]] | None = None) -> dict[str, object]:
    return {
        "transactionHash": TX_HASH,
        "blockNumber": 12,
        "gasUsed": "95000",
        "events": events or [],
    }


def test_status_update_is_signed_by_the_oracle_identity() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "message": "Shipment status updated on blockchain",
                "blockchain": _transaction_json(
                    [
                        {"event": "ShipmentStatusUpdated", "args": {"newStatus": "2"}},
                        {
                            "event": CLAIM_APPROVED,
                            "args": {"policyId": "7", "amount": str(2 * WEI_PER_UNIT)},
                        },
                    ]
                ),
            },
        )

    receipt = _gateway(handler).submit_status_update("SHIP100", ShipmentStatus.DAMAGED)

    (request,) = seen
    assert request.method == "POST"
    assert request.url.path == "/oracle/update-blockchain"
    assert json.loads(request.content) == {"shipmentId": "SHIP100", "status": "Damaged"}
    assert request.headers["Authorization"] == "Bearer secret"
    assert request.headers["X-Oracle-Address"] == ORACLE_ADDRESS
    assert receipt.tx_hash == TX_HASH
    assert receipt.block_number == 12
    assert receipt.gas_used == 95000
    assert receipt.claim_payout == 2 * WEI_PER_UNIT


@pytest.mark.parametrize(
    ("status_code", "reason", "error_cls"),
    [
        (403, "Only oracle can call this function", UnauthorizedCallerError),
        (401, "Unauthorized", UnauthorizedCallerError),
        (400, "Invalid status", InvalidStatusError),
        (404, "Policy not found", PolicyNotFoundError),
        (500, "execution reverted: Policy not active", PolicyAlreadyTerminalError),
        (500, "VM Exception while processing transaction: revert", LedgerUnavailableError),
        (502, "Bad gateway", LedgerUnavailableError),
    ],
)
def test_error_statuses_map_onto_the_ledger_taxonomy(
    status_code: int,
    reason: str,
    error_cls: type[LedgerError],
) -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json={"error": reason})

    with pytest.raises(error_cls) as excinfo:
        _gateway(handler).submit_status_update("SHIP100", ShipmentStatus.LOST)

    assert reason in str(excinfo.value)


def test_plain_text_error_body_is_used_as_reason() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(422, text="Shipment already insured")

    with pytest.raises(LedgerRejectedError, match="already insured"):
        _gateway(handler).submit_status_update("SHIP100", ShipmentStatus.LOST)


@pytest.mark.parametrize(
    ("error", "message"),
    [
        (httpx.ReadTimeout("slow"), "timed out"),
        (httpx.ConnectError("refused"), "failed"),
    ],
)
def test_transport_failures_are_transient(error: httpx.HTTPError, message: str) -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        raise error

    with pytest.raises(LedgerUnavailableError, match=message):
        _gateway(handler).read_totals()


def test_read_policy_converts_ether_amounts_to_wei() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/blockchain/policy/7"
        return httpx.Response(200, json=_policy_json())

    policy = _gateway(handler).read_policy(7)

    assert policy.coverage_amount == 2 * WEI_PER_UNIT
    assert policy.premium == to_wei(Decimal("0.04"))
    assert policy.policy_status is PolicyStatus.ACTIVE
    assert policy.end_time.tzinfo is not None
    assert policy.id is None


def test_read_user_policies_and_totals() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == f"/blockchain/user/{HOLDER}/policies":
            return httpx.Response(200, json=[_policy_json(3, "A"), _policy_json(5, "B")])
        return httpx.Response(
            200,
            json={"contractAddress": "0x1", "balance": "1.5", "totalPolicies": 5, "totalClaims": 2},
        )

    gateway = _gateway(handler)

    assert gateway.read_user_policies(HOLDER) == (3, 5)
    totals = gateway.read_totals()
    assert (totals.total_policies, totals.total_claims) == (5, 2)


def test_totals_error_payload_means_unavailable() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"error": "Blockchain not connected"})

    with pytest.raises(LedgerUnavailableError, match="not connected"):
        _gateway(handler).read_totals()


def test_create_policy_posts_ether_amount_and_reads_back_policy() -> None:
    bodies: list[object] = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={**_transaction_json(), "policyId": 7})
        return httpx.Response(200, json=_policy_json())

    issued = _gateway(handler).create_policy(
        holder=HOLDER,
        shipment_id="SHIP100",
        coverage_amount=2 * WEI_PER_UNIT,
        duration_seconds=86400,
    )

    (body,) = bodies
    assert body == {
        "userAddress": HOLDER,
        "shipmentId": "SHIP100",
        "coverageAmount": "2",
        "duration": 86400,
    }
    assert issued.policy.policy_id == 7
    assert issued.receipt.tx_hash == TX_HASH


def test_create_policy_without_id_finds_policy_by_shipment() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            return httpx.Response(200, json=_transaction_json())
        return httpx.Response(200, json=[_policy_json(1, "OTHER"), _policy_json(2, "SHIP100")])

    issued = _gateway(handler).create_policy(
        holder=HOLDER,
        shipment_id="SHIP100",
        coverage_amount=2 * WEI_PER_UNIT,
        duration_seconds=86400,
    )

    assert issued.policy.policy_id == 2


def test_unexpected_payloads_raise_ledger_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.startswith("/blockchain/policy"):
            return httpx.Response(200, json={"policyId": "not-a-number"})
        return httpx.Response(200, content=b"<html>", headers={"Content-Type": "text/html"})

    gateway = _gateway(handler)

    with pytest.raises(LedgerError, match="Unexpected ledger payload"):
        gateway.read_policy(1)
    with pytest.raises(LedgerError, match="invalid JSON"):
        gateway.read_totals()


def _eventless_gateway(
    seen: list[httpx.Request], *, claim_processed: bool
) -> HttpLedgerGateway:
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.method == "POST":
            return httpx.Response(200, json={"blockchain": _transaction_json()})
        policy = _policy_json()
        if claim_processed:
            policy.update(status="Claimed", shipmentStatus="Damaged", claimProcessed=True)
        return httpx.Response(200, json=policy)

    return _gateway(handler)


def test_payout_is_read_back_when_the_reply_has_no_events() -> None:
    seen: list[httpx.Request] = []
    gateway = _eventless_gateway(seen, claim_processed=True)

    receipt = gateway.submit_status_update("SHIP100", ShipmentStatus.DAMAGED, policy_id=7)

    assert [request.url.path for request in seen] == [
        "/oracle/update-blockchain",
        "/blockchain/policy/7",
    ]
    assert receipt.claim_paid
    assert receipt.claim_payout == 2 * WEI_PER_UNIT
    assert receipt.tx_hash == TX_HASH


def test_unprocessed_policy_reports_no_payout() -> None:
    seen: list[httpx.Request] = []
    gateway = _eventless_gateway(seen, claim_processed=False)

    receipt = gateway.submit_status_update("SHIP100", ShipmentStatus.LOST, policy_id=7)

    assert len(seen) == 2
    assert receipt.claim_payout is None


@pytest.mark.parametrize(
    ("status", "policy_id"),
    [(ShipmentStatus.DELIVERED, 7), (ShipmentStatus.DAMAGED, None)],
)
def test_no_read_back_without_a_terminal_status_and_policy_id(
    status: ShipmentStatus, policy_id: int | None
) -> None:
    seen: list[httpx.Request] = []
    gateway = _eventless_gateway(seen, claim_processed=True)

    receipt = gateway.submit_status_update("SHIP100", status, policy_id=policy_id)

    assert len(seen) == 1
    assert receipt.claim_payout is None
