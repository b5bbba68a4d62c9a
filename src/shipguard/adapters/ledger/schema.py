"""Pydantic models describing ledger gateway payloads."""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from shipguard.domain.model import Policy, PolicyStatus, ShipmentStatus, to_wei
from shipguard.domain.ports.ledger import LedgerEvent, LedgerTotals, TxReceipt


class LedgerBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class EventPayload(LedgerBaseModel):
    name: str = Field(alias="event")
    args: dict[str, object] = Field(default_factory=dict)


class TransactionPayload(LedgerBaseModel):
    transaction_hash: str = Field(alias="transactionHash")
    block_number: int = Field(alias="blockNumber")
    gas_used: int = Field(default=0, alias="gasUsed")
    events: list[EventPayload] = Field(default_factory=list)


class StatusUpdateResponse(LedgerBaseModel):
    message: str | None = None
    blockchain: TransactionPayload


class CreatePolicyResponse(TransactionPayload):
    policy_id: int | None = Field(default=None, alias="policyId")


class PolicyPayload(LedgerBaseModel):
    """Policy as rendered by the gateway: amounts in ether, times in ISO 8601."""

    policy_id: int = Field(alias="policyId")
    policyholder: str
    shipment_id: str = Field(alias="shipmentId")
    coverage_amount: Decimal = Field(alias="coverageAmount")
    premium: Decimal
    start_time: datetime = Field(alias="startTime")
    end_time: datetime = Field(alias="endTime")
    status: PolicyStatus
    shipment_status: ShipmentStatus = Field(alias="shipmentStatus")
    claim_processed: bool = Field(alias="claimProcessed")

    @field_validator("start_time", "end_time")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        return value if value.tzinfo else value.replace(tzinfo=UTC)


class ContractInfoPayload(LedgerBaseModel):
    contract_address: str | None = Field(default=None, alias="contractAddress")
    balance: Decimal | None = None
    total_policies: int = Field(alias="totalPolicies")
    total_claims: int = Field(alias="totalClaims")
    oracle_address: str | None = Field(default=None, alias="oracleAddress")


class ErrorPayload(LedgerBaseModel):
    error: str


def _coerce_arg(value: object) -> object:
    # uint256 values arrive as decimal strings
    if isinstance(value, str) and value.isdigit():
        return int(value)
    return value


def parse_receipt(payload: TransactionPayload) -> TxReceipt:
    return TxReceipt(
        tx_hash=payload.transaction_hash,
        block_number=payload.block_number,
        gas_used=payload.gas_used,
        events=tuple(
            LedgerEvent(
                event.name,
                {key: _coerce_arg(value) for key, value in event.args.items()},
            )
            for event in payload.events
        ),
    )


def parse_policy(payload: PolicyPayload) -> Policy:
    return Policy(
        policy_id=payload.policy_id,
        holder=payload.policyholder,
        shipment_id=payload.shipment_id,
        coverage_amount=to_wei(payload.coverage_amount),
        premium=to_wei(payload.premium),
        start_time=payload.start_time,
        end_time=payload.end_time,
        policy_status=payload.status,
        shipment_status=payload.shipment_status,
        claim_processed=payload.claim_processed,
    )


def parse_totals(payload: ContractInfoPayload) -> LedgerTotals:
    return LedgerTotals(total_policies=payload.total_policies, total_claims=payload.total_claims)
