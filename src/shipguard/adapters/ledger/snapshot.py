"""Serialised contract state for the locally persisted ledger."""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, field_validator

from shipguard.domain.model import Policy, PolicyStatus, ShipmentStatus


class PolicyState(BaseModel):
    model_config = ConfigDict(frozen=True)

    policy_id: int
    holder: str
    shipment_id: str
    coverage_amount: int
    premium: int
    start_time: datetime
    end_time: datetime
    policy_status: PolicyStatus
    shipment_status: ShipmentStatus
    claim_processed: bool

    @field_validator("start_time", "end_time")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        return value if value.tzinfo else value.replace(tzinfo=UTC)

    @classmethod
    def of(cls, policy: Policy) -> PolicyState:
        return cls(
            policy_id=policy.policy_id,
            holder=policy.holder,
            shipment_id=policy.shipment_id,
            coverage_amount=policy.coverage_amount,
            premium=policy.premium,
            start_time=policy.start_time,
            end_time=policy.end_time,
            policy_status=policy.policy_status,
            shipment_status=policy.shipment_status,
            claim_processed=policy.claim_processed,
        )

    def to_policy(self) -> Policy:
        return Policy(
            policy_id=self.policy_id,
            holder=self.holder,
            shipment_id=self.shipment_id,
            coverage_amount=self.coverage_amount,
            premium=self.premium,
            start_time=self.start_time,
            end_time=self.end_time,
            policy_status=self.policy_status,
            shipment_status=self.shipment_status,
            claim_processed=self.claim_processed,
        )


class LedgerSnapshot(BaseModel):
    """Everything an :class:`InMemoryLedger` needs to pick up where it stopped.

    Emitted events are not part of the state; receipts already carried them.
    """

    model_config = ConfigDict(frozen=True)

    owner: str
    oracle_address: str | None
    contract_balance: int
    block_number: int
    total_claims: int
    balances: dict[str, int]
    policies: list[PolicyState]
