"""Process-local simulation of the insurance contract.

The contract holds premiums, pays claims and is the only authority on funds. The
simulation keeps the same access rules and revert reasons so the engine can be
exercised without a chain.
"""

from __future__ import annotations

import hashlib
import threading
from collections import defaultdict
from dataclasses import replace
from datetime import UTC, datetime, timedelta
from logging import getLogger
from typing import TYPE_CHECKING, Final

from shipguard.domain.model import Policy, PolicyStatus, ShipmentStatus, premium_for
from shipguard.domain.ports.ledger import (
    CLAIM_APPROVED,
    POLICY_CREATED,
    REVERT_INCORRECT_PREMIUM,
    REVERT_INVALID_STATUS,
    REVERT_ONLY_ORACLE,
    REVERT_ONLY_OWNER,
    REVERT_POLICY_NOT_ACTIVE,
    REVERT_POLICY_NOT_FOUND,
    REVERT_SHIPMENT_INSURED,
    SHIPMENT_STATUS_UPDATED,
    LedgerEvent,
    LedgerTotals,
    PolicyIssued,
    TxReceipt,
    classify_revert,
)

from .snapshot import LedgerSnapshot, PolicyState

if TYPE_CHECKING:
    from collections.abc import Callable

    from shipguard.domain.ports.ledger import Ledger

log = getLogger(__name__)

REVERT_ZERO_COVERAGE: Final[str] = "Coverage amount must be greater than 0"
REVERT_ZERO_DURATION: Final[str] = "Duration must be greater than 0"
REVERT_INSUFFICIENT_BALANCE: Final[str] = "Insufficient contract balance"

CREATE_POLICY_GAS: Final[int] = 250_000
UPDATE_STATUS_GAS: Final[int] = 60_000
CLAIM_PAYOUT_GAS: Final[int] = 35_000


def _utcnow() -> datetime:
    return datetime.now(UTC)


class InMemoryLedger:
    """Thread-safe contract state with owner and oracle access control."""

    def __init__(
        self,
        *,
        owner: str,
        oracle_address: str | None = None,
        reserve: int = 0,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._lock = threading.RLock()
        self._clock = clock
        self.owner = owner
        self._oracle_address = oracle_address
        self._contract_balance = reserve
        self._policies: dict[int, Policy] = {}
        self._policy_by_shipment: dict[str, int] = {}
        self._policies_by_holder: defaultdict[str, list[int]] = defaultdict(list)
        self._balances: defaultdict[str, int] = defaultdict(int)
        self._total_claims = 0
        self._block_number = 0
        self.events: list[LedgerEvent] = []

    @property
    def oracle_address(self) -> str | None:
        return self._oracle_address

    @property
    def contract_balance(self) -> int:
        return self._contract_balance

    def balance_of(self, address: str) -> int:
        """Funds paid out to ``address`` by this ledger."""

        with self._lock:
            return self._balances[address]

    def set_oracle_address(self, *, caller: str, address: str) -> TxReceipt:
        with self._lock:
            self._require_owner(caller)
            self._oracle_address = address
            return self._mine(caller, "setOracleAddress", address)

    def fund(self, *, caller: str, value: int) -> TxReceipt:
        if value <= 0:
            raise ValueError("Funding amount must be positive")
        with self._lock:
            self._contract_balance += value
            return self._mine(caller, "fund", str(value))

    def withdraw(self, *, caller: str) -> TxReceipt:
        with self._lock:
            self._require_owner(caller)
            amount = self._contract_balance
            self._contract_balance = 0
            self._balances[caller] += amount
            return self._mine(caller, "withdraw", str(amount))

    def create_policy(
        self,
        *,
        caller: str,
        shipment_id: str,
        coverage_amount: int,
        duration_seconds: int,
        value: int,
    ) -> TxReceipt:
        with self._lock:
            if coverage_amount <= 0:
                raise classify_revert(REVERT_ZERO_COVERAGE)
            if duration_seconds <= 0:
                raise classify_revert(REVERT_ZERO_DURATION)
            if shipment_id in self._policy_by_shipment:
                raise classify_revert(REVERT_SHIPMENT_INSURED)
            premium = premium_for(coverage_amount)
            if value != premium:
                raise classify_revert(REVERT_INCORRECT_PREMIUM)

            policy_id = len(self._policies) + 1
            start_time = self._clock()
            self._policies[policy_id] = Policy(
                policy_id=policy_id,
                holder=caller,
                shipment_id=shipment_id,
                coverage_amount=coverage_amount,
                premium=premium,
                start_time=start_time,
                end_time=start_time + timedelta(seconds=duration_seconds),
            )
            self._policy_by_shipment[shipment_id] = policy_id
            self._policies_by_holder[caller].append(policy_id)
            self._contract_balance += value

            event = LedgerEvent(
                POLICY_CREATED,
                {
                    "policyId": policy_id,
                    "policyholder": caller,
                    "shipmentId": shipment_id,
                    "coverageAmount": coverage_amount,
                    "premium": premium,
                },
            )
            log.info("Ledger policy %s created for shipment %s", policy_id, shipment_id)
            return self._mine(
                caller, "createPolicy", shipment_id, events=(event,), gas=CREATE_POLICY_GAS
            )

    def update_shipment_status(self, *, caller: str, shipment_id: str, code: int) -> TxReceipt:
        """Record a status; Damaged or Lost on an Active policy pays out the coverage."""

        with self._lock:
            if caller != self._oracle_address:
                raise classify_revert(REVERT_ONLY_ORACLE)
            try:
                status = ShipmentStatus.from_code(code)
            except ValueError:
                raise classify_revert(REVERT_INVALID_STATUS) from None
            policy_id = self._policy_by_shipment.get(shipment_id)
            if policy_id is None:
                raise classify_revert(REVERT_POLICY_NOT_FOUND)
            policy = self._policies[policy_id]
            if not policy.is_active:
                raise classify_revert(REVERT_POLICY_NOT_ACTIVE)

            pays_claim = status.is_terminal and not policy.claim_processed
            if pays_claim and self._contract_balance < policy.coverage_amount:
                raise classify_revert(REVERT_INSUFFICIENT_BALANCE)

            policy.shipment_status = status
            events = [
                LedgerEvent(
                    SHIPMENT_STATUS_UPDATED,
                    {"policyId": policy_id, "shipmentId": shipment_id, "newStatus": code},
                )
            ]
            gas_used = UPDATE_STATUS_GAS
            if pays_claim:
                policy.transition_to(PolicyStatus.CLAIMED)
                policy.claim_processed = True
                self._contract_balance -= policy.coverage_amount
                self._balances[policy.holder] += policy.coverage_amount
                self._total_claims += 1
                events.append(
                    LedgerEvent(
                        CLAIM_APPROVED,
                        {
                            "policyId": policy_id,
                            "policyholder": policy.holder,
                            "amount": policy.coverage_amount,
                        },
                    )
                )
                gas_used += CLAIM_PAYOUT_GAS
                log.info(
                    "Ledger paid claim for policy %s (%s wei to %s)",
                    policy_id,
                    policy.coverage_amount,
                    policy.holder,
                )
            return self._mine(
                caller, "updateShipmentStatus", shipment_id, events=tuple(events), gas=gas_used
            )

    def get_policy(self, policy_id: int) -> Policy:
        with self._lock:
            policy = self._policies.get(policy_id)
            if policy is None:
                raise classify_revert(REVERT_POLICY_NOT_FOUND)
            return replace(policy)

    def get_user_policies(self, holder: str) -> tuple[int, ...]:
        with self._lock:
            return tuple(self._policies_by_holder.get(holder, ()))

    def totals(self) -> LedgerTotals:
        with self._lock:
            return LedgerTotals(total_policies=len(self._policies), total_claims=self._total_claims)

    def snapshot(self) -> LedgerSnapshot:
        with self._lock:
            return LedgerSnapshot(
                owner=self.owner,
                oracle_address=self._oracle_address,
                contract_balance=self._contract_balance,
                block_number=self._block_number,
                total_claims=self._total_claims,
                balances=dict(self._balances),
                policies=[PolicyState.of(policy) for policy in self._policies.values()],
            )

    @classmethod
    def restore(
        cls,
        snapshot: LedgerSnapshot,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> InMemoryLedger:
        """Rebuild a ledger from :meth:`snapshot` output, keeping policy order."""

        ledger = cls(
            owner=snapshot.owner,
            oracle_address=snapshot.oracle_address,
            reserve=snapshot.contract_balance,
            clock=clock,
        )
        ledger._block_number = snapshot.block_number
        ledger._total_claims = snapshot.total_claims
        ledger._balances.update(snapshot.balances)
        for state in sorted(snapshot.policies, key=lambda item: item.policy_id):
            policy = state.to_policy()
            ledger._policies[policy.policy_id] = policy
            ledger._policy_by_shipment[policy.shipment_id] = policy.policy_id
            ledger._policies_by_holder[policy.holder].append(policy.policy_id)
        return ledger

    def _require_owner(self, caller: str) -> None:
        if caller != self.owner:
            raise classify_revert(REVERT_ONLY_OWNER)

    def _mine(
        self,
        caller: str,
        method: str,
        argument: str,
        *,
        events: tuple[LedgerEvent, ...] = (),
        gas: int = 0,
    ) -> TxReceipt:
        self._block_number += 1
        self.events.extend(events)
        digest = hashlib.sha256(
            f"{self._block_number}:{caller}:{method}:{argument}".encode()
        ).hexdigest()
        return TxReceipt(
            tx_hash=f"0x{digest}",
            block_number=self._block_number,
            gas_used=gas,
            events=events,
        )


class InMemoryLedgerGateway:
    """``Ledger`` port bound to one caller identity on an :class:`InMemoryLedger`."""

    def __init__(self, ledger: InMemoryLedger, *, identity: str) -> None:
        self.ledger = ledger
        self.identity = identity

    def submit_status_update(
        self,
        shipment_id: str,
        status: ShipmentStatus,
        *,
        policy_id: int | None = None,
    ) -> TxReceipt:
        _ = policy_id  # receipts from the simulation always carry their events
        return self.ledger.update_shipment_status(
            caller=self.identity, shipment_id=shipment_id, code=status.code
        )

    def read_policy(self, policy_id: int) -> Policy:
        return self.ledger.get_policy(policy_id)

    def read_user_policies(self, holder: str) -> tuple[int, ...]:
        return self.ledger.get_user_policies(holder)

    def read_totals(self) -> LedgerTotals:
        return self.ledger.totals()

    def create_policy(
        self,
        *,
        holder: str,
        shipment_id: str,
        coverage_amount: int,
        duration_seconds: int,
    ) -> PolicyIssued:
        receipt = self.ledger.create_policy(
            caller=holder,
            shipment_id=shipment_id,
            coverage_amount=coverage_amount,
            duration_seconds=duration_seconds,
            value=premium_for(coverage_amount),
        )
        (created,) = receipt.events_named(POLICY_CREATED)
        policy_id = created.args["policyId"]
        if not isinstance(policy_id, int):
            raise TypeError(f"Unexpected policy id in receipt: {policy_id!r}")
        return PolicyIssued(policy=self.ledger.get_policy(policy_id), receipt=receipt)


if TYPE_CHECKING:
    _ledger_check: Ledger = InMemoryLedgerGateway(InMemoryLedger(owner="0x0"), identity="0x0")
