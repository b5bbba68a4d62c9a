"""HTTP client for the ledger gateway service."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field, replace
from logging import getLogger
from typing import TYPE_CHECKING, Any, cast

import httpx
from pydantic import ValidationError

from shipguard.adapters.http_resilience import ResilientClient
from shipguard.config import ResilienceConfig
from shipguard.domain.model import from_wei
from shipguard.domain.ports.ledger import (
    CLAIM_APPROVED,
    LedgerError,
    LedgerEvent,
    LedgerRejectedError,
    LedgerUnavailableError,
    PolicyIssued,
    PolicyNotFoundError,
    UnauthorizedCallerError,
    classify_revert,
)

from .schema import (
    ContractInfoPayload,
    CreatePolicyResponse,
    ErrorPayload,
    PolicyPayload,
    StatusUpdateResponse,
    parse_policy,
    parse_receipt,
    parse_totals,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from pydantic import BaseModel

    from shipguard.domain.model import Policy, ShipmentStatus
    from shipguard.domain.ports.ledger import Ledger, LedgerTotals, TxReceipt

log = getLogger(__name__)


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


def _error_reason(response: httpx.Response) -> str:
    try:
        return ErrorPayload.model_validate(response.json()).error
    except (ValidationError, ValueError):
        return response.text or f"HTTP {response.status_code}"


def _raise_for_status(response: httpx.Response) -> None:
    """Translate gateway error statuses into ledger errors."""

    status_code = response.status_code
    if status_code < 400:
        return
    reason = _error_reason(response)
    if status_code in {401, 403}:
        raise UnauthorizedCallerError(reason)
    if status_code == 404:
        raise PolicyNotFoundError(reason)
    if status_code < 500:
        raise classify_revert(reason)

    # The gateway reports contract reverts as 500 with the revert reason in the body.
    rejection = classify_revert(reason)
    if type(rejection) is not LedgerRejectedError:
        raise rejection
    raise LedgerUnavailableError(f"ledger gateway returned HTTP {status_code}: {reason}")


def _validate[TModel: BaseModel](model: type[TModel], payload: object) -> TModel:
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        log.debug("Rejected ledger payload: %s", payload)
        raise LedgerError(f"Unexpected ledger payload: {exc.error_count()} errors") from exc


@dataclass(slots=True)
class HttpLedgerGateway:
    """Ledger port over the gateway's REST routes.

    Every request carries the oracle identity; the gateway signs status updates
    with that identity only.
    """

    resilience: ResilienceConfig
    api_key: str
    oracle_address: str
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )

    def submit_status_update(
        self,
        shipment_id: str,
        status: ShipmentStatus,
        *,
        policy_id: int | None = None,
    ) -> TxReceipt:
        payload = self._call(
            "POST",
            "/oracle/update-blockchain",
            json={"shipmentId": shipment_id, "status": str(status)},
        )
        response = _validate(StatusUpdateResponse, payload)
        receipt = parse_receipt(response.blockchain)
        if receipt.events or not status.is_terminal or policy_id is None:
            return receipt
        return self._with_payout(receipt, policy_id)

    def read_policy(self, policy_id: int) -> Policy:
        payload = self._call("GET", f"/blockchain/policy/{policy_id}")
        return parse_policy(_validate(PolicyPayload, payload))

    def read_user_policies(self, holder: str) -> tuple[int, ...]:
        return tuple(policy.policy_id for policy in self._user_policies(holder))

    def read_totals(self) -> LedgerTotals:
        payload = self._call("GET", "/blockchain/info")
        if isinstance(payload, dict) and "error" in payload:
            raise LedgerUnavailableError(str(cast("dict[str, Any]", payload)["error"]))
        return parse_totals(_validate(ContractInfoPayload, payload))

    def create_policy(
        self,
        *,
        holder: str,
        shipment_id: str,
        coverage_amount: int,
        duration_seconds: int,
    ) -> PolicyIssued:
        payload = self._call(
            "POST",
            "/blockchain/create-policy",
            json={
                "userAddress": holder,
                "shipmentId": shipment_id,
                "coverageAmount": str(from_wei(coverage_amount)),
                "duration": duration_seconds,
            },
        )
        response = _validate(CreatePolicyResponse, payload)
        receipt = parse_receipt(response)

        if response.policy_id is not None:
            return PolicyIssued(policy=self.read_policy(response.policy_id), receipt=receipt)

        # Older gateways only return the receipt; find the policy by shipment.
        for candidate in self._user_policies(holder):
            if candidate.shipment_id == shipment_id:
                return PolicyIssued(policy=parse_policy(candidate), receipt=receipt)
        raise LedgerError(f"Policy for shipment {shipment_id} missing after creation")

    def _with_payout(self, receipt: TxReceipt, policy_id: int) -> TxReceipt:
        """Recover the payout from the policy when the gateway reply lists no events.

        The update only succeeds on an Active policy, so a processed claim right
        after it was paid by this transaction.
        """

        try:
            policy = self.read_policy(policy_id)
        except LedgerError as exc:
            log.warning("Could not confirm payout for policy %s: %s", policy_id, exc)
            return receipt
        if not policy.claim_processed:
            return receipt
        approved = LedgerEvent(
            CLAIM_APPROVED,
            {
                "policyId": policy.policy_id,
                "policyholder": policy.holder,
                "amount": policy.coverage_amount,
            },
        )
        return replace(receipt, events=(*receipt.events, approved))

    def _user_policies(self, holder: str) -> list[PolicyPayload]:
        payload = self._call("GET", f"/blockchain/user/{holder}/policies")
        if not isinstance(payload, list):
            raise LedgerError("Unexpected ledger payload for user policies")
        return [_validate(PolicyPayload, item) for item in cast("list[object]", payload)]

    def _call(self, method: str, path: str, *, json: object | None = None) -> object:
        return asyncio.run(self._call_async(method, path, json=json))

    async def _call_async(self, method: str, path: str, *, json: object | None) -> object:
        headers = {
            "Accept": "application/json",
            "Authorization": f"Bearer {self.api_key}",
            "X-Oracle-Address": self.oracle_address,
        }
        try:
            async with self.client_factory(self.resilience) as client:
                response = await client.request(method, path, json=json, headers=headers)
        except httpx.TimeoutException as exc:
            raise LedgerUnavailableError(f"ledger request timed out: {method} {path}") from exc
        except httpx.HTTPError as exc:
            raise LedgerUnavailableError(f"ledger request failed: {exc}") from exc

        _raise_for_status(response)
        try:
            return response.json()
        except ValueError as exc:
            raise LedgerError(f"Ledger gateway returned invalid JSON for {path}") from exc


if TYPE_CHECKING:
    _ledger_check: Ledger = HttpLedgerGateway(
        resilience=ResilienceConfig(name="ledger"), api_key="", oracle_address=""
    )
