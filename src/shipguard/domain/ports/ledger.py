"""Port for the authoritative funds ledger."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Final, Protocol, runtime_checkable

if TYPE_CHECKING:
    from shipguard.domain.model import Policy, ShipmentStatus

POLICY_CREATED: Final[str] = "PolicyCreated"
SHIPMENT_STATUS_UPDATED: Final[str] = "ShipmentStatusUpdated"
CLAIM_APPROVED: Final[str] = "ClaimApproved"


class LedgerError(RuntimeError):
    """Base class for ledger failures."""


class LedgerUnavailableError(LedgerError):
    """Network, timeout or gateway failure; the call may succeed if retried."""


class LedgerRejectedError(LedgerError):
    """The ledger refused the call; retrying the same call will not help."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class UnauthorizedCallerError(LedgerRejectedError):
    """The caller identity is not allowed to perform the call."""


class InvalidStatusError(LedgerRejectedError):
    """The status value is outside the ledger's shipment-status domain."""


class PolicyAlreadyTerminalError(LedgerRejectedError):
    """The policy already left Active; a repeated terminal update is a no-op."""


class PolicyNotFoundError(LedgerRejectedError):
    """No policy exists for the given id or shipment."""


class DuplicateShipmentError(LedgerRejectedError):
    """A policy already exists for the shipment."""


class IncorrectPremiumError(LedgerRejectedError):
    """The premium sent does not match the coverage amount."""


REVERT_ONLY_ORACLE: Final[str] = "Only oracle can call this function"
REVERT_ONLY_OWNER: Final[str] = "Ownable: caller is not the owner"
REVERT_INVALID_STATUS: Final[str] = "Invalid status"
REVERT_POLICY_NOT_ACTIVE: Final[str] = "Policy not active"
REVERT_POLICY_NOT_FOUND: Final[str] = "Policy not found"
REVERT_SHIPMENT_INSURED: Final[str] = "Shipment already insured"
REVERT_INCORRECT_PREMIUM: Final[str] = "Incorrect premium amount"

_REVERT_CLASSES: Final[tuple[tuple[str, type[LedgerRejectedError]], ...]] = (
    (REVERT_ONLY_ORACLE, UnauthorizedCallerError),
    (REVERT_ONLY_OWNER, UnauthorizedCallerError),
    (REVERT_INVALID_STATUS, InvalidStatusError),
    (REVERT_POLICY_NOT_ACTIVE, PolicyAlreadyTerminalError),
    (REVERT_POLICY_NOT_FOUND, PolicyNotFoundError),
    (REVERT_SHIPMENT_INSURED, DuplicateShipmentError),
    (REVERT_INCORRECT_PREMIUM, IncorrectPremiumError),
)


def classify_revert(reason: str) -> LedgerRejectedError:
    """Map a revert reason string onto the matching rejection class."""

    lowered = reason.lower()
    for marker, error_cls in _REVERT_CLASSES:
        if marker.lower() in lowered:
            return error_cls(reason)
    return LedgerRejectedError(reason)


@dataclass(frozen=True, slots=True)
class LedgerEvent:
    name: str
    args: Mapping[str, object] = field(default_factory=dict[str, object])


@dataclass(frozen=True, slots=True, kw_only=True)
class TxReceipt:
    """Result of a state-changing ledger call."""

    tx_hash: str
    block_number: int
    gas_used: int = 0
    events: tuple[LedgerEvent, ...] = ()

    def events_named(self, name: str) -> tuple[LedgerEvent, ...]:
        return tuple(event for event in self.events if event.name == name)

    @property
    def claim_payout(self) -> int | None:
        """Amount paid by an automatic claim triggered by this call, if any."""

        for event in self.events_named(CLAIM_APPROVED):
            amount = event.args.get("amount")
            if isinstance(amount, int):
                return amount
        return None

    @property
    def claim_paid(self) -> bool:
        return self.claim_payout is not None


@dataclass(frozen=True, slots=True)
class LedgerTotals:
    total_policies: int
    total_claims: int


@dataclass(frozen=True, slots=True)
class PolicyIssued:
    policy: Policy
    receipt: TxReceipt


@runtime_checkable
class Ledger(Protocol):
    """Authoritative store of policy terms and fund custody.

    Only the configured oracle identity may call :meth:`submit_status_update`;
    a Damaged or Lost update on an Active policy settles the claim as a side
    effect, which the returned receipt reports. Callers that know the ledger
    policy id pass it as ``policy_id`` so adapters whose replies carry no events
    can still confirm a payout.
    """

    def submit_status_update(
        self,
        shipment_id: str,
        status: ShipmentStatus,
        *,
        policy_id: int | None = None,
    ) -> TxReceipt: ...

    def read_policy(self, policy_id: int) -> Policy: ...

    def read_user_policies(self, holder: str) -> tuple[int, ...]: ...

    def read_totals(self) -> LedgerTotals: ...

    def create_policy(
        self,
        *,
        holder: str,
        shipment_id: str,
        coverage_amount: int,
        duration_seconds: int,
    ) -> PolicyIssued: ...
