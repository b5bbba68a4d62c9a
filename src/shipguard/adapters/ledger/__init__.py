"""Ledger adapters: the contract simulation, its stored variant and the HTTP gateway client."""

from __future__ import annotations

from .client import HttpLedgerGateway
from .memory import InMemoryLedger, InMemoryLedgerGateway
from .stored import StoredLedgerGateway

__all__ = [
    "HttpLedgerGateway",
    "InMemoryLedger",
    "InMemoryLedgerGateway",
    "StoredLedgerGateway",
]
