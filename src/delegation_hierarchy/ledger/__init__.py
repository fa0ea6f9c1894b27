"""Ledger access: the gateway interface, record codec, audit trail and the in-memory ledger."""
from __future__ import annotations

from delegation_hierarchy.ledger.audit import AuditEvent, LedgerAuditLog
from delegation_hierarchy.ledger.gateway import LedgerGateway, PendingTransaction
from delegation_hierarchy.ledger.memory import InMemoryLedger, TransactionResult

__all__ = [
    "AuditEvent",
    "InMemoryLedger",
    "LedgerAuditLog",
    "LedgerGateway",
    "PendingTransaction",
    "TransactionResult",
]
