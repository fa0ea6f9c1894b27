"""Shared fixtures: an in-memory ledger, signers and hierarchy builders."""
from __future__ import annotations

from collections.abc import Callable, Iterable

import pytest
from hierarchy_helpers import BOTH, CTYPE_HASH, account

from delegation_hierarchy.config import LedgerLimits
from delegation_hierarchy.hashing import new_node_id
from delegation_hierarchy.ledger.audit import LedgerAuditLog
from delegation_hierarchy.ledger.memory import InMemoryLedger
from delegation_hierarchy.node import DelegationNode
from delegation_hierarchy.permissions import Permission
from delegation_hierarchy.signing import Ed25519Signer


@pytest.fixture()
def audit_log() -> LedgerAuditLog:
    return LedgerAuditLog()


@pytest.fixture()
def ledger(audit_log: LedgerAuditLog) -> InMemoryLedger:
    limits = LedgerLimits(max_revocations=50, max_removals=50, max_parent_checks=50)
    return InMemoryLedger(limits=limits, audit_log=audit_log)


@pytest.fixture(scope="session")
def signers() -> dict[str, Ed25519Signer]:
    return {name: Ed25519Signer.generate() for name in ("root", "alice", "bob", "carol", "mallory")}


@pytest.fixture()
def store_root(ledger: InMemoryLedger) -> Callable[..., DelegationNode]:
    def _store(owner: Ed25519Signer, permissions: Iterable[Permission] = BOTH) -> DelegationNode:
        root = DelegationNode.new_root(owner.account, permissions, CTYPE_HASH)
        ledger.submit(root.get_store_tx(ledger), origin=owner.account)
        return root

    return _store


@pytest.fixture()
def store_delegation(ledger: InMemoryLedger) -> Callable[..., DelegationNode]:
    def _store(
        parent: DelegationNode,
        delegate: Ed25519Signer,
        permissions: Iterable[Permission] = BOTH,
    ) -> DelegationNode:
        node = DelegationNode.new_node(parent.hierarchy_id, parent.id, delegate.account, permissions)
        tx = node.get_store_tx(ledger, node.delegate_sign(delegate))
        ledger.submit(tx, origin=parent.account)
        return node

    return _store


@pytest.fixture()
def restore_chain(ledger: InMemoryLedger) -> Callable[[int], list[DelegationNode]]:
    """Restore a chain of distinctly-owned nodes; element 0 is the root."""

    def _restore(length: int) -> list[DelegationNode]:
        root_id = new_node_id()
        nodes = [
            DelegationNode(
                id=root_id,
                hierarchy_id=root_id,
                account=account("owner-0"),
                permissions=BOTH,
            )
        ]
        for index in range(1, length):
            nodes.append(
                DelegationNode(
                    id=new_node_id(),
                    hierarchy_id=root_id,
                    parent_id=nodes[-1].id,
                    account=account(f"owner-{index}"),
                    permissions=BOTH,
                )
            )
        ledger.restore(nodes)
        return nodes

    return _restore
