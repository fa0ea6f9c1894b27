#!/usr/bin/env python3
"""Example: Revocation and attestation authority

Shows how revocation bounds are derived from the tree, how the ledger
cascades a revocation, and who may revoke an attestation.

Usage:
    python examples/02_revocation.py

Requirements:
    pip install delegation-hierarchy
"""
from __future__ import annotations

from delegation_hierarchy import (
    AuthorizationChecker,
    DelegationNode,
    Ed25519Signer,
    InMemoryLedger,
    LedgerAuditLog,
    Permission,
    UnauthorizedError,
)

CTYPE_HASH = "0x" + "ab" * 32
CLAIM_HASH = "0x" + "c1" * 32


def main() -> None:
    audit_log = LedgerAuditLog()
    ledger = InMemoryLedger(audit_log=audit_log)
    owner, alice, bob, mallory = (Ed25519Signer.generate() for _ in range(4))

    root = DelegationNode.new_root(owner.account, {Permission.DELEGATE}, CTYPE_HASH)
    ledger.submit(root.get_store_tx(ledger), origin=owner.account)
    node_a = DelegationNode.new_node(
        root.id, root.id, alice.account, {Permission.ATTEST, Permission.DELEGATE}
    )
    ledger.submit(node_a.get_store_tx(ledger, node_a.delegate_sign(alice)), origin=owner.account)
    node_b = DelegationNode.new_node(root.id, node_a.id, bob.account, {Permission.ATTEST})
    ledger.submit(node_b.get_store_tx(ledger, node_b.delegate_sign(bob)), origin=alice.account)

    # Bob attests a claim under his delegation
    ledger.submit(
        ledger.build_add_attestation_tx(CLAIM_HASH, CTYPE_HASH, node_b.id), origin=bob.account
    )

    # Step 1: Who may revoke Bob's attestation?
    checker = AuthorizationChecker(ledger)
    attestation = ledger.query_attestation(CLAIM_HASH)
    assert attestation is not None
    for name, signer in [("bob", bob), ("alice", alice), ("owner", owner), ("mallory", mallory)]:
        try:
            depth = checker.count_node_depth(signer.account, attestation)
            print(f"  {name:<8} may revoke with max_parent_checks={depth}")
        except UnauthorizedError:
            print(f"  {name:<8} may not revoke")

    # Step 2: The owner revokes Alice; the ledger cascades to Bob
    tx = node_a.get_revoke_tx(ledger, owner.account)
    print(f"\nRevoke request: {tx.to_dict()}")
    result = ledger.submit(tx, origin=owner.account)
    print(f"Revoked {len(result.revoked)} nodes")
    print(f"  alice verify={node_a.verify(ledger)} bob verify={node_b.verify(ledger)}")
    print(f"  root  verify={root.verify(ledger)}")

    print(f"\nAudit trail holds {len(audit_log.read_log())} events.")


if __name__ == "__main__":
    main()
