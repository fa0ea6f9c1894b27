#!/usr/bin/env python3
"""Example: Quickstart

Creates a hierarchy on an in-memory ledger, delegates to two accounts and
checks that every node verifies.

Usage:
    python examples/01_quickstart.py

Requirements:
    pip install delegation-hierarchy
"""
from __future__ import annotations

import delegation_hierarchy
from delegation_hierarchy import (
    DelegationNode,
    Ed25519Signer,
    InMemoryLedger,
    Permission,
)

CTYPE_HASH = "0x" + "ab" * 32


def main() -> None:
    print(f"delegation-hierarchy version: {delegation_hierarchy.__version__}")

    ledger = InMemoryLedger()
    owner, alice, bob = (Ed25519Signer.generate() for _ in range(3))

    # Step 1: The owner creates the hierarchy
    root = DelegationNode.new_root(owner.account, {Permission.DELEGATE}, CTYPE_HASH)
    ledger.submit(root.get_store_tx(ledger), origin=owner.account)
    print(f"Root {root.id} stored for claim type {root.get_ctype_hash(ledger)}")

    # Step 2: Alice consents to a delegation by signing its hash
    node_a = DelegationNode.new_node(
        root.id, root.id, alice.account, {Permission.ATTEST, Permission.DELEGATE}
    )
    ledger.submit(node_a.get_store_tx(ledger, node_a.delegate_sign(alice)), origin=owner.account)

    # Step 3: Alice delegates attestation rights to Bob
    node_b = DelegationNode.new_node(root.id, node_a.id, bob.account, {Permission.ATTEST})
    ledger.submit(node_b.get_store_tx(ledger, node_b.delegate_sign(bob)), origin=alice.account)

    for label, node in [("root", root), ("alice", node_a), ("bob", node_b)]:
        print(f"  {label:<6} verify={node.verify(ledger)}")


if __name__ == "__main__":
    main()
