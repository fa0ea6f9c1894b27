"""Tests for delegation_hierarchy.node — DelegationNode against the in-memory ledger."""
from __future__ import annotations

from collections.abc import Callable

import pytest
from hierarchy_helpers import BOTH, CTYPE_HASH, account

from delegation_hierarchy.errors import (
    DelegateSignatureMissingError,
    DelegationInconsistencyError,
    NotARootError,
    NotFoundError,
    RootNodeError,
    UnauthorizedError,
)
from delegation_hierarchy.hashing import new_node_id
from delegation_hierarchy.ledger.memory import (
    ADD_DELEGATION,
    CREATE_HIERARCHY,
    RECLAIM_DEPOSIT,
    REMOVE_DELEGATION,
    REVOKE_DELEGATION,
    InMemoryLedger,
)
from delegation_hierarchy.node import DelegationNode, HierarchyDetails, NodeKind
from delegation_hierarchy.permissions import Permission
from delegation_hierarchy.signing import Ed25519Signer, verify_delegate_signature


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def hierarchy(
    signers: dict[str, Ed25519Signer],
    store_root: Callable[..., DelegationNode],
    store_delegation: Callable[..., DelegationNode],
) -> dict[str, DelegationNode]:
    root = store_root(signers["root"])
    alice = store_delegation(root, signers["alice"])
    bob = store_delegation(alice, signers["bob"], {Permission.ATTEST})
    carol = store_delegation(root, signers["carol"], {Permission.ATTEST})
    return {"root": root, "alice": alice, "bob": bob, "carol": carol}


# ---------------------------------------------------------------------------
# Factories and local properties
# ---------------------------------------------------------------------------


class TestFactories:
    def test_new_root_is_root(self) -> None:
        root = DelegationNode.new_root(account("root"), {Permission.DELEGATE}, CTYPE_HASH)
        assert root.is_root()
        assert root.kind is NodeKind.ROOT
        assert root.parent_id is None
        assert root.effective_parent_id is None
        assert root.hierarchy_details == HierarchyDetails(root.id, CTYPE_HASH)

    def test_new_node_is_delegated(self) -> None:
        root_id = new_node_id()
        node = DelegationNode.new_node(root_id, root_id, account("a"), {Permission.ATTEST})
        assert not node.is_root()
        assert node.kind is NodeKind.DELEGATED
        assert node.effective_parent_id == root_id

    def test_unset_parent_means_root(self) -> None:
        root_id = new_node_id()
        node = DelegationNode(
            id=new_node_id(), hierarchy_id=root_id, account=account("a"), permissions=BOTH
        )
        assert node.effective_parent_id == root_id

    def test_fresh_ids_differ(self) -> None:
        first = DelegationNode.new_root(account("r"), BOTH, CTYPE_HASH)
        second = DelegationNode.new_root(account("r"), BOTH, CTYPE_HASH)
        assert first.id != second.id

    def test_hierarchy_details_not_part_of_equality(self) -> None:
        root = DelegationNode.new_root(account("r"), BOTH, CTYPE_HASH)
        bare = DelegationNode(
            id=root.id, hierarchy_id=root.id, account=root.account, permissions=BOTH
        )
        assert root == bare

    def test_to_dict(self) -> None:
        root = DelegationNode.new_root(account("r"), BOTH, CTYPE_HASH)
        data = root.to_dict()
        assert data["id"] == root.id
        assert data["permissions"] == ["ATTEST", "DELEGATE"]
        assert data["permission_bits"] == 3
        assert data["revoked"] is False


class TestDelegateSign:
    def test_signature_covers_hash(self, signers: dict[str, Ed25519Signer]) -> None:
        root_id = new_node_id()
        node = DelegationNode.new_node(root_id, root_id, signers["alice"].account, BOTH)
        signature = node.delegate_sign(signers["alice"])
        assert signature.account == signers["alice"].account
        assert verify_delegate_signature(node.generate_hash(), signature)

    def test_signature_does_not_cover_other_node(self, signers: dict[str, Ed25519Signer]) -> None:
        root_id = new_node_id()
        node = DelegationNode.new_node(root_id, root_id, signers["alice"].account, BOTH)
        other = DelegationNode.new_node(root_id, root_id, signers["alice"].account, BOTH)
        assert not verify_delegate_signature(other.generate_hash(), node.delegate_sign(signers["alice"]))


# ---------------------------------------------------------------------------
# verify / refresh
# ---------------------------------------------------------------------------


class TestVerify:
    def test_stored_node_verifies(
        self, ledger: InMemoryLedger, hierarchy: dict[str, DelegationNode]
    ) -> None:
        assert all(node.verify(ledger) for node in hierarchy.values())

    def test_revoked_node_does_not_verify(
        self, ledger: InMemoryLedger, hierarchy: dict[str, DelegationNode]
    ) -> None:
        carol = hierarchy["carol"]
        ledger.submit(carol.get_revoke_tx(ledger, carol.account), origin=carol.account)
        assert not carol.verify(ledger)

    def test_absent_node_does_not_verify(self, ledger: InMemoryLedger) -> None:
        root = DelegationNode.new_root(account("r"), BOTH, CTYPE_HASH)
        assert root.verify(ledger) is False

    def test_refresh_returns_ledger_state(
        self, ledger: InMemoryLedger, hierarchy: dict[str, DelegationNode]
    ) -> None:
        refreshed = hierarchy["alice"].refresh(ledger)
        assert refreshed is not None
        assert refreshed.children_ids == frozenset({hierarchy["bob"].id})

    def test_refresh_absent_is_none(self, ledger: InMemoryLedger) -> None:
        root = DelegationNode.new_root(account("r"), BOTH, CTYPE_HASH)
        assert root.refresh(ledger) is None


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


class TestReads:
    def test_get_children_sorted(
        self, ledger: InMemoryLedger, hierarchy: dict[str, DelegationNode]
    ) -> None:
        children = hierarchy["root"].get_children(ledger)
        assert [c.id for c in children] == sorted([hierarchy["alice"].id, hierarchy["carol"].id])

    def test_get_children_uses_ledger_not_snapshot(
        self, ledger: InMemoryLedger, hierarchy: dict[str, DelegationNode]
    ) -> None:
        # The locally held root was built before any child existed.
        assert hierarchy["root"].children_ids == frozenset()
        assert len(hierarchy["root"].get_children(ledger, max_workers=1)) == 2

    def test_leaf_has_no_children(
        self, ledger: InMemoryLedger, hierarchy: dict[str, DelegationNode]
    ) -> None:
        assert hierarchy["bob"].get_children(ledger) == []

    def test_unresolvable_child_raises(self, ledger: InMemoryLedger) -> None:
        root_id = new_node_id()
        root = DelegationNode(
            id=root_id,
            hierarchy_id=root_id,
            account=account("r"),
            permissions=BOTH,
            children_ids=frozenset({new_node_id()}),
        )
        ledger.restore([root])
        with pytest.raises(DelegationInconsistencyError):
            root.get_children(ledger)

    def test_get_parent(self, ledger: InMemoryLedger, hierarchy: dict[str, DelegationNode]) -> None:
        assert hierarchy["bob"].get_parent(ledger) == hierarchy["alice"].refresh(ledger)
        assert hierarchy["alice"].get_parent(ledger).id == hierarchy["root"].id  # type: ignore[union-attr]
        assert hierarchy["root"].get_parent(ledger) is None

    def test_missing_parent_raises(self, ledger: InMemoryLedger) -> None:
        root_id = new_node_id()
        orphan = DelegationNode.new_node(root_id, new_node_id(), account("o"), BOTH)
        with pytest.raises(DelegationInconsistencyError):
            orphan.get_parent(ledger)

    def test_get_root(self, ledger: InMemoryLedger, hierarchy: dict[str, DelegationNode]) -> None:
        assert hierarchy["bob"].get_root(ledger).id == hierarchy["root"].id
        assert hierarchy["root"].get_root(ledger) is hierarchy["root"]

    def test_get_root_missing_raises(self, ledger: InMemoryLedger) -> None:
        root_id = new_node_id()
        node = DelegationNode.new_node(root_id, root_id, account("o"), BOTH)
        with pytest.raises(NotFoundError):
            node.get_root(ledger)

    def test_hierarchy_details_from_ledger(
        self, ledger: InMemoryLedger, hierarchy: dict[str, DelegationNode]
    ) -> None:
        details = hierarchy["bob"].get_hierarchy_details(ledger)
        assert details.root_id == hierarchy["root"].id
        assert hierarchy["bob"].get_ctype_hash(ledger) == CTYPE_HASH

    def test_hierarchy_details_missing_raises(self, ledger: InMemoryLedger) -> None:
        root_id = new_node_id()
        node = DelegationNode.new_node(root_id, root_id, account("o"), BOTH)
        with pytest.raises(NotFoundError):
            node.get_hierarchy_details(ledger)

    def test_attestation_hashes(
        self, ledger: InMemoryLedger, hierarchy: dict[str, DelegationNode]
    ) -> None:
        claim = "0x" + "c1" * 32
        alice = hierarchy["alice"]
        ledger.submit(
            ledger.build_add_attestation_tx(claim, CTYPE_HASH, alice.id), origin=alice.account
        )
        assert alice.get_attestation_hashes(ledger) == [claim]
        assert hierarchy["bob"].get_attestation_hashes(ledger) == []

    def test_attestations_resolved(
        self, ledger: InMemoryLedger, hierarchy: dict[str, DelegationNode]
    ) -> None:
        claims = ["0x" + "c1" * 32, "0x" + "c2" * 32]
        alice = hierarchy["alice"]
        for claim in claims:
            ledger.submit(
                ledger.build_add_attestation_tx(claim, CTYPE_HASH, alice.id),
                origin=alice.account,
            )
        attestations = alice.get_attestations(ledger)
        assert [a.claim_hash for a in attestations] == claims
        assert all(a.owner == alice.account for a in attestations)
        assert all(a.delegation_id == alice.id for a in attestations)
        assert hierarchy["bob"].get_attestations(ledger) == []

    def test_unresolvable_attestation_raises(
        self, ledger: InMemoryLedger, hierarchy: dict[str, DelegationNode]
    ) -> None:
        class DanglingHashLedger(InMemoryLedger):
            def get_attestation_hashes(self, node_id: str) -> list[str]:
                return [*super().get_attestation_hashes(node_id), "0x" + "dd" * 32]

        dangling = DanglingHashLedger()
        with pytest.raises(DelegationInconsistencyError):
            hierarchy["alice"].get_attestations(dangling)


# ---------------------------------------------------------------------------
# Store requests
# ---------------------------------------------------------------------------


class TestStoreRequests:
    def test_root_store_tx(self, ledger: InMemoryLedger) -> None:
        root = DelegationNode.new_root(account("r"), BOTH, CTYPE_HASH)
        tx = root.get_store_tx(ledger)
        assert tx.call == CREATE_HIERARCHY
        assert tx.params["root_id"] == root.id
        assert tx.params["ctype_hash"] == CTYPE_HASH

    def test_root_without_local_details_uses_ledger(
        self, ledger: InMemoryLedger, hierarchy: dict[str, DelegationNode]
    ) -> None:
        fetched = hierarchy["root"].refresh(ledger)
        assert fetched is not None and fetched.hierarchy_details is None
        assert fetched.get_store_root_tx(ledger).params["ctype_hash"] == CTYPE_HASH

    def test_delegation_store_tx(self, signers: dict[str, Ed25519Signer], ledger: InMemoryLedger) -> None:
        root_id = new_node_id()
        node = DelegationNode.new_node(root_id, root_id, signers["alice"].account, BOTH)
        tx = node.get_store_tx(ledger, node.delegate_sign(signers["alice"]))
        assert tx.call == ADD_DELEGATION
        assert tx.params["parent_id"] == root_id
        assert tx.params["permissions"] == 3

    def test_delegation_without_signature_rejected(self, ledger: InMemoryLedger) -> None:
        root_id = new_node_id()
        node = DelegationNode.new_node(root_id, root_id, account("a"), BOTH)
        with pytest.raises(DelegateSignatureMissingError):
            node.get_store_tx(ledger)

    def test_store_root_on_delegated_rejected(self, ledger: InMemoryLedger) -> None:
        root_id = new_node_id()
        node = DelegationNode.new_node(root_id, root_id, account("a"), BOTH)
        with pytest.raises(NotARootError):
            node.get_store_root_tx(ledger)

    def test_store_delegation_on_root_rejected(
        self, ledger: InMemoryLedger, signers: dict[str, Ed25519Signer]
    ) -> None:
        root = DelegationNode.new_root(signers["root"].account, BOTH, CTYPE_HASH)
        with pytest.raises(RootNodeError):
            root.get_store_delegation_tx(ledger, root.delegate_sign(signers["root"]))


# ---------------------------------------------------------------------------
# Revoke / remove requests
# ---------------------------------------------------------------------------


class TestRevokeRequests:
    def test_owner_revokes_with_zero_parent_checks(
        self, ledger: InMemoryLedger, hierarchy: dict[str, DelegationNode]
    ) -> None:
        alice = hierarchy["alice"]
        tx = alice.get_revoke_tx(ledger, alice.account)
        assert tx.call == REVOKE_DELEGATION
        assert tx.params["max_parent_checks"] == 0
        assert tx.params["max_revocations"] == 1

    def test_ancestor_owner_bounds(
        self, ledger: InMemoryLedger, hierarchy: dict[str, DelegationNode]
    ) -> None:
        tx = hierarchy["bob"].get_revoke_tx(ledger, hierarchy["root"].account)
        assert tx.params["max_parent_checks"] == 2
        assert tx.params["max_revocations"] == 0
        assert tx.params["submitter"] == hierarchy["root"].account

    def test_stranger_rejected_locally(
        self, ledger: InMemoryLedger, hierarchy: dict[str, DelegationNode]
    ) -> None:
        with pytest.raises(UnauthorizedError):
            hierarchy["alice"].get_revoke_tx(ledger, hierarchy["carol"].account)

    def test_descendant_owner_rejected_locally(
        self, ledger: InMemoryLedger, hierarchy: dict[str, DelegationNode]
    ) -> None:
        with pytest.raises(UnauthorizedError):
            hierarchy["alice"].get_revoke_tx(ledger, hierarchy["bob"].account)

    def test_remove_tx_bounds(
        self, ledger: InMemoryLedger, hierarchy: dict[str, DelegationNode]
    ) -> None:
        tx = hierarchy["root"].get_remove_tx(ledger)
        assert tx.call == REMOVE_DELEGATION
        assert tx.params == {"delegation_id": hierarchy["root"].id, "max_removals": 3}

    def test_reclaim_deposit_tx_bounds(
        self, ledger: InMemoryLedger, hierarchy: dict[str, DelegationNode]
    ) -> None:
        tx = hierarchy["alice"].get_reclaim_deposit_tx(ledger)
        assert tx.call == RECLAIM_DEPOSIT
        assert tx.params["max_removals"] == 1
