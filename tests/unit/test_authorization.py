"""Tests for delegation_hierarchy.authorization — attestation revocation depth."""
from __future__ import annotations

from collections.abc import Callable

import pytest
from hierarchy_helpers import CTYPE_HASH, account

from delegation_hierarchy.authorization import Attestation, AuthorizationChecker
from delegation_hierarchy.errors import (
    DelegationInconsistencyError,
    NotFoundError,
    UnauthorizedError,
)
from delegation_hierarchy.hashing import new_node_id
from delegation_hierarchy.ledger.memory import REVOKE_ATTESTATION, InMemoryLedger
from delegation_hierarchy.node import DelegationNode
from delegation_hierarchy.permissions import Permission
from delegation_hierarchy.signing import Ed25519Signer

CLAIM_HASH = "0x" + "c1" * 32


def attestation_under(node: DelegationNode, owner: str | None = None) -> Attestation:
    return Attestation(
        claim_hash=CLAIM_HASH,
        ctype_hash=CTYPE_HASH,
        owner=owner or node.account,
        delegation_id=node.id,
    )


@pytest.fixture()
def checker(ledger: InMemoryLedger) -> AuthorizationChecker:
    return AuthorizationChecker(ledger)


# ---------------------------------------------------------------------------
# count_node_depth
# ---------------------------------------------------------------------------


class TestCountNodeDepth:
    def test_owner_is_zero(
        self,
        checker: AuthorizationChecker,
        restore_chain: Callable[[int], list[DelegationNode]],
    ) -> None:
        chain = restore_chain(3)
        attestation = attestation_under(chain[2])
        assert checker.count_node_depth(attestation.owner, attestation) == 0

    def test_owner_without_delegation_is_zero(self, checker: AuthorizationChecker) -> None:
        attestation = Attestation(claim_hash=CLAIM_HASH, ctype_hash=CTYPE_HASH, owner=account("x"))
        assert checker.count_node_depth(account("x"), attestation) == 0

    def test_delegation_owner_is_one(
        self,
        checker: AuthorizationChecker,
        restore_chain: Callable[[int], list[DelegationNode]],
    ) -> None:
        chain = restore_chain(3)
        attestation = attestation_under(chain[2], owner=account("attester"))
        assert checker.count_node_depth(chain[2].account, attestation) == 1

    @pytest.mark.parametrize("k", [1, 2, 5, 9])
    def test_kth_ancestor_is_k_plus_one(
        self,
        k: int,
        checker: AuthorizationChecker,
        restore_chain: Callable[[int], list[DelegationNode]],
    ) -> None:
        chain = restore_chain(10)
        leaf = chain[-1]
        attestation = attestation_under(leaf, owner=account("attester"))
        ancestor = chain[-1 - k]
        assert checker.count_node_depth(ancestor.account, attestation) == k + 1

    def test_absent_account_unauthorized(
        self,
        checker: AuthorizationChecker,
        restore_chain: Callable[[int], list[DelegationNode]],
    ) -> None:
        chain = restore_chain(4)
        attestation = attestation_under(chain[-1], owner=account("attester"))
        with pytest.raises(UnauthorizedError):
            checker.count_node_depth(account("stranger"), attestation)

    def test_no_delegation_unauthorized(self, checker: AuthorizationChecker) -> None:
        attestation = Attestation(claim_hash=CLAIM_HASH, ctype_hash=CTYPE_HASH, owner=account("x"))
        with pytest.raises(UnauthorizedError):
            checker.count_node_depth(account("y"), attestation)

    def test_unresolvable_delegation_is_inconsistency(
        self, checker: AuthorizationChecker
    ) -> None:
        attestation = Attestation(
            claim_hash=CLAIM_HASH,
            ctype_hash=CTYPE_HASH,
            owner=account("x"),
            delegation_id=new_node_id(),
        )
        with pytest.raises(DelegationInconsistencyError) as excinfo:
            checker.count_node_depth(account("y"), attestation)
        assert not isinstance(excinfo.value, UnauthorizedError)


# ---------------------------------------------------------------------------
# get_revoke_attestation_tx
# ---------------------------------------------------------------------------


class TestRevokeAttestation:
    @pytest.fixture()
    def attested(
        self,
        ledger: InMemoryLedger,
        signers: dict[str, Ed25519Signer],
        store_root: Callable[..., DelegationNode],
        store_delegation: Callable[..., DelegationNode],
    ) -> dict[str, DelegationNode]:
        root = store_root(signers["root"])
        alice = store_delegation(root, signers["alice"])
        bob = store_delegation(alice, signers["bob"], {Permission.ATTEST})
        ledger.submit(
            ledger.build_add_attestation_tx(CLAIM_HASH, CTYPE_HASH, bob.id), origin=bob.account
        )
        return {"root": root, "alice": alice, "bob": bob}

    def test_attester_depth_zero(
        self, checker: AuthorizationChecker, attested: dict[str, DelegationNode]
    ) -> None:
        tx = checker.get_revoke_attestation_tx(attested["bob"].account, CLAIM_HASH)
        assert tx.call == REVOKE_ATTESTATION
        assert tx.params == {"claim_hash": CLAIM_HASH, "max_parent_checks": 0}

    def test_root_owner_revokes(
        self,
        ledger: InMemoryLedger,
        checker: AuthorizationChecker,
        attested: dict[str, DelegationNode],
    ) -> None:
        root_owner = attested["root"].account
        tx = checker.get_revoke_attestation_tx(root_owner, CLAIM_HASH)
        assert tx.params["max_parent_checks"] == 3
        ledger.submit(tx, origin=root_owner)
        revoked = ledger.query_attestation(CLAIM_HASH)
        assert revoked is not None and revoked.revoked

    def test_missing_attestation_not_found(
        self, checker: AuthorizationChecker, attested: dict[str, DelegationNode]
    ) -> None:
        with pytest.raises(NotFoundError):
            checker.get_revoke_attestation_tx(attested["bob"].account, "0x" + "dd" * 32)

    def test_stranger_unauthorized(
        self,
        checker: AuthorizationChecker,
        signers: dict[str, Ed25519Signer],
        attested: dict[str, DelegationNode],
    ) -> None:
        with pytest.raises(UnauthorizedError):
            checker.get_revoke_attestation_tx(signers["mallory"].account, CLAIM_HASH)
