"""DelegationNode — a node in a delegation hierarchy.

A hierarchy is a tree anchored to a claim type. Its root is the node whose
``id`` equals its ``hierarchy_id``; every other node is a delegation under
either the root or another delegation. Both variants are represented by the
same immutable :class:`DelegationNode` value and share one read interface;
:attr:`DelegationNode.kind` tells them apart.

Nodes are plain values. Every operation that needs ledger state takes a
:class:`~delegation_hierarchy.ledger.gateway.LedgerGateway` explicitly, and
operations that change ledger state only build a
:class:`~delegation_hierarchy.ledger.gateway.PendingTransaction`; submitting
it is the caller's job.

Example
-------
::

    root = DelegationNode.new_root(owner, {Permission.DELEGATE}, ctype_hash)
    ledger.submit(root.get_store_tx(ledger), origin=owner)

    child = DelegationNode.new_node(root.id, root.id, delegate.account,
                                    {Permission.ATTEST})
    signature = child.delegate_sign(delegate)
    ledger.submit(child.get_store_tx(ledger, signature), origin=owner)

    assert child.verify(ledger)
"""
from __future__ import annotations

import enum
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Optional

from delegation_hierarchy.errors import (
    DelegateSignatureMissingError,
    DelegationInconsistencyError,
    MalformedDelegationError,
    NotARootError,
    NotFoundError,
    RootNodeError,
    UnauthorizedError,
)
from delegation_hierarchy.hashing import generate_hash, new_node_id, to_bytes
from delegation_hierarchy.navigator import TreeNavigator
from delegation_hierarchy.permissions import Permission, encode_permissions
from delegation_hierarchy.signing.signer import DelegateSignature, Signer
from delegation_hierarchy.validation import (
    validate_account,
    validate_hash,
    validate_permissions,
    validate_revoked,
)

if TYPE_CHECKING:
    from delegation_hierarchy.authorization import Attestation
    from delegation_hierarchy.ledger.gateway import LedgerGateway, PendingTransaction

logger = logging.getLogger(__name__)


class NodeKind(str, enum.Enum):
    """Variant of a delegation node."""

    ROOT = "root"
    DELEGATED = "delegated"


@dataclass(frozen=True)
class HierarchyDetails:
    """Read-only details of a hierarchy, stored alongside its root.

    Parameters
    ----------
    root_id:
        Identifier of the hierarchy's root node (and of the hierarchy).
    ctype_hash:
        Hash of the claim type every delegation in the hierarchy is scoped to.
    """

    root_id: str
    ctype_hash: str

    def __post_init__(self) -> None:
        validate_hash(self.root_id, "root_id")
        validate_hash(self.ctype_hash, "ctype_hash")

    def to_dict(self) -> dict[str, object]:
        """Serialize to a plain dictionary."""
        return {"root_id": self.root_id, "ctype_hash": self.ctype_hash}


@dataclass(frozen=True)
class DelegationNode:
    """An immutable delegation node.

    Parameters
    ----------
    id:
        Hash identifier of this node.
    hierarchy_id:
        Identifier of the hierarchy's root.
    account:
        DID of the account that controls this node (the delegate).
    permissions:
        Non-empty subset of ``{ATTEST, DELEGATE}``.
    parent_id:
        Identifier of the parent node. ``None`` means the parent is the
        hierarchy root (or, for the root itself, that there is no parent).
    children_ids:
        Identifiers of direct children as last seen on the ledger.
    revoked:
        Whether the ledger has revoked this node.
    hierarchy_details:
        Hierarchy details known locally, set for roots built with
        :meth:`new_root`. Not part of equality.

    Raises
    ------
    MalformedDelegationError
        If any field violates a structural invariant.
    """

    id: str
    hierarchy_id: str
    account: str
    permissions: frozenset[Permission]
    parent_id: Optional[str] = None
    children_ids: frozenset[str] = field(default_factory=frozenset)
    revoked: bool = False
    hierarchy_details: Optional[HierarchyDetails] = field(default=None, compare=False)

    def __post_init__(self) -> None:
        validate_hash(self.id, "id")
        validate_hash(self.hierarchy_id, "hierarchy_id")
        if self.parent_id is not None:
            validate_hash(self.parent_id, "parent_id")
            if self.parent_id == self.id:
                raise MalformedDelegationError(f"Node {self.id!r} cannot be its own parent.")
            if self.id == self.hierarchy_id:
                raise MalformedDelegationError(
                    f"Root node {self.id!r} cannot have a parent."
                )
        validate_account(self.account)
        validate_revoked(self.revoked)
        object.__setattr__(self, "permissions", validate_permissions(self.permissions))
        object.__setattr__(
            self,
            "children_ids",
            frozenset(validate_hash(c, "children_ids") for c in self.children_ids),
        )
        if self.hierarchy_details is not None and self.hierarchy_details.root_id != self.hierarchy_id:
            raise MalformedDelegationError(
                f"Hierarchy details for {self.hierarchy_details.root_id!r} do not "
                f"belong to hierarchy {self.hierarchy_id!r}."
            )

    # ------------------------------------------------------------------
    # Factories
    # ------------------------------------------------------------------

    @classmethod
    def new_root(
        cls,
        account: str,
        permissions: Iterable[Permission],
        ctype_hash: str,
    ) -> "DelegationNode":
        """Build a new hierarchy root with a random identifier.

        The root is not canonical until its store request is submitted.
        """
        node_id = new_node_id()
        return cls(
            id=node_id,
            hierarchy_id=node_id,
            account=account,
            permissions=frozenset(permissions),
            hierarchy_details=HierarchyDetails(root_id=node_id, ctype_hash=ctype_hash),
        )

    @classmethod
    def new_node(
        cls,
        hierarchy_id: str,
        parent_id: str,
        account: str,
        permissions: Iterable[Permission],
    ) -> "DelegationNode":
        """Build a new delegated node with a random identifier.

        Parameters
        ----------
        hierarchy_id:
            The hierarchy the node joins.
        parent_id:
            The node it is delegated from. Passing the root's id places the
            node directly under the root.
        account:
            The delegate, who must sign :meth:`generate_hash` before the node
            can be stored.
        permissions:
            The permissions granted.
        """
        return cls(
            id=new_node_id(),
            hierarchy_id=hierarchy_id,
            parent_id=parent_id,
            account=account,
            permissions=frozenset(permissions),
        )

    # ------------------------------------------------------------------
    # Local properties
    # ------------------------------------------------------------------

    def is_root(self) -> bool:
        """Return True if this node is the root of its hierarchy."""
        return self.id == self.hierarchy_id

    @property
    def kind(self) -> NodeKind:
        return NodeKind.ROOT if self.is_root() else NodeKind.DELEGATED

    @property
    def effective_parent_id(self) -> Optional[str]:
        """The parent used for traversal: ``parent_id``, else the root, else None."""
        if self.is_root():
            return None
        return self.parent_id or self.hierarchy_id

    def generate_hash(self) -> str:
        """Return the integrity hash the delegate signs."""
        return generate_hash(self)

    def delegate_sign(self, signer: Signer) -> DelegateSignature:
        """Have *signer* sign this node's integrity hash.

        The raw 32 hash bytes are signed, not their hex text.
        """
        signature = signer.sign(to_bytes(self.generate_hash()))
        return DelegateSignature(account=signer.account, signature=signature)

    def to_dict(self) -> dict[str, object]:
        """Serialize to a plain dictionary."""
        return {
            "id": self.id,
            "hierarchy_id": self.hierarchy_id,
            "parent_id": self.parent_id,
            "children_ids": sorted(self.children_ids),
            "account": self.account,
            "permissions": sorted(p.name for p in self.permissions),
            "permission_bits": encode_permissions(self.permissions),
            "revoked": self.revoked,
        }

    # ------------------------------------------------------------------
    # Ledger reads
    # ------------------------------------------------------------------

    def verify(self, ledger: "LedgerGateway") -> bool:
        """Return True if the node is stored on the ledger and not revoked.

        A node that was never stored, or has been removed, verifies to
        False.
        """
        node = ledger.query(self.id)
        return node is not None and not node.revoked

    def refresh(self, ledger: "LedgerGateway") -> Optional["DelegationNode"]:
        """Return the ledger's current state of this node, or None if absent."""
        return ledger.query(self.id)

    def get_children(
        self,
        ledger: "LedgerGateway",
        max_workers: Optional[int] = None,
    ) -> list["DelegationNode"]:
        """Fetch the direct children of this node.

        Child identifiers are refreshed from the ledger, then all children are
        fetched as one concurrent batch.

        Returns
        -------
        list[DelegationNode]
            Children ordered by id; empty for a leaf.

        Raises
        ------
        DelegationInconsistencyError
            If the ledger lists a child it cannot return.
        """
        child_ids = sorted(ledger.get_children(self.id))
        if not child_ids:
            return []
        fetched = ledger.query_many(child_ids, max_workers=max_workers)
        missing = [child_id for child_id in child_ids if fetched.get(child_id) is None]
        if missing:
            raise DelegationInconsistencyError(
                f"Node {self.id!r} lists children the ledger cannot resolve: {missing!r}."
            )
        return [fetched[child_id] for child_id in child_ids]  # type: ignore[misc]

    def get_attestation_hashes(self, ledger: "LedgerGateway") -> list[str]:
        """Return the claim hashes of attestations issued under this node."""
        return list(ledger.get_attestation_hashes(self.id))

    def get_attestations(self, ledger: "LedgerGateway") -> list["Attestation"]:
        """Resolve the attestations issued under this node.

        Raises
        ------
        DelegationInconsistencyError
            If a listed claim hash has no attestation on the ledger.
        """
        attestations = []
        for claim_hash in self.get_attestation_hashes(ledger):
            attestation = ledger.query_attestation(claim_hash)
            if attestation is None:
                raise DelegationInconsistencyError(
                    f"Node {self.id!r} lists attestation {claim_hash!r}, "
                    "which is not on the ledger."
                )
            attestations.append(attestation)
        return attestations

    def get_hierarchy_details(self, ledger: "LedgerGateway") -> HierarchyDetails:
        """Return the details of the hierarchy this node belongs to.

        Raises
        ------
        NotFoundError
            If the ledger has no such hierarchy.
        """
        if self.hierarchy_details is not None:
            return self.hierarchy_details
        details = ledger.get_hierarchy_details(self.hierarchy_id)
        if details is None:
            raise NotFoundError(f"Hierarchy {self.hierarchy_id!r} not found on the ledger.")
        return details

    def get_ctype_hash(self, ledger: "LedgerGateway") -> str:
        """Return the claim type the hierarchy is scoped to."""
        return self.get_hierarchy_details(ledger).ctype_hash

    def get_root(self, ledger: "LedgerGateway") -> "DelegationNode":
        """Return the root of this node's hierarchy.

        Raises
        ------
        NotFoundError
            If the root is not on the ledger.
        """
        if self.is_root():
            return self
        root = ledger.query(self.hierarchy_id)
        if root is None:
            raise NotFoundError(f"Root node {self.hierarchy_id!r} not found on the ledger.")
        return root

    def get_parent(self, ledger: "LedgerGateway") -> Optional["DelegationNode"]:
        """Return the parent node; the root for direct children; None for a root.

        Raises
        ------
        DelegationInconsistencyError
            If the parent this node references is missing from the ledger.
        """
        parent_id = self.effective_parent_id
        if parent_id is None:
            return None
        parent = ledger.query(parent_id)
        if parent is None:
            raise DelegationInconsistencyError(
                f"Parent {parent_id!r} of node {self.id!r} not found on the ledger."
            )
        return parent

    # ------------------------------------------------------------------
    # Ledger requests
    # ------------------------------------------------------------------

    def get_store_tx(
        self,
        ledger: "LedgerGateway",
        signature: Optional[DelegateSignature] = None,
    ) -> "PendingTransaction":
        """Build the store request appropriate for this node's variant."""
        if self.is_root():
            return self.get_store_root_tx(ledger)
        return self.get_store_delegation_tx(ledger, signature)

    def get_store_root_tx(self, ledger: "LedgerGateway") -> "PendingTransaction":
        """Build the request that creates this node's hierarchy.

        Raises
        ------
        NotARootError
            If this node is not a root.
        """
        if not self.is_root():
            raise NotARootError(self.id)
        node = self
        if node.hierarchy_details is None:
            node = replace(self, hierarchy_details=self.get_hierarchy_details(ledger))
        logger.info("store root %s with ctype %s", node.id, node.hierarchy_details.ctype_hash)  # type: ignore[union-attr]
        return ledger.submit_store_root(node)

    def get_store_delegation_tx(
        self,
        ledger: "LedgerGateway",
        signature: Optional[DelegateSignature],
    ) -> "PendingTransaction":
        """Build the request that adds this delegated node.

        Raises
        ------
        RootNodeError
            If this node is a root.
        DelegateSignatureMissingError
            If *signature* is missing.
        """
        if self.is_root():
            raise RootNodeError(self.id)
        if signature is None:
            raise DelegateSignatureMissingError(self.id)
        logger.info("store delegation %s under %s", self.id, self.effective_parent_id)
        return ledger.submit_store_delegation(self, signature)

    def get_revoke_tx(
        self,
        ledger: "LedgerGateway",
        submitter_account: str,
        navigator: Optional[TreeNavigator] = None,
    ) -> "PendingTransaction":
        """Build a request revoking this node and its descendants.

        ``max_parent_checks`` is the number of hops from this node to the
        closest node owned by *submitter_account* (0 when the submitter owns
        this node). ``max_revocations`` is the number of descendants.

        Raises
        ------
        UnauthorizedError
            If the submitter owns neither this node nor any ancestor.
        """
        validate_account(submitter_account)
        navigator = navigator or TreeNavigator(ledger)
        search = navigator.find_ancestor_owned_by(self, submitter_account, include_self=True)
        if search.node is None:
            raise UnauthorizedError(
                f"Account {submitter_account!r} is not among the delegators of "
                f"node {self.id!r} and may not revoke it."
            )
        max_revocations = navigator.subtree_node_count(self)
        logger.debug(
            "revoke(%s) with max_revocations=%d and max_parent_checks=%d through node %s",
            self.id,
            max_revocations,
            search.steps,
            search.node.id,
        )
        return ledger.submit_revoke(self.id, submitter_account, search.steps, max_revocations)

    def get_remove_tx(
        self,
        ledger: "LedgerGateway",
        navigator: Optional[TreeNavigator] = None,
    ) -> "PendingTransaction":
        """Build a request removing this node and its descendants.

        Only the account that paid the node's deposit may submit it; the
        ledger enforces that.
        """
        navigator = navigator or TreeNavigator(ledger)
        max_revocations = navigator.subtree_node_count(self)
        logger.debug("remove(%s) with max_revocations=%d", self.id, max_revocations)
        return ledger.submit_remove(self.id, max_revocations)

    def get_reclaim_deposit_tx(
        self,
        ledger: "LedgerGateway",
        navigator: Optional[TreeNavigator] = None,
    ) -> "PendingTransaction":
        """Build a request reclaiming this node's deposit, removing its subtree."""
        navigator = navigator or TreeNavigator(ledger)
        max_removals = navigator.subtree_node_count(self)
        logger.debug("reclaim_deposit(%s) with max_removals=%d", self.id, max_removals)
        return ledger.submit_reclaim_deposit(self.id, max_removals)


__all__ = ["DelegationNode", "HierarchyDetails", "NodeKind"]
