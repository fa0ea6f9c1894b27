"""LedgerGateway — the interface to the ledger that stores delegation state.

The ledger is the single source of truth. Reads return decoded values or
``None`` when a record is absent. Mutations are never executed here: each
``submit_*`` method returns a :class:`PendingTransaction` describing the
call, and signing, submitting and awaiting finality belong to whoever wraps
the gateway.

Read operations are idempotent and safe to retry. Timeouts and retries are
the caller's responsibility.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from delegation_hierarchy.authorization import Attestation
    from delegation_hierarchy.node import DelegationNode, HierarchyDetails
    from delegation_hierarchy.signing.signer import DelegateSignature


@dataclass(frozen=True)
class PendingTransaction:
    """An unsigned, unsubmitted ledger call.

    Parameters
    ----------
    call:
        Dotted call name, e.g. ``"delegation.revoke_delegation"``.
    params:
        Call arguments by name.
    """

    call: str
    params: Mapping[str, object] = field(default_factory=dict)

    def to_dict(self) -> dict[str, object]:
        """Serialize to a plain dictionary."""
        return {"call": self.call, "params": dict(self.params)}


class LedgerGateway(ABC):
    """Abstract base class for ledger backends."""

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @abstractmethod
    def query(self, node_id: str) -> Optional["DelegationNode"]:
        """Return the stored node with *node_id*, or None."""

    @abstractmethod
    def get_children(self, node_id: str) -> frozenset[str]:
        """Return the identifiers of the direct children of *node_id*.

        An absent node has no children.
        """

    @abstractmethod
    def get_attestation_hashes(self, node_id: str) -> Sequence[str]:
        """Return claim hashes of attestations issued under *node_id*."""

    @abstractmethod
    def get_hierarchy_details(self, root_id: str) -> Optional["HierarchyDetails"]:
        """Return the details of hierarchy *root_id*, or None."""

    @abstractmethod
    def query_deposit_amount(self) -> int:
        """Return the fixed deposit reserved for every stored node."""

    @abstractmethod
    def query_attestation(self, claim_hash: str) -> Optional["Attestation"]:
        """Return the attestation for *claim_hash*, or None."""

    def query_many(
        self,
        node_ids: Iterable[str],
        max_workers: Optional[int] = None,
    ) -> dict[str, Optional["DelegationNode"]]:
        """Query several nodes concurrently.

        Parameters
        ----------
        node_ids:
            Identifiers to fetch.
        max_workers:
            Thread pool size; ``None`` lets the executor decide.

        Returns
        -------
        dict[str, DelegationNode | None]
            One entry per requested identifier.
        """
        ids = list(dict.fromkeys(node_ids))
        if len(ids) <= 1 or max_workers == 1:
            return {node_id: self.query(node_id) for node_id in ids}
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            return dict(zip(ids, executor.map(self.query, ids)))

    # ------------------------------------------------------------------
    # Request builders
    # ------------------------------------------------------------------

    @abstractmethod
    def submit_store_root(self, node: "DelegationNode") -> PendingTransaction:
        """Build the call creating a hierarchy rooted at *node*."""

    @abstractmethod
    def submit_store_delegation(
        self,
        node: "DelegationNode",
        delegate_signature: "DelegateSignature",
    ) -> PendingTransaction:
        """Build the call adding the delegated *node*."""

    @abstractmethod
    def submit_revoke(
        self,
        node_id: str,
        submitter_account: str,
        max_parent_checks: int,
        max_revocations: int,
    ) -> PendingTransaction:
        """Build the call revoking *node_id* and, within bounds, its descendants."""

    @abstractmethod
    def submit_remove(self, node_id: str, max_revocations: int) -> PendingTransaction:
        """Build the call removing *node_id* and its descendants."""

    @abstractmethod
    def submit_reclaim_deposit(self, node_id: str, max_removals: int) -> PendingTransaction:
        """Build the call reclaiming the deposit of *node_id*, removing its subtree."""

    @abstractmethod
    def submit_revoke_attestation(
        self, claim_hash: str, max_parent_checks: int
    ) -> PendingTransaction:
        """Build the call revoking the attestation for *claim_hash*."""


__all__ = ["LedgerGateway", "PendingTransaction"]
