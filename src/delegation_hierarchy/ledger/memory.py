"""InMemoryLedger — a reference ledger that executes delegation transactions.

:class:`InMemoryLedger` implements :class:`LedgerGateway` over in-process
state and, unlike a remote gateway, also *applies* the transactions it
builds through :meth:`InMemoryLedger.submit`. It enforces the rules a
production ledger enforces server-side:

* a hierarchy is created by the account that owns its root;
* a delegation is added by the owner of its parent, the parent must hold
  ``DELEGATE`` and must not be revoked, and the delegate must have signed
  the node's integrity hash;
* a revocation is accepted from the node's owner or the owner of an
  ancestor found within ``max_parent_checks`` hops, and cascades to at most
  ``max_revocations`` descendants, children first; descendants beyond the
  bound stay unrevoked;
* removal and deposit reclaim are accepted only from the account that paid
  the node's deposit, and remove the whole subtree or nothing;
* bounds above the configured :class:`LedgerLimits` are rejected.

Rejections raise :class:`LedgerRejectionError` (or one of its
authorization subclasses) carrying the ledger's error code.

Example
-------
::

    ledger = InMemoryLedger()
    root = DelegationNode.new_root(owner.account, {Permission.DELEGATE}, ctype)
    ledger.submit(root.get_store_tx(ledger), origin=owner.account)
    assert root.verify(ledger)
"""
from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Optional

from delegation_hierarchy.authorization import Attestation
from delegation_hierarchy.config import LedgerLimits
from delegation_hierarchy.errors import (
    LedgerRejectionError,
    UnauthorizedRemovalError,
    UnauthorizedRevocationError,
)
from delegation_hierarchy.hashing import hash_fields
from delegation_hierarchy.ledger.audit import LedgerAuditLog
from delegation_hierarchy.ledger.gateway import LedgerGateway, PendingTransaction
from delegation_hierarchy.ledger.records import (
    AttestationRecord,
    DelegationNodeRecord,
    DepositRecord,
    HierarchyDetailsRecord,
    decode_attestation,
    decode_delegation_node,
    decode_hierarchy_details,
    encode_delegation_node,
)
from delegation_hierarchy.node import DelegationNode, HierarchyDetails
from delegation_hierarchy.permissions import Permission, decode_permissions, encode_permissions
from delegation_hierarchy.signing.signer import DelegateSignature, verify_delegate_signature
from delegation_hierarchy.validation import validate_account, validate_hash

logger = logging.getLogger(__name__)

CREATE_HIERARCHY = "delegation.create_hierarchy"
ADD_DELEGATION = "delegation.add_delegation"
REVOKE_DELEGATION = "delegation.revoke_delegation"
REMOVE_DELEGATION = "delegation.remove_delegation"
RECLAIM_DEPOSIT = "delegation.reclaim_deposit"
ADD_ATTESTATION = "attestation.add"
REVOKE_ATTESTATION = "attestation.revoke"


@dataclass(frozen=True)
class TransactionResult:
    """Effects of an applied transaction.

    Parameters
    ----------
    call:
        The applied call.
    origin:
        The submitting account.
    revoked:
        Identifiers revoked by the call, children before parents.
    removed:
        Identifiers removed by the call.
    """

    call: str
    origin: str
    revoked: tuple[str, ...] = ()
    removed: tuple[str, ...] = ()


class InMemoryLedger(LedgerGateway):
    """Thread-safe in-process ledger.

    Parameters
    ----------
    limits:
        Bounds and deposit size. Defaults to :class:`LedgerLimits`.
    audit_log:
        Optional audit trail receiving every applied or rejected call.
    """

    def __init__(
        self,
        limits: Optional[LedgerLimits] = None,
        audit_log: Optional[LedgerAuditLog] = None,
    ) -> None:
        self._limits = limits or LedgerLimits()
        self._audit_log = audit_log
        self._nodes: dict[str, DelegationNodeRecord] = {}
        self._hierarchies: dict[str, HierarchyDetailsRecord] = {}
        self._attestations: dict[str, AttestationRecord] = {}
        self._attestations_by_delegation: dict[str, list[str]] = {}
        self._reserved: dict[str, int] = {}
        self._lock = threading.RLock()
        self._handlers: dict[str, Callable[[dict[str, object], str, str], TransactionResult]] = {
            CREATE_HIERARCHY: self._create_hierarchy,
            ADD_DELEGATION: self._add_delegation,
            REVOKE_DELEGATION: self._revoke_delegation,
            REMOVE_DELEGATION: self._remove_delegation,
            RECLAIM_DEPOSIT: self._reclaim_deposit,
            ADD_ATTESTATION: self._add_attestation,
            REVOKE_ATTESTATION: self._revoke_attestation,
        }

    @property
    def limits(self) -> LedgerLimits:
        return self._limits

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def query(self, node_id: str) -> Optional[DelegationNode]:
        with self._lock:
            record = self._nodes.get(node_id)
        return decode_delegation_node(node_id, record)

    def get_children(self, node_id: str) -> frozenset[str]:
        with self._lock:
            record = self._nodes.get(node_id)
        return frozenset(record.children) if record is not None else frozenset()

    def get_attestation_hashes(self, node_id: str) -> Sequence[str]:
        with self._lock:
            return list(self._attestations_by_delegation.get(node_id, []))

    def get_hierarchy_details(self, root_id: str) -> Optional[HierarchyDetails]:
        with self._lock:
            record = self._hierarchies.get(root_id)
        return decode_hierarchy_details(root_id, record)

    def query_deposit_amount(self) -> int:
        return self._limits.deposit_amount

    def query_attestation(self, claim_hash: str) -> Optional[Attestation]:
        with self._lock:
            record = self._attestations.get(claim_hash)
        return decode_attestation(claim_hash, record)

    def reserved_balance(self, account: str) -> int:
        """Return the total deposit currently reserved from *account*."""
        with self._lock:
            return self._reserved.get(account, 0)

    def __len__(self) -> int:
        """Return the number of stored delegation nodes."""
        with self._lock:
            return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        with self._lock:
            return node_id in self._nodes

    # ------------------------------------------------------------------
    # Request builders
    # ------------------------------------------------------------------

    def submit_store_root(self, node: DelegationNode) -> PendingTransaction:
        if node.hierarchy_details is None:
            raise ValueError(f"Root {node.id!r} carries no hierarchy details.")
        return PendingTransaction(
            CREATE_HIERARCHY,
            {
                "root_id": node.id,
                "ctype_hash": node.hierarchy_details.ctype_hash,
                "account": node.account,
                "permissions": encode_permissions(node.permissions),
            },
        )

    def submit_store_delegation(
        self,
        node: DelegationNode,
        delegate_signature: DelegateSignature,
    ) -> PendingTransaction:
        return PendingTransaction(
            ADD_DELEGATION,
            {
                "delegation_id": node.id,
                "hierarchy_id": node.hierarchy_id,
                "parent_id": node.effective_parent_id,
                "account": node.account,
                "permissions": encode_permissions(node.permissions),
                "delegate_signature": delegate_signature,
            },
        )

    def submit_revoke(
        self,
        node_id: str,
        submitter_account: str,
        max_parent_checks: int,
        max_revocations: int,
    ) -> PendingTransaction:
        return PendingTransaction(
            REVOKE_DELEGATION,
            {
                "delegation_id": node_id,
                "submitter": submitter_account,
                "max_parent_checks": max_parent_checks,
                "max_revocations": max_revocations,
            },
        )

    def submit_remove(self, node_id: str, max_revocations: int) -> PendingTransaction:
        return PendingTransaction(
            REMOVE_DELEGATION, {"delegation_id": node_id, "max_removals": max_revocations}
        )

    def submit_reclaim_deposit(self, node_id: str, max_removals: int) -> PendingTransaction:
        return PendingTransaction(
            RECLAIM_DEPOSIT, {"delegation_id": node_id, "max_removals": max_removals}
        )

    def submit_revoke_attestation(
        self, claim_hash: str, max_parent_checks: int
    ) -> PendingTransaction:
        return PendingTransaction(
            REVOKE_ATTESTATION,
            {"claim_hash": claim_hash, "max_parent_checks": max_parent_checks},
        )

    def build_add_attestation_tx(
        self,
        claim_hash: str,
        ctype_hash: str,
        delegation_id: Optional[str] = None,
    ) -> PendingTransaction:
        """Build the call recording an attestation issued by the submitter."""
        validate_hash(claim_hash, "claim_hash")
        validate_hash(ctype_hash, "ctype_hash")
        if delegation_id is not None:
            validate_hash(delegation_id, "delegation_id")
        return PendingTransaction(
            ADD_ATTESTATION,
            {"claim_hash": claim_hash, "ctype_hash": ctype_hash, "delegation_id": delegation_id},
        )

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def submit(
        self,
        tx: PendingTransaction,
        origin: str,
        payer: Optional[str] = None,
    ) -> TransactionResult:
        """Apply *tx* as submitted by *origin*.

        Parameters
        ----------
        tx:
            A transaction built by this ledger.
        origin:
            The account authorising the call.
        payer:
            The account paying deposits; defaults to *origin*. Removal and
            deposit reclaim are checked against it.

        Raises
        ------
        LedgerRejectionError
            If the ledger refuses the call. No state changes in that case.
        """
        validate_account(origin)
        payer = payer or origin
        handler = self._handlers.get(tx.call)
        try:
            if handler is None:
                raise LedgerRejectionError("UnknownCall", f"Unsupported call {tx.call!r}.")
            with self._lock:
                result = handler(dict(tx.params), origin, payer)
        except LedgerRejectionError as exc:
            logger.warning("%s by %s rejected: %s", tx.call, origin, exc)
            if self._audit_log is not None:
                self._audit_log.log_rejected(tx.call, origin, exc.code, **_audit_params(tx))
            raise
        logger.info("%s by %s applied", tx.call, origin)
        if self._audit_log is not None:
            self._audit_log.log_applied(
                tx.call,
                origin,
                revoked=list(result.revoked),
                removed=list(result.removed),
                **_audit_params(tx),
            )
        return result

    def restore(self, nodes: Iterable[DelegationNode]) -> None:
        """Load *nodes* without running any transaction checks.

        Deposits are attributed to each node's account. Roots that carry
        hierarchy details also restore their hierarchy. Children lists are
        the union of each node's ``children_ids`` and the parent links of the
        restored nodes.
        """
        deposit = self._limits.deposit_amount
        with self._lock:
            restored = list(nodes)
            for node in restored:
                self._nodes[node.id] = encode_delegation_node(
                    node, DepositRecord(owner=node.account, amount=deposit)
                )
                self._reserve(node.account, deposit)
                if node.hierarchy_details is not None:
                    self._hierarchies[node.id] = HierarchyDetailsRecord(
                        ctype_hash=node.hierarchy_details.ctype_hash
                    )
            for node in restored:
                parent_id = node.effective_parent_id
                if parent_id is not None and parent_id in self._nodes:
                    self._add_child(parent_id, node.id)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _create_hierarchy(
        self, params: dict[str, object], origin: str, payer: str
    ) -> TransactionResult:
        root_id = str(params["root_id"])
        if root_id in self._hierarchies or root_id in self._nodes:
            raise LedgerRejectionError("HierarchyAlreadyExists", f"Hierarchy {root_id!r} exists.")
        if params["account"] != origin:
            raise LedgerRejectionError(
                "UnauthorizedDelegation",
                f"Root {root_id!r} must be created by its owner {params['account']!r}.",
            )
        deposit = self._limits.deposit_amount
        root = DelegationNode(
            id=root_id,
            hierarchy_id=root_id,
            account=origin,
            permissions=decode_permissions(int(params["permissions"])),  # type: ignore[arg-type]
        )
        self._nodes[root_id] = encode_delegation_node(root, DepositRecord(owner=payer, amount=deposit))
        self._hierarchies[root_id] = HierarchyDetailsRecord(ctype_hash=str(params["ctype_hash"]))
        self._reserve(payer, deposit)
        return TransactionResult(CREATE_HIERARCHY, origin)

    def _add_delegation(
        self, params: dict[str, object], origin: str, payer: str
    ) -> TransactionResult:
        node_id = str(params["delegation_id"])
        hierarchy_id = str(params["hierarchy_id"])
        parent_id = str(params["parent_id"])
        if node_id in self._nodes:
            raise LedgerRejectionError("DelegationAlreadyExists", f"Node {node_id!r} exists.")
        if hierarchy_id not in self._hierarchies:
            raise LedgerRejectionError("HierarchyNotFound", f"Hierarchy {hierarchy_id!r} not found.")
        parent = self._nodes.get(parent_id)
        if parent is None or parent.hierarchy_root_id != hierarchy_id:
            raise LedgerRejectionError(
                "ParentDelegationNotFound", f"Parent {parent_id!r} not found in {hierarchy_id!r}."
            )
        if parent.details.owner != origin:
            raise LedgerRejectionError(
                "NotOwnerOfParentDelegation", f"{origin!r} does not own parent {parent_id!r}."
            )
        if parent.details.revoked:
            raise LedgerRejectionError("ParentDelegationRevoked", f"Parent {parent_id!r} is revoked.")
        if Permission.DELEGATE not in decode_permissions(parent.details.permissions.bits):
            raise LedgerRejectionError(
                "UnauthorizedDelegation", f"Parent {parent_id!r} lacks the DELEGATE permission."
            )
        if len(parent.children) >= self._limits.max_children:
            raise LedgerRejectionError("MaxChildrenExceeded", f"Parent {parent_id!r} is full.")

        permissions = decode_permissions(int(params["permissions"]))  # type: ignore[arg-type]
        account = str(params["account"])
        signature = params["delegate_signature"]
        node_hash = hash_fields(node_id, hierarchy_id, parent_id, permissions)
        if (
            not isinstance(signature, DelegateSignature)
            or signature.account != account
            or not verify_delegate_signature(node_hash, signature)
        ):
            raise LedgerRejectionError(
                "InvalidDelegateSignature", f"Delegate signature for {node_id!r} is invalid."
            )

        deposit = self._limits.deposit_amount
        node = DelegationNode(
            id=node_id,
            hierarchy_id=hierarchy_id,
            parent_id=parent_id,
            account=account,
            permissions=permissions,
        )
        self._nodes[node_id] = encode_delegation_node(node, DepositRecord(owner=payer, amount=deposit))
        self._add_child(parent_id, node_id)
        self._reserve(payer, deposit)
        return TransactionResult(ADD_DELEGATION, origin)

    def _revoke_delegation(
        self, params: dict[str, object], origin: str, payer: str
    ) -> TransactionResult:
        node_id = str(params["delegation_id"])
        max_parent_checks = int(params["max_parent_checks"])  # type: ignore[arg-type]
        max_revocations = int(params["max_revocations"])  # type: ignore[arg-type]
        if node_id not in self._nodes:
            raise LedgerRejectionError("DelegationNotFound", f"Node {node_id!r} not found.")
        if max_parent_checks > self._limits.max_parent_checks:
            raise LedgerRejectionError("MaxParentChecksTooLarge", str(max_parent_checks))
        if max_revocations > self._limits.max_revocations:
            raise LedgerRejectionError("MaxRevocationsTooLarge", str(max_revocations))
        if params["submitter"] != origin:
            raise UnauthorizedRevocationError(
                f"Request for {params['submitter']!r} submitted by {origin!r}."
            )
        distance = self._owner_distance(node_id, origin)
        if distance is None:
            raise UnauthorizedRevocationError(f"{origin!r} may not revoke {node_id!r}.")
        if distance > max_parent_checks:
            raise LedgerRejectionError(
                "MaxSearchDepthReached",
                f"Owner found {distance} hops up, limit was {max_parent_checks}.",
            )
        revoked = self._revoke_subtree(node_id, max_revocations)
        return TransactionResult(REVOKE_DELEGATION, origin, revoked=tuple(revoked))

    def _remove_delegation(
        self, params: dict[str, object], origin: str, payer: str
    ) -> TransactionResult:
        node_id = str(params["delegation_id"])
        max_removals = int(params["max_removals"])  # type: ignore[arg-type]
        record = self._nodes.get(node_id)
        if record is None:
            raise LedgerRejectionError("DelegationNotFound", f"Node {node_id!r} not found.")
        if max_removals > self._limits.max_removals:
            raise LedgerRejectionError("MaxRemovalsTooLarge", str(max_removals))
        if record.deposit.owner != payer:
            raise UnauthorizedRemovalError(f"{payer!r} did not pay the deposit of {node_id!r}.")
        subtree = self._subtree_ids(node_id)
        if len(subtree) - 1 > max_removals:
            raise LedgerRejectionError(
                "ExceededRemovalBounds",
                f"{len(subtree) - 1} descendants exceed max_removals={max_removals}.",
            )
        for removed_id in subtree:
            removed = self._nodes.pop(removed_id)
            self._release(removed.deposit.owner, removed.deposit.amount)
            self._hierarchies.pop(removed_id, None)
        if record.parent is not None and record.parent in self._nodes:
            parent = self._nodes[record.parent]
            self._nodes[record.parent] = parent.model_copy(
                update={"children": tuple(c for c in parent.children if c != node_id)}
            )
        return TransactionResult(REMOVE_DELEGATION, origin, removed=tuple(subtree))

    def _reclaim_deposit(
        self, params: dict[str, object], origin: str, payer: str
    ) -> TransactionResult:
        result = self._remove_delegation(params, origin, payer)
        return TransactionResult(RECLAIM_DEPOSIT, origin, removed=result.removed)

    def _add_attestation(
        self, params: dict[str, object], origin: str, payer: str
    ) -> TransactionResult:
        claim_hash = str(params["claim_hash"])
        ctype_hash = str(params["ctype_hash"])
        delegation_id = params.get("delegation_id")
        if claim_hash in self._attestations:
            raise LedgerRejectionError("AlreadyAttested", f"Claim {claim_hash!r} is attested.")
        if delegation_id is not None:
            record = self._nodes.get(str(delegation_id))
            if record is None:
                raise LedgerRejectionError("DelegationNotFound", f"Node {delegation_id!r} not found.")
            if record.details.revoked:
                raise LedgerRejectionError("DelegationRevoked", f"Node {delegation_id!r} is revoked.")
            if record.details.owner != origin:
                raise LedgerRejectionError(
                    "NotDelegatedToAttester", f"{origin!r} does not own {delegation_id!r}."
                )
            if Permission.ATTEST not in decode_permissions(record.details.permissions.bits):
                raise LedgerRejectionError(
                    "DelegationUnauthorizedToAttest", f"Node {delegation_id!r} lacks ATTEST."
                )
            hierarchy = self._hierarchies.get(record.hierarchy_root_id)
            if hierarchy is None or hierarchy.ctype_hash != ctype_hash:
                raise LedgerRejectionError(
                    "CTypeMismatch", f"Claim type {ctype_hash!r} does not match the hierarchy."
                )
        deposit = self._limits.deposit_amount
        self._attestations[claim_hash] = AttestationRecord(
            ctype_hash=ctype_hash,
            attester=origin,
            delegation_id=str(delegation_id) if delegation_id is not None else None,
            deposit=DepositRecord(owner=payer, amount=deposit),
        )
        if delegation_id is not None:
            self._attestations_by_delegation.setdefault(str(delegation_id), []).append(claim_hash)
        self._reserve(payer, deposit)
        return TransactionResult(ADD_ATTESTATION, origin)

    def _revoke_attestation(
        self, params: dict[str, object], origin: str, payer: str
    ) -> TransactionResult:
        claim_hash = str(params["claim_hash"])
        max_parent_checks = int(params["max_parent_checks"])  # type: ignore[arg-type]
        record = self._attestations.get(claim_hash)
        if record is None:
            raise LedgerRejectionError("AttestationNotFound", f"Claim {claim_hash!r} not attested.")
        if record.revoked:
            raise LedgerRejectionError("AlreadyRevoked", f"Claim {claim_hash!r} already revoked.")
        if max_parent_checks > self._limits.max_parent_checks:
            raise LedgerRejectionError("MaxParentChecksTooLarge", str(max_parent_checks))
        if record.attester != origin:
            distance = (
                self._owner_distance(record.delegation_id, origin)
                if record.delegation_id is not None
                else None
            )
            if distance is None:
                raise UnauthorizedRevocationError(
                    f"{origin!r} may not revoke attestation {claim_hash!r}."
                )
            if distance + 1 > max_parent_checks:
                raise LedgerRejectionError(
                    "MaxSearchDepthReached",
                    f"Owner found {distance + 1} hops up, limit was {max_parent_checks}.",
                )
        self._attestations[claim_hash] = record.model_copy(update={"revoked": True})
        return TransactionResult(REVOKE_ATTESTATION, origin, revoked=(claim_hash,))

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _owner_distance(self, node_id: str, account: str) -> Optional[int]:
        """Hops from *node_id* up to the closest node owned by *account*."""
        steps = 0
        current: Optional[str] = node_id
        while current is not None:
            record = self._nodes.get(current)
            if record is None:
                return None
            if record.details.owner == account:
                return steps
            current = record.parent
            steps += 1
        return None

    def _revoke_subtree(self, node_id: str, max_revocations: int) -> list[str]:
        """Revoke up to *max_revocations* descendants children-first, then *node_id*.

        Already revoked subtrees are skipped. A parent is only revoked once all
        of its children are, so an exhausted bound leaves whole branches
        untouched rather than orphaning revoked parents.
        """
        target = self._nodes[node_id]
        if target.details.revoked:
            return []
        revoked: list[str] = []
        remaining = max_revocations
        stack: list[tuple[str, bool]] = [(c, False) for c in sorted(target.children, reverse=True)]
        while stack and remaining > 0:
            current, expanded = stack.pop()
            record = self._nodes[current]
            if record.details.revoked:
                continue
            if expanded:
                self._mark_revoked(current)
                revoked.append(current)
                remaining -= 1
            else:
                stack.append((current, True))
                stack.extend((c, False) for c in sorted(record.children, reverse=True))
        self._mark_revoked(node_id)
        revoked.append(node_id)
        return revoked

    def _mark_revoked(self, node_id: str) -> None:
        record = self._nodes[node_id]
        self._nodes[node_id] = record.model_copy(
            update={"details": record.details.model_copy(update={"revoked": True})}
        )

    def _subtree_ids(self, node_id: str) -> list[str]:
        """Return *node_id* and its descendants, descendants first."""
        order: list[str] = []
        pending = [node_id]
        while pending:
            current = pending.pop()
            order.append(current)
            pending.extend(c for c in self._nodes[current].children if c in self._nodes)
        order.reverse()
        return order

    def _add_child(self, parent_id: str, child_id: str) -> None:
        parent = self._nodes[parent_id]
        if child_id not in parent.children:
            self._nodes[parent_id] = parent.model_copy(
                update={"children": parent.children + (child_id,)}
            )

    def _reserve(self, account: str, amount: int) -> None:
        self._reserved[account] = self._reserved.get(account, 0) + amount

    def _release(self, account: str, amount: int) -> None:
        self._reserved[account] = max(0, self._reserved.get(account, 0) - amount)


def _audit_params(tx: PendingTransaction) -> dict[str, object]:
    params: dict[str, object] = {}
    for key, value in tx.params.items():
        params[key] = value.to_dict() if isinstance(value, DelegateSignature) else value
    return params


__all__ = ["InMemoryLedger", "TransactionResult"]
