"""Ledger record codec.

The ledger stores nodes in its own shape: the owner, revocation flag and
permission bits are nested under ``details``, the parent is optional, and a
deposit record is kept alongside. These pydantic models validate that
shape and convert it to and from :class:`DelegationNode` values.
"""
from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from delegation_hierarchy.authorization import Attestation
from delegation_hierarchy.node import DelegationNode, HierarchyDetails
from delegation_hierarchy.permissions import decode_permissions, encode_permissions


class PermissionsRecord(BaseModel):
    """Permission bit set as stored on the ledger."""

    model_config = ConfigDict(frozen=True)

    bits: int = Field(ge=0, lt=2**32)


class DepositRecord(BaseModel):
    """Deposit reserved for a stored record."""

    model_config = ConfigDict(frozen=True)

    owner: str
    amount: int = Field(ge=0)


class DelegationDetailsRecord(BaseModel):
    """Mutable part of a stored node."""

    model_config = ConfigDict(frozen=True)

    owner: str
    revoked: bool = False
    permissions: PermissionsRecord


class DelegationNodeRecord(BaseModel):
    """A delegation node as stored on the ledger."""

    model_config = ConfigDict(frozen=True)

    hierarchy_root_id: str
    parent: Optional[str] = None
    children: tuple[str, ...] = ()
    details: DelegationDetailsRecord
    deposit: DepositRecord


class HierarchyDetailsRecord(BaseModel):
    """Hierarchy details as stored on the ledger."""

    model_config = ConfigDict(frozen=True)

    ctype_hash: str


class AttestationRecord(BaseModel):
    """An attestation as stored on the ledger."""

    model_config = ConfigDict(frozen=True)

    ctype_hash: str
    attester: str
    delegation_id: Optional[str] = None
    revoked: bool = False
    deposit: DepositRecord


# ------------------------------------------------------------------
# Decoding
# ------------------------------------------------------------------


def decode_delegation_node(
    node_id: str,
    encoded: DelegationNodeRecord | Mapping[str, Any] | None,
) -> Optional[DelegationNode]:
    """Build a :class:`DelegationNode` from a stored record.

    Returns
    -------
    DelegationNode | None
        None when *encoded* is None.
    """
    if encoded is None:
        return None
    record = (
        encoded
        if isinstance(encoded, DelegationNodeRecord)
        else DelegationNodeRecord.model_validate(dict(encoded))
    )
    return DelegationNode(
        id=node_id,
        hierarchy_id=record.hierarchy_root_id,
        parent_id=record.parent,
        children_ids=frozenset(record.children),
        account=record.details.owner,
        permissions=decode_permissions(record.details.permissions.bits),
        revoked=record.details.revoked,
    )


def decode_hierarchy_details(
    root_id: str,
    encoded: HierarchyDetailsRecord | Mapping[str, Any] | None,
) -> Optional[HierarchyDetails]:
    """Build :class:`HierarchyDetails` from a stored record, or return None."""
    if encoded is None:
        return None
    record = (
        encoded
        if isinstance(encoded, HierarchyDetailsRecord)
        else HierarchyDetailsRecord.model_validate(dict(encoded))
    )
    return HierarchyDetails(root_id=root_id, ctype_hash=record.ctype_hash)


def decode_attestation(
    claim_hash: str,
    encoded: AttestationRecord | Mapping[str, Any] | None,
) -> Optional[Attestation]:
    """Build an :class:`Attestation` from a stored record, or return None."""
    if encoded is None:
        return None
    record = (
        encoded
        if isinstance(encoded, AttestationRecord)
        else AttestationRecord.model_validate(dict(encoded))
    )
    return Attestation(
        claim_hash=claim_hash,
        ctype_hash=record.ctype_hash,
        owner=record.attester,
        delegation_id=record.delegation_id,
        revoked=record.revoked,
    )


# ------------------------------------------------------------------
# Encoding
# ------------------------------------------------------------------


def encode_delegation_node(node: DelegationNode, deposit: DepositRecord) -> DelegationNodeRecord:
    """Build the stored record for a new *node*.

    A parent equal to the hierarchy root is stored as the root id so every
    stored non-root node names its parent explicitly.
    """
    parent = None if node.is_root() else node.effective_parent_id
    return DelegationNodeRecord(
        hierarchy_root_id=node.hierarchy_id,
        parent=parent,
        children=tuple(sorted(node.children_ids)),
        details=DelegationDetailsRecord(
            owner=node.account,
            revoked=node.revoked,
            permissions=PermissionsRecord(bits=encode_permissions(node.permissions)),
        ),
        deposit=deposit,
    )


__all__ = [
    "AttestationRecord",
    "DelegationDetailsRecord",
    "DelegationNodeRecord",
    "DepositRecord",
    "HierarchyDetailsRecord",
    "PermissionsRecord",
    "decode_attestation",
    "decode_delegation_node",
    "decode_hierarchy_details",
    "encode_delegation_node",
]
