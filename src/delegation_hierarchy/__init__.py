"""delegation-hierarchy — revocable, permissioned delegation trees backed by a ledger.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Example
-------
>>> import delegation_hierarchy
>>> delegation_hierarchy.__version__
'0.1.0'

Quick start
-----------
::

    from delegation_hierarchy import (
        # Nodes
        DelegationNode, HierarchyDetails, Permission,
        # Traversal and authorization
        TreeNavigator, AuthorizationChecker, Attestation,
        # Ledger
        LedgerGateway, InMemoryLedger, PendingTransaction,
        # Signing
        Ed25519Signer,
    )
"""
from __future__ import annotations

__version__: str = "0.1.0"

# ------------------------------------------------------------------
# Values and codecs
# ------------------------------------------------------------------
from delegation_hierarchy.config import HierarchyConfig, LedgerLimits
from delegation_hierarchy.hashing import generate_hash, hash_fields, new_node_id
from delegation_hierarchy.permissions import (
    ALL_PERMISSIONS,
    Permission,
    decode_permissions,
    encode_permissions,
    permissions_as_bitset,
)

# ------------------------------------------------------------------
# Nodes and traversal
# ------------------------------------------------------------------
from delegation_hierarchy.node import DelegationNode, HierarchyDetails, NodeKind
from delegation_hierarchy.navigator import AncestorSearchResult, TreeNavigator
from delegation_hierarchy.authorization import Attestation, AuthorizationChecker

# ------------------------------------------------------------------
# Ledger
# ------------------------------------------------------------------
from delegation_hierarchy.ledger import (
    InMemoryLedger,
    LedgerAuditLog,
    LedgerGateway,
    PendingTransaction,
    TransactionResult,
)

# ------------------------------------------------------------------
# Signing
# ------------------------------------------------------------------
from delegation_hierarchy.signing import (
    DelegateSignature,
    Ed25519Signer,
    Signer,
    verify_delegate_signature,
)

# ------------------------------------------------------------------
# Errors
# ------------------------------------------------------------------
from delegation_hierarchy.errors import (
    DelegationError,
    DelegationInconsistencyError,
    LedgerRejectionError,
    MalformedDelegationError,
    NotFoundError,
    UnauthorizedError,
    UnauthorizedRemovalError,
    UnauthorizedRevocationError,
)

__all__ = [
    "__version__",
    # Values and codecs
    "ALL_PERMISSIONS",
    "HierarchyConfig",
    "LedgerLimits",
    "Permission",
    "decode_permissions",
    "encode_permissions",
    "generate_hash",
    "hash_fields",
    "new_node_id",
    "permissions_as_bitset",
    # Nodes and traversal
    "AncestorSearchResult",
    "Attestation",
    "AuthorizationChecker",
    "DelegationNode",
    "HierarchyDetails",
    "NodeKind",
    "TreeNavigator",
    # Ledger
    "InMemoryLedger",
    "LedgerAuditLog",
    "LedgerGateway",
    "PendingTransaction",
    "TransactionResult",
    # Signing
    "DelegateSignature",
    "Ed25519Signer",
    "Signer",
    "verify_delegate_signature",
    # Errors
    "DelegationError",
    "DelegationInconsistencyError",
    "LedgerRejectionError",
    "MalformedDelegationError",
    "NotFoundError",
    "UnauthorizedError",
    "UnauthorizedRemovalError",
    "UnauthorizedRevocationError",
]
