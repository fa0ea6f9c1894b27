"""Delegate signing and ``did:key`` accounts."""
from __future__ import annotations

from delegation_hierarchy.signing.did_key import did_to_public_key, is_did_key, public_key_to_did
from delegation_hierarchy.signing.signer import (
    DelegateSignature,
    Ed25519Signer,
    Signer,
    verify_delegate_signature,
    verify_signature,
)

__all__ = [
    "DelegateSignature",
    "Ed25519Signer",
    "Signer",
    "did_to_public_key",
    "is_did_key",
    "public_key_to_did",
    "verify_delegate_signature",
    "verify_signature",
]
