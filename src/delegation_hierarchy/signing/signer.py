"""Delegate signing.

A delegate consents to a delegation by signing the raw bytes of the node's
integrity hash. :class:`Signer` is the interface the node uses;
:class:`Ed25519Signer` is the bundled implementation built on the
``cryptography`` package.

Example
-------
::

    signer = Ed25519Signer.generate()
    signature = node.delegate_sign(signer)
    assert verify_delegate_signature(node.generate_hash(), signature)
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    PublicFormat,
)

from delegation_hierarchy.hashing import to_bytes
from delegation_hierarchy.signing.did_key import did_to_public_key, public_key_to_did


@dataclass(frozen=True)
class DelegateSignature:
    """A delegate's signature over a node's integrity hash.

    Parameters
    ----------
    account:
        The signing account (the delegate).
    signature:
        The raw signature bytes.
    """

    account: str
    signature: bytes

    def to_dict(self) -> dict[str, object]:
        """Serialize to a plain dictionary."""
        return {"account": self.account, "signature": "0x" + self.signature.hex()}


class Signer(ABC):
    """Signs payloads on behalf of a single account."""

    @property
    @abstractmethod
    def account(self) -> str:
        """The account whose key material produces signatures."""

    @abstractmethod
    def sign(self, data: bytes) -> bytes:
        """Sign *data* and return the raw signature."""


class Ed25519Signer(Signer):
    """Ed25519 signer whose account is the matching ``did:key``.

    Parameters
    ----------
    private_key_bytes:
        The 32-byte raw Ed25519 private key.
    """

    def __init__(self, private_key_bytes: bytes) -> None:
        self._private_key = Ed25519PrivateKey.from_private_bytes(private_key_bytes)
        public_bytes = self._private_key.public_key().public_bytes(
            Encoding.Raw, PublicFormat.Raw
        )
        self._account = public_key_to_did(public_bytes)

    @classmethod
    def generate(cls) -> "Ed25519Signer":
        """Create a signer with a freshly generated keypair."""
        private_bytes = Ed25519PrivateKey.generate().private_bytes(
            Encoding.Raw, PrivateFormat.Raw, NoEncryption()
        )
        return cls(private_bytes)

    @property
    def account(self) -> str:
        return self._account

    @property
    def private_key_bytes(self) -> bytes:
        """The raw private key, for callers that persist it themselves."""
        return self._private_key.private_bytes(
            Encoding.Raw, PrivateFormat.Raw, NoEncryption()
        )

    def sign(self, data: bytes) -> bytes:
        return self._private_key.sign(data)


def verify_signature(account: str, signature: bytes, data: bytes) -> bool:
    """Verify an Ed25519 signature made by a ``did:key`` account.

    Returns
    -------
    bool
        ``False`` when the signature does not match or the account does not
        embed an Ed25519 key.
    """
    try:
        public_key = Ed25519PublicKey.from_public_bytes(did_to_public_key(account))
    except ValueError:
        return False
    try:
        public_key.verify(signature, data)
        return True
    except InvalidSignature:
        return False


def verify_delegate_signature(node_hash: str, delegate_signature: DelegateSignature) -> bool:
    """Check that *delegate_signature* signs the raw bytes of *node_hash*."""
    return verify_signature(
        delegate_signature.account, delegate_signature.signature, to_bytes(node_hash)
    )


__all__ = [
    "DelegateSignature",
    "Ed25519Signer",
    "Signer",
    "verify_delegate_signature",
    "verify_signature",
]
