"""``did:key`` encoding for Ed25519 accounts.

Signing accounts are ``did:key`` identifiers, which embed the public key:

1. Prepend the Ed25519 multicodec prefix ``0xed 0x01`` to the 32-byte key.
2. Encode the result with base58btc.
3. Prefix with ``z`` (multibase base58btc) and ``did:key:``.

The public key is therefore recoverable from the account string alone,
which is what lets the ledger check a delegate's signature without a
key registry.
"""
from __future__ import annotations

_ED25519_MULTICODEC_PREFIX: bytes = b"\xed\x01"
_DID_KEY_PREFIX = "did:key:z"
_BASE58_ALPHABET: str = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"


def _base58btc_encode(data: bytes) -> str:
    n = int.from_bytes(data, "big")
    result: list[str] = []
    while n > 0:
        n, remainder = divmod(n, 58)
        result.append(_BASE58_ALPHABET[remainder])
    # Leading zero bytes map to '1'
    for byte in data:
        if byte == 0:
            result.append("1")
        else:
            break
    return "".join(reversed(result))


def _base58btc_decode(encoded: str) -> bytes:
    n = 0
    for char in encoded:
        index = _BASE58_ALPHABET.find(char)
        if index < 0:
            raise ValueError(f"Invalid base58btc character {char!r} in {encoded!r}.")
        n = n * 58 + index
    result = n.to_bytes((n.bit_length() + 7) // 8, "big") if n > 0 else b""
    pad_size = len(encoded) - len(encoded.lstrip("1"))
    return b"\x00" * pad_size + result


def public_key_to_did(public_key: bytes) -> str:
    """Encode a raw 32-byte Ed25519 public key as a ``did:key`` account."""
    if len(public_key) != 32:
        raise ValueError(f"Ed25519 public keys are 32 bytes, got {len(public_key)}.")
    return _DID_KEY_PREFIX + _base58btc_encode(_ED25519_MULTICODEC_PREFIX + public_key)


def did_to_public_key(did: str) -> bytes:
    """Decode the raw Ed25519 public key embedded in a ``did:key`` account.

    Raises
    ------
    ValueError
        If *did* is not a ``did:key`` or does not carry an Ed25519 key.
    """
    if not did.startswith(_DID_KEY_PREFIX) or len(did) == len(_DID_KEY_PREFIX):
        raise ValueError(
            f"Invalid did:key format: {did!r}. "
            "Expected format: did:key:z<base58btc-encoded-public-key>"
        )
    decoded = _base58btc_decode(did[len(_DID_KEY_PREFIX):])
    if not decoded.startswith(_ED25519_MULTICODEC_PREFIX):
        raise ValueError(
            f"Unsupported multicodec prefix 0x{decoded[:2].hex()} in {did!r}. "
            "Only Ed25519 (0xed01) keys are supported."
        )
    public_key = decoded[len(_ED25519_MULTICODEC_PREFIX):]
    if len(public_key) != 32:
        raise ValueError(f"did:key {did!r} does not encode a 32-byte Ed25519 key.")
    return public_key


def is_did_key(did: str) -> bool:
    """Return True if *did* decodes to an Ed25519 ``did:key``."""
    try:
        did_to_public_key(did)
    except ValueError:
        return False
    return True


__all__ = ["did_to_public_key", "is_did_key", "public_key_to_did"]
