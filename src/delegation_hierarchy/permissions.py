"""Permission flags and their bit-set encoding.

A delegation grants a non-empty subset of two capabilities:

* ``ATTEST`` (bit 0) — issue attestations for the hierarchy's claim type.
* ``DELEGATE`` (bit 1) — create child delegations.

On the ledger and inside the integrity hash the set is packed into an
unsigned 32-bit integer, serialised little endian.
"""
from __future__ import annotations

import enum
from collections.abc import Iterable

_BITSET_WIDTH = 4


class Permission(enum.IntFlag):
    """A single delegation capability."""

    ATTEST = 1
    DELEGATE = 2


ALL_PERMISSIONS: frozenset[Permission] = frozenset(Permission.__members__.values())


def encode_permissions(permissions: Iterable[Permission]) -> int:
    """Pack *permissions* into an integer bit set.

    Parameters
    ----------
    permissions:
        Any iterable of :class:`Permission` members.

    Returns
    -------
    int
        Bitwise OR of the flag values; ``0`` for an empty iterable.
    """
    bits = 0
    for permission in permissions:
        bits |= int(permission)
    return bits


def decode_permissions(bits: int) -> frozenset[Permission]:
    """Rebuild a permission set from a bit set.

    Bits without a defined flag are ignored, so values written by newer
    ledger versions still decode.
    """
    return frozenset(p for p in ALL_PERMISSIONS if bits & p)


def permissions_as_bitset(permissions: Iterable[Permission]) -> bytes:
    """Return the 4-byte little-endian ``u32`` encoding of *permissions*."""
    return encode_permissions(permissions).to_bytes(_BITSET_WIDTH, "little")


def parse_permission(value: str) -> Permission:
    """Parse a permission name such as ``"attest"`` (case-insensitive).

    Raises
    ------
    ValueError
        If *value* does not name a defined permission.
    """
    try:
        return Permission[value.strip().upper()]
    except KeyError:
        names = ", ".join(sorted(p.name.lower() for p in ALL_PERMISSIONS))
        raise ValueError(f"Unknown permission {value!r}; expected one of: {names}.") from None


__all__ = [
    "ALL_PERMISSIONS",
    "Permission",
    "decode_permissions",
    "encode_permissions",
    "parse_permission",
    "permissions_as_bitset",
]
