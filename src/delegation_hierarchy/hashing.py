"""Integrity hash of a delegation node.

The hash is the object a delegate signs to consent to one exact position
and permission set in a hierarchy. Independent parties must compute it
bit for bit identically, so the construction is fixed:

1. ``id``, ``hierarchy_id`` and, only when it is set and differs from
   ``hierarchy_id``, ``parent_id``; each hex identifier decoded to its raw
   bytes.
2. The permission bit set as a 4-byte little-endian ``u32``.
3. blake2b with a 32-byte digest over the concatenation.
4. ``0x``-prefixed lowercase hex.
"""
from __future__ import annotations

import hashlib
import logging
import re
import uuid
from collections.abc import Iterable
from typing import TYPE_CHECKING

from delegation_hierarchy.permissions import Permission, permissions_as_bitset

if TYPE_CHECKING:
    from delegation_hierarchy.node import DelegationNode

logger = logging.getLogger(__name__)

_DIGEST_SIZE = 32
_HEX_PATTERN = re.compile(r"^0x(?:[0-9a-fA-F]{2})*$")


def to_bytes(value: str) -> bytes:
    """Convert an identifier to the bytes that enter the hash.

    ``0x``-prefixed hex strings are decoded; anything else is UTF-8 encoded.
    """
    if _HEX_PATTERN.match(value):
        return bytes.fromhex(value[2:])
    return value.encode("utf-8")


def hash_bytes(data: bytes) -> str:
    """Return the ``0x``-prefixed blake2b-256 hex digest of *data*."""
    return "0x" + hashlib.blake2b(data, digest_size=_DIGEST_SIZE).hexdigest()


def hash_fields(
    node_id: str,
    hierarchy_id: str,
    parent_id: str | None,
    permissions: Iterable[Permission],
) -> str:
    """Compute the integrity hash from raw field values.

    A ``parent_id`` equal to ``hierarchy_id`` is treated as unset, so a
    direct child of the root hashes the same either way.
    """
    parts = [to_bytes(node_id), to_bytes(hierarchy_id)]
    if parent_id and parent_id != hierarchy_id:
        parts.append(to_bytes(parent_id))
    parts.append(permissions_as_bitset(permissions))
    return hash_bytes(b"".join(parts))


def generate_hash(node: "DelegationNode") -> str:
    """Return the integrity hash of *node*."""
    generated = hash_fields(node.id, node.hierarchy_id, node.parent_id, node.permissions)
    logger.debug("generate_hash(%s): %s", node.id, generated)
    return generated


def new_node_id() -> str:
    """Return a fresh random 256-bit hash identifier."""
    return hash_bytes(uuid.uuid4().bytes)


__all__ = ["generate_hash", "hash_bytes", "hash_fields", "new_node_id", "to_bytes"]
