"""Structural validation for delegation values.

All checks here are local and synchronous. They run when a value is
constructed, before any ledger request is built.
"""
from __future__ import annotations

import re
from collections.abc import Iterable

from delegation_hierarchy.errors import (
    InvalidAccountError,
    InvalidHashError,
    InvalidPermissionsError,
    InvalidRevocationFlagError,
)
from delegation_hierarchy.permissions import ALL_PERMISSIONS, Permission

_HASH_PATTERN = re.compile(r"^0x[0-9a-fA-F]{64}$")
_DID_PATTERN = re.compile(
    r"^did:(?P<method>[a-z0-9]+):(?P<identifier>[A-Za-z0-9._\-]+(?::[A-Za-z0-9._\-]+)*)$"
)


def is_hash(value: object) -> bool:
    """Return True if *value* is a ``0x``-prefixed 256-bit hex string."""
    return isinstance(value, str) and _HASH_PATTERN.match(value) is not None


def is_account(value: object) -> bool:
    """Return True if *value* is a syntactically valid DID URI."""
    return isinstance(value, str) and _DID_PATTERN.match(value) is not None


def validate_hash(value: object, field_name: str = "id") -> str:
    """Return *value* unchanged or raise :class:`InvalidHashError`."""
    if not is_hash(value):
        raise InvalidHashError(value, field_name)
    return value  # type: ignore[return-value]


def validate_account(value: object) -> str:
    """Return *value* unchanged or raise :class:`InvalidAccountError`."""
    if not value or not is_account(value):
        raise InvalidAccountError(value)
    return value  # type: ignore[return-value]


def validate_revoked(value: object) -> bool:
    """Return *value* unchanged or raise :class:`InvalidRevocationFlagError`."""
    if not isinstance(value, bool):
        raise InvalidRevocationFlagError(value)
    return value


def validate_permissions(permissions: Iterable[object]) -> frozenset[Permission]:
    """Normalise and check a permission set.

    Every element must be exactly one defined flag; combined flags such as
    ``ATTEST | DELEGATE`` or raw integers outside ``{1, 2}`` are rejected.

    Returns
    -------
    frozenset[Permission]
        The validated, de-duplicated set.

    Raises
    ------
    InvalidPermissionsError
        If the set is empty or contains an undefined value.
    """
    if isinstance(permissions, (str, bytes)):
        raise InvalidPermissionsError("Permissions must be a collection of Permission flags.")
    result: set[Permission] = set()
    for value in permissions:
        if isinstance(value, bool) or not isinstance(value, int) or value not in ALL_PERMISSIONS:
            raise InvalidPermissionsError(
                f"Permission {value!r} is not one of "
                f"{sorted(p.name for p in ALL_PERMISSIONS)}."
            )
        result.add(Permission(value))
    if not result:
        raise InvalidPermissionsError("A delegation must grant at least one permission.")
    return frozenset(result)


__all__ = [
    "is_account",
    "is_hash",
    "validate_account",
    "validate_hash",
    "validate_permissions",
    "validate_revoked",
]
