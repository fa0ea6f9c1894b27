"""Constants and small builders shared by the test suites."""
from __future__ import annotations

from delegation_hierarchy.permissions import Permission

CTYPE_HASH: str = "0x" + "ab" * 32
BOTH: frozenset[Permission] = frozenset({Permission.ATTEST, Permission.DELEGATE})


def account(name: str) -> str:
    return f"did:example:{name}"


__all__ = ["BOTH", "CTYPE_HASH", "account"]
