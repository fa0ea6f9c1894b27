"""Configuration objects.

Configuration is passed explicitly to the components that need it; nothing
in this package reads global state or the environment.
"""
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class HierarchyConfig:
    """Client-side tuning for tree traversal.

    Parameters
    ----------
    max_fetch_workers:
        Upper bound on concurrent ledger queries used when the children of a
        single node are fetched. ``1`` fetches siblings sequentially.
    """

    max_fetch_workers: int = 8

    def __post_init__(self) -> None:
        if self.max_fetch_workers < 1:
            raise ValueError("max_fetch_workers must be at least 1.")


@dataclass(frozen=True)
class LedgerLimits:
    """Upper bounds and fees enforced by :class:`~delegation_hierarchy.ledger.memory.InMemoryLedger`.

    Parameters
    ----------
    max_revocations:
        Largest ``max_revocations`` a revoke request may carry.
    max_removals:
        Largest ``max_removals`` a remove or reclaim request may carry.
    max_parent_checks:
        Largest ``max_parent_checks`` a revoke request may carry.
    max_children:
        Maximum number of direct children per node.
    deposit_amount:
        Fixed deposit reserved from the payer for every stored node.
    """

    max_revocations: int = 5
    max_removals: int = 5
    max_parent_checks: int = 5
    max_children: int = 1000
    deposit_amount: int = 1_000_000


__all__ = ["HierarchyConfig", "LedgerLimits"]
