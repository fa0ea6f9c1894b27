"""TreeNavigator — read-only traversals over a ledger-backed hierarchy.

Both traversals are iterative, so hierarchies tens of thousands of levels
deep do not grow the call stack. Children of a single node are fetched as
one concurrent batch; levels are walked one after another because child
identifiers are only known once the parent's children have been fetched.
"""
from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from delegation_hierarchy.config import HierarchyConfig
from delegation_hierarchy.errors import DelegationInconsistencyError

if TYPE_CHECKING:
    from delegation_hierarchy.ledger.gateway import LedgerGateway
    from delegation_hierarchy.node import DelegationNode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AncestorSearchResult:
    """Outcome of :meth:`TreeNavigator.find_ancestor_owned_by`.

    Parameters
    ----------
    steps:
        Parent hops walked from the start node. When nothing matched this is
        the distance to the root.
    node:
        The matching ancestor, or None.
    """

    steps: int
    node: Optional["DelegationNode"]

    @property
    def found(self) -> bool:
        return self.node is not None


class TreeNavigator:
    """Walks a hierarchy through a :class:`LedgerGateway`.

    Parameters
    ----------
    ledger:
        Source of every node read during traversal.
    config:
        Traversal tuning. Defaults to :class:`HierarchyConfig`.
    """

    def __init__(self, ledger: "LedgerGateway", config: Optional[HierarchyConfig] = None) -> None:
        self._ledger = ledger
        self._config = config or HierarchyConfig()

    @property
    def ledger(self) -> "LedgerGateway":
        return self._ledger

    # ------------------------------------------------------------------
    # Downward
    # ------------------------------------------------------------------

    def subtree_node_count(self, node: "DelegationNode") -> int:
        """Count every descendant of *node*, excluding *node* itself.

        Returns
        -------
        int
            0 for a leaf.

        Raises
        ------
        DelegationInconsistencyError
            If a child cannot be resolved or the ledger data contains a cycle.
        """
        count = 0
        seen = {node.id}
        pending = [node]
        while pending:
            current = pending.pop()
            children = current.get_children(
                self._ledger, max_workers=self._config.max_fetch_workers
            )
            for child in children:
                if child.id in seen:
                    raise DelegationInconsistencyError(
                        f"Node {child.id!r} is reachable twice below {node.id!r}."
                    )
                seen.add(child.id)
            count += len(children)
            pending.extend(children)
        logger.debug("subtree_node_count(%s) = %d", node.id, count)
        return count

    # ------------------------------------------------------------------
    # Upward
    # ------------------------------------------------------------------

    def iter_ancestors(self, node: "DelegationNode") -> Iterator[tuple[int, "DelegationNode"]]:
        """Yield ``(steps, ancestor)`` from the parent of *node* up to the root."""
        seen = {node.id}
        steps = 0
        current = node.get_parent(self._ledger)
        while current is not None:
            if current.id in seen:
                raise DelegationInconsistencyError(
                    f"Parent chain of {node.id!r} loops back to {current.id!r}."
                )
            seen.add(current.id)
            steps += 1
            yield steps, current
            current = current.get_parent(self._ledger)

    def find_ancestor_owned_by(
        self,
        node: "DelegationNode",
        account: str,
        include_self: bool = False,
    ) -> AncestorSearchResult:
        """Find the closest ancestor of *node* controlled by *account*.

        Parameters
        ----------
        node:
            Start of the upward walk.
        account:
            The account to look for.
        include_self:
            If True, *node* itself is checked first and matches at 0 steps.
            With the default of False the walk starts at the parent, so a
            search for the start node's own account yields ``node=None``
            with the distance to the root. Pass True when the owner of
            *node* should count as zero hops away.

        Returns
        -------
        AncestorSearchResult
            The matching ancestor and the hops walked, or ``node=None`` with
            the distance to the root.
        """
        if include_self and node.account == account:
            return AncestorSearchResult(steps=0, node=node)
        steps = 0
        for steps, ancestor in self.iter_ancestors(node):
            if ancestor.account == account:
                logger.debug(
                    "find_ancestor_owned_by(%s): %s found at %d steps", node.id, account, steps
                )
                return AncestorSearchResult(steps=steps, node=ancestor)
        return AncestorSearchResult(steps=steps, node=None)


__all__ = ["AncestorSearchResult", "TreeNavigator"]
