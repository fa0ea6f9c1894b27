"""AuthorizationChecker — who may revoke an attestation.

An attestation can be revoked by the account that issued it or by any
account that owns the delegation node it was issued under, or one of that
node's ancestors. The ledger re-checks this itself; the client computes
how many hops the ledger must walk so the request carries a tight bound.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from delegation_hierarchy.errors import (
    DelegationInconsistencyError,
    NotFoundError,
    UnauthorizedError,
)
from delegation_hierarchy.navigator import TreeNavigator
from delegation_hierarchy.validation import (
    validate_account,
    validate_hash,
    validate_revoked,
)

if TYPE_CHECKING:
    from delegation_hierarchy.ledger.gateway import LedgerGateway, PendingTransaction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Attestation:
    """An attestation as recorded on the ledger.

    Parameters
    ----------
    claim_hash:
        Hash of the attested claim; the attestation's identifier.
    ctype_hash:
        Claim type of the attested claim.
    owner:
        Account that issued the attestation.
    delegation_id:
        Delegation node the attester acted under, or None for attestations
        issued without a delegation.
    revoked:
        Whether the attestation has been revoked.
    """

    claim_hash: str
    ctype_hash: str
    owner: str
    delegation_id: Optional[str] = None
    revoked: bool = False

    def __post_init__(self) -> None:
        validate_hash(self.claim_hash, "claim_hash")
        validate_hash(self.ctype_hash, "ctype_hash")
        validate_account(self.owner)
        if self.delegation_id is not None:
            validate_hash(self.delegation_id, "delegation_id")
        validate_revoked(self.revoked)

    def to_dict(self) -> dict[str, object]:
        """Serialize to a plain dictionary."""
        return {
            "claim_hash": self.claim_hash,
            "ctype_hash": self.ctype_hash,
            "owner": self.owner,
            "delegation_id": self.delegation_id,
            "revoked": self.revoked,
        }


class AuthorizationChecker:
    """Derives authorization distances for attestation revocation.

    Parameters
    ----------
    ledger:
        Source of delegation nodes and attestations.
    navigator:
        Navigator used for ancestor searches. One is built over *ledger*
        when omitted.
    """

    def __init__(
        self,
        ledger: "LedgerGateway",
        navigator: Optional[TreeNavigator] = None,
    ) -> None:
        self._ledger = ledger
        self._navigator = navigator or TreeNavigator(ledger)

    def count_node_depth(self, acting_account: str, attestation: Attestation) -> int:
        """Return the ``max_parent_checks`` needed to revoke *attestation*.

        Returns
        -------
        int
            0 when *acting_account* issued the attestation. Otherwise
            ``1 + steps``, where ``steps`` is the distance from the
            attestation's delegation node to the closest node owned by
            *acting_account*; the extra hop is the edge from the attestation
            to its delegation node.

        Raises
        ------
        UnauthorizedError
            If the attestation has no delegation, or no node on its chain is
            owned by *acting_account*.
        DelegationInconsistencyError
            If the delegation node the attestation names is not on the
            ledger.
        """
        if attestation.owner == acting_account:
            return 0
        if attestation.delegation_id is None:
            raise UnauthorizedError(
                f"Account {acting_account!r} did not issue attestation "
                f"{attestation.claim_hash!r}, which has no delegation."
            )
        delegation = self._ledger.query(attestation.delegation_id)
        if delegation is None:
            raise DelegationInconsistencyError(
                f"Delegation {attestation.delegation_id!r} of attestation "
                f"{attestation.claim_hash!r} is not on the ledger."
            )
        search = self._navigator.find_ancestor_owned_by(
            delegation, acting_account, include_self=True
        )
        if search.node is None:
            raise UnauthorizedError(
                f"Account {acting_account!r} owns no delegation above attestation "
                f"{attestation.claim_hash!r}."
            )
        depth = search.steps + 1
        logger.debug(
            "count_node_depth(%s, %s) = %d", acting_account, attestation.claim_hash, depth
        )
        return depth

    def get_revoke_attestation_tx(
        self, acting_account: str, claim_hash: str
    ) -> "PendingTransaction":
        """Build a request revoking the attestation for *claim_hash*.

        Raises
        ------
        NotFoundError
            If the attestation is not on the ledger.
        UnauthorizedError
            See :meth:`count_node_depth`.
        """
        validate_account(acting_account)
        validate_hash(claim_hash, "claim_hash")
        attestation = self._ledger.query_attestation(claim_hash)
        if attestation is None:
            raise NotFoundError(f"Attestation {claim_hash!r} not found on the ledger.")
        depth = self.count_node_depth(acting_account, attestation)
        return self._ledger.submit_revoke_attestation(claim_hash, depth)


__all__ = ["Attestation", "AuthorizationChecker"]
