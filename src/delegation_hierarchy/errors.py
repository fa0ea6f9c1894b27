"""Error taxonomy for the delegation hierarchy.

Absence of a node, hierarchy or attestation is reported as ``None`` by
query-style calls and is never an exception. Everything else falls into one
of three families:

* :class:`MalformedDelegationError` — structural violations detected
  locally, before any ledger call.
* :class:`UnauthorizedError` — the acting account may not perform the
  action, detected either locally or by the ledger.
* :class:`LedgerRejectionError` — any other failure reported by the ledger,
  carrying the ledger's own error code unchanged.
"""
from __future__ import annotations


class DelegationError(Exception):
    """Base class for every error raised by this package."""


# ------------------------------------------------------------------
# Malformed input
# ------------------------------------------------------------------


class MalformedDelegationError(DelegationError, ValueError):
    """Raised when a value violates a structural invariant."""


class InvalidHashError(MalformedDelegationError):
    """Raised when an identifier is not a 0x-prefixed 256-bit hex hash."""

    def __init__(self, value: object, field_name: str = "id") -> None:
        self.value = value
        self.field_name = field_name
        super().__init__(
            f"{field_name} must be a 0x-prefixed 256-bit hex hash, got {value!r}."
        )


class InvalidAccountError(MalformedDelegationError):
    """Raised when an account is missing or not a well-formed DID URI."""

    def __init__(self, value: object) -> None:
        self.value = value
        super().__init__(f"Account must be a DID URI (did:<method>:<id>), got {value!r}.")


class InvalidPermissionsError(MalformedDelegationError):
    """Raised when a permission set is empty or holds an undefined flag."""


class InvalidRevocationFlagError(MalformedDelegationError):
    """Raised when ``revoked`` is not a boolean."""

    def __init__(self, value: object) -> None:
        self.value = value
        super().__init__(f"revoked must be a bool, got {type(value).__name__}.")


class NotARootError(MalformedDelegationError):
    """Raised when a root-only operation is invoked on a delegated node."""

    def __init__(self, node_id: str) -> None:
        self.node_id = node_id
        super().__init__(f"Node {node_id!r} is not the root of its hierarchy.")


class RootNodeError(MalformedDelegationError):
    """Raised when a delegated-node operation is invoked on a root."""

    def __init__(self, node_id: str) -> None:
        self.node_id = node_id
        super().__init__(
            f"Node {node_id!r} is a hierarchy root; use the root store request instead."
        )


class DelegateSignatureMissingError(MalformedDelegationError):
    """Raised when storing a delegated node without the delegate's signature."""

    def __init__(self, node_id: str) -> None:
        self.node_id = node_id
        super().__init__(
            f"Node {node_id!r} requires the delegate's signature over its hash to be stored."
        )


# ------------------------------------------------------------------
# Lookups and consistency
# ------------------------------------------------------------------


class NotFoundError(DelegationError, LookupError):
    """Raised by accessors that cannot proceed without a ledger record."""


class DelegationInconsistencyError(DelegationError):
    """Raised when ledger data references a record the ledger cannot return.

    This signals that the client and the ledger are out of sync and must
    never be silently skipped.
    """


# ------------------------------------------------------------------
# Authorization
# ------------------------------------------------------------------


class UnauthorizedError(DelegationError):
    """Raised when an account is not entitled to perform an action."""


# ------------------------------------------------------------------
# Ledger rejections
# ------------------------------------------------------------------


class LedgerRejectionError(DelegationError):
    """Raised when the ledger rejects a submitted transaction.

    Parameters
    ----------
    code:
        The ledger's error name, e.g. ``"DelegationAlreadyExists"``.
    message:
        Human-readable detail.
    """

    def __init__(self, code: str, message: str = "") -> None:
        self.code = code
        self.message = message
        super().__init__(f"{code}: {message}" if message else code)


class UnauthorizedRevocationError(LedgerRejectionError, UnauthorizedError):
    """The ledger refused a revocation by an account that is not entitled to it."""

    def __init__(self, message: str = "") -> None:
        super().__init__("UnauthorizedRevocation", message)


class UnauthorizedRemovalError(LedgerRejectionError, UnauthorizedError):
    """The ledger refused a removal by an account that did not pay the deposit."""

    def __init__(self, message: str = "") -> None:
        super().__init__("UnauthorizedRemoval", message)


__all__ = [
    "DelegateSignatureMissingError",
    "DelegationError",
    "DelegationInconsistencyError",
    "InvalidAccountError",
    "InvalidHashError",
    "InvalidPermissionsError",
    "InvalidRevocationFlagError",
    "LedgerRejectionError",
    "MalformedDelegationError",
    "NotARootError",
    "NotFoundError",
    "RootNodeError",
    "UnauthorizedError",
    "UnauthorizedRemovalError",
    "UnauthorizedRevocationError",
]
