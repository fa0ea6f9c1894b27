"""CLI entry point for delegation-hierarchy.

Invoked as::

    delegation-hierarchy [OPTIONS] COMMAND [ARGS]...

or, during development::

    python -m delegation_hierarchy.cli.main

Every command works offline; none of them talks to a ledger.

Commands
--------
version              Show version information
hash                 Compute the integrity hash of a delegation node
permissions encode   Pack permission names into a bit set
permissions decode   Unpack a bit set into permission names
keygen               Generate an Ed25519 did:key signing account
sign                 Sign a node hash as its delegate
verify-signature     Verify a delegate signature over a node hash
"""
from __future__ import annotations

import logging
import sys

import click
from rich.console import Console
from rich.table import Table

from delegation_hierarchy import __version__
from delegation_hierarchy.errors import MalformedDelegationError
from delegation_hierarchy.hashing import hash_fields, to_bytes
from delegation_hierarchy.permissions import (
    ALL_PERMISSIONS,
    decode_permissions,
    encode_permissions,
    parse_permission,
    permissions_as_bitset,
)
from delegation_hierarchy.signing import Ed25519Signer, verify_signature
from delegation_hierarchy.validation import (
    validate_account,
    validate_hash,
    validate_permissions,
)

console = Console()

_PERMISSION_CHOICE = click.Choice(
    sorted(p.name.lower() for p in ALL_PERMISSIONS), case_sensitive=False
)


def _parse_hex(value: str, option: str) -> bytes:
    text = value[2:] if value.startswith("0x") else value
    try:
        return bytes.fromhex(text)
    except ValueError:
        console.print(f"[red]Error:[/red] {option} is not valid hex: {value!r}")
        sys.exit(1)


# ------------------------------------------------------------------
# Root group
# ------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Logging verbosity.",
)
def cli(log_level: str) -> None:
    """Delegation hierarchy tooling: hashes, permissions and delegate signatures"""
    logging.basicConfig(level=getattr(logging, log_level.upper()))


@cli.command(name="version")
def version_command() -> None:
    """Show detailed version information."""
    console.print(f"[bold]delegation-hierarchy[/bold] v{__version__}")


# ------------------------------------------------------------------
# hash
# ------------------------------------------------------------------


@cli.command(name="hash")
@click.option("--id", "node_id", required=True, help="Node identifier (0x-prefixed hash).")
@click.option("--hierarchy-id", required=True, help="Identifier of the hierarchy root.")
@click.option("--parent-id", default=None, help="Parent identifier; omit for children of the root.")
@click.option(
    "--permission",
    "-p",
    "permissions",
    multiple=True,
    required=True,
    type=_PERMISSION_CHOICE,
    help="Granted permission (repeatable, e.g. -p attest -p delegate).",
)
def hash_command(
    node_id: str,
    hierarchy_id: str,
    parent_id: str | None,
    permissions: tuple[str, ...],
) -> None:
    """Compute the integrity hash a delegate signs for a node."""
    try:
        validate_hash(node_id, "id")
        validate_hash(hierarchy_id, "hierarchy_id")
        if parent_id is not None:
            validate_hash(parent_id, "parent_id")
        granted = validate_permissions(parse_permission(p) for p in permissions)
    except MalformedDelegationError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)
    console.print(hash_fields(node_id, hierarchy_id, parent_id, granted), soft_wrap=True)


# ------------------------------------------------------------------
# permissions command group
# ------------------------------------------------------------------


@cli.group(name="permissions")
def permissions_group() -> None:
    """Convert between permission names and bit sets."""


@permissions_group.command(name="encode")
@click.option(
    "--permission",
    "-p",
    "permissions",
    multiple=True,
    required=True,
    type=_PERMISSION_CHOICE,
    help="Permission to include (repeatable).",
)
def encode_command(permissions: tuple[str, ...]) -> None:
    """Print the bit set and its 4-byte little-endian encoding."""
    granted = {parse_permission(p) for p in permissions}
    console.print(f"bits: {encode_permissions(granted)}")
    console.print(f"bytes: 0x{permissions_as_bitset(granted).hex()}")


@permissions_group.command(name="decode")
@click.argument("bits", type=click.IntRange(min=0, max=2**32 - 1))
def decode_command(bits: int) -> None:
    """Show which permissions BITS grants. Undefined bits are ignored."""
    granted = decode_permissions(bits)
    table = Table(title=f"Permissions — {bits}", show_header=True)
    table.add_column("Permission", style="cyan")
    table.add_column("Bit", justify="right")
    table.add_column("Granted", justify="center")
    for permission in sorted(ALL_PERMISSIONS):
        granted_str = "[green]Yes[/green]" if permission in granted else "[red]No[/red]"
        table.add_row(permission.name, str(int(permission)), granted_str)
    console.print(table)


# ------------------------------------------------------------------
# Signing
# ------------------------------------------------------------------


@cli.command(name="keygen")
def keygen_command() -> None:
    """Generate an Ed25519 keypair and print its did:key account."""
    signer = Ed25519Signer.generate()
    console.print(f"account: {signer.account}", soft_wrap=True)
    console.print(f"private key: 0x{signer.private_key_bytes.hex()}", soft_wrap=True)


@cli.command(name="sign")
@click.argument("node_hash")
@click.option("--private-key", required=True, help="Raw 32-byte Ed25519 private key as hex.")
def sign_command(node_hash: str, private_key: str) -> None:
    """Sign NODE_HASH as the delegate owning --private-key."""
    try:
        validate_hash(node_hash, "hash")
    except MalformedDelegationError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)
    key_bytes = _parse_hex(private_key, "--private-key")
    try:
        signer = Ed25519Signer(key_bytes)
    except ValueError as exc:
        console.print(f"[red]Error:[/red] invalid private key: {exc}")
        sys.exit(1)
    signature = signer.sign(to_bytes(node_hash))
    console.print(f"account: {signer.account}", soft_wrap=True)
    console.print(f"signature: 0x{signature.hex()}", soft_wrap=True)


@cli.command(name="verify-signature")
@click.argument("node_hash")
@click.argument("signature")
@click.option("--account", required=True, help="The delegate's did:key account.")
def verify_signature_command(node_hash: str, signature: str, account: str) -> None:
    """Check that SIGNATURE is ACCOUNT's signature over NODE_HASH."""
    try:
        validate_hash(node_hash, "hash")
        validate_account(account)
    except MalformedDelegationError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)
    signature_bytes = _parse_hex(signature, "SIGNATURE")
    if not verify_signature(account, signature_bytes, to_bytes(node_hash)):
        console.print("[red]FAIL[/red]  signature does not match")
        sys.exit(1)
    console.print("[green]PASS[/green]  signature is valid")


if __name__ == "__main__":
    cli()
