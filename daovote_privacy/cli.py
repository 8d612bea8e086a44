"""
Command-Line Interface for anonymous DAO membership proofs

Offline helpers for deriving credentials, computing nullifiers and Merkle
paths, converting and verifying Groth16 proofs, plus a relay health check.
"""

import json
import logging
import sys
from pathlib import Path

import click
import trio
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from daovote_privacy import __version__
from daovote_privacy.membership_protocol.config import TREE_DEPTH
from daovote_privacy.membership_protocol.credentials import (
    CredentialDeriver,
    Ed25519SigningCapability,
)
from daovote_privacy.membership_protocol.exceptions import DaoPrivacyError
from daovote_privacy.membership_protocol.field import to_field, to_hex64
from daovote_privacy.membership_protocol.merkle import IncrementalMerkleTree
from daovote_privacy.membership_protocol.nullifier import NullifierComputer
from daovote_privacy.membership_protocol.poseidon import load_reference_constants
from daovote_privacy.membership_protocol.settings import ClientSettings, load_settings
from daovote_privacy.membership_protocol.snark.backend import verify_snarkjs_files
from daovote_privacy.membership_protocol.store import FileCredentialStore
from daovote_privacy.membership_protocol.types import Groth16Proof
from daovote_privacy.relay.client import RelayClient
from daovote_privacy.relay.encoding import PointEncoding, encode_proof

logger = logging.getLogger("daovote_privacy")
console = Console()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def _settings(ctx: click.Context) -> ClientSettings:
    settings = ctx.obj.get("settings")
    if settings is None:
        settings = load_settings(ctx.obj.get("config_path"))
        if settings.poseidon_constants:
            load_reference_constants(settings.poseidon_constants)
        ctx.obj["settings"] = settings
    return settings


def _fail(message: str) -> None:
    click.echo(click.style(f"✗ {message}", fg="red"), err=True)
    sys.exit(1)


@click.group()
@click.version_option(version=__version__)
@click.option(
    '--config',
    'config_path',
    type=click.Path(dir_okay=False),
    help='YAML settings file (default: $DAOVOTE_CONFIG)'
)
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
@click.pass_context
def main(ctx, config_path, verbose):
    """
    Anonymous DAO membership proofs.

    Derive credentials, inspect nullifiers and Merkle paths, and check
    Groth16 proofs before they are sent to a relay.
    """
    _configure_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


@main.command()
@click.option('--key', 'key_path', required=True, type=click.Path(exists=True, dir_okay=False),
              help='Ed25519 PEM private key or 32-byte hex seed')
@click.option('--group', 'group_id', required=True, type=int, help='DAO (group) identifier')
@click.option('--save', is_flag=True, help='Persist the credentials in the store directory')
@click.option('--json', 'as_json', is_flag=True, help='Print machine-readable output')
@click.pass_context
def derive(ctx, key_path, group_id, save, as_json):
    """
    Derive the membership commitment for a group.

    Examples:

        daovote-privacy derive --key member.pem --group 7
    """
    try:
        settings = _settings(ctx)
        signer = Ed25519SigningCapability.from_file(key_path)
        credentials = trio.run(CredentialDeriver().derive, signer, group_id)
        if save:
            store = FileCredentialStore(settings.store_dir)
            store.put(group_id, signer.identity, credentials)
    except DaoPrivacyError as e:
        _fail(e.user_message)
    except (OSError, ValueError) as e:
        _fail(str(e))

    if as_json:
        click.echo(json.dumps({
            "identity": signer.identity,
            "groupId": group_id,
            "commitment": to_hex64(credentials.commitment),
        }, indent=2))
        return

    table = Table(title=f"Credentials for group {group_id}")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("identity", signer.identity)
    table.add_row("commitment", to_hex64(credentials.commitment))
    if save:
        table.add_row("stored in", str(store.base_dir))
    console.print(table)


@main.command()
@click.option('--key', 'key_path', required=True, type=click.Path(exists=True, dir_okay=False),
              help='Ed25519 PEM private key or 32-byte hex seed')
@click.option('--group', 'group_id', required=True, type=int, help='DAO (group) identifier')
@click.option('--context', 'context_id', required=True, type=int,
              help='Action context (proposal) identifier')
@click.pass_context
def nullifier(ctx, key_path, group_id, context_id):
    """Print the nullifier for one action context."""
    try:
        _settings(ctx)
        signer = Ed25519SigningCapability.from_file(key_path)
        credentials = trio.run(CredentialDeriver().derive, signer, group_id)
        value = NullifierComputer().compute(credentials.secret, group_id, context_id)
    except DaoPrivacyError as e:
        _fail(e.user_message)
    except (OSError, ValueError) as e:
        _fail(str(e))
    click.echo(to_hex64(value))


@main.command('merkle-path')
@click.option('--leaves', 'leaves_path', required=True, type=click.Path(exists=True, dir_okay=False),
              help='JSON array of leaves (decimal or 0x-hex strings, or integers)')
@click.option('--index', 'leaf_index', required=True, type=int, help='Leaf index to prove')
@click.option('--depth', type=click.IntRange(1, 32), default=TREE_DEPTH, show_default=True,
              help='Tree depth')
@click.pass_context
def merkle_path(ctx, leaves_path, leaf_index, depth):
    """Compute the authentication path and root for one leaf."""
    try:
        _settings(ctx)
        raw = json.loads(Path(leaves_path).read_text(encoding="utf-8"))
        if not isinstance(raw, list):
            raise ValueError("leaves file must contain a JSON array")
        tree = IncrementalMerkleTree(depth=depth, leaves=[to_field(leaf) for leaf in raw])
        path = tree.path(leaf_index)
    except DaoPrivacyError as e:
        _fail(e.user_message)
    except (OSError, ValueError, TypeError, IndexError) as e:
        _fail(str(e))

    leaf = tree.leaves[leaf_index]
    payload = path.to_mapping()
    payload["leaf"] = str(leaf)
    payload["root"] = str(tree.root)
    click.echo(json.dumps(payload, indent=2))


@main.command('format-proof')
@click.option('--proof', 'proof_path', required=True, type=click.Path(exists=True, dir_okay=False),
              help='snarkjs proof.json')
@click.option('--encoding', type=click.Choice([e.value for e in PointEncoding]), default=None,
              help='Point encoding (default: point_encoding setting)')
@click.pass_context
def format_proof(ctx, proof_path, encoding):
    """Convert a snarkjs proof into the relay's hex wire format."""
    try:
        settings = _settings(ctx)
        data = json.loads(Path(proof_path).read_text(encoding="utf-8"))
        proof = Groth16Proof.from_snarkjs(data)
        wire = encode_proof(proof, PointEncoding(encoding or settings.point_encoding))
    except DaoPrivacyError as e:
        _fail(e.user_message)
    except (OSError, ValueError) as e:
        _fail(str(e))
    click.echo(json.dumps(wire.to_json(), indent=2))


@main.command()
@click.option('--vkey', required=True, type=click.Path(exists=True, dir_okay=False),
              help='snarkjs verification_key.json')
@click.option('--proof', 'proof_path', required=True, type=click.Path(exists=True, dir_okay=False),
              help='snarkjs proof.json')
@click.option('--public', 'public_path', required=True, type=click.Path(exists=True, dir_okay=False),
              help='snarkjs public.json')
def verify(vkey, proof_path, public_path):
    """Verify a Groth16 proof locally."""
    if verify_snarkjs_files(vkey, proof_path, public_path):
        click.echo(click.style("✓ Proof is valid", fg="green"))
        return
    _fail("Proof is invalid")


@main.command('relay-status')
@click.option('--url', default=None, help='Relay base URL (default: relay_url setting)')
@click.pass_context
def relay_status(ctx, url):
    """Query the relay health endpoint."""
    try:
        settings = _settings(ctx)
    except DaoPrivacyError as e:
        _fail(e.user_message)

    async def _health():
        async with RelayClient(
            url or settings.relay_url,
            api_key=settings.relay_api_key,
            timeout=settings.request_timeout,
        ) as relay:
            return await relay.health()

    try:
        status = trio.run(_health)
    except Exception as e:
        logger.debug("relay health check failed", exc_info=True)
        _fail(f"Relay unreachable: {e}")

    table = Table(title=url or settings.relay_url)
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    for key, value in status.items():
        table.add_row(str(key), json.dumps(value) if not isinstance(value, str) else value)
    console.print(table)


if __name__ == '__main__':
    main()
