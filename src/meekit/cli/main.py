#!/usr/bin/env python3
"""
meekit CLI - off-host signer tooling

Reproduces the values an off-host signer needs before submitting a batch:
- Canonical MEE hashes and super-transaction Merkle roots
- Node paymaster address predictions
- Authorization blob inspection (scheme, framing, payload)
- Signature checks with the raw/prefixed two-attempt recovery
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Any, Dict, Optional

import click
from eth_utils import decode_hex
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from meekit.contracts.entry_point import EntryPoint
from meekit.contracts.host import ChainState
from meekit.contracts.node_paymaster_factory import NodePaymasterFactory
from meekit.core import config
from meekit.core.context import ExecutionContext
from meekit.core.crypto_utils import is_valid_signature, to_eth_signed_message_hash, try_recover
from meekit.core.exceptions import MeeError
from meekit.core.logging_config import setup_logging
from meekit.core.mee_hash import mee_user_op_hash
from meekit.core.merkle import SuperTxMerkleTree
from meekit.core.validation_data import ValidationData
from meekit.validators.dispatcher import SchemeDispatcher

logger = logging.getLogger(__name__)

console = Console()


def _handle_cli_error(exc: Exception, exit_code: int = 1) -> None:
    """Centralized CLI error handler for consistent messaging/exit codes."""
    logger.error("CLI error: %s", exc, exc_info=True)
    console.print(f"[bold red]Error:[/] {exc}")
    sys.exit(exit_code)


def _hex_bytes(value: str, name: str, length: Optional[int] = None) -> bytes:
    try:
        data = decode_hex(value)
    except ValueError as exc:
        raise click.BadParameter(f"{name} must be hex: {exc}") from exc
    if length is not None and len(data) != length:
        raise click.BadParameter(f"{name} must be {length} bytes, got {len(data)}")
    return data


def _emit(ctx: click.Context, title: str, data: Dict[str, Any]) -> None:
    if ctx.obj['json_output']:
        click.echo(json.dumps(data, indent=2))
        return

    table = Table(show_header=False, box=box.ROUNDED)
    for key, value in data.items():
        table.add_row(f"[bold cyan]{key}", str(value))
    console.print(Panel(table, title=f"[bold green]{title}", border_style="green"))


# ============================================================================
# CLI Group
# ============================================================================

@click.group()
@click.option('--json-output', is_flag=True, help='Output raw JSON')
@click.option(
    '--chain-id',
    type=int,
    default=None,
    help='Chain id (defaults to MEEKIT_CHAIN_ID / network default)',
)
@click.option(
    '--entry-point',
    default=None,
    help='EntryPoint address (defaults to MEEKIT_ENTRY_POINT)',
)
@click.pass_context
def cli(ctx: click.Context, json_output: bool, chain_id: Optional[int], entry_point: Optional[str]):
    """
    meekit - MEE authorization tooling

    Computes canonical hashes, predicts node paymaster addresses and checks
    authorization blobs exactly as the validators do.
    """
    ctx.ensure_object(dict)
    context = ExecutionContext.from_config()
    ctx.obj['json_output'] = json_output
    ctx.obj['context'] = ExecutionContext(
        chain_id=context.chain_id if chain_id is None else chain_id,
        timestamp=context.timestamp,
        entry_point=entry_point or context.entry_point,
    )


# ============================================================================
# Hashing
# ============================================================================

@cli.command('mee-hash')
@click.option('--user-op-hash', required=True, help='32-byte intrinsic user operation hash (hex)')
@click.option('--lower-bound', type=int, default=0, show_default=True, help='validAfter timestamp')
@click.option('--upper-bound', type=int, default=0, show_default=True, help='validUntil timestamp')
@click.pass_context
def mee_hash(ctx: click.Context, user_op_hash: str, lower_bound: int, upper_bound: int):
    """Compute the canonical MEE user operation hash"""
    context: ExecutionContext = ctx.obj['context']
    try:
        digest = mee_user_op_hash(
            _hex_bytes(user_op_hash, "user-op-hash", 32),
            lower_bound,
            upper_bound,
            context.chain_id,
        )
    except MeeError as exc:
        _handle_cli_error(exc)
        return

    _emit(ctx, "MEE User Op Hash", {
        "user_op_hash": user_op_hash,
        "lower_bound": lower_bound,
        "upper_bound": upper_bound,
        "chain_id": context.chain_id,
        "mee_user_op_hash": "0x" + digest.hex(),
        "window_active": ValidationData(False, upper_bound, lower_bound).is_active(context.timestamp),
    })


@cli.command('super-tx')
@click.argument('leaves', nargs=-1, required=True)
@click.pass_context
def super_tx(ctx: click.Context, leaves: tuple):
    """Build a super transaction tree from canonical hashes and print root and proofs"""
    hashes = [_hex_bytes(leaf, "leaf", 32) for leaf in leaves]
    try:
        tree = SuperTxMerkleTree(hashes)
    except ValueError as exc:
        _handle_cli_error(exc)
        return

    data = {
        "root": "0x" + tree.root.hex(),
        "proofs": {
            "0x" + leaf.hex(): ["0x" + node.hex() for node in tree.proof(leaf)]
            for leaf in hashes
        },
    }
    if ctx.obj['json_output']:
        click.echo(json.dumps(data, indent=2))
        return

    table = Table(title="Super Transaction", box=box.ROUNDED)
    table.add_column("Leaf", style="cyan")
    table.add_column("Proof", style="white")
    for leaf, proof in data["proofs"].items():
        table.add_row(leaf, "\n".join(proof) or "(empty)")
    console.print(table)
    console.print(f"[bold green]Root:[/] {data['root']}")


# ============================================================================
# Deployment
# ============================================================================

@cli.command('predict-address')
@click.option('--factory', required=True, help='Node paymaster factory address')
@click.option('--creation-code', required=True, help='Paymaster creation code (hex)')
@click.option('--template-id', default=None, help='Template id passed to the constructor (defaults to the entry point)')
@click.option('--owner', required=True, help='Paymaster owner address')
@click.option('--index', type=int, default=0, show_default=True, help='Deployment index (CREATE2 salt)')
@click.pass_context
def predict_address(
    ctx: click.Context,
    factory: str,
    creation_code: str,
    template_id: Optional[str],
    owner: str,
    index: int,
):
    """Predict the node paymaster address for an owner and index"""
    context: ExecutionContext = ctx.obj['context']
    template_id = template_id or context.entry_point
    try:
        paymaster_factory = NodePaymasterFactory(
            address=factory,
            creation_code=_hex_bytes(creation_code, "creation-code"),
            host=ChainState(),
            entry_point=EntryPoint(address=context.entry_point, chain_id=context.chain_id),
        )
        address = paymaster_factory.predict_address(template_id, owner, index)
    except MeeError as exc:
        _handle_cli_error(exc)
        return

    _emit(ctx, "Node Paymaster Address", {
        "factory": paymaster_factory.address,
        "template_id": template_id,
        "owner": owner,
        "index": index,
        "address": address,
    })


# ============================================================================
# Authorization
# ============================================================================

@cli.command('inspect-blob')
@click.argument('blob')
@click.pass_context
def inspect_blob(ctx: click.Context, blob: str):
    """Show which scheme an authorization blob routes to and its payload"""
    try:
        binding, payload = SchemeDispatcher.default().parse(_hex_bytes(blob, "blob"))
    except MeeError as exc:
        _handle_cli_error(exc)
        return

    _emit(ctx, "Authorization Blob", {
        "scheme": binding.scheme.config_name,
        "tag": "0x" + binding.scheme.value.hex(),
        "framing_width": binding.framing_width,
        "header_length": binding.header_length,
        "payload_length": len(payload),
        "payload": "0x" + payload.hex(),
    })


@cli.command('verify-signature')
@click.option('--owner', required=True, help='Expected signer address')
@click.option('--hash', 'hash_', required=True, help='32-byte message hash (hex)')
@click.option('--signature', required=True, help='65-byte or 64-byte compact signature (hex)')
@click.pass_context
def verify_signature(ctx: click.Context, owner: str, hash_: str, signature: str):
    """Check a signature against an owner (raw hash, then prefixed hash)"""
    message_hash = _hex_bytes(hash_, "hash", 32)
    signature_bytes = _hex_bytes(signature, "signature")
    try:
        raw_signer = try_recover(message_hash, signature_bytes)
        prefixed_signer = try_recover(to_eth_signed_message_hash(message_hash), signature_bytes)
        valid = is_valid_signature(owner, message_hash, signature_bytes)
    except MeeError as exc:
        _handle_cli_error(exc)
        return

    _emit(ctx, "Signature Check", {
        "owner": owner,
        "raw_signer": raw_signer,
        "prefixed_signer": prefixed_signer,
        "valid": valid,
    })
    if not valid:
        sys.exit(1)


# ============================================================================
# Main Entry Point
# ============================================================================

def main():
    """Main CLI entry point"""
    setup_logging(
        name="meekit",
        log_file=config.LOG_FILE,
        level=config.LOG_LEVEL,
        environment=config.ENVIRONMENT,
    )
    try:
        cli(obj={})
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/]")
        sys.exit(130)


if __name__ == '__main__':
    main()
