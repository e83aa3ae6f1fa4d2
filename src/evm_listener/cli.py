"""CLI entry point for the evm_listener engine."""

from __future__ import annotations

import asyncio
import json
import logging
import sys

import click

from evm_listener.abi.catalog import parse_catalog
from evm_listener.abi.decoder import decode_log
from evm_listener.config import load_config
from evm_listener.engine import run_engine
from evm_listener.errors import ListenerError
from evm_listener.models.config import IngestionMode
from evm_listener.rpc.client import parse_log
from evm_listener.storage.sqlite import SQLiteCursorStore


def _json_default(value: object) -> object:
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    return str(value)


@click.group()
@click.option("-c", "--config", "config_path", default=None, help="Path to config TOML file")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """evm-listener - EVM contract event ingestion engine."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose

    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


# ── Engine ─────────────────────────────────────────────


@cli.command()
@click.pass_context
def run(ctx: click.Context) -> None:
    """Start ingesting the configured contracts."""
    cfg = load_config(ctx.obj["config_path"])
    if not cfg.chain.rpc_url:
        click.echo("Error: No RPC URL configured.", err=True)
        click.echo("Set EVM_LISTENER_RPC_URL or [chain] rpc_url in config.", err=True)
        sys.exit(1)
    if not cfg.contracts:
        click.echo("Error: No contracts configured.", err=True)
        sys.exit(1)
    pushed = [c.name or c.address for c in cfg.contracts if c.mode == IngestionMode.SUBSCRIPTION]
    if pushed and not cfg.chain.ws_url:
        click.echo(f"Error: No WebSocket URL configured for subscription contracts: {', '.join(pushed)}", err=True)
        click.echo("Set EVM_LISTENER_WS_URL or [chain] ws_url in config.", err=True)
        sys.exit(1)
    if not ctx.obj["verbose"]:
        logging.getLogger().setLevel(cfg.log_level.upper())

    click.echo(f"Starting evm-listener on {cfg.chain.name} ({len(cfg.contracts)} contracts)")
    try:
        asyncio.run(run_engine(cfg))
    except ListenerError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)


# ── Info ───────────────────────────────────────────────


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show listener configuration."""
    cfg = load_config(ctx.obj["config_path"])
    click.echo(f"Chain:         {cfg.chain.name} (id {cfg.chain.chain_id})")
    click.echo(f"RPC URL:       {cfg.chain.rpc_url or '(not set)'}")
    click.echo(f"WS URL:        {cfg.chain.ws_url or '(not set)'}")
    click.echo(f"Poll interval: {cfg.poll_interval}s")
    click.echo(f"DB path:       {cfg.db_path or '(in memory)'}")
    click.echo(f"Contracts:     {len(cfg.contracts)}")
    for c in cfg.contracts:
        end = c.end_block if c.end_block is not None else "tip"
        click.echo(
            f"  {c.name or '-'} {c.address} [{c.mode.value}] "
            f"blocks {c.start_block}..{end} step {c.step}"
        )


@cli.command()
@click.pass_context
def cursors(ctx: click.Context) -> None:
    """Show persisted cursor heights."""
    cfg = load_config(ctx.obj["config_path"])
    if not cfg.db_path:
        click.echo("No db_path configured; cursors are kept in memory only.")
        return

    async def _cursors():
        store = SQLiteCursorStore(cfg.db_path)
        await store.initialize()
        try:
            return await store.all_cursors()
        finally:
            await store.close()

    records = asyncio.run(_cursors())
    if not records:
        click.echo("No cursors stored.")
        return
    names = {c.address.lower(): c.name for c in cfg.contracts}
    for r in records:
        label = names.get(r.address) or "-"
        click.echo(f"{r.address}  {label:<20} next block {r.confirmed_height}  ({r.updated_at})")


# ── Tools ──────────────────────────────────────────────


@cli.command()
@click.argument("abi_path", type=click.Path(exists=True, dir_okay=False))
@click.argument("log_json", type=click.File("r"))
def decode(abi_path: str, log_json) -> None:
    """Decode one RPC-format log (JSON file, or - for stdin) against an ABI."""
    try:
        with open(abi_path) as f:
            catalog = parse_catalog(f.read())
        raw = parse_log(json.load(log_json))
        event = decode_log(raw, catalog)
    except (ListenerError, KeyError, TypeError, ValueError) as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    if event is None:
        click.echo("No known event for this log.")
        return
    click.echo(json.dumps(
        {
            "name": event.name,
            "block": raw.block_number,
            "transaction": raw.transaction_hash,
            "indexed": list(event.indexed_params),
            "outputs": event.outputs,
        },
        indent=2,
        default=_json_default,
    ))
