"""
DAP CLI - Command Line Interface for the Domain Auction Platform

Main entry point for all CLI commands.
"""

import asyncio
import logging
from typing import Awaitable, Callable

import click

from dap.core.amount import to_base_units, to_display_string
from dap.core.auction.commitment import commitment_hex, compute_commitment
from dap.core.config import ClientConfig, load_config
from dap.core.errors import DAPError
from dap.core.session import AuctionSession, SessionView
from dap.utils.logger import setup_logging

SessionBody = Callable[[AuctionSession], Awaitable[bool]]


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--env-file", default=None, help="Load DAP_* settings from this .env file")
@click.option("--rpc-url", default=None, help="Ledger JSON-RPC endpoint")
@click.option("--contract", default=None, help="Registrar contract address")
@click.version_option(version="0.1.0")
@click.pass_context
def cli(ctx, debug, env_file, rpc_url, contract):
    """Domain Auction Platform - sealed-bid domain registrar client"""
    ctx.ensure_object(dict)
    try:
        config = load_config(env_file, rpc_url=rpc_url, contract_address=contract)
    except DAPError as exc:
        raise click.UsageError(exc.message)

    level = logging.DEBUG if debug else logging.INFO
    setup_logging(
        level=level,
        log_dir=str(config.log_dir) if config.log_dir else None,
        log_to_file=config.log_to_file,
    )
    ctx.obj["config"] = config


# =============================================================================
# Helpers
# =============================================================================


def _connect(config: ClientConfig):
    """Build wallet and gateway for the configured node."""
    from web3 import AsyncHTTPProvider, AsyncWeb3
    from dap.network import Web3LedgerGateway, Web3Wallet

    w3 = AsyncWeb3(AsyncHTTPProvider(config.rpc_url))
    wallet = Web3Wallet(w3)
    gateway = Web3LedgerGateway(
        w3,
        config.contract_address,
        wallet,
        receipt_timeout=config.receipt_timeout,
    )
    return wallet, gateway


def _echo_view(view: SessionView) -> None:
    click.echo(f"Connected Account: {view.account or '-'}")
    if view.tracked_domain:
        snapshot = view.snapshot
        click.echo(f"  Domain:         {view.tracked_domain}")
        click.echo(f"  Current Phase:  {view.phase.label}")
        click.echo(f"  Bidders:        {snapshot.bidders_count}")
        click.echo(f"  Highest Bidder: {snapshot.highest_bidder or '-'}")
        click.echo(f"  Highest Bid:    {view.highest_bid_display} ETH")
        if view.pending:
            click.echo(f"  Pending:        {view.pending} ({view.pending_age:.0f}s)")
    marker = "✗" if view.error_kind else "✓"
    click.echo(f"{marker} {view.status_message}")


def _run(ctx, body: SessionBody, needs_account: bool = True) -> None:
    """Run body inside a session and exit 1 if it reports failure."""
    config: ClientConfig = ctx.obj["config"]

    async def main() -> bool:
        wallet, gateway = _connect(config)
        session = AuctionSession(
            wallet,
            gateway,
            poll_interval=config.poll_interval,
            receipt_timeout=config.receipt_timeout,
        )
        try:
            if needs_account and await session.connect() is None:
                ok = False
            else:
                ok = await body(session)
        finally:
            await session.close()
        if needs_account or not ok:
            _echo_view(session.view())
        return ok

    if not asyncio.run(main()):
        ctx.exit(1)


def _run_transition(ctx, domain: str, action: SessionBody) -> None:
    async def body(session: AuctionSession) -> bool:
        if await session.track(domain) is None:
            return False
        return await action(session)

    _run(ctx, body)


# =============================================================================
# Auction Commands
# =============================================================================


@cli.command("status")
@click.argument("domain")
@click.pass_context
def status(ctx, domain):
    """Load auction details for DOMAIN"""
    async def body(session):
        return await session.track(domain) is not None

    _run(ctx, body)


@cli.command("start-commit")
@click.argument("domain")
@click.pass_context
def start_commit(ctx, domain):
    """Open the commit phase for DOMAIN"""
    _run_transition(ctx, domain, lambda s: s.start_commit_phase())


@cli.command("commit")
@click.argument("domain")
@click.option("--amount", required=True, help="Bid amount in ETH, e.g. 1.5")
@click.option("--secret", prompt=True, hide_input=True, help="Bid secret (keep it for the reveal)")
@click.pass_context
def commit(ctx, domain, amount, secret):
    """Commit a sealed bid on DOMAIN"""
    _run_transition(ctx, domain, lambda s: s.commit_bid(amount, secret))


@cli.command("start-reveal")
@click.argument("domain")
@click.pass_context
def start_reveal(ctx, domain):
    """Open the reveal phase for DOMAIN"""
    _run_transition(ctx, domain, lambda s: s.start_reveal_phase())


@cli.command("reveal")
@click.argument("domain")
@click.option("--amount", required=True, help="Committed bid amount in ETH")
@click.option("--secret", prompt=True, hide_input=True, help="Secret used when committing")
@click.pass_context
def reveal(ctx, domain, amount, secret):
    """Reveal a committed bid on DOMAIN"""
    _run_transition(ctx, domain, lambda s: s.reveal_bid(amount, secret))


@cli.command("finalize")
@click.argument("domain")
@click.pass_context
def finalize(ctx, domain):
    """Finalize the auction for DOMAIN"""
    _run_transition(ctx, domain, lambda s: s.finalize_auction())


@cli.command("withdraw")
@click.pass_context
def withdraw(ctx):
    """Withdraw refunds owed to the connected account"""
    _run(ctx, lambda s: s.withdraw())


@cli.command("watch")
@click.argument("domain")
@click.pass_context
def watch(ctx, domain):
    """Poll DOMAIN and print every change until interrupted"""
    async def body(session):
        session.subscribe(_echo_view)
        if await session.track(domain) is None:
            return False
        click.echo(f"Watching {domain} every {session.poll_interval}s. Press Ctrl+C to stop.")
        while session.scheduler is not None and session.scheduler.running:
            await asyncio.sleep(1)
        return True

    try:
        _run(ctx, body)
    except KeyboardInterrupt:
        click.echo("\nStopped watching.")


# =============================================================================
# Directory Commands
# =============================================================================


@cli.command("domains")
@click.pass_context
def domains(ctx):
    """List registered domains"""
    async def body(session):
        registered = await session.refresh_registered()
        if registered is None:
            return False
        click.echo("Registered Domains:")
        for name in registered:
            click.echo(f"  {name}")
        return True

    _run(ctx, body, needs_account=False)


@cli.command("owner")
@click.argument("domain")
@click.pass_context
def owner(ctx, domain):
    """Find the owner of DOMAIN"""
    async def body(session):
        address = await session.find_owner(domain)
        if session.error_kind:
            return False
        click.echo(f"Owner of {domain}: {address or 'not registered'}")
        return True

    _run(ctx, body, needs_account=False)


@cli.command("owned")
@click.argument("address")
@click.pass_context
def owned(ctx, address):
    """List domains owned by ADDRESS"""
    async def body(session):
        names = await session.find_domains(address)
        if names is None:
            return False
        click.echo(f"Domains owned by {address}:")
        for name in names:
            click.echo(f"  {name}")
        return True

    _run(ctx, body, needs_account=False)


@cli.command("send")
@click.argument("domain")
@click.argument("amount")
@click.pass_context
def send(ctx, domain, amount):
    """Send AMOUNT ETH to the owner of DOMAIN"""
    _run(ctx, lambda s: s.send_to_domain_owner(domain, amount))


# =============================================================================
# Offline Commands
# =============================================================================


@cli.command("commitment")
@click.argument("address")
@click.argument("amount")
@click.argument("secret")
def commitment(address, amount, secret):
    """Compute the commitment for a bid (no ledger access)"""
    try:
        value = compute_commitment(address, to_base_units(amount), secret)
    except DAPError as exc:
        raise click.BadParameter(exc.message)
    click.echo(commitment_hex(value))


@cli.command("to-wei")
@click.argument("amount")
def to_wei(amount):
    """Convert an ETH amount to wei"""
    try:
        click.echo(to_base_units(amount))
    except DAPError as exc:
        raise click.BadParameter(exc.message)


@cli.command("from-wei")
@click.argument("value", type=int)
def from_wei(value):
    """Convert a wei value to ETH"""
    try:
        click.echo(to_display_string(value))
    except DAPError as exc:
        raise click.BadParameter(exc.message)


if __name__ == "__main__":
    cli()
