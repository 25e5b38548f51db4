"""
CLI entry point for the faucet relayer.
"""

import asyncio
import time
from decimal import Decimal
from pathlib import Path
from typing import Optional

import structlog
import typer
from dotenv import dotenv_values, set_key
from web3 import Web3

from .config import Settings
from .errors import ConfigurationError
from .ledger import LedgerError, Web3LedgerClient
from .wallet import RelayWallet, generate_wallet

# Configure structlog
structlog.configure(
    processors=[
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(),
    ]
)

logger = structlog.get_logger()

app = typer.Typer(
    name="faucet-relayer",
    help="Testnet faucet relayer",
    add_completion=False,
)


@app.command()
def serve() -> None:
    """
    Start the HTTP relayer.
    """
    from .main import run

    run()


@app.command("new-wallet")
def new_wallet(
    env_file: Path = typer.Option(
        Path(".env"),
        "--env-file",
        "-e",
        help="Env file to write PRIVATE_KEY and ADDRESS to",
    ),
    rpc_url: Optional[str] = typer.Option(
        None,
        "--rpc-url",
        help="RPC URL to store as EVM_RPC_URL",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        help="Replace an existing PRIVATE_KEY",
    ),
) -> None:
    """
    Generate a relay wallet and store its key in an env file.

    An existing key is kept (and its address shown) unless --force is given.
    """
    existing = dotenv_values(env_file) if env_file.exists() else {}

    if existing.get("PRIVATE_KEY") and not force:
        try:
            wallet = RelayWallet.from_private_key(existing["PRIVATE_KEY"])
        except ConfigurationError as e:
            typer.echo(f"Existing PRIVATE_KEY in {env_file} is unusable: {e}", err=True)
            raise typer.Exit(code=1)
        typer.echo("Found existing wallet configuration.")
        typer.echo(f"WALLET ADDRESS: {wallet.address}")
        return

    private_key, address = generate_wallet()
    env_file.touch(exist_ok=True)
    set_key(str(env_file), "PRIVATE_KEY", private_key, quote_mode="never")
    set_key(str(env_file), "ADDRESS", address, quote_mode="never")
    if rpc_url:
        set_key(str(env_file), "EVM_RPC_URL", rpc_url, quote_mode="never")
    env_file.chmod(0o600)

    logger.info("relay_wallet_generated", address=address, env_file=str(env_file))
    typer.echo("Generated NEW wallet.")
    typer.echo(f"WALLET ADDRESS: {address}")


async def _poll_balance(
    client: Web3LedgerClient,
    min_wei: int,
    interval: float,
    timeout: Optional[float],
) -> Optional[int]:
    """Poll the relay wallet balance until it exceeds ``min_wei``; None on timeout."""
    deadline = None if timeout is None else time.monotonic() + timeout

    while True:
        try:
            balance = await client.get_balance(client.address)
            typer.echo(f"Current Balance: {Web3.from_wei(balance, 'ether')}")
            if balance > min_wei:
                return balance
        except LedgerError as e:
            logger.warning("balance_poll_failed", error=str(e))

        if deadline is not None and time.monotonic() >= deadline:
            return None
        await asyncio.sleep(interval)


async def _wait_then_close(
    client: Web3LedgerClient,
    min_wei: int,
    interval: float,
    timeout: Optional[float],
) -> Optional[int]:
    try:
        return await _poll_balance(client, min_wei, interval, timeout)
    finally:
        await client.aclose()


@app.command("wait-for-funds")
def wait_for_funds(
    config_path: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to .env configuration file",
    ),
    min_balance: float = typer.Option(
        0.1,
        "--min-balance",
        help="Balance (native units) the relay wallet must exceed",
    ),
    interval: float = typer.Option(3.0, "--interval", help="Seconds between polls"),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Give up after this many seconds",
    ),
) -> None:
    """
    Block until the relay wallet has been funded.
    """
    settings = Settings(_env_file=config_path) if config_path else Settings()

    if not settings.evm_rpc_url:
        typer.echo("EVM_RPC_URL is not set", err=True)
        raise typer.Exit(code=1)
    try:
        wallet = RelayWallet.from_private_key(settings.private_key)
    except ConfigurationError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(code=1)

    client = Web3LedgerClient(
        rpc_url=settings.evm_rpc_url,
        wallet=wallet,
        chain_id=settings.chain_id,
        timeout=settings.rpc_timeout_seconds,
    )

    typer.echo(f"WALLET ADDRESS: {wallet.address}")
    typer.echo(f"Waiting for more than {min_balance} to arrive...")

    balance = asyncio.run(
        _wait_then_close(client, int(Web3.to_wei(Decimal(str(min_balance)), "ether")), interval, timeout)
    )
    if balance is None:
        typer.echo("Timed out waiting for funds.", err=True)
        raise typer.Exit(code=1)

    typer.echo("Funds received.")


@app.command()
def version() -> None:
    """Show the relayer version."""
    from faucet_relayer import __version__
    typer.echo(f"faucet-relayer v{__version__}")


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
