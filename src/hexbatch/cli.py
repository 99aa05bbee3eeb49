"""
hexbatch command-line interface.

Usage:
    hexbatch [OPTIONS] COMMAND [ARGS]...
"""
from __future__ import annotations

import asyncio
import sys
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from web3 import Web3

from .chain import AccountStatus, JsonRpcClient, RpcTransactionTransport, inspect_account
from .config import BatchConfig, HexBatchSettings, load_batch_file, load_settings, merge_config
from .exceptions import ConfigurationError, ConfirmationTimeout, HexBatchError
from .logging_config import setup_logging
from .models import BatchRunResult, PreparedBatch
from .networks import BLOCK_EXPLORERS, NETWORK_NAMES, explorer_tx_url, explorer_url, network_name
from .orchestrator import BatchOrchestrator
from .policy import validate_batch
from .signer import LocalAccountSigner

console = Console()

EXIT_FAILED = 1
EXIT_UNKNOWN = 2


@click.group()
@click.version_option(package_name="hexbatch", message="%(prog)s %(version)s")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx, verbose: bool):
    """Delegate an EOA to a smart account and execute a hex batch atomically."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


@cli.command()
@click.option("--config-file", type=click.Path(dir_okay=False), help="Batch file (overrides HEX_BATCH_CONFIG_FILE)")
@click.option("--dry-run", is_flag=True, help="Validate, sign and encode without submitting")
@click.option("--no-wait", is_flag=True, help="Do not wait for the transaction receipt")
@click.option("--timeout", type=float, help="Confirmation timeout in seconds")
@click.option("--gas-limit", type=int, help="Gas ceiling for the batch transaction")
@click.pass_context
def run(
    ctx,
    config_file: Optional[str],
    dry_run: bool,
    no_wait: bool,
    timeout: Optional[float],
    gas_limit: Optional[int],
):
    """Sign an authorization and submit the configured hex batch."""
    try:
        settings = load_settings()
        _setup_logging(ctx, settings)
        settings.require_ready()
        signer = LocalAccountSigner.from_key(settings.private_key.get_secret_value())
        batch_file = load_batch_file(config_file or settings.hex_batch_config_file)
        config = merge_config(
            settings.to_config(),
            batch_file.overrides,
            {"transaction_timeout": timeout, "gas_limit": gas_limit},
        )
        # reject a bad batch before the RPC endpoint is contacted
        validate_batch(config, batch_file.transactions)
    except HexBatchError as e:
        _print_error(e)
        sys.exit(EXIT_FAILED)

    _print_config(config, signer.address, str(batch_file.path))

    try:
        asyncio.run(
            _run_batch(config, signer, batch_file.transactions, dry_run=dry_run, wait=not no_wait)
        )
    except ConfirmationTimeout as e:
        console.print(
            f"[yellow]Transaction {e.tx_hash} not confirmed after {e.timeout_seconds}s. "
            "Its outcome is unknown; check it later.[/yellow]"
        )
        sys.exit(EXIT_UNKNOWN)
    except HexBatchError as e:
        _print_error(e)
        sys.exit(EXIT_FAILED)


async def _run_batch(
    config: BatchConfig,
    signer: LocalAccountSigner,
    transactions,
    dry_run: bool,
    wait: bool,
) -> None:
    rpc = JsonRpcClient(config.rpc_url)
    try:
        chain_id = await rpc.get_chain_id()
        _print_network(chain_id)
        _print_account(await inspect_account(rpc, signer.address), "EOA")

        transport = RpcTransactionTransport(rpc, signer, config.gas_price_strategy)
        orchestrator = BatchOrchestrator(config, signer, rpc, transport)

        if dry_run:
            prepared = await orchestrator.prepare(transactions)
            _print_batch(prepared)
            console.print(Panel("0x" + prepared.payload.data.hex(), title="Call data (dry run)"))
            return

        result = await orchestrator.run(transactions, wait=wait)
        _print_batch(result.prepared)
        _print_result(result, chain_id)
        if result.receipt is not None:
            _print_account(await inspect_account(rpc, signer.address), "EOA (after)")
    finally:
        await rpc.close()


@cli.command()
@click.option("--address", help="Account to inspect (defaults to the PRIVATE_KEY account)")
@click.pass_context
def status(ctx, address: Optional[str]):
    """Show network, balance and delegation state of an account."""
    try:
        settings = load_settings()
        _setup_logging(ctx, settings)
        if not settings.rpc_url:
            raise ConfigurationError("RPC_URL is not set", setting="RPC_URL")
        if address is None:
            if settings.private_key is None:
                raise ConfigurationError("Pass --address or set PRIVATE_KEY", setting="PRIVATE_KEY")
            address = LocalAccountSigner.from_key(settings.private_key.get_secret_value()).address
        elif not Web3.is_address(address):
            raise ConfigurationError(f"Invalid address: {address}")
        asyncio.run(_status(settings.rpc_url, Web3.to_checksum_address(address)))
    except HexBatchError as e:
        _print_error(e)
        sys.exit(EXIT_FAILED)


async def _status(rpc_url: str, address: str) -> None:
    rpc = JsonRpcClient(rpc_url)
    try:
        _print_network(await rpc.get_chain_id())
        _print_account(await inspect_account(rpc, address), "Account")
    finally:
        await rpc.close()


@cli.command()
def networks():
    """List known networks and block explorers."""
    table = Table(title="Known Networks")
    table.add_column("Chain ID", justify="right")
    table.add_column("Network", style="cyan")
    table.add_column("Explorer")

    for chain_id in sorted(set(NETWORK_NAMES) | set(BLOCK_EXPLORERS)):
        table.add_row(str(chain_id), network_name(chain_id), explorer_url(chain_id))

    console.print(table)


# ============ Presentation ============


def _setup_logging(ctx, settings: HexBatchSettings) -> None:
    verbose = bool(ctx.obj and ctx.obj.get("verbose"))
    setup_logging("DEBUG" if verbose else settings.log_level, json_format=settings.log_json)


def _format_eth(wei: int) -> str:
    return f"{Web3.from_wei(wei, 'ether'):.6f} ETH"


def _print_config(config: BatchConfig, account: str, batch_file: str) -> None:
    table = Table(show_header=False, box=None)
    table.add_row("EOA address", f"[bright_yellow]{account}[/bright_yellow]")
    table.add_row("Implementation", f"[bright_yellow]{config.implementation_address}[/bright_yellow]")
    table.add_row("RPC URL", config.rpc_url)
    table.add_row("Batch file", batch_file)
    table.add_row("Gas strategy", config.gas_price_strategy)
    table.add_row("Max single tx", _format_eth(config.max_single_transaction_value))
    table.add_row("Max batch total", _format_eth(config.max_batch_total_value))
    if config.enable_address_whitelist:
        table.add_row("Allow-list", f"{len(config.allowed_targets)} address(es)")
    console.print(Panel(table, title="Configuration"))


def _print_network(chain_id: int) -> None:
    console.print(
        f"[bold cyan]Network:[/bold cyan] {network_name(chain_id)} "
        f"(chain id {chain_id}) - {explorer_url(chain_id)}"
    )


def _print_account(account: AccountStatus, label: str) -> None:
    table = Table(title=f"{label} status", show_header=False)
    table.add_row("Address", account.address)
    if account.code is None:
        table.add_row("Code", "[red]unavailable[/red]")
    elif account.delegated_to:
        table.add_row("Code", f"delegated to [bright_yellow]{account.delegated_to}[/bright_yellow]")
    elif account.has_code:
        table.add_row("Code", "smart contract (has code)")
    else:
        table.add_row("Code", "EOA (no code)")
    if account.balance is None:
        table.add_row("Balance", "[red]unavailable[/red]")
    else:
        table.add_row("Balance", f"{account.balance_ether:.6f} ETH")
    console.print(table)


def _print_batch(prepared: PreparedBatch) -> None:
    table = Table(title="Hex batch")
    table.add_column("#", justify="right")
    table.add_column("Description")
    table.add_column("Target", style="cyan")
    table.add_column("Value (wei)", justify="right")
    table.add_column("Hex data")
    table.add_column("Contract call")

    for index, tx in enumerate(prepared.batch.transactions, start=1):
        data = "0x" + tx.payload.hex()
        table.add_row(
            str(index),
            tx.description,
            tx.target,
            str(tx.value),
            data if len(data) <= 42 else data[:39] + "...",
            "yes" if tx.is_contract_call else "no",
        )

    console.print(table)
    console.print(
        f"[green]Validated {len(prepared.batch)} transaction(s), total "
        f"{prepared.batch.total_value} wei ({_format_eth(prepared.batch.total_value)})[/green]"
    )
    auth = prepared.authorization
    console.print(
        f"[green]Authorization signed[/green] chain id {auth.chain_id}, nonce {auth.nonce}, "
        f"yParity {auth.y_parity}"
    )


def _print_result(result: BatchRunResult, chain_id: int) -> None:
    console.print(f"[bold green]Batch transaction sent:[/bold green] {result.tx_hash}")
    console.print(f"  {explorer_tx_url(chain_id, result.tx_hash)}")
    if result.receipt is not None:
        console.print(
            f"[bold green]Confirmed[/bold green] in block {result.receipt.block_number}, "
            f"gas used {result.receipt.gas_used}"
        )
    else:
        console.print("[yellow]Not waiting for confirmation[/yellow]")


def _print_error(error: HexBatchError) -> None:
    console.print(f"[bold red]Error ({error.error_code}):[/bold red] {error.message}")


def main():
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
