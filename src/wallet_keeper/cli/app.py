"""CLI for Wallet Keeper - keep an agent's wallet funded from the terminal."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

import typer
import yaml
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

app = typer.Typer(
    name="wallet-keeper",
    help="Keep an agent's on-chain wallet funded: check, top up, confirm, repeat.",
    no_args_is_help=True,
)
console = Console()
logger = logging.getLogger("wallet_keeper.cli")

_config_path: Path | None = None

_STATUS_STYLES = {
    "healthy": "green",
    "topped_up": "green",
    "insufficient_funds": "yellow",
    "transfer_failed": "red",
    "confirmation_unknown": "yellow",
    "invalid_input": "red",
    "transient_error": "magenta",
}


def _version_callback(value: bool):
    if value:
        from wallet_keeper import __version__
        console.print(f"wallet-keeper {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    config: Path = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to the YAML config file (default: ./wallet-keeper.yaml)",
        envvar="WALLET_KEEPER_CONFIG",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    ),
):
    """Keep an agent's on-chain wallet funded: check, top up, confirm, repeat."""
    global _config_path
    _config_path = config
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _run(coro):
    """Run an async function synchronously."""
    return asyncio.run(coro)


def _config_file() -> Path:
    from wallet_keeper.config import default_config_path

    return _config_path or default_config_path()


def _load():
    """Load config or exit with the reason it is unusable."""
    from wallet_keeper.config import load_config, unresolved_placeholders

    path = _config_file()
    try:
        cfg = load_config(path)
    except (yaml.YAMLError, ValidationError) as e:
        console.print(f"[red]Invalid configuration in {path}:[/red]\n{escape(str(e))}")
        raise typer.Exit(1)

    missing = unresolved_placeholders(cfg)
    if missing:
        console.print("[red]Error: Required environment variables are not set[/red]")
        for name in missing:
            console.print(f"{name}=your_{name.lower()}_here")
        raise typer.Exit(1)

    for warning in cfg.policy_warnings():
        logger.warning(warning)
    return cfg


def _build_monitor(cfg):
    """Wire ledger, inspector, executor and policy from *cfg*."""
    from wallet_keeper.core.errors import InvalidAddressError
    from wallet_keeper.core.inspector import BalanceInspector
    from wallet_keeper.core.monitor import BalanceMonitor
    from wallet_keeper.core.topup import TopUpExecutor
    from wallet_keeper.wallet.ledger import Web3Ledger

    chain = cfg.chain
    try:
        ledger = Web3Ledger(
            chain,
            cfg.ledger.signer_key,
            rpc_url=cfg.ledger.rpc_url,
            poll_interval=cfg.ledger.poll_interval,
        )
    except (ValueError, TypeError):
        # Never echo the key itself
        console.print("[red]Invalid signer key in configuration.[/red]")
        raise typer.Exit(1)

    try:
        inspector = BalanceInspector(ledger, chain, cfg.monitor.default_address)
    except InvalidAddressError as e:
        console.print(f"[red]monitor.default_address: {e}[/red]")
        raise typer.Exit(1)

    executor = TopUpExecutor(
        ledger,
        inspector,
        fee_reserve=cfg.policy.fee_reserve,
        confirmation_level=cfg.confirmation.level,
        confirmation_timeout=cfg.confirmation.timeout_seconds,
    )
    return BalanceMonitor(inspector, executor, cfg.top_up_policy())


def _print_status(status, chain=None) -> None:
    style = _STATUS_STYLES.get(status.kind.value, "white")
    body = Text(status.detail)
    transfer_id = status.data.get("transfer_id")
    if chain is not None and transfer_id:
        body.append(f"\nExplorer: {chain.tx_url(transfer_id)}")
    console.print(Panel(
        body,
        title=f"[bold]{status.headline}[/bold]",
        subtitle=status.kind.value,
        border_style=style,
    ))


# ------------------------------------------------------------------
# init
# ------------------------------------------------------------------


@app.command()
def init(
    chain: str = typer.Option("base", "--chain", help="Chain to operate on"),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing config"),
):
    """Write a starter config file."""
    from wallet_keeper.config import KeeperConfig, LedgerConfig, save_config

    path = _config_file()
    if path.exists() and not force:
        console.print(f"[yellow]Config already exists at {path}.[/yellow] Use --force to overwrite.")
        raise typer.Exit(1)

    try:
        cfg = KeeperConfig(ledger=LedgerConfig(chain=chain))
    except ValidationError as e:
        console.print(f"[red]{escape(e.errors()[0]['msg'])}[/red]")
        raise typer.Exit(1)

    save_config(cfg, path)
    console.print(Panel(
        f"[bold green]Config written![/bold green]\n\n"
        f"File: [cyan]{path}[/cyan]\n"
        f"Chain: {cfg.ledger.chain}\n\n"
        f"[dim]Set WALLET_KEEPER_PRIVATE_KEY (funding wallet) and\n"
        f"MONITORED_WALLET_ADDRESS (wallet to keep funded), then run\n"
        f"'wallet-keeper check' or 'wallet-keeper watch'.[/dim]",
        title="Wallet Keeper",
    ))


# ------------------------------------------------------------------
# check
# ------------------------------------------------------------------


@app.command()
def check(
    address: str = typer.Argument("check", help="Address to check, or 'check' for the default wallet"),
):
    """Check a wallet once and top it up if it is below the threshold."""
    from wallet_keeper.core.monitor import transient_status

    cfg = _load()
    monitor = _build_monitor(cfg)

    async def _check():
        try:
            return await monitor.run_cycle(address)
        except Exception as e:
            logger.debug("Balance check failed", exc_info=True)
            return transient_status(e)

    with console.status("[bold green]Checking wallet health..."):
        status = _run(_check())
    _print_status(status, cfg.chain)


# ------------------------------------------------------------------
# watch (autonomous mode)
# ------------------------------------------------------------------


@app.command()
def watch(
    interval: float = typer.Option(None, "--interval", "-i", help="Seconds between checks (default: from config)"),
    recovery: float = typer.Option(None, "--recovery", "-r", help="Seconds to wait after an unexpected error (default: from config)"),
    address: str = typer.Option("check", "--address", "-a", help="Address to keep funded (default wallet if omitted)"),
):
    """Keep checking and topping up until interrupted.

    A failed check is retried after the recovery interval; nothing short of
    Ctrl+C stops the loop. An in-flight top-up is always allowed to confirm
    before exiting.
    """
    from wallet_keeper.core.loop import AutonomousLoop

    cfg = _load()
    monitor = _build_monitor(cfg)
    loop = AutonomousLoop(
        monitor,
        interval=interval or cfg.loop.interval_seconds,
        recovery_interval=recovery or cfg.loop.recovery_seconds,
        on_status=lambda status: _print_status(status, cfg.chain),
        identifier=address,
    )

    target = monitor.default_address if address == "check" else address
    policy = monitor.policy
    symbol = cfg.chain.native_symbol
    console.print(Panel(
        f"[bold]Wallet:[/bold] {target}\n"
        f"[bold]Chain:[/bold] {cfg.chain.name}\n"
        f"[bold]Threshold:[/bold] {policy.min_balance} {symbol}  "
        f"[bold]Top-up:[/bold] {policy.top_up_amount} {symbol}\n"
        f"Checking every {loop.interval:g}s (recovery {loop.recovery_interval:g}s)\n\n"
        f"[dim]Press Ctrl+C to stop.[/dim]",
        title="Self-Healing Mode",
        border_style="green",
    ))

    try:
        stats = _run(loop.run())
    except KeyboardInterrupt:
        stats = loop.stats
        console.print("\n[yellow]Stopped.[/yellow]")

    table = Table(title="Session Summary")
    table.add_column("Outcome", style="cyan")
    table.add_column("Cycles", justify="right")
    for kind, count in stats.outcomes.items():
        table.add_row(kind, str(count))
    table.add_row("[bold]total[/bold]", f"[bold]{stats.cycles}[/bold]")
    console.print(table)


# ------------------------------------------------------------------
# address / chains / tool-schema
# ------------------------------------------------------------------


@app.command()
def address():
    """Show the funding wallet and the monitored wallet."""
    cfg = _load()
    monitor = _build_monitor(cfg)
    chain = cfg.chain
    funding = monitor.executor.ledger.funding_address
    console.print(Panel(
        f"Funding wallet:   [cyan]{funding}[/cyan]\n"
        f"  {chain.address_url(funding)}\n"
        f"Monitored wallet: [cyan]{monitor.default_address}[/cyan]\n"
        f"  {chain.address_url(monitor.default_address)}\n\n"
        f"[dim]Send {chain.native_symbol} on {chain.name} to the funding wallet to pay for top-ups.[/dim]",
        title="Wallet Addresses",
    ))


@app.command()
def chains():
    """List supported chains."""
    from wallet_keeper.wallet.chains import CHAINS

    table = Table(title="Supported Chains")
    table.add_column("Name", style="cyan")
    table.add_column("Chain ID", justify="right")
    table.add_column("Symbol")
    table.add_column("Default RPC", style="dim")
    for chain in CHAINS.values():
        table.add_row(chain.name, str(chain.chain_id), chain.native_symbol, chain.rpc_url)
    console.print(table)


@app.command("tool-schema")
def tool_schema():
    """Print the agent tool definitions as JSON."""
    import wallet_keeper.tools.balance_tool  # noqa: F401  (registers the tool)
    from wallet_keeper.tools.registry import ToolRegistry

    definitions = [d.to_dict() for d in ToolRegistry.default().definitions()]
    typer.echo(json.dumps(definitions, indent=2))


if __name__ == "__main__":
    app()
