"""
spreadarb CLI entry point.

Usage:
    # Run feeds and engine until Ctrl+C
    python -m spreadarb.cli.main --run

    # Show status
    python -m spreadarb.cli.main --status
"""

import asyncio
import signal

import click
from rich.console import Console
from rich.table import Table

from spreadarb.arb.engine import ArbEngine, create_engine
from spreadarb.arb.risk import RiskLimits
from spreadarb.core.config import get_arbitrage_config, get_settings, load_yaml_config
from spreadarb.core.errors import SpreadArbError
from spreadarb.core.logging import setup_logging, get_logger
from spreadarb.domain.models import FeeSchedule, Thresholds

console = Console()
logger = get_logger("cli")


async def run_engine(engine: ArbEngine) -> None:
    """Run the engine until SIGINT/SIGTERM."""
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, engine.stop)
        except NotImplementedError:
            # Windows: Ctrl+C surfaces as KeyboardInterrupt instead
            pass

    await engine.run()


def display_summary(engine: ArbEngine) -> None:
    """Display session summary in terminal."""
    stats = engine.get_stats()

    table = Table(title="Session")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    for key, value in stats["engine"].items():
        table.add_row(key, str(value))
    table.add_row("trade_count", str(stats["trade_count"]))
    table.add_row("realized_profit", f"{stats['realized_profit']:+.4f} USDT")
    table.add_row("position", stats["position"]["state"])

    console.print(table)

    table = Table(title="Feeds")
    table.add_column("Venue", style="cyan")
    table.add_column("Connections", justify="right")
    table.add_column("Reconnects", justify="right")
    table.add_column("Snapshots", justify="right")
    table.add_column("Dropped", justify="right")

    for venue, feed_stats in stats["feeds"].items():
        table.add_row(
            venue,
            str(feed_stats["connections"]),
            str(feed_stats["reconnects"]),
            str(feed_stats["snapshots"]),
            str(feed_stats["dropped"]),
        )

    console.print(table)


@click.command()
@click.option("--run", "run_", is_flag=True, help="Start feeds and engine until Ctrl+C")
@click.option("--status", is_flag=True, help="Show system status")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
def main(run_: bool, status: bool, verbose: bool) -> None:
    """spreadarb - Cross-venue perpetual-futures spread arbitrage"""

    # Setup logging
    log_level = "DEBUG" if verbose else None
    setup_logging(log_level=log_level)

    if status:
        show_status()
        return

    if run_:
        settings = get_settings()
        mode_color = "red" if settings.is_live else "green"
        console.print(
            f"[bold]Starting spreadarb[/bold] "
            f"[{mode_color}]{settings.trading_mode}[/{mode_color}] {settings.symbol}"
        )
        console.print("Press Ctrl+C to stop\n")

        try:
            engine = create_engine(settings=settings)
        except (SpreadArbError, FileNotFoundError) as e:
            logger.error(f"Startup failed: {e}")
            raise click.ClickException(str(e))

        try:
            asyncio.run(run_engine(engine))
        except KeyboardInterrupt:
            console.print("\n[yellow]Shutting down...[/yellow]")

        display_summary(engine)
        return

    # Default: show help
    ctx = click.get_current_context()
    click.echo(ctx.get_help())


def show_status() -> None:
    """Show system status."""
    settings = get_settings()
    config = get_arbitrage_config(load_yaml_config())
    feeds = config.get("feeds", {}) or {}
    venue_a = feeds.get("venue_a", "binance")
    venue_b = feeds.get("venue_b", "bitget")

    console.print("\n[bold]spreadarb System Status[/bold]\n")

    # Settings table
    table = Table(title="Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    table.add_row("Environment", settings.spreadarb_env)
    table.add_row("Timezone", settings.timezone)
    table.add_row("Log Level", settings.log_level)
    table.add_row("Trading Mode", settings.trading_mode)
    table.add_row("Symbol", settings.symbol)
    table.add_row("Venues", f"{venue_a} (A) / {venue_b} (B)")

    console.print(table)
    console.print()

    # Strategy table
    thresholds = Thresholds.from_config(config.get("thresholds", {}) or {})
    fees = FeeSchedule.from_config(config.get("fees", {}) or {}, venue_a, venue_b)
    limits = RiskLimits.from_config(config)

    table = Table(title="Strategy")
    table.add_column("Parameter", style="cyan")
    table.add_column("Value", justify="right")

    table.add_row("Open threshold", f"{thresholds.open:.4%}")
    table.add_row("Close threshold", f"{thresholds.close:.4%}")
    table.add_row(f"Fee {venue_a}", f"{fees.rate_a:.4%}")
    table.add_row(f"Fee {venue_b}", f"{fees.rate_b:.4%}")
    table.add_row("Order size ratio", str(limits.order_size_ratio))
    table.add_row("Max notional", f"{limits.max_position_notional} USDT")
    table.add_row("Leverage", f"{limits.leverage}x")
    table.add_row("Min order size", str(limits.min_order_size))
    table.add_row("Stop-loss fraction", str(limits.stop_loss_fraction))
    table.add_row("Maintenance margin", f"{limits.maintenance_margin_rate:.2%}")

    console.print(table)
    console.print()

    # API Keys status
    table = Table(title="API Keys")
    table.add_column("Venue", style="cyan")
    table.add_column("Status")

    def check_key(*keys) -> str:
        if all(key and len(key) > 5 for key in keys):
            return "[green]✓ Configured[/green]"
        return "[red]✗ Missing[/red]"

    table.add_row("Binance", check_key(settings.binance_api_key, settings.binance_secret_key))
    table.add_row(
        "Bitget",
        check_key(
            settings.bitget_api_key,
            settings.bitget_secret_key,
            settings.bitget_passphrase,
        ),
    )

    console.print(table)


if __name__ == "__main__":
    main()
