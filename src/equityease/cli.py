"""Click-based CLI for equityease.

Thin wrapper around library modules. Zero business logic; every operation
delegates to the cache orchestrator, the maintenance sweeper, or storage.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os

import click
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

console = Console(stderr=True)

_STATUS_STYLES = {
    "up_to_date": "green",
    "updated": "cyan",
    "force_refreshed": "cyan",
    "no_data": "yellow",
    "error": "red",
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run_async(coro):
    """Run an async coroutine from synchronous Click code."""
    return asyncio.run(coro)


def _load_config(ctx: click.Context):
    """Load config lazily, caching on first call."""
    if "config" not in ctx.obj:
        from equityease.core import load_config

        ctx.obj["config"] = load_config(config_path=ctx.obj.get("config_path"))
        if not ctx.obj.get("verbose"):
            logging.getLogger().setLevel(ctx.obj["config"].log_level)
    return ctx.obj["config"]


async def _create_store_async(config):
    """Create and initialize storage from config, seeding configured symbols."""
    from equityease.storage import create_store

    store = await create_store(config.storage)
    await store.symbols.seed(config.symbols)
    return store


def _build_providers(config):
    """Build the provider fallback chain from config."""
    from equityease.providers import build_provider_chain

    return build_provider_chain(config.providers)


def _split_symbols(symbols: tuple[str, ...]) -> list[str] | None:
    """Accept ``TQQQ SQQQ`` or ``TQQQ,SQQQ``; None means configured defaults."""
    from equityease.core.models import normalize_tickers

    tickers = normalize_tickers(part for s in symbols for part in s.split(","))
    return tickers or None


def _output_results_table(title: str, results) -> None:
    """Render maintenance results as a Rich table."""
    table = Table(title=title)
    table.add_column("Symbol", style="bold")
    table.add_column("Status")
    table.add_column("Missing", justify="right")
    table.add_column("Filled", justify="right")
    table.add_column("Updated", justify="right")
    table.add_column("Error")

    for r in results:
        style = _STATUS_STYLES.get(str(r.status), "white")
        table.add_row(
            r.symbol,
            f"[{style}]{r.status}[/{style}]",
            str(r.missing_dates),
            str(r.filled_gaps),
            str(r.updated_records),
            r.error or "",
        )

    console.print(table)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    envvar="EQUITYEASE_CONFIG",
    default=None,
    help="Path to equityease.yml config file.",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    default=False,
    help="Enable debug logging.",
)
@click.version_option(package_name="equityease")
@click.pass_context
def cli(ctx: click.Context, config: str | None, verbose: bool) -> None:
    """equityease: multi-provider price caching and gap maintenance."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config
    ctx.obj["verbose"] = verbose
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# ---------------------------------------------------------------------------
# init-db
# ---------------------------------------------------------------------------


@cli.command("init-db")
@click.pass_context
def init_db(ctx: click.Context) -> None:
    """Create the database schema and seed configured symbols."""
    config = _load_config(ctx)

    async def _run():
        store = await _create_store_async(config)
        try:
            symbols = await store.symbols.list_all()
        finally:
            await store.close()

        table = Table(title="Tracked Symbols")
        table.add_column("ID", justify="right")
        table.add_column("Ticker", style="bold")
        table.add_column("Name")
        for s in symbols:
            table.add_row(str(s.id), s.ticker, s.display_name)
        console.print(table)
        console.print(
            f"[green]✓[/green] Database ready at {config.storage.sqlite_path}"
        )

    _run_async(_run())


# ---------------------------------------------------------------------------
# prices
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("symbols", nargs=-1, required=True)
@click.option(
    "--range",
    "-r",
    "time_range",
    type=click.Choice(["1m", "3m", "6m"]),
    default="1m",
    show_default=True,
    help="Chart window.",
)
@click.option("--force", is_flag=True, default=False, help="Bypass caches and hit providers.")
@click.option(
    "--daily-only",
    is_flag=True,
    default=False,
    help="Only update the historical cache; leave the point cache alone.",
)
@click.option("--json", "as_json", is_flag=True, default=False, help="Write JSON to stdout.")
@click.pass_context
def prices(
    ctx: click.Context,
    symbols: tuple[str, ...],
    time_range: str,
    force: bool,
    daily_only: bool,
    as_json: bool,
) -> None:
    """Fetch price series for SYMBOLS through the cache."""
    from equityease.cache import CacheOrchestrator
    from equityease.core.models import StockRequest, TimeRange

    config = _load_config(ctx)
    tickers = _split_symbols(symbols)
    if not tickers:
        raise click.UsageError("At least one symbol is required")

    async def _run():
        store = await _create_store_async(config)
        providers = _build_providers(config)
        try:
            orchestrator = CacheOrchestrator(store, providers, config.cache)
            return await orchestrator.get_stocks(
                StockRequest(
                    symbols=tickers,
                    time_range=TimeRange(time_range),
                    force_refresh=force,
                    refresh_daily_only=daily_only,
                )
            )
        finally:
            await providers.close()
            await store.close()

    snapshots = _run_async(_run())

    if as_json:
        from equityease.api.schemas import StockResponse

        output = [
            StockResponse.from_snapshot(s).model_dump(mode="json", by_alias=True)
            for s in snapshots
        ]
        click.echo(json.dumps(output, indent=2))
        return

    table = Table(title=f"Prices ({time_range})")
    table.add_column("Symbol", style="bold")
    table.add_column("Price", justify="right")
    table.add_column("Change", justify="right")
    table.add_column("High", justify="right")
    table.add_column("Low", justify="right")
    table.add_column("Bars", justify="right")
    table.add_column("Source")

    for s in snapshots:
        color = "green" if s.change >= 0 else "red"
        table.add_row(
            s.symbol,
            f"{s.current_price:.2f}",
            f"[{color}]{s.change:+.2f} ({s.change_percent:+.2f}%)[/{color}]",
            f"{s.high:.2f}",
            f"{s.low:.2f}",
            str(len(s.chart_data.labels)),
            f"[red]{s.data_source}[/red]" if s.is_error else str(s.data_source),
        )

    console.print(table)


# ---------------------------------------------------------------------------
# gaps
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("symbol")
@click.option("--lookback", "-l", type=int, default=None, help="Days to scan (default from config).")
@click.pass_context
def gaps(ctx: click.Context, symbol: str, lookback: int | None) -> None:
    """List weekdays missing from SYMBOL's historical cache."""
    from equityease.maintenance import MaintenanceSweeper

    config = _load_config(ctx)
    days = lookback or config.maintenance.lookback_days

    async def _run():
        store = await _create_store_async(config)
        providers = _build_providers(config)
        try:
            sweeper = MaintenanceSweeper(store, providers, config.maintenance)
            symbol_id = await store.symbols.resolve(symbol)
            return await sweeper.find_gaps(symbol_id, days)
        finally:
            await providers.close()
            await store.close()

    missing = _run_async(_run())
    ticker = symbol.strip().upper()
    if not missing:
        console.print(f"[green]✓[/green] No gaps for {ticker} in the last {days} days")
        return

    console.print(f"[yellow]{len(missing)} missing dates for {ticker}:[/yellow]")
    for d in missing:
        click.echo(d.isoformat())


# ---------------------------------------------------------------------------
# maintain / force-refresh
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("symbols", nargs=-1)
@click.option("--lookback", "-l", type=int, default=None, help="Days to scan (default from config).")
@click.pass_context
def maintain(ctx: click.Context, symbols: tuple[str, ...], lookback: int | None) -> None:
    """Find and backfill gaps for SYMBOLS (default: configured symbols)."""
    from equityease.maintenance import MaintenanceSweeper

    config = _load_config(ctx)
    tickers = _split_symbols(symbols)

    async def _run():
        store = await _create_store_async(config)
        providers = _build_providers(config)
        try:
            sweeper = MaintenanceSweeper(store, providers, config.maintenance)
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                console=console,
                transient=True,
            ) as progress:
                progress.add_task("Sweeping for gaps...", total=None)
                return await sweeper.maintain(tickers, lookback)
        finally:
            await providers.close()
            await store.close()

    results = _run_async(_run())
    _output_results_table("Data Maintenance", results)
    if any(r.status == "error" for r in results):
        ctx.exit(1)


@cli.command("force-refresh")
@click.argument("symbols", nargs=-1)
@click.option("--days", "-d", type=int, default=None, help="Days to re-fetch (default from config).")
@click.pass_context
def force_refresh(ctx: click.Context, symbols: tuple[str, ...], days: int | None) -> None:
    """Re-fetch and overwrite recent history for SYMBOLS."""
    from equityease.maintenance import MaintenanceSweeper

    config = _load_config(ctx)
    tickers = _split_symbols(symbols)

    async def _run():
        store = await _create_store_async(config)
        providers = _build_providers(config)
        try:
            sweeper = MaintenanceSweeper(store, providers, config.maintenance)
            return await sweeper.force_refresh_all(tickers, days)
        finally:
            await providers.close()
            await store.close()

    results = _run_async(_run())
    _output_results_table("Force Refresh", results)
    if any(r.status == "error" for r in results):
        ctx.exit(1)


# ---------------------------------------------------------------------------
# serve
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--host", type=str, default=None, help="Bind address (default from config).")
@click.option("--port", "-p", type=int, default=None, help="Port number (default from config).")
@click.option("--reload", is_flag=True, default=False, help="Auto-reload on code changes.")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None, reload: bool) -> None:
    """Start the REST API server."""
    import uvicorn

    config = _load_config(ctx)
    host = host or config.api.host
    port = port or config.api.port

    # The app factory loads config itself; point it at the same file.
    if ctx.obj.get("config_path"):
        os.environ["EQUITYEASE_CONFIG"] = ctx.obj["config_path"]

    console.print(f"Starting equityease API on [bold]{host}:{port}[/bold]")
    console.print(f"API docs: http://{host}:{port}/docs")

    uvicorn.run(
        "equityease.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=config.log_level.lower(),
    )


# ---------------------------------------------------------------------------
# status
# ---------------------------------------------------------------------------


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show system status and cache coverage."""
    async def _run():
        config = _load_config(ctx)
        store = await _create_store_async(config)
        try:
            symbols = await store.symbols.list_all()
            rows = [
                (
                    s.ticker,
                    await store.daily_bars.count(s.id),
                    await store.point_cache.get(s.id),
                )
                for s in symbols
            ]
            total_bars = await store.daily_bars.count()
        finally:
            await store.close()

        table = Table(title="equityease Status")
        table.add_column("Metric", style="bold")
        table.add_column("Value", justify="right")

        table.add_row("Database path", config.storage.sqlite_path)
        table.add_row("Provider order", " → ".join(config.providers.order))
        table.add_section()
        table.add_row("Tracked symbols", str(len(symbols)))
        table.add_row("Daily bars", str(total_bars))
        table.add_section()
        for ticker, bars, quote in rows:
            last = f"{quote.price:.2f} @ {quote.observed_at:%Y-%m-%d %H:%M}" if quote else "N/A"
            table.add_row(ticker, f"{bars} bars, last quote {last}")

        console.print(table)

    _run_async(_run())


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
