"""
CLI for the earnings tracker.

Commands:
    et serve - Run the HTTP API
    et earnings SYMBOL - Show upcoming earnings
    et eps TICKER - Show historical EPS (lazy refresh)
    et refresh-eps TICKER - Replace historical EPS from SEC
    et quick-fetch TICKER - Populate EPS for a newly watched ticker
    et refresh TICKER - Trigger the refresh workflow
    et config - Show current configuration
    et version - Print version
"""

from __future__ import annotations

import asyncio
from typing import Annotated, Any, Awaitable, Callable, Optional, TypeVar

import typer
from rich.console import Console
from rich.table import Table

from et import __version__
from et.config import Settings, clear_settings_cache, get_settings
from et.exceptions import ConfigurationError, ETError
from et.logging import setup_logging
from et.services.container import Services, build_services

app = typer.Typer(
    name="et",
    help="Earnings Tracker - upcoming earnings and historical EPS",
    no_args_is_help=True,
)

console = Console()
error_console = Console(stderr=True)

R = TypeVar("R")


def _get_settings_safe() -> Settings | None:
    """Get settings, returning None if configuration is invalid."""
    try:
        clear_settings_cache()
        return get_settings()
    except Exception:
        return None


def _require_settings() -> Settings:
    settings = _get_settings_safe()
    if settings is None:
        error_console.print(
            "[red]Error:[/red] Configuration is invalid. "
            "Run 'et config' to see what's missing."
        )
        raise typer.Exit(1)
    setup_logging(settings.LOG_LEVEL)
    settings.ensure_directories()
    return settings


def _run(settings: Settings, action: Callable[[Services], Awaitable[R]]) -> R:
    """Build services, run ``action`` and close everything afterwards."""

    async def runner() -> R:
        services = await build_services(settings)
        try:
            return await action(services)
        finally:
            await services.close()

    try:
        return asyncio.run(runner())
    except ConfigurationError as e:
        error_console.print(f"[red]Configuration error ({e.kind.value}):[/red] {e.message}")
        raise typer.Exit(1)
    except ETError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


def _fmt(value: Any) -> str:
    return "[dim]-[/dim]" if value is None or value == "" else str(value)


@app.command()
def serve(
    host: Annotated[str, typer.Option("--host", help="Bind address")] = "127.0.0.1",
    port: Annotated[int, typer.Option("--port", "-p", help="Port")] = 8000,
) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    settings = _require_settings()
    uvicorn.run(
        "et.api.server:run",
        factory=True,
        host=host,
        port=port,
        log_level=settings.LOG_LEVEL.lower(),
    )


@app.command()
def earnings(
    symbol: Annotated[str, typer.Argument(help="Stock ticker symbol (e.g., AAPL)")],
) -> None:
    """Show upcoming earnings, falling back across sources."""
    settings = _require_settings()
    lookup = _run(settings, lambda s: s.aggregator.get_events(symbol))

    if lookup.is_empty:
        console.print(f"[yellow]No earnings data found for {lookup.symbol}.[/yellow]")
        if lookup.failed_sources:
            failed = ", ".join(s.value for s in lookup.failed_sources)
            console.print(f"[red]Unavailable sources: {failed}[/red]")
        return

    table = Table(title=f"{lookup.symbol} upcoming earnings ({lookup.source.value})")
    table.add_column("Date", style="cyan")
    table.add_column("Timing")
    table.add_column("Period")
    table.add_column("EPS est.", justify="right")
    table.add_column("EPS act.", justify="right")
    for event in lookup.events:
        period = f"{event.fiscal_period} {event.fiscal_year or ''}".strip()
        table.add_row(
            event.earnings_date.isoformat(),
            event.timing.value,
            _fmt(period),
            _fmt(event.eps_estimate),
            _fmt(event.eps_actual),
        )
    console.print(table)


@app.command()
def eps(
    ticker: Annotated[str, typer.Argument(help="Stock ticker symbol (e.g., AAPL)")],
) -> None:
    """Show historical quarterly EPS, refreshing from SEC when stale."""
    settings = _require_settings()
    records = _run(settings, lambda s: s.reconciler.get_historical_eps(ticker))

    if not records:
        console.print(f"[yellow]No historical EPS for {ticker.upper()}.[/yellow]")
        return

    table = Table(title=f"{ticker.upper()} historical EPS")
    table.add_column("Period", style="cyan")
    table.add_column("EPS", justify="right", style="green")
    table.add_column("Filed")
    for record in records:
        table.add_row(record.fiscal_period, f"{record.eps_actual:.2f}", record.filing_date.isoformat())
    console.print(table)


@app.command("refresh-eps")
def refresh_eps(
    ticker: Annotated[str, typer.Argument(help="Stock ticker symbol (e.g., AAPL)")],
) -> None:
    """Replace stored historical EPS with a fresh SEC set."""
    settings = _require_settings()
    count = _run(settings, lambda s: s.reconciler.refresh_historical_eps(ticker))
    console.print(f"[green]Historical EPS data refreshed:[/green] {count} rows")


@app.command("quick-fetch")
def quick_fetch(
    ticker: Annotated[str, typer.Argument(help="Stock ticker symbol (e.g., AAPL)")],
    name: Annotated[
        Optional[str],
        typer.Option("--name", help="Company name for a new company row"),
    ] = None,
) -> None:
    """Populate EPS for a newly watched ticker."""
    settings = _require_settings()
    count = _run(settings, lambda s: s.reconciler.quick_fetch(ticker, name))
    console.print(f"[green]Fetched earnings data for {ticker.upper()}:[/green] {count} rows")


@app.command()
def refresh(
    ticker: Annotated[str, typer.Argument(help="Stock ticker symbol (e.g., AAPL)")],
    triggered_by: Annotated[
        Optional[str],
        typer.Option("--by", help="Identity recorded on the workflow run"),
    ] = None,
) -> None:
    """Trigger the refresh workflow for a ticker."""
    settings = _require_settings()
    job = _run(settings, lambda s: s.dispatcher.dispatch(ticker, triggered_by))
    console.print(
        f"[green]Refresh initiated for {job.ticker}.[/green] "
        "Data will be updated within 1-2 minutes."
    )


@app.command()
def config() -> None:
    """Show current configuration.

    Displays all configuration values with API keys redacted.
    Also shows which market-data sources are available.
    """
    console.print()
    console.print("[bold]Earnings Tracker Configuration[/bold]")
    console.print()

    settings = _get_settings_safe()

    if settings is None:
        error_console.print("[red]Configuration is invalid or incomplete.[/red]")
        error_console.print()
        error_console.print("Required environment variables:")
        error_console.print("  - SEC_USER_AGENT (must contain email)")
        error_console.print()
        error_console.print("Create a .env file or set environment variables.")
        raise typer.Exit(1)

    table = Table(title="Settings", show_header=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    for key, value in settings.redacted_display().items():
        display_value = str(value) if value is not None else "[dim]not set[/dim]"
        table.add_row(key, display_value)

    console.print(table)

    console.print()
    sources = settings.available_sources
    if sources:
        console.print(f"[bold]Available market-data sources:[/bold] {', '.join(sources)}")
    else:
        console.print("[yellow]No market-data sources configured.[/yellow]")
    if not settings.dispatch_configured:
        console.print("[yellow]Refresh dispatch is not configured.[/yellow]")

    console.print()


@app.command()
def version() -> None:
    """Print the version number."""
    console.print(f"earnings-tracker version {__version__}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
