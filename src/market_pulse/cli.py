"""market-pulse command line entry point using Typer and Rich."""

import asyncio
import json
from typing import Collection, List, Optional

import typer
from rich.console import Console
from rich.table import Table

from market_pulse.config.settings import Config
from market_pulse.providers.market_board import STATUS_ERROR, InstrumentQuote, MarketDataService
from market_pulse.providers.poller import DashboardPoller
from market_pulse.providers.instruments import TICKER_FEATURE
from market_pulse.providers.reference_data import EXCHANGE_NOTICE, MARKET_NOTICE, MARKET_PARTIAL_NOTICE
from market_pulse.providers.sentiment import VARIANTS, resolve_tone
from market_pulse.utils.logger import setup_logger

app = typer.Typer(
    name="market-pulse",
    help="Investor dashboard feeds: quotes, fear & greed, headlines",
    add_completion=False,
)
console = Console()


def _format_number(value: Optional[float], digits: int = 2) -> str:
    if value is None:
        return "-"
    return f"{value:,.{digits}f}"


def _format_change(value: Optional[float]) -> str:
    if value is None:
        return "-"
    color = "green" if value > 0 else "red" if value < 0 else "white"
    return f"[{color}]{value:+.2f}%[/{color}]"


def _quotes_table(quotes: List[InstrumentQuote]) -> Table:
    table = Table(title="Market snapshot")
    table.add_column("Instrument", style="cyan")
    table.add_column("Price", justify="right")
    table.add_column("Change", justify="right")
    table.add_column("Source")
    table.add_column("Status")

    for quote in quotes:
        digits = 4 if quote.price is not None and abs(quote.price) < 10 else 2
        source = quote.provider_label or "-"
        if quote.fallback_used:
            source = f"[yellow]{source}[/yellow]"
        status = f"[red]{quote.status}[/red]" if quote.status == STATUS_ERROR else quote.status
        table.add_row(quote.title, _format_number(quote.price, digits), _format_change(quote.change_percent), source, status)
    return table


def reference_notices(quotes: List[InstrumentQuote], ticker_ids: Collection[str]) -> List[str]:
    """Notices to show under a snapshot that leans on reference values.

    FX, oil and metal quotes get the exchange notice; indices and crypto get
    the market notice, or its partial form when only some of them fell back.
    """
    notices: List[str] = []
    market = [quote for quote in quotes if quote.instrument not in ticker_ids]
    market_fallbacks = sum(1 for quote in market if quote.fallback_used)
    if market_fallbacks and market_fallbacks == len(market):
        notices.append(MARKET_NOTICE)
    elif market_fallbacks:
        notices.append(MARKET_PARTIAL_NOTICE)
    if any(quote.fallback_used for quote in quotes if quote.instrument in ticker_ids):
        notices.append(EXCHANGE_NOTICE)
    return notices


def _print_quotes(quotes: List[InstrumentQuote], ticker_ids: Collection[str], as_json: bool) -> None:
    if as_json:
        console.print_json(json.dumps([quote.to_dict() for quote in quotes]))
        return

    console.print(_quotes_table(quotes))
    for notice in reference_notices(quotes, ticker_ids):
        console.print(f"[yellow]{notice}[/yellow]")


def _bootstrap() -> Config:
    config = Config()
    setup_logger(config.log_level)
    return config


async def _run_snapshot(config: Config, watch: bool, as_json: bool) -> None:
    service = MarketDataService(config)
    ticker_ids = {spec.id for spec in service.board.instruments if spec.feature == TICKER_FEATURE}
    try:
        if not watch:
            _print_quotes(await service.board.snapshot(), ticker_ids, as_json)
            return

        poller = DashboardPoller(service.board, interval=config.price_poll_seconds)
        await poller.start()
        try:
            seen = 0
            while True:
                if poller.refresh_count != seen:
                    seen = poller.refresh_count
                    _print_quotes(poller.latest(), ticker_ids, as_json)
                await asyncio.sleep(1)
        finally:
            await poller.stop()
    finally:
        await service.close()


@app.command()
def snapshot(
    watch: bool = typer.Option(False, "--watch/--once", help="Keep polling instead of printing one snapshot"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a table"),
) -> None:
    """Resolve every dashboard instrument and print the result."""
    config = _bootstrap()
    try:
        asyncio.run(_run_snapshot(config, watch, as_json))
    except KeyboardInterrupt:
        console.print("[dim]Stopped.[/dim]")


@app.command()
def sentiment(
    variant: str = typer.Argument("crypto", help=f"One of: {', '.join(VARIANTS)}"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a table"),
) -> None:
    """Show the fear & greed history."""
    if variant not in VARIANTS:
        console.print(f"[red]Unknown variant '{variant}'. Choose from: {', '.join(VARIANTS)}[/red]")
        raise typer.Exit(1)

    config = _bootstrap()

    async def _run():
        service = MarketDataService(config)
        try:
            return await service.sentiment.history(variant)
        finally:
            await service.close()

    history = asyncio.run(_run())
    if as_json:
        console.print_json(history.model_dump_json())
        return

    table = Table(title=f"Fear & Greed ({variant})")
    table.add_column("Date")
    table.add_column("Value", justify="right")
    table.add_column("Classification")
    table.add_column("Tone")
    for entry in history.entries[:10]:
        table.add_row(
            entry.timestamp.strftime("%Y-%m-%d %H:%M"),
            f"{entry.value:.0f}",
            entry.classification,
            resolve_tone(entry),
        )
    console.print(table)
    if history.notice:
        console.print(f"[yellow]{history.notice}[/yellow]")


@app.command()
def news(
    limit: int = typer.Option(10, "--limit", "-n", help="Maximum headlines to show"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a list"),
) -> None:
    """Show the latest market headlines."""
    config = _bootstrap()

    async def _run():
        service = MarketDataService(config)
        try:
            return await service.news.headlines(limit)
        finally:
            await service.close()

    feed = asyncio.run(_run())
    if as_json:
        console.print_json(feed.model_dump_json())
        return

    for item in feed.items:
        console.print(f"[bold]{item.title}[/bold] [dim]({item.source}, {item.published_at:%Y-%m-%d %H:%M})[/dim]")
        if item.summary:
            console.print(f"  {item.summary}")
        console.print(f"  [blue]{item.url}[/blue]")
    if feed.notice:
        console.print(f"[yellow]{feed.notice}[/yellow]")


if __name__ == "__main__":
    app()
