# src/cli/runner.py

"""Headless feed runner: drives the FeedController once and prints."""

import json
import logging
import sys

from rich.console import Console
from rich.table import Table

from src.exceptions import BayBotError
from src.models.feed_state import FeedState
from src.models.listing import ItemType, Listing
from src.services.feed_controller import FeedController
from src.sources.base_source import ListingSource
from src.sources.ebay_source import EbaySource
from src.sources.mock_source import MockSource

logger = logging.getLogger("baybot.cli")

# Stderr console for status messages so stdout stays clean for JSON
_err = Console(stderr=True)


def _print_table(state: FeedState) -> None:
    """Render a Rich table of the feed to stdout."""
    is_auction = state.item_type is ItemType.AUCTION
    title = (
        f"{state.item_type.value.title()}s for '{state.query}'"
        if state.query
        else f"Curated {state.item_type.value}s"
    )
    table = Table(title=title, show_lines=True, title_style="bold cyan")
    table.add_column("#", style="dim", width=4)
    table.add_column("Title", max_width=60)
    table.add_column("Price", justify="right", style="green")
    if is_auction:
        table.add_column("Bids", justify="right")
        table.add_column("Time left", justify="center")
        table.add_column("Rarity", justify="right")
    else:
        table.add_column("Discount", justify="right", style="yellow")
    table.add_column("Seller", justify="right")
    table.add_column("URL", overflow="fold", style="dim")

    for idx, item in enumerate(state.items, 1):
        row = [str(idx), item.title[:60], f"£{item.price:,.2f}"]
        if is_auction:
            row += [
                str(item.auction.bid_count if item.auction else 0),
                item.time_left() or "—",
                f"{item.rarity_score:.0f}" if item.rarity_score is not None else "—",
            ]
        else:
            row.append(
                f"{item.discount_percentage}%" if item.discount_percentage else "—"
            )
        row += [f"{item.seller_reputation:g}%", item.item_link]
        table.add_row(*row)

    Console().print(table)


def _dump_json(items: list[Listing]) -> None:
    json.dump(
        [item.to_dict() for item in items],
        sys.stdout,
        ensure_ascii=False,
        indent=2,
    )
    sys.stdout.write("\n")


async def cli_feed(
    query: str,
    item_type: ItemType,
    output_format: str,
    offline: bool = False,
    analyze_id: str | None = None,
    source: ListingSource | None = None,
    controller: FeedController | None = None,
) -> int:
    """Load one feed headlessly and return an exit code (0=ok, 1=fail)."""
    if controller is None:
        source = source or (MockSource() if offline else EbaySource())
        controller = FeedController(source)

    label = f"'{query}'" if query else "curated"
    _err.print(
        f"[bold]Loading {item_type.value}s:[/bold] {label}  "
        f"[dim]source={controller.source.source_name}[/dim]"
    )

    try:
        state = await controller.load_initial(item_type, query)
        await controller.drain()

        for notice in state.notices:
            _err.print(f"[dim]{notice}[/dim]")
        if state.error:
            style = "bold red" if state.is_auth_error else "red"
            _err.print(f"[{style}]Error: {state.error}[/{style}]")
            return 1
        if not state.items:
            _err.print(f"[yellow]No {item_type.value}s found.[/yellow]")
            return 1

        if analyze_id is not None:
            try:
                result = await controller.analyze(analyze_id)
            except BayBotError as exc:
                logger.error("Analysis failed: %s", exc, exc_info=True)
                _err.print(f"[red]Analysis failed: {exc}[/red]")
            else:
                _err.print(
                    f"[bold]{analyze_id}[/bold] risk {result.risk_score:.0f}, "
                    f"rarity {result.rarity_score:.0f}: {result.summary}"
                )

        _err.print(f"[green]✓ {len(state.items)} {item_type.value}s[/green]")
        if output_format == "table":
            _print_table(state)
        else:
            _dump_json(state.items)
        return 0
    finally:
        await controller.close()
