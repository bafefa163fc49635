from __future__ import annotations

from typing import Iterable, Mapping, Optional

from rich import box
from rich.console import Console
from rich.table import Table

from defi_event_generator.domain.catalog import WeightedCatalog
from defi_event_generator.domain.models import SampledRecord, record_kind
from defi_event_generator.driver import RunSummary, describe

PROTOCOL_LABELS = {"aave-v3": "Aave V3", "uniswap-v3": "Uniswap V3"}
ENTITY_LABELS = {
    "protocol_event": "Protocol Events",
    "aggregated_metric": "Aggregated Metrics",
    "price_snapshot": "Price Snapshots",
}


def _add_breakdown(table: Table, section: str, counts: Mapping[str, int], labels: Mapping[str, str]) -> None:
    for key, count in sorted(counts.items(), key=lambda item: (-item[1], item[0])):
        table.add_row(section, labels.get(key, key), f"{count:,}")
        section = ""


def print_summary(summary: RunSummary, console: Optional[Console] = None) -> None:
    """
    Render the end-of-run tallies as a rich table.

    Only successful writes are counted; the caption shows how many were requested.
    """
    console = console or Console()

    table = Table(
        title=f"Generation complete: pushed {summary.emitted:,} record(s)",
        box=box.ROUNDED,
        caption=(
            f"catalog={summary.catalog} │ requested={summary.requested:,} │ "
            f"duration={summary.duration_seconds:.1f}s"
        ),
    )
    table.add_column("Breakdown", style="cyan", no_wrap=True)
    table.add_column("Kind", style="magenta")
    table.add_column("Count", justify="right", style="bold green")

    table.add_row("Total", "", f"{summary.emitted:,}")
    _add_breakdown(table, "By entity", summary.by_entity_type, ENTITY_LABELS)
    _add_breakdown(table, "By archetype", summary.by_kind, {})
    _add_breakdown(table, "By protocol", summary.by_protocol, PROTOCOL_LABELS)

    console.print(table)


def print_records(records: Iterable[SampledRecord], console: Optional[Console] = None) -> None:
    """Preview sampled records without writing them anywhere."""
    console = console or Console()
    table = Table(title="Sampled records (not written)", box=box.ROUNDED)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Kind", style="cyan", no_wrap=True)
    table.add_column("Summary", style="green")

    shown = 0
    for shown, record in enumerate(records, start=1):
        table.add_row(str(shown), record_kind(record), describe(record))

    if not shown:
        console.print("[yellow]No records to display.[/yellow]")
        return
    console.print(table)


def print_catalog(catalog: WeightedCatalog, console: Optional[Console] = None) -> None:
    console = console or Console()
    table = Table(
        title=f"Catalog '{catalog.name}'",
        box=box.ROUNDED,
        caption=f"{len(catalog.universe.assets)} assets │ {len(catalog.universe.users)} addresses",
    )
    table.add_column("Archetype", style="cyan", no_wrap=True)
    table.add_column("Weight", justify="right", style="magenta")
    table.add_column("Probability", justify="right", style="bold green")

    probabilities = catalog.probabilities()
    for archetype, weight in catalog.entries:
        table.add_row(archetype.name, str(weight), f"{probabilities[archetype.name]:.1%}")

    console.print(table)
