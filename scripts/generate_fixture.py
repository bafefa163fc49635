"""
Offline fixture generation for the DeFi Event Generator.

Samples records with a deterministic seed and writes them as JSON lines, in
the same wire shape the emitter sends as payload, without touching the store.
"""

from __future__ import annotations

import json
import random
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import typer

from defi_event_generator.sampler import BlockCounter, EventSampler, available_catalogs, get_catalog

app = typer.Typer(help="Generate seeded synthetic DeFi events as JSON lines (no store writes).")

# Pinned so a seed fully determines the file contents.
FIXTURE_EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)
FIXTURE_START_BLOCK = 18_500_000


def _generate_records_jsonl(
    jsonl_path: Path, records: int, batch_size: int, seed: int, catalog: str
) -> int:
    rng = random.Random(seed)
    sampler = EventSampler(
        get_catalog(catalog),
        rng=rng,
        block_counter=BlockCounter(start=FIXTURE_START_BLOCK, rng=rng),
        clock=lambda: FIXTURE_EPOCH,
    )

    written = 0
    with jsonl_path.open("w", encoding="utf-8") as f:
        buffer: list[str] = []
        for _ in range(records):
            buffer.append(json.dumps(sampler.sample().to_wire()))
            if len(buffer) >= batch_size:
                f.write("\n".join(buffer) + "\n")
                written += len(buffer)
                buffer.clear()
        if buffer:
            f.write("\n".join(buffer) + "\n")
            written += len(buffer)
    return written


@app.command()
def main(
    records: int = typer.Option(
        1_000,
        "--records",
        "-n",
        help="Number of records to generate.",
    ),
    batch_size: int = typer.Option(
        500,
        "--batch-size",
        "-b",
        help="Batch size for buffered writes.",
    ),
    seed: int = typer.Option(
        42,
        "--seed",
        help="Deterministic RNG seed.",
    ),
    catalog: str = typer.Option(
        "aave",
        "--catalog",
        "-c",
        help=f"Catalog to sample from ({', '.join(available_catalogs())}).",
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="JSONL output path (default: fixtures/<catalog>-<seed>.jsonl).",
    ),
) -> None:
    """
    Generate seeded synthetic events into a JSON lines file.
    """
    if catalog not in available_catalogs():
        raise typer.BadParameter(f"Unknown catalog '{catalog}'", param_hint="--catalog")

    jsonl_path = output or Path("fixtures") / f"{catalog}-{seed}.jsonl"
    jsonl_path.parent.mkdir(parents=True, exist_ok=True)

    start = time.perf_counter()
    typer.echo(f"Generating {records:,} records -> {jsonl_path} (catalog={catalog}, seed={seed})")
    written = _generate_records_jsonl(
        jsonl_path, records=records, batch_size=batch_size, seed=seed, catalog=catalog
    )
    duration = time.perf_counter() - start
    typer.echo(f"Wrote {written:,} records in {duration:.2f}s")


if __name__ == "__main__":
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)
