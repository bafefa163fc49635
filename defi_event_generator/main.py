from __future__ import annotations

import random
import sys
import time
from datetime import datetime, timezone
from typing import Optional

import typer

from defi_event_generator.config import (
    PRESETS,
    ConfigurationError,
    Settings,
    get_settings,
    resolve_preset,
)
from defi_event_generator.driver import BatchDriver
from defi_event_generator.emitter import RecordEmitter
from defi_event_generator.infrastructure.store import Attribute, QueryableEntityStore, connect_arkiv
from defi_event_generator.reporter import print_catalog, print_records, print_summary
from defi_event_generator.sampler import EventSampler, available_catalogs, get_catalog, isoformat_utc
from defi_event_generator.utils.logging import configure_logging

app = typer.Typer(help="Synthetic DeFi event generator for the Arkiv entity store.")

HELLO_TTL_BLOCKS = 1000
HELLO_QUERY_DELAY_SECONDS = 3.0
HELLO_MESSAGE = "Hello World from Arkiv!"


def build_store(settings: Settings, private_key: str) -> QueryableEntityStore:
    """Construct the live store. Tests replace this with a fake."""
    return connect_arkiv(settings.rpc_url, private_key)


def _require_credential(settings: Settings) -> str:
    try:
        return settings.require_credential()
    except ConfigurationError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc


def _connect(settings: Settings, private_key: str) -> QueryableEntityStore:
    try:
        return build_store(settings, private_key)
    except ImportError as exc:
        typer.echo(
            "Error: the Arkiv SDK is not installed. "
            "Install it with: pip install 'defi-event-generator[arkiv]'",
            err=True,
        )
        raise typer.Exit(code=1) from exc


def _preset_name(preset: Optional[str], settings: Settings) -> str:
    name = preset or settings.generator_preset
    try:
        resolve_preset(name)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--preset") from exc
    return name


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"RPC={settings.rpc_url} | key={settings.masked_private_key()} | "
        f"preset={settings.generator_preset} ttl={settings.entity_ttl_blocks} blocks "
        f"timeout={settings.write_timeout_seconds}s retries={settings.write_retries}"
    )
    for name, preset in sorted(PRESETS.items()):
        typer.echo(f"  preset {name}: count={preset.count} delay={preset.delay_ms}ms")


@app.command()
def catalogs() -> None:
    """
    List the available catalogs with their weights and selection probabilities.
    """
    for name in available_catalogs():
        print_catalog(get_catalog(name))


@app.command()
def sample(
    count: int = typer.Argument(5, min=1, help="Number of records to sample."),
    preset: Optional[str] = typer.Option(None, "--preset", "-p", help="aave or multi."),
    seed: Optional[int] = typer.Option(None, "--seed", help="Deterministic RNG seed."),
    as_json: bool = typer.Option(False, "--json", help="Print JSON lines instead of a table."),
) -> None:
    """
    Sample records locally without writing them. No credential required.
    """
    settings = get_settings()
    preset_name = _preset_name(preset, settings)
    sampler = EventSampler(
        get_catalog(resolve_preset(preset_name).catalog),
        rng=random.Random(seed) if seed is not None else None,
    )
    records = [sampler.sample() for _ in range(count)]
    if as_json:
        for record in records:
            typer.echo(record.model_dump_json(by_alias=True, exclude_none=True))
        return
    print_records(records)


@app.command()
def run(
    count: Optional[int] = typer.Argument(
        None, min=0, help="Records to generate (default from preset)."
    ),
    delay_ms: Optional[int] = typer.Argument(
        None, min=0, help="Delay between records in milliseconds (default from preset)."
    ),
    preset: Optional[str] = typer.Option(
        None,
        "--preset",
        "-p",
        help="Catalog and run defaults: aave (50 records, 3000ms) or multi (100 records, 2000ms).",
    ),
    seed: Optional[int] = typer.Option(None, "--seed", help="Deterministic RNG seed."),
) -> None:
    """
    Generate synthetic events and push them to the store one at a time.
    """
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    private_key = _require_credential(settings)

    preset_name = _preset_name(preset, settings)
    run_preset = resolve_preset(preset_name)
    total = run_preset.count if count is None else count
    delay = run_preset.delay_ms if delay_ms is None else delay_ms

    store = _connect(settings, private_key)
    typer.echo(
        f"Generating {total} record(s) from preset '{preset_name}' with {delay}ms delay "
        f"(ttl={settings.entity_ttl_blocks} blocks)."
    )

    sampler = EventSampler(
        get_catalog(run_preset.catalog),
        rng=random.Random(seed) if seed is not None else None,
    )
    emitter = RecordEmitter(
        store,
        ttl_blocks=settings.entity_ttl_blocks,
        timeout_seconds=settings.write_timeout_seconds,
        retries=settings.write_retries,
    )
    summary = BatchDriver(sampler, emitter, count=total, delay_ms=delay).run()
    print_summary(summary)


@app.command()
def hello(
    wait_seconds: float = typer.Option(
        HELLO_QUERY_DELAY_SECONDS,
        "--wait",
        min=0,
        help="Seconds to let the write land before querying it back.",
    ),
) -> None:
    """
    Write a "Hello World" entity and read it back to check credentials and connectivity.
    """
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    private_key = _require_credential(settings)
    store = _connect(settings, private_key)

    try:
        receipt = store.create_entity(
            payload=HELLO_MESSAGE.encode("utf-8"),
            content_type="text/plain",
            attributes=[
                Attribute("type", "greeting"),
                Attribute("message", "hello-world"),
                Attribute("timestamp", isoformat_utc(datetime.now(timezone.utc))),
            ],
            expires_in=HELLO_TTL_BLOCKS,
        )
        typer.echo("Entity created successfully!")
        typer.echo(f"  Entity Key: {receipt.entity_key}")
        typer.echo(f"  Transaction Hash: {receipt.tx_hash}")

        if wait_seconds:
            typer.echo("Waiting for transaction to be processed...")
            time.sleep(wait_seconds)
        typer.echo("Querying for greeting entities...")
        entities = store.find_entities("type", "greeting")
    except Exception as exc:  # noqa: BLE001 - any store failure ends the demo
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    typer.echo(f"Found {len(entities)} greeting entity(ies)")
    if entities:
        entity = entities[0]
        content = (entity.payload or b"").decode("utf-8", errors="replace")
        typer.echo("Entity Details:")
        typer.echo(f"  Key: {entity.entity_key}")
        typer.echo(f"  Content: {content}")
        typer.echo("  Attributes:")
        for key, value in entity.attributes.items():
            typer.echo(f"    {key}: {value}")


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
