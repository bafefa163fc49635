from __future__ import annotations

import time

import pytest

from defi_event_generator.driver import BatchDriver, RunState, describe
from defi_event_generator.emitter import RecordEmitter
from tests.conftest import FakeStore, make_sampler


def _driver(store, sleep, count=5, delay_ms=3000, catalog="aave"):
    return BatchDriver(
        make_sampler(catalog),
        RecordEmitter(store, ttl_blocks=10_000, timeout_seconds=5.0),
        count=count,
        delay_ms=delay_ms,
        sleep=sleep,
    )


@pytest.mark.asyncio
async def test_all_records_emitted(fake_store, recording_sleep):
    driver = _driver(fake_store, recording_sleep)

    summary = await driver.run_async()

    assert len(fake_store.calls) == 5
    assert summary.requested == 5
    assert summary.attempted == 5
    assert summary.emitted == 5
    assert sum(summary.by_kind.values()) == 5
    assert summary.by_protocol == {"aave-v3": 5}
    assert summary.by_entity_type == {"protocol_event": 5}
    assert summary.catalog == "aave"
    assert driver.state is RunState.COMPLETED


@pytest.mark.asyncio
async def test_failed_write_does_not_stop_the_run(recording_sleep):
    store = FakeStore(fail_on={3})
    driver = _driver(store, recording_sleep)

    summary = await driver.run_async()

    assert len(store.calls) == 5
    assert summary.attempted == 5
    assert summary.emitted == 4
    assert sum(summary.by_kind.values()) == 4
    assert [outcome.ok for outcome in driver.outcomes] == [True, True, False, True, True]


@pytest.mark.asyncio
async def test_sleeps_between_records_only(fake_store, recording_sleep):
    await _driver(fake_store, recording_sleep, count=5, delay_ms=3000).run_async()

    assert recording_sleep.calls == [3.0, 3.0, 3.0, 3.0]


@pytest.mark.asyncio
async def test_sleeps_after_failed_records_too(recording_sleep):
    store = FakeStore(fail_on={1, 2})
    await _driver(store, recording_sleep, count=3, delay_ms=250).run_async()

    assert recording_sleep.calls == [0.25, 0.25]


@pytest.mark.asyncio
async def test_zero_delay_never_sleeps(fake_store, recording_sleep):
    await _driver(fake_store, recording_sleep, count=3, delay_ms=0).run_async()

    assert recording_sleep.calls == []


@pytest.mark.asyncio
async def test_zero_count_makes_no_writes(fake_store, recording_sleep):
    summary = await _driver(fake_store, recording_sleep, count=0).run_async()

    assert fake_store.calls == []
    assert recording_sleep.calls == []
    assert summary.emitted == 0
    assert summary.by_kind == {}


@pytest.mark.asyncio
async def test_driver_runs_once(fake_store, recording_sleep):
    driver = _driver(fake_store, recording_sleep, count=1)
    await driver.run_async()

    with pytest.raises(RuntimeError, match="already completed"):
        await driver.run_async()


@pytest.mark.asyncio
async def test_multi_catalog_tallies_by_entity_type(fake_store, recording_sleep):
    summary = await _driver(fake_store, recording_sleep, count=300, delay_ms=0, catalog="multi").run_async()

    assert summary.emitted == 300
    assert sum(summary.by_entity_type.values()) == 300
    assert sum(summary.by_kind.values()) == 300
    assert set(summary.by_protocol) <= {"aave-v3", "uniswap-v3"}
    # Hourly summaries carry a protocol but are not protocol events.
    assert summary.by_entity_type.get("aggregated_metric", 0) > 0
    assert sum(summary.by_protocol.values()) == summary.by_entity_type["protocol_event"]


def test_run_uses_fresh_event_loop(fake_store, recording_sleep):
    summary = _driver(fake_store, recording_sleep, count=2, delay_ms=0).run()

    assert summary.emitted == 2
    assert summary.as_dict()["emitted"] == 2


def test_negative_arguments_are_rejected(fake_store):
    with pytest.raises(ValueError):
        BatchDriver(make_sampler(), RecordEmitter(fake_store), count=-1, delay_ms=0)
    with pytest.raises(ValueError):
        BatchDriver(make_sampler(), RecordEmitter(fake_store), count=1, delay_ms=-5)


def test_describe_mentions_asset_and_block():
    record = make_sampler("aave").sample()
    line = describe(record)
    assert record.primary_asset in line
    assert str(record.block_number) in line


def test_timed_out_write_is_never_overlapped():
    store = FakeStore(delay_seconds=1.0)
    driver = BatchDriver(
        make_sampler(),
        RecordEmitter(store, timeout_seconds=0.1),
        count=3,
        delay_ms=0,
    )

    start = time.perf_counter()
    summary = driver.run()
    elapsed = time.perf_counter() - start

    assert store.max_in_flight == 1
    assert len(store.calls) == 1
    assert [outcome.error for outcome in driver.outcomes] == ["timeout", "busy", "busy"]
    assert summary.emitted == 0
    # The summary does not wait for the abandoned write to return.
    assert elapsed < 0.9
