"""
Batch driver: sample, emit, tally, and pause for a configured number of records.

Usage (example from CLI):
    from defi_event_generator.driver import BatchDriver

    driver = BatchDriver(sampler, emitter, count=50, delay_ms=3000)
    summary = driver.run()

The run is strictly sequential: one write in flight at a time, with the
inter-record delay as the only other suspension point. A failed write is
logged by the emitter and the run moves on; the summary counts successes.
"""

from __future__ import annotations

import asyncio
import enum
import time
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, List, Optional

from defi_event_generator.domain.models import (
    AggregatedMetric,
    PriceSnapshot,
    ProtocolEventBase,
    SampledRecord,
    record_kind,
)
from defi_event_generator.emitter import EmitOutcome, RecordEmitter
from defi_event_generator.sampler import EventSampler
from defi_event_generator.utils.logging import get_logger

log = get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class RunState(str, enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"


@dataclass
class RunCounters:
    """
    Per-run tallies of successful writes. Only protocol events count by protocol.
    """

    attempted: int = 0
    emitted: int = 0
    by_kind: Counter = field(default_factory=Counter)
    by_protocol: Counter = field(default_factory=Counter)
    by_entity_type: Counter = field(default_factory=Counter)

    def record(self, outcome: EmitOutcome) -> None:
        self.attempted += 1
        if not outcome.ok:
            return
        self.emitted += 1
        self.by_kind[record_kind(outcome.record)] += 1
        self.by_entity_type[outcome.record.entity_type] += 1
        if isinstance(outcome.record, ProtocolEventBase):
            self.by_protocol[outcome.record.protocol] += 1


@dataclass(frozen=True)
class RunSummary:
    catalog: str
    requested: int
    attempted: int
    emitted: int
    by_kind: Dict[str, int]
    by_protocol: Dict[str, int]
    by_entity_type: Dict[str, int]
    started_at: str
    duration_seconds: float

    def as_dict(self) -> dict:
        return {
            "catalog": self.catalog,
            "requested": self.requested,
            "attempted": self.attempted,
            "emitted": self.emitted,
            "by_kind": dict(self.by_kind),
            "by_protocol": dict(self.by_protocol),
            "by_entity_type": dict(self.by_entity_type),
            "started_at": self.started_at,
            "duration_seconds": round(self.duration_seconds, 2),
        }


def describe(record: SampledRecord) -> str:
    """One-line human description of a record for progress output."""
    if isinstance(record, ProtocolEventBase):
        return (
            f"{record.protocol} {record_kind(record)} | {record.primary_asset} | "
            f"{record.primary_amount} | block {record.block_number}"
        )
    if isinstance(record, AggregatedMetric):
        return f"Hourly Summary | {record.protocol} | ${record.total_volume_usd}"
    if isinstance(record, PriceSnapshot):
        return f"Price Snapshot | {record.asset} | ${record.price_usd}"
    return record_kind(record)


def _short(value: str, width: int = 20) -> str:
    return value if len(value) <= width else f"{value[:width]}..."


class BatchDriver:
    """
    Drive one run of `count` records with `delay_ms` between writes.

    Parameters
    ----------
    sampler : EventSampler
        Produces records.
    emitter : RecordEmitter
        Writes records; never raises.
    count : int
        Number of records to attempt.
    delay_ms : int
        Pause after each record except the last.
    sleep : coroutine function, optional
        Replacement for `asyncio.sleep` (tests).
    """

    def __init__(
        self,
        sampler: EventSampler,
        emitter: RecordEmitter,
        count: int,
        delay_ms: int,
        sleep: Optional[Sleep] = None,
    ) -> None:
        if count < 0:
            raise ValueError("count must be >= 0")
        if delay_ms < 0:
            raise ValueError("delay_ms must be >= 0")
        self.sampler = sampler
        self.emitter = emitter
        self.count = count
        self.delay_ms = delay_ms
        self._sleep: Sleep = sleep or asyncio.sleep
        self.state = RunState.IDLE
        self.counters = RunCounters()
        self.outcomes: List[EmitOutcome] = []

    async def run_async(self) -> RunSummary:
        if self.state is not RunState.IDLE:
            raise RuntimeError(f"Driver already {self.state.value}; create a new driver per run")
        self.state = RunState.RUNNING
        started_at = datetime.now(timezone.utc).isoformat()
        start = time.perf_counter()
        catalog = self.sampler.catalog.name

        log.info(
            f"[RUN START] {self.count} record(s) from catalog '{catalog}' "
            f"with {self.delay_ms}ms delay",
            extra={"catalog": catalog, "count": self.count, "delay_ms": self.delay_ms},
        )

        try:
            for ordinal in range(1, self.count + 1):
                record = self.sampler.sample()
                outcome = await self.emitter.emit(record, ordinal)
                self.counters.record(outcome)
                self.outcomes.append(outcome)
                receipt = outcome.receipt
                if receipt is not None:
                    log.info(
                        f"[RECORD OK] #{ordinal}/{self.count} {describe(record)} "
                        f"| key {_short(receipt.entity_key)} "
                        f"| tx {_short(receipt.tx_hash)}",
                        extra={
                            "ordinal": ordinal,
                            "kind": record_kind(record),
                            "entity_key": receipt.entity_key,
                            "tx_hash": receipt.tx_hash,
                        },
                    )

                if ordinal < self.count and self.delay_ms:
                    await self._sleep(self.delay_ms / 1000.0)
        finally:
            self.emitter.close()

        duration = time.perf_counter() - start
        self.state = RunState.COMPLETED
        summary = RunSummary(
            catalog=catalog,
            requested=self.count,
            attempted=self.counters.attempted,
            emitted=self.counters.emitted,
            by_kind=dict(self.counters.by_kind),
            by_protocol=dict(self.counters.by_protocol),
            by_entity_type=dict(self.counters.by_entity_type),
            started_at=started_at,
            duration_seconds=duration,
        )
        log.info(
            f"[RUN COMPLETE] Pushed {summary.emitted}/{summary.requested} record(s)",
            extra={"emitted": summary.emitted, "attempted": summary.attempted, "catalog": catalog},
        )
        return summary

    def run(self) -> RunSummary:
        """
        Execute the run to completion on a fresh event loop.
        """
        return asyncio.run(self.run_async())


__all__ = [
    "BatchDriver",
    "RunCounters",
    "RunState",
    "RunSummary",
    "describe",
]
